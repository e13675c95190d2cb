"""
Keyword Aggregator

Rolls per-question metrics for one keyword up into "Keyword Performance"
rows: summed mentions and mean rank / share of voice / sentiment.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Sequence

from .helpers import UNRANKED, mean, round_half_up
from .metrics import BrandMetric


@dataclass(frozen=True)
class KeywordPerformance:
    """Aggregate metrics for one brand over a keyword's questions."""
    brand: str
    mentions: int
    rank: float
    sov: float
    sentiment: int
    links: str = ""


@dataclass
class KeywordAccumulator:
    """
    Running per-brand totals for one keyword.

    Owned by a single provider pipeline; not shared across tasks.
    """

    brands: Sequence[str]
    mentions: Dict[str, int] = field(default_factory=dict)
    ranks: Dict[str, List[int]] = field(default_factory=dict)
    sovs: Dict[str, List[float]] = field(default_factory=dict)
    sentiments: Dict[str, List[int]] = field(default_factory=dict)

    def __post_init__(self):
        for brand in self.brands:
            self.mentions.setdefault(brand, 0)
            self.ranks.setdefault(brand, [])
            self.sovs.setdefault(brand, [])
            self.sentiments.setdefault(brand, [])

    def add(self, metrics: Sequence[BrandMetric], sentiment: Mapping[str, int]) -> None:
        """Record one question's metrics."""
        for m in metrics:
            if m.brand not in self.mentions:
                continue
            self.mentions[m.brand] += m.mentions
            self.ranks[m.brand].append(m.rank)
            self.sovs[m.brand].append(m.sov)
            self.sentiments[m.brand].append(int(sentiment.get(m.brand, 0) or 0))

    def aggregate(self) -> List[KeywordPerformance]:
        """One aggregate per brand, in BrandSet order."""
        return [
            KeywordPerformance(
                brand=brand,
                mentions=self.mentions[brand],
                rank=mean(self.ranks[brand], default=float(UNRANKED)),
                sov=mean(self.sovs[brand], default=0.0),
                sentiment=round_half_up(mean(self.sentiments[brand], default=0.0)),
            )
            for brand in self.brands
        ]


def aggregate_keyword(
    brands: Sequence[str],
    per_question: Sequence[tuple],
) -> List[KeywordPerformance]:
    """
    Aggregate (metrics, sentiment) pairs for one keyword.

    Args:
        brands: BrandSet
        per_question: [(List[BrandMetric], {brand: sentiment}), ...]
    """
    accumulator = KeywordAccumulator(brands)
    for metrics, sentiment in per_question:
        accumulator.add(metrics, sentiment)
    return accumulator.aggregate()
