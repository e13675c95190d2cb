"""
Scoring Module

Per-answer and per-keyword visibility metrics:

1. **Metric extraction** - mentions, first-occurrence rank, share of voice
   (CTR curve x 100) and brand-domain links for every brand in the BrandSet.

2. **Sentiment** - provider-rated sentiment per brand, clamped to [-100, 100].

3. **Aggregation** - "Keyword Performance" rows: summed mentions, mean
   rank (10 when never ranked), mean SOV and mean sentiment.

Example Usage:
    from visibility.scoring import extract_metrics

    metrics = extract_metrics(
        "Globex offers fast shipping. Acme is also popular.",
        ["Acme", "Globex"],
        {1: 0.30, 2: 0.15},
    )
    # Globex rank 1 (30.0%), Acme rank 2 (15.0%)
"""

from .helpers import (
    CTR_CURVE,
    KEYWORD_PERFORMANCE,
    MSV_QUESTION,
    UNRANKED,
    parse_search_volume,
    round_half_up,
    share_of_voice,
)
from .metrics import (
    LINK_SEPARATOR,
    BrandMetric,
    extract_links,
    extract_metrics,
    extract_urls,
    rank_brands,
)
from .sentiment import (
    SENTIMENT_SYSTEM_PROMPT,
    neutral_sentiment,
    normalize_sentiment,
    score_sentiment,
)
from .aggregate import KeywordAccumulator, KeywordPerformance, aggregate_keyword

__all__ = [
    # Helpers
    "CTR_CURVE",
    "KEYWORD_PERFORMANCE",
    "MSV_QUESTION",
    "UNRANKED",
    "parse_search_volume",
    "round_half_up",
    "share_of_voice",
    # Extraction
    "LINK_SEPARATOR",
    "BrandMetric",
    "extract_links",
    "extract_metrics",
    "extract_urls",
    "rank_brands",
    # Sentiment
    "SENTIMENT_SYSTEM_PROMPT",
    "neutral_sentiment",
    "normalize_sentiment",
    "score_sentiment",
    # Aggregation
    "KeywordAccumulator",
    "KeywordPerformance",
    "aggregate_keyword",
]
