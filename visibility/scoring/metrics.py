"""
Metric Extractor

Turns one raw answer into per-brand visibility metrics:

1. Mentions - case-insensitive whole-word occurrences of the brand name
2. Rank - order of first occurrence (1 = named first); never named = 10
3. Share of voice - CTR curve value for the rank, as a percentage
4. Links - URLs in the answer that contain the brand's configured domain

Pure function of its inputs; no I/O.
"""

import math
import re
from dataclasses import dataclass
from typing import Dict, List, Sequence

from .helpers import UNRANKED, share_of_voice

_URL_PATTERN = re.compile(r"https?://[^\")\s]+")
_TRAILING_PUNCTUATION = ".,;:!?'*]>"
LINK_SEPARATOR = "; "


@dataclass(frozen=True)
class BrandMetric:
    """Metrics for one brand in one answer."""
    brand: str
    mentions: int
    rank: int
    sov: float
    links: str = ""

    @property
    def link_list(self) -> List[str]:
        return [u for u in self.links.split(LINK_SEPARATOR) if u]


def _brand_pattern(brand: str) -> "re.Pattern":
    return re.compile(rf"\b{re.escape(brand)}\b", re.IGNORECASE)


def count_mentions(text: str, brand: str) -> int:
    return len(_brand_pattern(brand).findall(text))


def first_position(text: str, brand: str) -> float:
    """Offset of the first whole-word occurrence, infinity when absent."""
    match = _brand_pattern(brand).search(text)
    return match.start() if match else math.inf


def rank_brands(text: str, brands: Sequence[str]) -> Dict[str, int]:
    """
    Rank brands by first occurrence.

    Ranked brands get their 1-based index in position order, capped at
    UNRANKED; brands that never occur all get UNRANKED. Ties keep BrandSet
    order.
    """
    positions = {b: first_position(text, b) for b in brands}
    ordered = sorted(brands, key=lambda b: positions[b])
    return {
        b: (UNRANKED if positions[b] == math.inf else min(i + 1, UNRANKED))
        for i, b in enumerate(ordered)
    }


def extract_urls(text: str) -> List[str]:
    """URLs in text order, without trailing sentence punctuation."""
    return [u.rstrip(_TRAILING_PUNCTUATION) for u in _URL_PATTERN.findall(text)]


def extract_links(text: str, brands: Sequence[str], domains: Dict[str, str]) -> Dict[str, str]:
    """
    Attribute URLs to brands by domain substring.

    A brand without a configured domain never receives links.
    """
    urls = extract_urls(text)
    links = {}
    for brand in brands:
        domain = domains.get(brand, "")
        links[brand] = LINK_SEPARATOR.join(u for u in urls if domain in u) if domain else ""
    return links


def extract_metrics(
    text: str,
    brands: Sequence[str],
    ctr_curve: Dict[int, float],
    domains: Dict[str, str] = None,
) -> List[BrandMetric]:
    """
    Extract per-brand metrics from one answer.

    Args:
        text: Raw answer text
        brands: BrandSet (subject first)
        ctr_curve: Rank -> click-through rate
        domains: Brand name -> configured domain

    Returns:
        One BrandMetric per brand, in BrandSet order
    """
    text = text or ""
    ranks = rank_brands(text, brands)
    links = extract_links(text, brands, domains or {})

    return [
        BrandMetric(
            brand=brand,
            mentions=count_mentions(text, brand),
            rank=ranks[brand],
            sov=share_of_voice(ranks[brand], ctr_curve),
            links=links[brand],
        )
        for brand in brands
    ]
