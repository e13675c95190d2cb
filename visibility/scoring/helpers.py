"""
Scoring Helper Functions and Constants

CTR curve, rank sentinels and the small numeric helpers shared by the
extractor, the sentiment normalizer and the aggregator.
"""

import math
import re
from typing import Any, Dict, Optional


# ============================================================================
# RANKS
# ============================================================================

UNRANKED = 10                         # Rank for brands the answer never names
KEYWORD_PERFORMANCE = "Keyword Performance"   # Question label of aggregate rows
MSV_QUESTION = "MSV"                  # Question label of search-volume raw answers
MAX_SEARCH_VOLUME = 2**63 - 1         # Largest value the msv INTEGER column holds

_VOLUME_PATTERN = re.compile(r"\d[\d,]*")


# ============================================================================
# CTR CURVE (Based on industry benchmarks - Backlinko/Sistrix 2024 studies)
# Used only when the brand config carries no "ctr" mapping.
# ============================================================================

CTR_CURVE: Dict[int, float] = {
    1: 0.317,   # 31.7% CTR for position 1
    2: 0.247,   # 24.7%
    3: 0.187,   # 18.7%
    4: 0.133,   # 13.3%
    5: 0.095,   # 9.5%
    6: 0.069,   # 6.9%
    7: 0.051,   # 5.1%
    8: 0.038,   # 3.8%
    9: 0.029,   # 2.9%
    10: 0.022,  # 2.2%
}


def share_of_voice(rank: int, ctr_curve: Dict[int, float]) -> float:
    """
    Click-weighted visibility for a rank, as a percentage.

    Ranks missing from the curve score 0.
    """
    return ctr_curve.get(rank, 0) * 100


# ============================================================================
# NUMERIC HELPERS
# ============================================================================

def round_half_up(value: float) -> int:
    """Nearest integer, halves rounded toward +infinity (2.5 -> 3, -2.5 -> -2)."""
    return int(math.floor(value + 0.5))


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def finite_number(value: Any) -> Optional[float]:
    """Float for numeric-looking input, None for anything else (incl. NaN/inf/bools)."""
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def mean(values, default: float) -> float:
    values = list(values)
    return sum(values) / len(values) if values else default


def parse_search_volume(text: str) -> int:
    """
    First number in a free-text search-volume answer; 0 when none.

    Thousands separators are dropped ("1,200" -> 1200) and values beyond
    the 64-bit column range are capped at MAX_SEARCH_VOLUME.
    """
    match = _VOLUME_PATTERN.search(str(text or ""))
    if not match:
        return 0
    return min(int(match.group().replace(",", "")), MAX_SEARCH_VOLUME)
