"""
Sentiment Normalizer

Asks a provider to rate the sentiment expressed about each brand in an
answer and coerces the reply into {brand: int in [-100, 100]}.

Degrades, never raises: a reply that is not a JSON object gives every
brand 0; a missing or non-numeric value gives that brand 0.
"""

import logging
from typing import Any, Dict, Sequence

from visibility.output.parser import Malformed, decode_json_object
from .helpers import clamp, finite_number, round_half_up

logger = logging.getLogger(__name__)

SENTIMENT_MIN = -100
SENTIMENT_MAX = 100

SENTIMENT_SYSTEM_PROMPT = """You are a strict sentiment rater. Rate the sentiment expressed ABOUT EACH brand in the list,
based solely on the PASSAGE below. Return ONLY a minified JSON object whose KEYS match the brand names exactly and
whose VALUES are integers in [-100,100]:
100 = very positive endorsement; 0 = neutral/no opinion; -100 = very negative. If the passage does not express any
opinion about a brand, use 0. Do not include extra keys."""


def neutral_sentiment(brands: Sequence[str]) -> Dict[str, int]:
    return {b: 0 for b in brands}


def normalize_sentiment(raw: Any, brands: Sequence[str]) -> Dict[str, int]:
    """
    Coerce a rater reply into a bounded integer map.

    Args:
        raw: Reply text from the rater
        brands: BrandSet; the result has exactly these keys

    Returns:
        {brand: int in [-100, 100]}
    """
    decoded = decode_json_object(raw)
    if isinstance(decoded, Malformed):
        logger.warning(f"Sentiment JSON parse failed ({decoded.reason}); defaulting to 0s. Raw: {decoded.raw[:200]!r}")
        return neutral_sentiment(brands)

    scores = {}
    for brand in brands:
        value = finite_number(decoded.value.get(brand))
        scores[brand] = 0 if value is None else clamp(round_half_up(value), SENTIMENT_MIN, SENTIMENT_MAX)
    return scores


async def score_sentiment(router, provider: str, text: str, brands: Sequence[str]) -> Dict[str, int]:
    """
    Rate per-brand sentiment of an answer with the given provider.

    The router degrades provider failures to '', which normalizes to all 0s.
    """
    user = f"BRANDS: {', '.join(brands)}\nPASSAGE:\n{text}"
    raw = await router.ask(provider, SENTIMENT_SYSTEM_PROMPT, user)
    return normalize_sentiment(raw, brands)
