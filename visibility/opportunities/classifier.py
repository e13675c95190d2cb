"""
Opportunity Classifier

Asks an LLM whether a prompt calls for optimizing an existing brand page
or for net new content, and for a competitor page worth studying.

Any failure (provider error, empty or malformed reply) yields Net New with
no URLs. The reply is not trusted; apply_guard() runs afterwards.
"""

import json
import logging

from visibility.database.models import ContentUpdateType
from visibility.output.parser import Malformed, decode_json_object
from .guard import Classification

logger = logging.getLogger(__name__)


CLASSIFIER_SYSTEM_PROMPT = """You are an SEO strategist working in {location}.
Return ONLY one JSON object exactly like:
{{
  "contentUpdateType": "Optimization" | "Net New",
  "suggestedBrandUrl": "string",     // a real URL on the brand's domain or ""
  "exampleCompetitorUrl": "string"   // a real competitor URL (not the brand) or ""
}}
Research rules:
- Try to recall or infer the most relevant EXISTING page on the brand's domain ({brand_domain}) that answers the prompt.
- If you cannot find a clearly relevant page on the brand's domain, set contentUpdateType = "Net New" and suggestedBrandUrl = "".
- For the competitor URL, return a credible page from a major competitor that answers the prompt. Do NOT use the brand's domain.
- NEVER invent obviously fake paths, NEVER return a plain homepage or domain-only URL unless the homepage uniquely answers the query.
- Prefer deep URLs that directly address the query intent."""

DEFAULT_SNIPPET_CHARS = 4000


def build_classifier_payload(prompt: str, raw_answer: str, brand_domain: str, snippet_chars: int = DEFAULT_SNIPPET_CHARS) -> str:
    return json.dumps({
        "prompt": prompt,
        "rawAnswerSnippet": str(raw_answer or "")[:snippet_chars],
        "brandDomain": brand_domain,
    })


def parse_classification(raw: str) -> Classification:
    """Coerce a classifier reply; anything unusable becomes Net New."""
    decoded = decode_json_object(raw)
    if isinstance(decoded, Malformed):
        logger.warning(f"Classifier reply unusable ({decoded.reason}); defaulting to Net New")
        return Classification()

    value = decoded.value
    content_type = (
        ContentUpdateType.OPTIMIZATION.value
        if value.get("contentUpdateType") == ContentUpdateType.OPTIMIZATION.value
        else ContentUpdateType.NET_NEW.value
    )
    return Classification(
        content_update_type=content_type,
        suggested_brand_url=str(value.get("suggestedBrandUrl") or "").strip(),
        example_competitor_url=str(value.get("exampleCompetitorUrl") or "").strip(),
    )


class OpportunityClassifier:
    """
    Classifies opportunities through the provider router.

    Usage:
        classifier = OpportunityClassifier(router, provider="chatgpt", location="Canada")
        verdict = await classifier.classify(prompt, raw_answer, "acme.com")
    """

    def __init__(
        self,
        router,
        provider: str = "chatgpt",
        location: str = "Canada",
        temperature: float = 0.2,
        snippet_chars: int = DEFAULT_SNIPPET_CHARS,
    ):
        self.router = router
        self.provider = provider
        self.location = location
        self.temperature = temperature
        self.snippet_chars = snippet_chars

    async def classify(self, prompt: str, raw_answer: str, brand_domain: str) -> Classification:
        system = CLASSIFIER_SYSTEM_PROMPT.format(location=self.location, brand_domain=brand_domain)
        user = build_classifier_payload(prompt, raw_answer, brand_domain, self.snippet_chars)

        raw = await self.router.ask(
            self.provider,
            system,
            user,
            temperature=self.temperature,
            with_locale=False,
        )
        return parse_classification(raw)
