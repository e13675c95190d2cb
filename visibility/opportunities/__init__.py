"""
Opportunities Module

Finds prompts where a competitor beats the subject brand and decides what
content to build:

- Detection of Ranking and Mention gaps in one run's metrics
- LLM classification (Optimization vs Net New)
- URL guard rules applied after classification
- Idempotent persistence into the opportunity store
"""

from .guard import (
    Classification,
    apply_guard,
    domain_matches,
    hostname,
    is_http,
    is_root_url,
)
from .classifier import (
    CLASSIFIER_SYSTEM_PROMPT,
    OpportunityClassifier,
    build_classifier_payload,
    parse_classification,
)
from .miner import (
    Candidate,
    Enrichment,
    OpportunityRecord,
    detect_candidates,
    enrich_candidate,
    mine_opportunities,
)

__all__ = [
    # Guard
    "Classification",
    "apply_guard",
    "domain_matches",
    "hostname",
    "is_http",
    "is_root_url",
    # Classifier
    "CLASSIFIER_SYSTEM_PROMPT",
    "OpportunityClassifier",
    "build_classifier_payload",
    "parse_classification",
    # Miner
    "Candidate",
    "Enrichment",
    "OpportunityRecord",
    "detect_candidates",
    "enrich_candidate",
    "mine_opportunities",
]
