"""
Opportunity Miner

Correlates one run's metric rows into content opportunities for the
subject brand, in five steps per candidate:

1. Detect - Ranking (brand named after a competitor) and Mention (brand
   absent while a competitor is named) gaps from the metrics store
2. Enrich - raw answer, brand links, top competitor, search volume
3. Classify - LLM verdict: Optimization vs Net New plus example URLs
4. Guard - URL rules that override the classifier
5. Persist - idempotent upsert into the opportunity store

Mining the same run twice leaves the opportunity store with the same rows.
"""

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from typing import List, Optional

from visibility.context.run import RunContext
from visibility.database.models import OpportunityType
from visibility.database.repository import (
    find_mention_gaps,
    find_ranking_gaps,
    get_links,
    get_msv,
    get_raw_answer,
    get_top_competitor,
    latest_run_id,
    upsert_opportunity,
)
from visibility.scoring.metrics import LINK_SEPARATOR
from visibility.utils.config import get_settings
from .classifier import OpportunityClassifier
from .guard import Classification, apply_guard

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Candidate:
    """A (keyword, question) where the brand is outranked or missing."""
    keyword: str
    question: str
    opportunity_type: str


@dataclass(frozen=True)
class Enrichment:
    """Stored context for one candidate."""
    raw_answer: str = ""
    brand_links: str = ""
    competitor: str = ""
    competitor_links: str = ""
    msv: Optional[int] = None


@dataclass
class OpportunityRecord:
    """One persisted opportunity, plus the context it was mined from."""
    brand: str
    provider: str
    run_date: str
    keyword: str
    prompt: str
    opportunity_type: str
    content_update_type: str
    suggested_brand_url: str = ""
    example_competitor_url: str = ""
    msv: Optional[int] = None
    competitor: str = ""
    brand_links: List[str] = field(default_factory=list)
    competitor_links: List[str] = field(default_factory=list)

    def to_row(self) -> dict:
        """Columns of the opportunity_insights table."""
        row = asdict(self)
        for extra in ("competitor", "brand_links", "competitor_links"):
            row.pop(extra)
        return row


# =============================================================================
# DETECT / ENRICH
# =============================================================================

def detect_candidates(provider: str, run_date: str, brand_names: List[str]) -> List[Candidate]:
    """Ranking candidates first, then mention candidates, each by keyword and question."""
    ranking = [
        Candidate(keyword, question, OpportunityType.RANKING.value)
        for keyword, question in find_ranking_gaps(provider, run_date, brand_names)
    ]
    mention = [
        Candidate(keyword, question, OpportunityType.MENTION.value)
        for keyword, question in find_mention_gaps(provider, run_date, brand_names)
    ]
    logger.info(f"Detected {len(ranking)} ranking and {len(mention)} mention candidates for run {run_date}")
    return ranking + mention


def _split_links(*values: str) -> List[str]:
    links = []
    for value in values:
        links.extend(u.strip() for u in (value or "").split(LINK_SEPARATOR) if u.strip())
    return list(dict.fromkeys(links))


def enrich_candidate(provider: str, run_date: str, candidate: Candidate, brand_names: List[str]) -> Enrichment:
    keyword, question = candidate.keyword, candidate.question
    brand_links = LINK_SEPARATOR.join(
        _split_links(*(get_links(provider, run_date, keyword, question, name) for name in brand_names))
    )
    competitor, competitor_links = get_top_competitor(provider, run_date, keyword, question, exclude=brand_names)

    return Enrichment(
        raw_answer=get_raw_answer(provider, run_date, keyword, question),
        brand_links=brand_links,
        competitor=competitor,
        competitor_links=competitor_links,
        msv=get_msv(provider, run_date, keyword),
    )


# =============================================================================
# MINING
# =============================================================================

async def _classify_all(
    classifier: OpportunityClassifier,
    items: List[tuple],
    brand_domain: str,
    max_concurrency: int,
) -> List[Classification]:
    semaphore = asyncio.Semaphore(max(1, max_concurrency))

    async def classify_one(candidate: Candidate, enrichment: Enrichment) -> Classification:
        async with semaphore:
            logger.debug(f"Classifying {candidate.opportunity_type} opportunity: {candidate.question[:60]!r}")
            return await classifier.classify(candidate.question, enrichment.raw_answer, brand_domain)

    return await asyncio.gather(*(classify_one(c, e) for c, e in items))


async def mine_opportunities(
    context: RunContext,
    router,
    provider: str = "chatgpt",
    run_id=None,
    classifier: Optional[OpportunityClassifier] = None,
    max_concurrency: Optional[int] = None,
) -> List[OpportunityRecord]:
    """
    Mine and persist opportunities for the context's brand.

    Args:
        context: Run context of the subject brand
        router: ProviderRouter used by the default classifier
        provider: Provider whose answers are mined
        run_id: Run to mine; the latest run for (provider, brand) when None
        classifier: Override the classifier (defaults from settings)
        max_concurrency: Concurrent classification calls

    Returns:
        Persisted records, in candidate order

    Raises:
        RunNotFoundError: no run to mine
        StoreError: any store failure
    """
    settings = get_settings()
    names = context.variants.names
    run_date = str(run_id) if run_id is not None else latest_run_id(provider, names)
    brand_domain = context.brand_domain

    if not brand_domain:
        logger.warning(f"No domain configured for {context.brand}; every opportunity will be Net New")

    if classifier is None:
        classifier = OpportunityClassifier(
            router,
            provider=settings.CLASSIFIER_PROVIDER,
            location=context.location,
            temperature=settings.CLASSIFIER_TEMPERATURE,
            snippet_chars=settings.SNIPPET_CHARS,
        )
    if max_concurrency is None:
        max_concurrency = settings.MAX_CONCURRENT_CLASSIFICATIONS

    logger.info(f"Mining opportunities for {context.brand} ({provider}) run {run_date}")

    candidates = detect_candidates(provider, run_date, names)
    items = [(c, enrich_candidate(provider, run_date, c, names)) for c in candidates]
    verdicts = await _classify_all(classifier, items, brand_domain, max_concurrency)

    records = []
    inserted = 0
    for (candidate, enrichment), verdict in zip(items, verdicts):
        guarded = apply_guard(verdict, brand_domain)
        record = OpportunityRecord(
            brand=context.brand,
            provider=provider,
            run_date=run_date,
            keyword=candidate.keyword,
            prompt=candidate.question,
            opportunity_type=candidate.opportunity_type,
            content_update_type=guarded.content_update_type,
            suggested_brand_url=guarded.suggested_brand_url,
            example_competitor_url=guarded.example_competitor_url,
            msv=enrichment.msv,
            competitor=enrichment.competitor,
            brand_links=_split_links(enrichment.brand_links),
            competitor_links=_split_links(enrichment.competitor_links),
        )
        if upsert_opportunity(record.to_row()):
            inserted += 1
        records.append(record)

    logger.info(f"Stored {len(records)} opportunities ({inserted} new) for {context.brand} ({provider})")
    return records
