"""
Repository Layer - Clean Interface for Data Operations

Provides simple functions to store and retrieve metrics and opportunities.
Handles all SQLAlchemy complexity internally; every database failure
surfaces as StoreError.

Runs are addressed by their run_at key (the RunId string). Functions that
take a run_id accept a RunId or the raw key.
"""

import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import and_, exists, func, inspect
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, aliased

from visibility.errors import RunNotFoundError, StoreError
from visibility.scoring.helpers import KEYWORD_PERFORMANCE, UNRANKED
from .models import (
    KeywordVolume,
    Metric,
    OpportunityInsight,
    RawResponse,
    RunCompletion,
)
from .session import METRICS, OPPORTUNITIES, get_db_context, get_engine

logger = logging.getLogger(__name__)

# The DB-API raises OverflowError for integers outside the 64-bit column range
_DB_ERRORS = (SQLAlchemyError, OverflowError)


def _run_key(run_id) -> str:
    return str(run_id)


@contextmanager
def _store_session(store: str):
    """get_db_context() with database errors wrapped in StoreError."""
    try:
        with get_db_context(store) as db:
            yield db
    except _DB_ERRORS as e:
        raise StoreError(f"{store} store operation failed: {e}") from e


def _write_with_retry(store: str, write: Callable[[Session], Any], description: str) -> Any:
    """
    Run an idempotent select-then-write batch in its own transaction.

    A unique-constraint race (another writer inserted the same key between
    our select and insert) is retried once; the retry sees the row and
    updates it.
    """
    for attempt in (1, 2):
        try:
            with get_db_context(store) as db:
                return write(db)
        except IntegrityError as e:
            if attempt == 2:
                raise StoreError(f"Failed to write {description}: {e}") from e
            logger.warning(f"Unique conflict writing {description}, retrying once")
        except _DB_ERRORS as e:
            raise StoreError(f"Failed to write {description}: {e}") from e


# =============================================================================
# RAW ANSWERS
# =============================================================================

def store_raw_answer(run_id, provider: str, keyword: str, question: str, text: str) -> None:
    """Append one raw provider answer."""
    with _store_session(METRICS) as db:
        db.add(RawResponse(
            provider=provider,
            keyword=keyword,
            question=question,
            raw_answer=text or "",
            run_at=_run_key(run_id),
        ))


def get_raw_answer(provider: str, run_id, keyword: str, question: str) -> str:
    """Latest stored answer text for a question of a run, '' when absent."""
    with _store_session(METRICS) as db:
        row = (
            db.query(RawResponse.raw_answer)
            .filter(
                RawResponse.provider == provider,
                RawResponse.run_at == _run_key(run_id),
                RawResponse.keyword == keyword,
                RawResponse.question == question,
            )
            .order_by(RawResponse.id.desc())
            .first()
        )
        return (row[0] if row else "") or ""


# =============================================================================
# METRICS
# =============================================================================

def _upsert_metric_rows(
    db: Session,
    run_at: str,
    provider: str,
    keyword: str,
    question: str,
    rows: List[Dict[str, Any]],
) -> int:
    for values in rows:
        existing = (
            db.query(Metric)
            .filter_by(provider=provider, run_at=run_at, keyword=keyword, question=question, brand=values["brand"])
            .first()
        )
        if existing is None:
            db.add(Metric(provider=provider, run_at=run_at, keyword=keyword, question=question, **values))
        else:
            for field, value in values.items():
                setattr(existing, field, value)
    return len(rows)


def store_metrics(
    run_id,
    provider: str,
    keyword: str,
    question: str,
    metrics: Sequence,
    sentiment: Optional[Dict[str, int]] = None,
    msv: Optional[int] = None,
) -> int:
    """
    Write one question's per-brand metric rows.

    Idempotent on (provider, run_at, keyword, question, brand): a rerun
    overwrites mentions, rank, sov, sentiment, links and msv.

    Args:
        metrics: BrandMetric rows (anything with brand/mentions/rank/sov/links)
        sentiment: {brand: score}; missing brands store 0

    Returns:
        Number of rows written
    """
    sentiment = sentiment or {}
    rows = [
        {
            "brand": m.brand,
            "mentions": m.mentions,
            "rank": m.rank,
            "sov": m.sov,
            "links": m.links or "",
            "sentiment": int(sentiment.get(m.brand, 0) or 0),
            "msv": msv,
        }
        for m in metrics
    ]
    return _write_with_retry(
        METRICS,
        lambda db: _upsert_metric_rows(db, _run_key(run_id), provider, keyword, question, rows),
        f"metrics for {provider}/{keyword}/{question[:60]!r}",
    )


def store_keyword_performance(
    run_id,
    provider: str,
    keyword: str,
    performance: Sequence,
    msv: Optional[int] = None,
) -> int:
    """Write the "Keyword Performance" aggregate rows for a keyword."""
    rows = [
        {
            "brand": p.brand,
            "mentions": p.mentions,
            "rank": p.rank,
            "sov": p.sov,
            "links": p.links or "",
            "sentiment": p.sentiment,
            "msv": msv,
        }
        for p in performance
    ]
    return _write_with_retry(
        METRICS,
        lambda db: _upsert_metric_rows(db, _run_key(run_id), provider, keyword, KEYWORD_PERFORMANCE, rows),
        f"keyword performance for {provider}/{keyword}",
    )


def _metric_to_dict(m: Metric) -> Dict[str, Any]:
    return {
        "provider": m.provider,
        "keyword": m.keyword,
        "question": m.question,
        "brand": m.brand,
        "mentions": m.mentions,
        "rank": m.rank,
        "sov": m.sov,
        "sentiment": m.sentiment,
        "links": m.links or "",
        "msv": m.msv,
        "run_at": m.run_at,
    }


def get_metrics(
    provider: str,
    brand: Optional[str] = None,
    since=None,
    until=None,
    run_id=None,
) -> List[Dict[str, Any]]:
    """
    Metric rows for a provider, optionally limited to a brand and a run_at
    window (both bounds inclusive) or a single run.
    """
    with _store_session(METRICS) as db:
        query = db.query(Metric).filter(Metric.provider == provider)
        if brand is not None:
            query = query.filter(Metric.brand == brand)
        if run_id is not None:
            query = query.filter(Metric.run_at == _run_key(run_id))
        if since is not None:
            query = query.filter(Metric.run_at >= _run_key(since))
        if until is not None:
            query = query.filter(Metric.run_at <= _run_key(until))
        rows = query.order_by(Metric.run_at, Metric.keyword, Metric.id).all()
        return [_metric_to_dict(m) for m in rows]


# =============================================================================
# RUN SELECTION
# =============================================================================

def mark_run_complete(run_id, provider: str, brand: str) -> None:
    """Record that every row of a run was written for (provider, brand)."""
    run_at = _run_key(run_id)

    def write(db: Session) -> None:
        exists_already = (
            db.query(RunCompletion.id)
            .filter_by(run_at=run_at, provider=provider, brand=brand)
            .first()
        )
        if exists_already is None:
            db.add(RunCompletion(run_at=run_at, provider=provider, brand=brand))

    _write_with_retry(METRICS, write, f"run completion for {provider}/{brand}")
    logger.info(f"Run {run_at} marked complete for {brand} ({provider})")


def list_run_ids(provider: str, brand_names: Iterable[str], completed_only: bool = False) -> List[str]:
    """Distinct run keys for a provider and any of the brand names, most recent first."""
    names = list(brand_names)
    with _store_session(METRICS) as db:
        if completed_only:
            query = db.query(RunCompletion.run_at).filter(
                RunCompletion.provider == provider,
                RunCompletion.brand.in_(names),
            )
            column = RunCompletion.run_at
        else:
            query = db.query(Metric.run_at).filter(
                Metric.provider == provider,
                Metric.brand.in_(names),
            )
            column = Metric.run_at
        return [row[0] for row in query.distinct().order_by(column.desc()).all()]


def latest_run_id(provider: str, brand_names: Iterable[str]) -> str:
    """
    Most recent run for a provider and brand.

    Prefers runs with a completion marker; falls back to the latest run
    that has metric rows when the pair has no markers at all.

    Raises:
        RunNotFoundError: no metric rows for the pair
    """
    names = list(brand_names)
    completed = list_run_ids(provider, names, completed_only=True)
    if completed:
        return completed[0]

    runs = list_run_ids(provider, names)
    if not runs:
        raise RunNotFoundError(f"No runs found for {names[0] if names else '?'} ({provider}).")
    logger.warning(f"No completed runs for {names[0]} ({provider}); using latest run {runs[0]}")
    return runs[0]


# =============================================================================
# OPPORTUNITY DETECTION QUERIES
# =============================================================================

def find_ranking_gaps(provider: str, run_id, brand_names: Sequence[str]) -> List[Tuple[str, str]]:
    """
    (keyword, question) pairs where the brand is named but another brand
    on the same question is named earlier.
    """
    names = list(brand_names)
    subject = aliased(Metric)
    other = aliased(Metric)

    outranked = exists().where(and_(
        other.provider == subject.provider,
        other.run_at == subject.run_at,
        other.keyword == subject.keyword,
        other.question == subject.question,
        other.brand.notin_(names),
        other.rank < subject.rank,
    ))

    with _store_session(METRICS) as db:
        rows = (
            db.query(subject.keyword, subject.question)
            .filter(
                subject.provider == provider,
                subject.run_at == _run_key(run_id),
                subject.brand.in_(names),
                subject.rank < UNRANKED,
                subject.question != KEYWORD_PERFORMANCE,
                outranked,
            )
            .distinct()
            .order_by(subject.keyword, subject.question)
            .all()
        )
        return [(r[0], r[1]) for r in rows]


def find_mention_gaps(provider: str, run_id, brand_names: Sequence[str]) -> List[Tuple[str, str]]:
    """
    (keyword, question) pairs where the brand is not mentioned but another
    brand is.
    """
    names = list(brand_names)
    subject = aliased(Metric)
    other = aliased(Metric)

    competitor_mentioned = exists().where(and_(
        other.provider == subject.provider,
        other.run_at == subject.run_at,
        other.keyword == subject.keyword,
        other.question == subject.question,
        other.brand.notin_(names),
        other.mentions > 0,
    ))

    with _store_session(METRICS) as db:
        rows = (
            db.query(subject.keyword, subject.question)
            .filter(
                subject.provider == provider,
                subject.run_at == _run_key(run_id),
                subject.brand.in_(names),
                subject.mentions == 0,
                subject.question != KEYWORD_PERFORMANCE,
                competitor_mentioned,
            )
            .distinct()
            .order_by(subject.keyword, subject.question)
            .all()
        )
        return [(r[0], r[1]) for r in rows]


def get_links(provider: str, run_id, keyword: str, question: str, brand: str) -> str:
    """Stored links for one brand on one question, '' when absent."""
    with _store_session(METRICS) as db:
        row = (
            db.query(Metric.links)
            .filter_by(provider=provider, run_at=_run_key(run_id), keyword=keyword, question=question, brand=brand)
            .first()
        )
        return (row[0] if row else "") or ""


def get_top_competitor(
    provider: str,
    run_id,
    keyword: str,
    question: str,
    exclude: Sequence[str],
) -> Tuple[str, str]:
    """(brand, links) of the best-ranked brand not in exclude; ('', '') when none."""
    with _store_session(METRICS) as db:
        row = (
            db.query(Metric.brand, Metric.links)
            .filter(
                Metric.provider == provider,
                Metric.run_at == _run_key(run_id),
                Metric.keyword == keyword,
                Metric.question == question,
                Metric.brand.notin_(list(exclude)),
            )
            .order_by(Metric.rank.asc(), Metric.id.asc())
            .first()
        )
        if row is None:
            return "", ""
        return row[0], row[1] or ""


def get_msv(provider: str, run_id, keyword: str) -> Optional[int]:
    """
    Monthly search volume for a keyword.

    metrics.msv for the run when the column exists and holds a value,
    otherwise keywords.msv, otherwise None.
    """
    inspector = inspect(get_engine(METRICS))
    try:
        has_msv_column = any(c["name"].lower() == "msv" for c in inspector.get_columns("metrics"))
        has_keywords_table = inspector.has_table("keywords")
    except SQLAlchemyError as e:
        raise StoreError(f"Could not inspect metrics store: {e}") from e

    with _store_session(METRICS) as db:
        if has_msv_column:
            value = (
                db.query(func.max(Metric.msv))
                .filter(
                    Metric.provider == provider,
                    Metric.run_at == _run_key(run_id),
                    Metric.keyword == keyword,
                )
                .scalar()
            )
            if value is not None:
                return int(value)

        if has_keywords_table:
            value = db.query(KeywordVolume.msv).filter(KeywordVolume.keyword == keyword).scalar()
            if value is not None:
                return int(value)

    return None


def set_keyword_volume(keyword: str, msv: Optional[int]) -> None:
    """Insert or update the secondary MSV entry for a keyword."""
    def write(db: Session) -> None:
        row = db.get(KeywordVolume, keyword)
        if row is None:
            db.add(KeywordVolume(keyword=keyword, msv=msv))
        else:
            row.msv = msv

    _write_with_retry(METRICS, write, f"keyword volume for {keyword}")


# =============================================================================
# OPPORTUNITIES
# =============================================================================

OPPORTUNITY_KEY_FIELDS = ("brand", "provider", "run_date", "keyword", "prompt")
OPPORTUNITY_VALUE_FIELDS = (
    "opportunity_type",
    "content_update_type",
    "suggested_brand_url",
    "example_competitor_url",
    "msv",
)


def upsert_opportunity(record: Dict[str, Any]) -> bool:
    """
    Insert or refresh one opportunity.

    Keyed by (brand, provider, run_date, keyword, prompt). An existing row
    gets its type, URLs and msv overwritten; created_at is kept.

    Returns:
        True if a new row was inserted
    """
    key = {f: record[f] for f in OPPORTUNITY_KEY_FIELDS}
    values = {f: record.get(f) for f in OPPORTUNITY_VALUE_FIELDS}
    values["suggested_brand_url"] = values["suggested_brand_url"] or ""
    values["example_competitor_url"] = values["example_competitor_url"] or ""

    def write(db: Session) -> bool:
        existing = db.query(OpportunityInsight).filter_by(**key).first()
        if existing is None:
            db.add(OpportunityInsight(**key, **values))
            return True
        for field, value in values.items():
            setattr(existing, field, value)
        return False

    inserted = _write_with_retry(OPPORTUNITIES, write, f"opportunity {key['keyword']}/{key['prompt'][:60]!r}")
    logger.debug(f"{'Inserted' if inserted else 'Updated'} opportunity for {key['keyword']!r}")
    return inserted


def _opportunity_to_dict(o: OpportunityInsight) -> Dict[str, Any]:
    return {
        "brand": o.brand,
        "provider": o.provider,
        "run_date": o.run_date,
        "keyword": o.keyword,
        "prompt": o.prompt,
        "opportunity_type": o.opportunity_type,
        "content_update_type": o.content_update_type,
        "suggested_brand_url": o.suggested_brand_url,
        "example_competitor_url": o.example_competitor_url,
        "msv": o.msv,
        "created_at": o.created_at,
    }


def get_opportunities(
    brand: Optional[str] = None,
    provider: Optional[str] = None,
    run_date=None,
) -> List[Dict[str, Any]]:
    """Stored opportunities, ordered by keyword then prompt."""
    with _store_session(OPPORTUNITIES) as db:
        query = db.query(OpportunityInsight)
        if brand is not None:
            query = query.filter(OpportunityInsight.brand == brand)
        if provider is not None:
            query = query.filter(OpportunityInsight.provider == provider)
        if run_date is not None:
            query = query.filter(OpportunityInsight.run_date == _run_key(run_date))
        rows = query.order_by(OpportunityInsight.keyword, OpportunityInsight.prompt).all()
        return [_opportunity_to_dict(o) for o in rows]
