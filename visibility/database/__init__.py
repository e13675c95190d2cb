"""
Database Module

Two SQLAlchemy stores:
- metrics: raw answers, per-brand metric rows, run completion markers
- opportunities: opportunity insights mined from the metrics store
"""

from .models import (
    MetricsBase,
    OpportunityBase,
    RawResponse,
    Metric,
    KeywordVolume,
    RunCompletion,
    OpportunityInsight,
    OpportunityType,
    ContentUpdateType,
)
from .session import (
    METRICS,
    OPPORTUNITIES,
    configure_store,
    get_engine,
    get_db_context,
    init_db,
    ensure_metric_columns,
    reset_engines,
)
from .repository import (
    store_raw_answer,
    get_raw_answer,
    store_metrics,
    store_keyword_performance,
    get_metrics,
    mark_run_complete,
    list_run_ids,
    latest_run_id,
    find_ranking_gaps,
    find_mention_gaps,
    get_links,
    get_top_competitor,
    get_msv,
    set_keyword_volume,
    upsert_opportunity,
    get_opportunities,
)

__all__ = [
    # Models
    "MetricsBase",
    "OpportunityBase",
    "RawResponse",
    "Metric",
    "KeywordVolume",
    "RunCompletion",
    "OpportunityInsight",
    "OpportunityType",
    "ContentUpdateType",
    # Session
    "METRICS",
    "OPPORTUNITIES",
    "configure_store",
    "get_engine",
    "get_db_context",
    "init_db",
    "ensure_metric_columns",
    "reset_engines",
    # Repository
    "store_raw_answer",
    "get_raw_answer",
    "store_metrics",
    "store_keyword_performance",
    "get_metrics",
    "mark_run_complete",
    "list_run_ids",
    "latest_run_id",
    "find_ranking_gaps",
    "find_mention_gaps",
    "get_links",
    "get_top_competitor",
    "get_msv",
    "set_keyword_volume",
    "upsert_opportunity",
    "get_opportunities",
]
