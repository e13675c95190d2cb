"""
SQLAlchemy Models for the Visibility Tracker

Two independent stores, each with its own metadata and engine:

1. Metrics store - raw answers and per-(provider, run, keyword, question,
   brand) metric rows, plus run completion markers.
2. Opportunity store - deduplicated opportunity insights.

Runs are identified by the run_at string every row of one execution shares.
"""

import enum
from datetime import datetime

from sqlalchemy import (
    Column, String, Integer, Float, DateTime, Text,
    Index, CheckConstraint, UniqueConstraint,
)
from sqlalchemy.orm import declarative_base

MetricsBase = declarative_base()
OpportunityBase = declarative_base()


# =============================================================================
# ENUMS
# =============================================================================

class OpportunityType(str, enum.Enum):
    """Why a prompt is an opportunity"""
    RANKING = "Ranking"    # Brand named, but after a competitor
    MENTION = "Mention"    # Brand absent, competitor named


class ContentUpdateType(str, enum.Enum):
    """What to do about it"""
    OPTIMIZATION = "Optimization"  # Improve an existing brand page
    NET_NEW = "Net New"            # Create new content


# =============================================================================
# METRICS STORE
# =============================================================================

class RawResponse(MetricsBase):
    """Raw provider answers, append-only"""
    __tablename__ = "raw_responses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    provider = Column(String(50), nullable=False)
    keyword = Column(String(500), nullable=False)
    question = Column(Text, nullable=False)
    raw_answer = Column(Text)
    run_at = Column(String(40), nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_raw_lookup", "provider", "run_at", "keyword"),
    )


class Metric(MetricsBase):
    """
    Per-brand metrics for one question of one run.

    Aggregate rows use question = "Keyword Performance", a mean rank and a
    rounded mean sentiment.
    """
    __tablename__ = "metrics"

    id = Column(Integer, primary_key=True, autoincrement=True)
    provider = Column(String(50), nullable=False)
    keyword = Column(String(500), nullable=False)
    question = Column(String(1000), nullable=False)
    brand = Column(String(255), nullable=False)

    mentions = Column(Integer, nullable=False, default=0)
    rank = Column(Float, nullable=False)
    sov = Column(Float, nullable=False, default=0.0)
    links = Column(Text, default="")
    run_at = Column(String(40), nullable=False)

    # Added after the first schema; older databases get them via
    # ensure_metric_columns()
    sentiment = Column(Integer, default=0)
    msv = Column(Integer)

    __table_args__ = (
        UniqueConstraint("provider", "run_at", "keyword", "question", "brand", name="uq_metric_row"),
        Index("idx_metrics_run", "provider", "run_at", "brand"),
        Index("idx_metrics_question", "provider", "run_at", "question"),
    )


class KeywordVolume(MetricsBase):
    """Secondary monthly-search-volume source, keyed by keyword"""
    __tablename__ = "keywords"

    keyword = Column(String(500), primary_key=True)
    msv = Column(Integer)


class RunCompletion(MetricsBase):
    """Marks a (run, provider, brand) as fully written"""
    __tablename__ = "run_completions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    run_at = Column(String(40), nullable=False)
    provider = Column(String(50), nullable=False)
    brand = Column(String(255), nullable=False)
    completed_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("run_at", "provider", "brand", name="uq_run_completion"),
    )


# =============================================================================
# OPPORTUNITY STORE
# =============================================================================

class OpportunityInsight(OpportunityBase):
    """
    One content opportunity for a brand on a prompt.

    Unique per (brand, provider, run_date, keyword, prompt); re-mining a run
    refreshes the classification fields and keeps created_at.
    """
    __tablename__ = "opportunity_insights"

    id = Column(Integer, primary_key=True, autoincrement=True)
    brand = Column(String(255), nullable=False)
    provider = Column(String(50), nullable=False)
    run_date = Column(String(40), nullable=False)
    keyword = Column(String(500), nullable=False)
    prompt = Column(String(1000), nullable=False)

    opportunity_type = Column(String(20), nullable=False)
    content_update_type = Column(String(20), nullable=False)
    suggested_brand_url = Column(Text, nullable=False, default="")
    example_competitor_url = Column(Text, nullable=False, default="")
    msv = Column(Integer)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("brand", "provider", "run_date", "keyword", "prompt", name="uq_opportunity"),
        CheckConstraint("opportunity_type IN ('Ranking','Mention')", name="ck_opportunity_type"),
        CheckConstraint(
            "content_update_type IN ('Optimization','Net New')", name="ck_content_update_type"
        ),
        Index("idx_opp_brand_date", "brand", "provider", "run_date"),
        Index("idx_opp_type", "opportunity_type", "content_update_type"),
    )
