"""
Test Suite for the Metrics and Opportunity Stores

Tests idempotent writes, run selection, time-boxed queries, MSV lookup and
additive schema evolution against in-memory SQLite.
"""

import pytest
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.pool import StaticPool

from visibility.database import (
    METRICS,
    Metric,
    configure_store,
    ensure_metric_columns,
    get_db_context,
    get_metrics,
    get_msv,
    get_opportunities,
    get_raw_answer,
    init_db,
    latest_run_id,
    list_run_ids,
    mark_run_complete,
    set_keyword_volume,
    store_keyword_performance,
    store_metrics,
    store_raw_answer,
    upsert_opportunity,
)
from visibility.errors import RunNotFoundError, StoreError
from visibility.scoring import KEYWORD_PERFORMANCE, KeywordPerformance
from visibility.scoring.metrics import BrandMetric


RUN_1 = "2025-01-01T12:00:00.000Z"
RUN_2 = "2025-01-02T12:00:00.000Z"
RUN_3 = "2025-01-03T12:00:00.000Z"


def _metrics(acme_rank=1, globex_rank=2):
    return [
        BrandMetric("Acme", 1 if acme_rank < 10 else 0, acme_rank, 30.0, "https://acme.com/a"),
        BrandMetric("Globex", 1 if globex_rank < 10 else 0, globex_rank, 15.0, ""),
    ]


def _count_metric_rows() -> int:
    with get_db_context(METRICS) as db:
        return db.query(Metric).count()


# ============================================================================
# Metrics
# ============================================================================

class TestMetricWrites:
    """Tests for store_metrics and friends"""

    def test_store_metrics_inserts_one_row_per_brand(self, stores):
        written = store_metrics(RUN_1, "chatgpt", "coffee", "Best coffee?", _metrics(), {"Acme": 40})

        assert written == 2
        rows = get_metrics("chatgpt")
        assert [(r["brand"], r["rank"], r["sentiment"]) for r in rows] == [("Acme", 1, 40), ("Globex", 2, 0)]
        assert rows[0]["links"] == "https://acme.com/a"

    def test_store_metrics_is_idempotent(self, stores):
        store_metrics(RUN_1, "chatgpt", "coffee", "Best coffee?", _metrics(), {"Acme": 40}, msv=100)
        store_metrics(RUN_1, "chatgpt", "coffee", "Best coffee?", _metrics(acme_rank=2, globex_rank=1), {"Acme": -5}, msv=200)

        assert _count_metric_rows() == 2
        acme = get_metrics("chatgpt", brand="Acme")[0]
        assert acme["rank"] == 2
        assert acme["sentiment"] == -5
        assert acme["msv"] == 200

    def test_same_question_in_other_run_is_a_new_row(self, stores):
        store_metrics(RUN_1, "chatgpt", "coffee", "Best coffee?", _metrics())
        store_metrics(RUN_2, "chatgpt", "coffee", "Best coffee?", _metrics())
        assert _count_metric_rows() == 4

    def test_keyword_performance_rows(self, stores):
        rows = [KeywordPerformance("Acme", 3, 1.5, 22.5, 13), KeywordPerformance("Globex", 0, 10.0, 0.0, 0)]
        store_keyword_performance(RUN_1, "chatgpt", "coffee", rows, msv=500)

        stored = get_metrics("chatgpt")
        assert {r["question"] for r in stored} == {KEYWORD_PERFORMANCE}
        assert stored[0]["rank"] == pytest.approx(1.5)
        assert stored[0]["sentiment"] == 13
        assert stored[0]["msv"] == 500

    def test_raw_answers(self, stores):
        store_raw_answer(RUN_1, "chatgpt", "coffee", "Best coffee?", "first")
        store_raw_answer(RUN_1, "chatgpt", "coffee", "Best coffee?", "second")

        assert get_raw_answer("chatgpt", RUN_1, "coffee", "Best coffee?") == "second"
        assert get_raw_answer("chatgpt", RUN_1, "coffee", "Other?") == ""

    def test_write_failure_is_store_error(self, stores):
        bad = [BrandMetric("Acme", 0, None, 0.0)]
        with pytest.raises(StoreError):
            store_metrics(RUN_1, "chatgpt", "coffee", "Best coffee?", bad)

    def test_out_of_range_integer_is_store_error(self, stores):
        with pytest.raises(StoreError):
            store_metrics(RUN_1, "chatgpt", "coffee", "Best coffee?", _metrics(), msv=10**22)
        assert _count_metric_rows() == 0


class TestMetricQueries:
    """Tests for time-boxed queries"""

    def test_get_metrics_bounds_are_inclusive(self, stores):
        for run in (RUN_1, RUN_2, RUN_3):
            store_metrics(run, "chatgpt", "coffee", "Best coffee?", _metrics())

        rows = get_metrics("chatgpt", brand="Acme", since=RUN_2, until=RUN_3)
        assert [r["run_at"] for r in rows] == [RUN_2, RUN_3]

    def test_get_metrics_filters_provider(self, stores):
        store_metrics(RUN_1, "chatgpt", "coffee", "Best coffee?", _metrics())
        store_metrics(RUN_1, "gemini", "coffee", "Best coffee?", _metrics())
        assert len(get_metrics("gemini")) == 2


# ============================================================================
# Run selection
# ============================================================================

class TestRunSelection:
    """Tests for list_run_ids / latest_run_id"""

    def test_list_run_ids_most_recent_first(self, stores):
        for run in (RUN_2, RUN_1, RUN_3):
            store_metrics(run, "chatgpt", "coffee", "Best coffee?", _metrics())

        assert list_run_ids("chatgpt", ["Acme"]) == [RUN_3, RUN_2, RUN_1]
        assert list_run_ids("chatgpt", ["Nobody"]) == []
        assert list_run_ids("gemini", ["Acme"]) == []

    def test_latest_prefers_completed_run(self, stores):
        store_metrics(RUN_1, "chatgpt", "coffee", "Best coffee?", _metrics())
        mark_run_complete(RUN_1, "chatgpt", "Acme")
        # RUN_2 crashed mid-way: rows but no completion marker
        store_metrics(RUN_2, "chatgpt", "coffee", "Best coffee?", _metrics())

        assert latest_run_id("chatgpt", ["Acme"]) == RUN_1

    def test_latest_falls_back_to_runs_without_markers(self, stores):
        store_metrics(RUN_1, "chatgpt", "coffee", "Best coffee?", _metrics())
        store_metrics(RUN_2, "chatgpt", "coffee", "Best coffee?", _metrics())

        assert latest_run_id("chatgpt", ["Acme"]) == RUN_2

    def test_latest_matches_compact_variant(self, stores):
        store_metrics(RUN_1, "chatgpt", "coffee", "Best coffee?", [BrandMetric("TimHortons", 0, 10, 0.0)])
        assert latest_run_id("chatgpt", ["Tim Hortons", "TimHortons"]) == RUN_1

    def test_no_runs(self, stores):
        with pytest.raises(RunNotFoundError, match="No runs found"):
            latest_run_id("chatgpt", ["Acme"])

    def test_run_not_found_is_a_store_error(self):
        assert issubclass(RunNotFoundError, StoreError)

    def test_mark_run_complete_twice(self, stores):
        mark_run_complete(RUN_1, "chatgpt", "Acme")
        mark_run_complete(RUN_1, "chatgpt", "Acme")
        assert list_run_ids("chatgpt", ["Acme"], completed_only=True) == [RUN_1]


# ============================================================================
# MSV lookup
# ============================================================================

class TestMsvLookup:
    """Tests for get_msv"""

    def test_prefers_metrics_column(self, stores):
        store_metrics(RUN_1, "chatgpt", "coffee", "Best coffee?", _metrics(), msv=900)
        set_keyword_volume("coffee", 10)
        assert get_msv("chatgpt", RUN_1, "coffee") == 900

    def test_falls_back_to_keywords_table(self, stores):
        store_metrics(RUN_1, "chatgpt", "coffee", "Best coffee?", _metrics())
        set_keyword_volume("coffee", 10)
        assert get_msv("chatgpt", RUN_1, "coffee") == 10

    def test_none_when_unknown(self, stores):
        assert get_msv("chatgpt", RUN_1, "tea") is None


# ============================================================================
# Opportunities
# ============================================================================

def _opportunity(**overrides):
    record = {
        "brand": "Acme",
        "provider": "chatgpt",
        "run_date": RUN_1,
        "keyword": "coffee",
        "prompt": "Best coffee?",
        "opportunity_type": "Ranking",
        "content_update_type": "Net New",
        "suggested_brand_url": "",
        "example_competitor_url": "https://globex.com/coffee",
        "msv": 100,
    }
    record.update(overrides)
    return record


class TestOpportunityUpsert:
    """Tests for upsert_opportunity"""

    def test_insert_then_update(self, stores):
        assert upsert_opportunity(_opportunity()) is True
        created_at = get_opportunities("Acme")[0]["created_at"]

        assert upsert_opportunity(_opportunity(
            opportunity_type="Mention",
            content_update_type="Optimization",
            suggested_brand_url="https://acme.com/coffee",
            msv=None,
        )) is False

        [row] = get_opportunities("Acme", "chatgpt", RUN_1)
        assert row["opportunity_type"] == "Mention"
        assert row["content_update_type"] == "Optimization"
        assert row["suggested_brand_url"] == "https://acme.com/coffee"
        assert row["msv"] is None
        assert row["created_at"] == created_at

    def test_distinct_prompts_are_distinct_rows(self, stores):
        upsert_opportunity(_opportunity())
        upsert_opportunity(_opportunity(prompt="Cheapest coffee?"))
        assert len(get_opportunities("Acme")) == 2

    def test_invalid_type_rejected(self, stores):
        with pytest.raises(StoreError):
            upsert_opportunity(_opportunity(opportunity_type="Other"))


# ============================================================================
# Schema
# ============================================================================

LEGACY_METRICS_DDL = """
CREATE TABLE metrics (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    provider TEXT NOT NULL,
    keyword TEXT NOT NULL,
    question TEXT NOT NULL,
    brand TEXT NOT NULL,
    mentions INTEGER NOT NULL,
    rank REAL NOT NULL,
    sov REAL NOT NULL,
    links TEXT,
    run_at TEXT NOT NULL
)
"""


class TestSchemaEvolution:
    """Tests for ensure_metric_columns / init_db"""

    @pytest.fixture
    def legacy_store(self):
        engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
        with engine.begin() as conn:
            conn.execute(text(LEGACY_METRICS_DDL))
            conn.execute(text(
                "INSERT INTO metrics (provider, keyword, question, brand, mentions, rank, sov, links, run_at) "
                "VALUES ('chatgpt', 'coffee', 'Best coffee?', 'Acme', 1, 1, 30.0, '', :run)"
            ), {"run": RUN_1})
        configure_store(METRICS, engine=engine)
        yield engine

    def test_adds_missing_columns(self, stores, legacy_store):
        ensure_metric_columns()

        columns = {c["name"] for c in inspect(legacy_store).get_columns("metrics")}
        assert {"sentiment", "msv"} <= columns
        assert get_metrics("chatgpt")[0]["sentiment"] == 0

    def test_repeated_calls_are_harmless(self, stores, legacy_store):
        ensure_metric_columns()
        ensure_metric_columns()
        assert get_msv("chatgpt", RUN_1, "coffee") is None

    def test_missing_table_is_store_error(self, stores):
        configure_store(METRICS, "sqlite://")
        with pytest.raises(StoreError):
            ensure_metric_columns()

    def test_init_db_creates_both_stores(self, stores):
        init_db()
        init_db()
        assert "opportunity_insights" in inspect(stores["opportunities"]).get_table_names()
        assert "run_completions" in inspect(stores["metrics"]).get_table_names()
