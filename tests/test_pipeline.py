"""
Test Suite for the Report Pipeline

Runs whole reports against a mocked router and in-memory stores, then
checks stored rows, run completion and the exported files.
"""

import asyncio
import csv

import pytest

from visibility import pipeline
from visibility.context import Task
from visibility.database import get_metrics, get_raw_answer, list_run_ids
from visibility.errors import StoreError
from visibility.pipeline import run_provider, run_report
from visibility.reporter import report_header


RUN_AT = "2025-01-01T12:00:00.000Z"

TASKS = [Task("coffee", ("Best coffee?", "Cheap coffee?"))]

ANSWERS = {
    "chatgpt": "Globex is the favourite, Acme is close behind. See https://acme.com/menu.",
    "gemini": "",
}


def fake_ask(provider, system, user, **kwargs):
    if "monthly search volume" in system:
        return "Roughly 1,200 searches per month"
    if "sentiment" in system:
        return '{"Acme": 40, "Globex": 10}'
    return ANSWERS.get(provider, "")


@pytest.fixture
def router(mock_router):
    mock_router.ask.side_effect = fake_ask
    return mock_router


class TestRunProvider:
    """Tests for run_provider"""

    @pytest.mark.asyncio
    async def test_rows_for_every_question_and_aggregate(self, stores, context, router):
        report = await run_provider(context, TASKS, "chatgpt", router)

        rows = get_metrics("chatgpt")
        assert len(rows) == 9
        best = [r for r in rows if r["question"] == "Best coffee?"]
        assert [(r["brand"], r["rank"], r["mentions"]) for r in best] == [
            ("Acme", 2, 2),
            ("Globex", 1, 1),
            ("Initech", 10, 0),
        ]
        assert best[0]["links"] == "https://acme.com/menu"
        assert best[0]["sentiment"] == 40
        assert {r["msv"] for r in rows} == {1200}

        aggregate = [r for r in rows if r["question"] == "Keyword Performance"]
        assert [r["brand"] for r in aggregate] == ["Acme", "Globex", "Initech"]
        assert aggregate[0]["mentions"] == 4
        assert aggregate[0]["sov"] == pytest.approx(15.0)

        assert report.question_count == 2
        assert report.keywords[0].msv == 1200

    @pytest.mark.asyncio
    async def test_raw_answers_stored(self, stores, context, router):
        await run_provider(context, TASKS, "chatgpt", router)

        assert get_raw_answer("chatgpt", RUN_AT, "coffee", "MSV") == "Roughly 1,200 searches per month"
        assert get_raw_answer("chatgpt", RUN_AT, "coffee", "Best coffee?") == ANSWERS["chatgpt"]

    @pytest.mark.asyncio
    async def test_run_marked_complete(self, stores, context, router):
        await run_provider(context, TASKS, "chatgpt", router)
        assert list_run_ids("chatgpt", ["Acme"], completed_only=True) == [RUN_AT]

    @pytest.mark.asyncio
    async def test_rerun_is_idempotent(self, stores, context, router):
        await run_provider(context, TASKS, "chatgpt", router)
        await run_provider(context, TASKS, "chatgpt", router)
        assert len(get_metrics("chatgpt")) == 9

    @pytest.mark.asyncio
    async def test_keyword_without_questions(self, stores, context, router):
        report = await run_provider(context, [Task("tea", ())], "chatgpt", router)

        rows = get_metrics("chatgpt")
        assert [r["question"] for r in rows] == ["Keyword Performance"] * 3
        assert {r["rank"] for r in rows} == {10}
        assert report.question_count == 0


class TestRunReport:
    """Tests for run_report across providers"""

    @pytest.mark.asyncio
    async def test_degraded_provider_still_completes(self, stores, context, router, tmp_path):
        reports = await run_report(context, TASKS, ["chatgpt", "gemini"], router, output_dir=tmp_path / "out")

        assert [r.provider for r in reports] == ["chatgpt", "gemini"]
        gemini_rows = [r for r in get_metrics("gemini") if r["question"] != "Keyword Performance"]
        assert {r["rank"] for r in gemini_rows} == {10}
        assert {r["sentiment"] for r in gemini_rows} == {40, 10, 0}
        assert list_run_ids("gemini", ["Acme"], completed_only=True) == [RUN_AT]

    @pytest.mark.asyncio
    async def test_exports(self, stores, context, router, tmp_path):
        out = tmp_path / "out"
        [report] = await run_report(context, TASKS, ["chatgpt"], router, output_dir=out)

        assert report.csv_path == out / "acme-chatgpt-20250101120000.csv"
        assert report.txt_path == out / "acme-chatgpt-20250101120000.txt"

        with open(report.csv_path, newline="", encoding="utf-8") as f:
            rows = list(csv.reader(f))
        assert rows[0] == report_header(["Acme", "Globex", "Initech"])
        assert rows[1][:8] == ["coffee", "Best coffee?", "1200", "2", "2", "15.0%", "40", "https://acme.com/menu"]
        assert rows[3][1] == "Keyword Performance"
        assert rows[3][4] == "2.0"
        assert rows[3][7] == ""

        transcript = report.txt_path.read_text(encoding="utf-8")
        assert transcript.startswith("[coffee]\nMSV: 1200\n[Best coffee?]\n")
        assert "-" * 50 in transcript

    @pytest.mark.asyncio
    async def test_no_export_without_output_dir(self, stores, context, router):
        [report] = await run_report(context, TASKS, ["chatgpt"], router)
        assert report.csv_path is None

    @pytest.mark.asyncio
    async def test_no_providers(self, stores, context, router):
        assert await run_report(context, TASKS, [], router) == []

    @pytest.mark.asyncio
    async def test_store_failure_cancels_other_providers(self, stores, context, router, monkeypatch):
        async def slow_chatgpt(provider, system, user, **kwargs):
            if provider == "chatgpt":
                await asyncio.sleep(30)
            return fake_ask(provider, system, user)

        def failing(run_id, provider, *args, **kwargs):
            raise StoreError("disk full")

        router.ask.side_effect = slow_chatgpt
        monkeypatch.setattr(pipeline, "store_keyword_performance", failing)

        with pytest.raises(StoreError, match="disk full"):
            await asyncio.wait_for(run_report(context, TASKS, ["chatgpt", "gemini"], router), timeout=5)

        assert list_run_ids("chatgpt", ["Acme"], completed_only=True) == []
        assert list_run_ids("gemini", ["Acme"], completed_only=True) == []

    @pytest.mark.asyncio
    async def test_other_failures_let_remaining_providers_finish(self, stores, context, router):
        def broken_gemini(provider, system, user, **kwargs):
            if provider == "gemini":
                raise RuntimeError("unexpected")
            return fake_ask(provider, system, user)

        router.ask.side_effect = broken_gemini

        with pytest.raises(RuntimeError, match="unexpected"):
            await run_report(context, TASKS, ["chatgpt", "gemini"], router)

        assert list_run_ids("chatgpt", ["Acme"], completed_only=True) == [RUN_AT]

    @pytest.mark.asyncio
    async def test_search_volume_range_answer(self, stores, context, router):
        def range_answer(provider, system, user, **kwargs):
            if "monthly search volume" in system:
                return "Roughly 1,000,000 - 5,000,000 searches (2023-2024 data)"
            return fake_ask(provider, system, user)

        router.ask.side_effect = range_answer

        [report] = await run_report(context, TASKS, ["chatgpt"], router)

        assert report.keywords[0].msv == 1000000
        assert {r["msv"] for r in get_metrics("chatgpt")} == {1000000}
