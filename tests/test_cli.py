"""
Test Suite for the Command Line

Argument normalization, usage errors and both commands end to end with a
stub router.
"""

import csv
import json

import pytest
from unittest.mock import AsyncMock, MagicMock

from visibility import cli
from visibility.cli import build_parser, clean_brand, main, normalize_argv
from visibility.database import get_metrics, get_opportunities, store_metrics
from visibility.scoring.metrics import BrandMetric


RUN_AT = "2025-01-01T12:00:00.000Z"


class StubRouter:
    """Stands in for ProviderRouter; every provider is configured."""

    def __init__(self, location, **kwargs):
        self.location = location
        self.config = MagicMock()
        self.ask = AsyncMock(side_effect=self._ask)

    async def _ask(self, provider, system, user, **kwargs):
        if "monthly search volume" in system:
            return "500"
        if "sentiment" in system:
            return '{"Acme": 20}'
        if "contentUpdateType" in system:
            return '{"contentUpdateType": "Net New", "exampleCompetitorUrl": "https://globex.com/guide"}'
        return "Globex first, then Acme."

    def available(self, providers):
        return list(providers)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None


@pytest.fixture
def workspace(tmp_path, config_data):
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps(config_data), encoding="utf-8")
    (tmp_path / "acme-input.txt").write_text(
        "[kw1] - coffee\n[Best coffee?]\n", encoding="utf-8"
    )
    return tmp_path


@pytest.fixture
def stub_router(monkeypatch):
    monkeypatch.setattr(cli, "ProviderRouter", StubRouter)
    return StubRouter


# ============================================================================
# Argument handling
# ============================================================================

class TestArguments:
    """Tests for argv normalization"""

    def test_brand_assignment_swallows_words(self):
        argv = ["report", "brand=Tim", "Hortons", "--provider", "chatgpt"]
        assert normalize_argv(argv) == ["report", "--brand", "Tim Hortons", "--provider", "chatgpt"]

    def test_provider_and_date_assignments(self):
        argv = ["mine", "brand=Acme", "provider=gemini", "date=2025-01-01T12:00:00.000Z"]
        assert normalize_argv(argv) == [
            "mine", "--brand", "Acme", "--provider", "gemini", "--date", "2025-01-01T12:00:00.000Z",
        ]

    def test_other_tokens_untouched(self):
        assert normalize_argv(["--config", "a=b.json", "report"]) == ["--config", "a=b.json", "report"]

    def test_clean_brand(self):
        assert clean_brand(["Tim", "Hortons"]) == "Tim Hortons"
        assert clean_brand(['"Tim', 'Hortons"']) == "Tim Hortons"
        assert clean_brand(["''"]) is None
        assert clean_brand(None) is None

    def test_multi_word_brand_option(self):
        args = build_parser().parse_args(["report", "--brand", "Tim", "Hortons", "--provider", "claude"])
        assert clean_brand(args.brand) == "Tim Hortons"
        assert args.provider == ["claude"]

    def test_unknown_provider_is_usage_error(self):
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args(["report", "--provider", "bard"])
        assert exc_info.value.code == 2


# ============================================================================
# Usage and fatal errors
# ============================================================================

class TestExitCodes:
    """Tests for main() exit codes"""

    def test_mine_without_brand(self, workspace):
        with pytest.raises(SystemExit) as exc_info:
            main(["--config", str(workspace / "config.json"), "mine"])
        assert exc_info.value.code == 2

    def test_report_without_brand_or_default(self, workspace):
        (workspace / "empty.json").write_text("{}", encoding="utf-8")
        with pytest.raises(SystemExit) as exc_info:
            main(["--config", str(workspace / "empty.json"), "report"])
        assert exc_info.value.code == 2

    def test_missing_config_file(self, workspace, capsys):
        assert main(["--config", str(workspace / "missing.json"), "report"]) == 1
        assert "Missing config file" in capsys.readouterr().err

    def test_no_configured_providers(self, workspace, stores):
        assert main(["--config", str(workspace / "config.json"), "report", "--no-export"]) == 1
        assert get_metrics("chatgpt") == []

    def test_mine_with_no_runs(self, workspace, stores, stub_router):
        assert main(["--config", str(workspace / "config.json"), "mine", "--brand", "Acme"]) == 1


# ============================================================================
# Commands
# ============================================================================

class TestCommands:
    """End-to-end command runs against in-memory stores"""

    def test_report_uses_default_brand(self, workspace, stores, stub_router, capsys):
        out = workspace / "exports"
        code = main([
            "--config", str(workspace / "config.json"),
            "--output-dir", str(out),
            "report", "--provider", "chatgpt",
        ])

        assert code == 0
        rows = get_metrics("chatgpt", brand="Acme")
        assert [r["question"] for r in rows] == ["Best coffee?", "Keyword Performance"]
        assert rows[0]["rank"] == 2
        assert rows[0]["msv"] == 500
        assert len(list(out.glob("acme-chatgpt-*.csv"))) == 1
        assert "complete for Acme" in capsys.readouterr().out

    def test_mine_writes_opportunities_csv(self, workspace, stores, stub_router):
        store_metrics(RUN_AT, "chatgpt", "coffee", "Best coffee?", [
            BrandMetric("Acme", 1, 2, 15.0),
            BrandMetric("Globex", 1, 1, 30.0),
        ])
        out = workspace / "exports"

        code = main([
            "--config", str(workspace / "config.json"),
            "--output-dir", str(out),
            "mine", "brand=Acme", "date=2025-01-01T12:00:00Z",
        ])

        assert code == 0
        [stored] = get_opportunities("Acme", "chatgpt", RUN_AT)
        assert stored["opportunity_type"] == "Ranking"
        assert stored["example_competitor_url"] == "https://globex.com/guide"

        [path] = out.glob("acme-opportunities-*.csv")
        with open(path, newline="", encoding="utf-8") as f:
            [row] = list(csv.DictReader(f))
        assert row["Prompt"] == "Best coffee?"
        assert row["Content Update Type"] == "Net New"
        assert row["MSV"] == ""
