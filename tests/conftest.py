"""
Pytest Configuration and Shared Fixtures

Provides in-memory stores, a sample brand configuration and a mocked
provider router for all test modules.
"""

import pytest
from typing import Dict, Any
from unittest.mock import MagicMock, AsyncMock

from visibility.context import RunId, create_run_context
from visibility.database import session as db_session
from visibility.database.models import MetricsBase, OpportunityBase
from visibility.utils.config import BrandConfig, get_settings


RUN_AT = "2025-01-01T12:00:00.000Z"


# ============================================================================
# Settings
# ============================================================================

@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Fresh settings per test, with nothing read from a developer's .env."""
    for key in ("OPENAI_API_KEY", "GEMINI_API_KEY", "PERPLEXITY_API_KEY", "ANTHROPIC_API_KEY"):
        monkeypatch.setenv(key, "")
    monkeypatch.setenv("OUTPUT_DIR", str(tmp_path / "output"))
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ============================================================================
# Stores
# ============================================================================

@pytest.fixture
def stores():
    """Both stores on in-memory SQLite, tables created."""
    metrics_engine = db_session.configure_store(db_session.METRICS, "sqlite://")
    opportunities_engine = db_session.configure_store(db_session.OPPORTUNITIES, "sqlite://")
    MetricsBase.metadata.create_all(bind=metrics_engine)
    OpportunityBase.metadata.create_all(bind=opportunities_engine)
    yield {"metrics": metrics_engine, "opportunities": opportunities_engine}
    db_session.reset_engines()


# ============================================================================
# Brand configuration
# ============================================================================

@pytest.fixture
def config_data() -> Dict[str, Any]:
    """Raw brand configuration as it appears in config.json."""
    return {
        "competitors": {
            "Acme": ["Globex", "Initech"],
            "TimHortons": ["Starbucks", "McDonalds"],
        },
        "domains": {
            "Acme": "acme.com",
            "Globex": "globex.com",
            "Initech": "initech.io",
            "TimHortons": "timhortons.ca",
        },
        "brandDisplayNames": {
            "McDonalds": "McDonald's",
        },
        "inputFiles": {
            "Acme": "acme-input.txt",
        },
        "inputFile": "default-input.txt",
        "brands": ["Acme", "TimHortons"],
        "defaultBrand": "Acme",
        "location": "Canada",
        "ctr": {"1": 0.30, "2": 0.15, "3": 0.10},
    }


@pytest.fixture
def brand_config(config_data) -> BrandConfig:
    return BrandConfig.model_validate(config_data)


@pytest.fixture
def run_id() -> RunId:
    return RunId.parse(RUN_AT)


@pytest.fixture
def context(brand_config, run_id):
    """Run context for Acme vs Globex, Initech."""
    return create_run_context("Acme", brand_config, run_id=run_id)


# ============================================================================
# Provider router
# ============================================================================

@pytest.fixture
def mock_router():
    """Router whose ask() returns '' unless a test sets a side effect."""
    router = MagicMock()
    router.ask = AsyncMock(return_value="")
    router.is_available = MagicMock(return_value=True)
    router.available = MagicMock(side_effect=lambda providers: list(providers))
    return router
