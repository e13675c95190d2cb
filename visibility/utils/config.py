"""
Configuration Management

Two layers:
- Settings: environment / .env driven (API keys, models, database URLs)
- BrandConfig: the brand/competitor/domain/CTR file, loaded once per run
"""

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings

from visibility.errors import ConfigError

logger = logging.getLogger(__name__)


DEFAULT_LOCATION = "Canada"


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Provider credentials (each provider is optional)
    OPENAI_API_KEY: Optional[str] = None
    GEMINI_API_KEY: Optional[str] = None
    PERPLEXITY_API_KEY: Optional[str] = None
    ANTHROPIC_API_KEY: Optional[str] = None

    # Models
    LLM_MODEL: str = "gpt-4o-mini"
    GEMINI_MODEL: str = "gemini-1.5-flash"
    PERPLEXITY_MODEL: str = "sonar"
    CLAUDE_MODEL: str = "claude-sonnet-4-20250514"
    ANSWER_TEMPERATURE: float = 0.7
    CLASSIFIER_TEMPERATURE: float = 0.2

    # Files
    CONFIG_PATH: str = "config.json"
    OUTPUT_DIR: str = "output"

    # Databases (SQLite files under OUTPUT_DIR when unset)
    METRICS_DATABASE_URL: Optional[str] = None
    OPPORTUNITIES_DATABASE_URL: Optional[str] = None
    SQL_DEBUG: bool = False

    # Opportunity mining
    CLASSIFIER_PROVIDER: str = "chatgpt"
    MAX_CONCURRENT_CLASSIFICATIONS: int = 4
    SNIPPET_CHARS: int = 4000

    # Application
    LOCATION: Optional[str] = None
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"
        case_sensitive = False

    @property
    def metrics_database_url(self) -> str:
        return self.METRICS_DATABASE_URL or f"sqlite:///{Path(self.OUTPUT_DIR) / 'llmreport.db'}"

    @property
    def opportunities_database_url(self) -> str:
        return self.OPPORTUNITIES_DATABASE_URL or f"sqlite:///{Path(self.OUTPUT_DIR) / 'opportunities.db'}"


@lru_cache
def get_settings() -> Settings:
    """Get or create cached settings instance."""
    return Settings()


class BrandConfig(BaseModel):
    """
    Brand configuration file.

    Keys mirror the JSON file (camelCase aliases); every namespace is
    optional so a partial file still loads.
    """

    competitors: Dict[str, List[str]] = Field(default_factory=dict)
    domains: Dict[str, str] = Field(default_factory=dict)
    brand_display_names: Dict[str, str] = Field(default_factory=dict, alias="brandDisplayNames")
    input_files: Dict[str, str] = Field(default_factory=dict, alias="inputFiles")
    input_file: Optional[str] = Field(default=None, alias="inputFile")
    brands: List[str] = Field(default_factory=list)
    default_brand: Optional[str] = Field(default=None, alias="defaultBrand")
    location: Optional[str] = None
    ctr: Dict[int, float] = Field(default_factory=dict)

    class Config:
        populate_by_name = True
        extra = "ignore"

    def resolved_location(self, override: Optional[str] = None) -> str:
        """Config file wins, then the LOCATION setting, then the default."""
        for candidate in (self.location, override):
            if candidate and candidate.strip():
                return candidate.strip()
        return DEFAULT_LOCATION


def load_brand_config(path: Path) -> BrandConfig:
    """
    Load the brand configuration file.

    Raises:
        ConfigError: file missing, not JSON, or schema-invalid
    """
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Missing config file: {path}")

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigError(f"Config file {path} is not valid JSON: {e}") from e

    try:
        config = BrandConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Config file {path} is invalid: {e}") from e

    logger.info(
        f"Loaded brand config from {path}: {len(config.competitors)} competitor sets, "
        f"{len(config.domains)} domains, {len(config.ctr)} CTR points"
    )
    return config
