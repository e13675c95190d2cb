"""
Run Context

RunContext is an in-memory, immutable value built once per execution and
passed to every component. It is NOT persisted.

It carries:
- run_id: the shared run timestamp every store write is tagged with
- brand / brand_key / brands: the subject brand and its BrandSet
- location, ctr_curve, domains: per-run configuration, read-only
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

from visibility.context.brands import brand_variants, build_brand_set, domain_for, BrandVariants
from visibility.errors import ConfigError
from visibility.scoring.helpers import CTR_CURVE
from visibility.utils.config import BrandConfig


@dataclass(frozen=True, order=True)
class RunId:
    """
    Identity of one run.

    A run is every row written under one start timestamp. The key is the
    ISO-8601 string stored in run_at columns.
    """

    started_at: datetime

    @classmethod
    def now(cls) -> "RunId":
        return cls(datetime.now(timezone.utc))

    @classmethod
    def parse(cls, value: str) -> "RunId":
        """Parse a stored run_at key (accepts a trailing 'Z')."""
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as e:
            raise ConfigError(f"Invalid run date: {value!r}") from e
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return cls(parsed)

    @property
    def key(self) -> str:
        return self.started_at.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")

    @property
    def file_stamp(self) -> str:
        """Filesystem-safe stamp, e.g. 20250101123000."""
        return self.started_at.astimezone(timezone.utc).strftime("%Y%m%d%H%M%S")

    def __str__(self) -> str:
        return self.key


@dataclass(frozen=True)
class RunContext:
    """
    Everything one execution needs to know, fixed at start.

    Attributes:
        run_id: Shared run identity
        brand: Subject brand display name
        brand_key: Resolved configuration key for the subject brand
        brands: BrandSet (subject first, then competitors)
        location: Location the answers are tailored to
        ctr_curve: Rank -> click-through-rate mapping
        domains: Brand display name -> configured domain ('' when unknown)
        config: The loaded brand configuration
    """

    run_id: RunId
    brand: str
    brand_key: str
    brands: Tuple[str, ...]
    location: str
    ctr_curve: Dict[int, float] = field(default_factory=dict)
    domains: Dict[str, str] = field(default_factory=dict)
    config: BrandConfig = field(default_factory=BrandConfig)

    @property
    def brand_domain(self) -> str:
        return self.domains.get(self.brand, "")

    @property
    def variants(self) -> BrandVariants:
        return brand_variants(self.brand, self.config)

    def with_run(self, run_id: RunId) -> "RunContext":
        """Same context pointed at another run (e.g. mining a past run)."""
        return replace(self, run_id=run_id)


def create_run_context(
    brand: str,
    config: BrandConfig,
    run_id: Optional[RunId] = None,
    location: Optional[str] = None,
) -> RunContext:
    """
    Build the run context for a subject brand.

    Raises:
        ConfigError: empty brand name
    """
    brand = (brand or "").strip()
    if not brand:
        raise ConfigError("A brand name is required")

    variants = brand_variants(brand, config)
    brands = tuple(build_brand_set(brand, config))

    return RunContext(
        run_id=run_id or RunId.now(),
        brand=brand,
        brand_key=variants.key,
        brands=brands,
        location=config.resolved_location(location),
        ctr_curve=dict(config.ctr or CTR_CURVE),
        domains={b: domain_for(b, config) for b in brands},
        config=config,
    )
