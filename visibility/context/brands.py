"""
Brand Resolver

Maps free-text brand names to configuration keys so that "Tim Hortons",
"tim-hortons" and "TimHortons" all land on the same domain, input file
and competitor list.
"""

import re
import unicodedata
from dataclasses import dataclass
from typing import Iterator, List

from visibility.utils.config import BrandConfig

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]+")


def slug_lower(value: str) -> str:
    """Strip diacritics and every non-alphanumeric, then lower-case."""
    decomposed = unicodedata.normalize("NFKD", value or "")
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _NON_ALNUM.sub("", stripped).lower()


def pascal_key(value: str) -> str:
    """'tim hortons' -> 'TimHortons'."""
    parts = [p for p in _NON_ALNUM.split(value or "") if p]
    return "".join(p[0].upper() + p[1:].lower() for p in parts)


def _config_keys(config: BrandConfig) -> Iterator[str]:
    yield from config.input_files
    yield from config.domains
    yield from config.competitors
    yield from config.brands


def resolve_brand_key(name: str, config: BrandConfig) -> str:
    """
    Resolve a display name to a configuration key.

    Checks input files, domains, competitors and the brand list, in that
    order, for a key whose normalized form equals the normalized name.
    Falls back to a PascalCase key derived from the name. Never raises.
    """
    name = str(name or "")
    target = slug_lower(name)

    for key in _config_keys(config):
        if slug_lower(key) == target:
            return key

    return pascal_key(name) or re.sub(r"\s+", "", name)


def domain_for(name: str, config: BrandConfig) -> str:
    """Configured domain for a brand name, or '' when none is configured."""
    return config.domains.get(resolve_brand_key(name, config), "")


def display_name_for(key: str, config: BrandConfig) -> str:
    return config.brand_display_names.get(key) or key


@dataclass(frozen=True)
class BrandVariants:
    """The spellings a brand may be stored under."""
    display: str
    key: str
    compact: str

    @property
    def names(self) -> List[str]:
        """Distinct stored-name variants (display first)."""
        return list(dict.fromkeys([self.display, self.compact]))


def brand_variants(name: str, config: BrandConfig) -> BrandVariants:
    display = str(name or "")
    return BrandVariants(
        display=display,
        key=resolve_brand_key(display, config),
        compact=_NON_ALNUM.sub("", display),
    )


def build_brand_set(brand: str, config: BrandConfig) -> List[str]:
    """
    Subject brand followed by its configured competitors' display names.

    Names that collide by normalized key are dropped (first wins).
    """
    key = resolve_brand_key(brand, config)
    candidates = [brand] + [display_name_for(k, config) for k in config.competitors.get(key, [])]

    seen = set()
    brand_set = []
    for candidate in candidates:
        norm = slug_lower(candidate)
        if not norm or norm in seen:
            continue
        seen.add(norm)
        brand_set.append(candidate)
    return brand_set
