"""
URL Guard

Post-checks classifier suggestions before they are stored. The classifier
is an LLM and can hallucinate; these rules hold no matter what it says:

- A suggested brand URL survives only for an Optimization, only if it is
  an http(s) URL on the brand domain (or a subdomain), and never when it
  is a bare homepage. Otherwise the update becomes Net New with no URL.
- An example competitor URL survives only if it is an http(s) URL, not on
  the brand domain, and not a bare homepage. Otherwise it is cleared.
"""

import re
from dataclasses import dataclass, replace
from urllib.parse import urlparse

from visibility.database.models import ContentUpdateType

_HTTP_PREFIX = re.compile(r"^https?://", re.IGNORECASE)


def is_http(url: str) -> bool:
    return bool(url) and bool(_HTTP_PREFIX.match(url))


def _parse(url: str):
    try:
        parsed = urlparse(url)
        # Accessing port validates the netloc
        parsed.port
    except ValueError:
        return None
    if parsed.scheme.lower() not in ("http", "https") or not parsed.hostname:
        return None
    return parsed


def is_well_formed(url: str) -> bool:
    return is_http(url) and _parse(url) is not None


def is_root_url(url: str) -> bool:
    """True for a bare homepage: empty or '/' path, no query, no fragment."""
    parsed = _parse(url)
    if parsed is None:
        return False
    return parsed.path in ("", "/") and not parsed.query and not parsed.fragment


def hostname(url: str) -> str:
    parsed = _parse(url)
    return parsed.hostname.lower() if parsed else ""


def domain_host(domain: str) -> str:
    """'https://www.acme.com/path' -> 'www.acme.com'."""
    host = _HTTP_PREFIX.sub("", (domain or "").strip())
    return host.split("/", 1)[0].lower()


def domain_matches(url: str, domain: str) -> bool:
    """URL host equals the domain host or is a subdomain of it."""
    if not url or not domain:
        return False
    host = hostname(url)
    target = domain_host(domain)
    return bool(host) and bool(target) and (host == target or host.endswith(f".{target}"))


@dataclass(frozen=True)
class Classification:
    """Classifier verdict for one opportunity."""
    content_update_type: str = ContentUpdateType.NET_NEW.value
    suggested_brand_url: str = ""
    example_competitor_url: str = ""


def apply_guard(classification: Classification, brand_domain: str) -> Classification:
    """Enforce the URL rules on a classification. Pure."""
    brand_url = (classification.suggested_brand_url or "").strip()
    competitor_url = (classification.example_competitor_url or "").strip()
    content_type = classification.content_update_type

    if content_type == ContentUpdateType.OPTIMIZATION.value:
        if not (
            is_well_formed(brand_url)
            and domain_matches(brand_url, brand_domain)
            and not is_root_url(brand_url)
        ):
            content_type = ContentUpdateType.NET_NEW.value
            brand_url = ""
    else:
        content_type = ContentUpdateType.NET_NEW.value
        brand_url = ""

    if not (
        is_well_formed(competitor_url)
        and not domain_matches(competitor_url, brand_domain)
        and not is_root_url(competitor_url)
    ):
        competitor_url = ""

    return replace(
        classification,
        content_update_type=content_type,
        suggested_brand_url=brand_url,
        example_competitor_url=competitor_url,
    )
