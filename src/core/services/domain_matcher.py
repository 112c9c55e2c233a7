"""Shortener link matching.

Pure functions: given a link, the page's own domain and a registry snapshot,
decide whether the link points at a known shortening service.

Domain extraction is a single regular expression. A few services hand out
links under many second-level labels of one family domain
(`<anything>.notlong.com`); those families are an explicit alternation inside
the expression rather than per-domain branches.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable

from core.domain.errors import MalformedLinkError
from core.domain.models import RegistrySnapshot

logger = logging.getLogger(__name__)

COARSE_FAMILIES: tuple[str, ...] = (
    "notlong.com",
    "qlnk.net",
    "ni.to",
    "lu.to",
    "zzang.kr",
)


def build_domain_pattern(families: Iterable[str] = COARSE_FAMILIES) -> re.Pattern[str]:
    """Regex capturing the family domain (group 1) or the plain host (group 2)."""

    alternation = "|".join(re.escape(family) for family in families)
    return re.compile(
        r"^https?://"
        r"(?:[^@/?#]*@)?"
        r"(?:www\.)?"
        rf"(?:[^./?#:@]+\.({alternation})(?=[:/?#]|$)|([^./?#:@]+\.[^/?#:@]+))",
        re.IGNORECASE,
    )


_DOMAIN_RE = build_domain_pattern()


def extract_domain(href: object, pattern: re.Pattern[str] = _DOMAIN_RE) -> str:
    """Return the lowercase registrable domain of an absolute http(s) URL.

    Raises `MalformedLinkError` when `href` has no parseable host.
    """

    if not isinstance(href, str):
        raise MalformedLinkError(f"href is not a string: {href!r}")
    match = pattern.match(href.strip())
    if match is None:
        raise MalformedLinkError(f"no host in href: {href!r}")
    domain = match.group(1) or match.group(2)
    return domain.lower().rstrip(".")


def page_domain_from_url(url: str | None) -> str | None:
    """Domain of the page hosting the links, `None` if it cannot be parsed."""

    try:
        return extract_domain(url)
    except MalformedLinkError:
        return None


def matches(href: object, page_domain: str | None, registry: RegistrySnapshot) -> bool:
    """Whether `href` is a shortener link eligible for resolution.

    Never raises: malformed links are logged at DEBUG and excluded.
    """

    try:
        domain = extract_domain(href)
    except MalformedLinkError as exc:
        logger.debug("Skipping link: %s", exc)
        return False

    if page_domain and domain == page_domain.lower():
        return False

    descriptor = registry.lookup(domain)
    if descriptor is None:
        return False
    return descriptor.accepts(str(href).strip())
