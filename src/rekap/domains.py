"""Hostname helpers: domain extraction and work/distraction categorization."""

from __future__ import annotations

from typing import Iterable, Optional
from urllib.parse import urlparse

from .config import DomainSettings
from .models import DomainCategory


def match_domain_pattern(domain: str, pattern: str) -> bool:
    """Match ``domain`` against a pattern such as ``*.google.com`` or ``docs.*``.

    A bare pattern also matches any subdomain of it, so ``atlassian.net``
    matches ``mycompany.atlassian.net``.
    """
    if domain == pattern:
        return True
    if "*" in pattern:
        if pattern.startswith("*."):
            return domain.endswith(pattern[1:])
        if pattern.endswith(".*"):
            return domain.startswith(pattern[:-1])
    return domain.endswith("." + pattern)


def _matches_any(domain: str, patterns: Iterable[str]) -> bool:
    return any(match_domain_pattern(domain, pattern) for pattern in patterns)


def classify(
    domain: str,
    work: Iterable[str] = (),
    distraction: Iterable[str] = (),
    neutral: Iterable[str] = (),
) -> Optional[DomainCategory]:
    """Categorize a hostname; work rules win over distraction, then neutral.

    Unmatched hostnames are neutral. Only an empty hostname has no category.
    """
    if not domain:
        return None
    if _matches_any(domain, work):
        return DomainCategory.WORK
    if _matches_any(domain, distraction):
        return DomainCategory.DISTRACTION
    if _matches_any(domain, neutral):
        return DomainCategory.NEUTRAL
    return DomainCategory.NEUTRAL


def categorize(domain: str, settings: DomainSettings) -> Optional[DomainCategory]:
    return classify(domain, settings.work, settings.distraction, settings.neutral)


def extract_domain(url: str) -> str:
    """Return the host of ``url`` without a leading ``www.``, or an empty string."""
    if not url:
        return ""
    try:
        host = urlparse(url).netloc
    except ValueError:
        return ""
    if host.startswith("www."):
        host = host[len("www."):]
    return host
