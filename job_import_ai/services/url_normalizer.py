"""
Normalise job portal URLs so we always fetch the canonical single-job page.

Some portals show job details as overlays on a search page and keep the job ID
only in the hash fragment. Fragments are never sent to the server, so a fetch
of such a URL returns the search results instead of the posting.

Add new portals by appending a UrlRule to URL_RULES.
"""

import re
from dataclasses import dataclass
from typing import Callable, Optional, Tuple
from urllib.parse import SplitResult, urlsplit

from job_import_ai.utils.helpers import is_absolute_url


@dataclass(frozen=True)
class UrlRule:
    """Rewrite rule for a set of hostnames; rewrite returns None when it does not apply."""

    hosts: Tuple[str, ...]
    rewrite: Callable[[SplitResult], Optional[str]]


def _karriere_at(parts: SplitResult) -> Optional[str]:
    # https://www.karriere.at/jobs/software-entwickler/wien#7738505
    #   -> https://www.karriere.at/jobs/7738505
    if re.fullmatch(r"\d+", parts.fragment):
        return f"{parts.scheme}://{parts.netloc}/jobs/{parts.fragment}"
    return None


URL_RULES: Tuple[UrlRule, ...] = (
    UrlRule(hosts=("karriere.at", "www.karriere.at"), rewrite=_karriere_at),
)


def normalize_job_url(raw_url: str) -> str:
    """
    Return the canonical job page URL for raw_url.
    Known portal patterns are rewritten, other fragments stripped; anything that
    is not an absolute URL is returned unchanged. Never raises.
    """
    if not isinstance(raw_url, str) or not is_absolute_url(raw_url):
        return raw_url

    parts = urlsplit(raw_url)
    host = (parts.hostname or "").lower()
    for rule in URL_RULES:
        if host in rule.hosts:
            rewritten = rule.rewrite(parts)
            if rewritten:
                return rewritten

    # Covers a bare trailing "#" too, which urlsplit reports as an empty fragment
    if "#" in raw_url:
        return raw_url.split("#", 1)[0]

    return raw_url
