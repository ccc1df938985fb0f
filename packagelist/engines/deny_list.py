"""Deny list handling and manual add / remove of packages."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from urllib.parse import urlparse, urlunparse

import structlog

from packagelist.engines.normalizer.urls import dedup, ensure_git_suffix, normalize, sort_urls
from packagelist.errors import InvalidURLError

log = structlog.get_logger("packagelist.engine")

_INDEX_HOST = "swiftpackageindex.com"


@dataclass
class AddResult:
    urls: list[str]
    added: list[str] = field(default_factory=list)


@dataclass
class RemoveResult:
    urls: list[str]
    removed: list[str] = field(default_factory=list)
    deny_entries: list[dict[str, str]] = field(default_factory=list)


def split_body(body: str) -> list[str]:
    """Whitespace-separated tokens of an issue / PR body."""
    return body.split()


def deny_urls(entries: Iterable[dict[str, str]]) -> list[str]:
    return [entry["package_url"] for entry in entries]


def apply_deny_list(urls: list[str], denied: Iterable[str]) -> list[str]:
    """Drop every URL whose key is on the deny list; result is sorted."""
    denied_keys = {normalize(u) for u in denied}
    kept = [u for u in urls if normalize(u) not in denied_keys]
    removed = len(urls) - len(kept)
    if removed:
        log.info("deny_list.applied", removed=removed)
    return sort_urls(kept)


def add_packages(urls: list[str], candidates: Iterable[str], denied: Iterable[str]) -> AddResult:
    """Add submitted URLs to the list.

    Tokens that are not ``http(s)`` URLs are skipped; ``http`` is upgraded
    to ``https`` and ``.git`` is enforced. Links to other hosts are logged and
    skipped. Denied URLs never make it into the result.
    """
    result = AddResult(urls=list(urls))
    known = {normalize(u) for u in urls}

    for token in candidates:
        parsed = urlparse(token.strip())
        if not parsed.scheme.startswith("http"):
            continue
        if parsed.scheme == "http":
            parsed = parsed._replace(scheme="https")
        if (parsed.hostname or "").lower() != "github.com":
            log.info("deny_list.skipped_host", url=token, host=parsed.hostname)
            continue
        candidate = ensure_git_suffix(urlunparse(parsed))
        key = normalize(candidate)
        if key in known:
            continue
        known.add(key)
        result.urls.append(candidate)
        result.added.append(candidate)
        log.info("deny_list.package_added", url=candidate)

    result.urls = apply_deny_list(result.urls, denied)
    return result


def remove_packages(
    urls: list[str],
    candidates: Iterable[str],
    deny_entries: list[dict[str, str]],
    notes: str,
) -> RemoveResult:
    """Remove submitted URLs from the list and add them to the deny list.

    Index links (``swiftpackageindex.com/owner/repo``) are rewritten to their
    GitHub form first. New deny entries carry *notes*; URLs already denied are
    not duplicated.
    """
    to_remove: list[str] = []
    for token in candidates:
        parsed = urlparse(token.strip())
        if not parsed.scheme or not parsed.netloc:
            raise InvalidURLError(token)
        if (parsed.hostname or "").lower() == _INDEX_HOST:
            parsed = parsed._replace(netloc="github.com")
        to_remove.append(ensure_git_suffix(urlunparse(parsed)))

    remove_keys = {normalize(u) for u in to_remove}
    kept = [u for u in urls if normalize(u) not in remove_keys]
    removed = [u for u in urls if normalize(u) in remove_keys]

    already_denied = {normalize(e["package_url"]) for e in deny_entries}
    new_entries = [
        {"notes": notes, "package_url": u}
        for u in dedup(to_remove)
        if normalize(u) not in already_denied
    ]
    for entry in new_entries:
        log.info("deny_list.package_denied", url=entry["package_url"])

    return RemoveResult(
        urls=sort_urls(kept),
        removed=removed,
        deny_entries=[*deny_entries, *new_entries],
    )
