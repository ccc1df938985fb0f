"""URL normalizer — comparison keys, dedup and the canonical list."""

from packagelist.engines.normalizer.canonical import CanonicalList
from packagelist.engines.normalizer.urls import (
    PackageURL,
    dedup,
    ensure_git_suffix,
    find_additions,
    human_url,
    normalize,
    parse_github_url,
    sort_urls,
)

__all__ = [
    "CanonicalList",
    "PackageURL",
    "dedup",
    "ensure_git_suffix",
    "find_additions",
    "human_url",
    "normalize",
    "parse_github_url",
    "sort_urls",
]
