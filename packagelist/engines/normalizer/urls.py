"""URL normalization, deduplication and ordering for the package list."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlparse

from packagelist.errors import InvalidURLError, UnknownHostError

GIT_SUFFIX = ".git"
SUPPORTED_HOSTS = ("github.com", "www.github.com")


def normalize(url: str) -> str:
    """Return the comparison key of *url*.

    Lowercased, trailing slashes trimmed, ``.git`` suffix ensured::

        normalize("https://GitHub.com/Owner/Repo.git/") == "https://github.com/owner/repo.git"
        normalize("https://github.com/owner/repo")      == "https://github.com/owner/repo.git"
    """
    key = url.strip().lower().rstrip("/")
    if not key.endswith(GIT_SUFFIX):
        key += GIT_SUFFIX
    return key


def ensure_git_suffix(url: str) -> str:
    """Display form of a URL being admitted: casing kept, ``.git`` enforced."""
    url = url.strip().rstrip("/")
    if not url.lower().endswith(GIT_SUFFIX):
        url += GIT_SUFFIX
    return url


def human_url(url: str) -> str:
    """The browsable form of a repository URL (``.git`` suffix removed)."""
    url = url.strip().rstrip("/")
    if url.lower().endswith(GIT_SUFFIX):
        url = url[: -len(GIT_SUFFIX)]
    return url


def same_package(a: str, b: str) -> bool:
    return normalize(a) == normalize(b)


def sort_urls(urls: list[str]) -> list[str]:
    """Sort ascending by case-insensitive raw form (stable)."""
    return sorted(urls, key=str.lower)


def dedup(urls: list[str]) -> list[str]:
    """Keep the first occurrence of every normalized key, then sort.

    Idempotent: ``dedup(dedup(x)) == dedup(x)``.
    """
    seen: set[str] = set()
    kept: list[str] = []
    for url in urls:
        key = normalize(url)
        if key in seen:
            continue
        seen.add(key)
        kept.append(url)
    return sort_urls(kept)


def find_additions(local: list[str], upstream: list[str]) -> list[str]:
    """Entries of *local* whose key does not appear in *upstream*, in order."""
    upstream_keys = {normalize(u) for u in upstream}
    additions: list[str] = []
    for url in local:
        key = normalize(url)
        if key not in upstream_keys:
            upstream_keys.add(key)
            additions.append(url)
    return additions


def parse_github_url(url: str) -> tuple[str, str]:
    """Extract ``(owner, repo)`` from a GitHub repository URL.

    Raises :class:`UnknownHostError` for other hosts and
    :class:`InvalidURLError` when the path is not ``/owner/repo``.
    """
    parsed = urlparse(url.strip())
    if parsed.scheme not in ("http", "https"):
        raise InvalidURLError(url)
    host = (parsed.hostname or "").lower()
    if host not in SUPPORTED_HOSTS:
        raise UnknownHostError(url, parsed.hostname)
    path = parsed.path.strip("/")
    if path.lower().endswith(GIT_SUFFIX):
        path = path[: -len(GIT_SUFFIX)]
    parts = path.split("/")
    if len(parts) != 2 or not all(parts):
        raise InvalidURLError(url)
    return parts[0], parts[1]


@dataclass(frozen=True)
class PackageURL:
    """A repository URL as stored in the list, compared by normalized key."""

    raw: str

    @property
    def normalized_key(self) -> str:
        return normalize(self.raw)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PackageURL):
            return NotImplemented
        return self.normalized_key == other.normalized_key

    def __hash__(self) -> int:
        return hash(self.normalized_key)

    def __str__(self) -> str:
        return self.raw
