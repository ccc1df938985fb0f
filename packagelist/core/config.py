"""Runtime configuration, resolved once and passed into each component."""

from __future__ import annotations

import os
import shlex
import subprocess
from dataclasses import dataclass, field, replace

from packagelist.errors import ConfigurationError

DEFAULT_API_BASE = "https://api.github.com"
DEFAULT_RAW_BASE = "https://raw.githubusercontent.com"
DEFAULT_UPSTREAM_LIST_URL = (
    "https://raw.githubusercontent.com/SwiftPackageIndex/PackageList/main/packages.json"
)
DEFAULT_DUMP_COMMAND = ("swift", "package", "dump-package")


def _env_float(key: str, default: float) -> float:
    raw = os.environ.get(key)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(key, f"expected a number, got {raw!r}") from None


def _env_int(key: str, default: int) -> int:
    raw = os.environ.get(key)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(key, f"expected an integer, got {raw!r}") from None


def _env_bool(key: str, default: bool) -> bool:
    value = os.environ.get(key)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_key(name: str) -> str:
    return f"PACKAGELIST_{name.upper()}"


def get_github_token() -> str | None:
    """Try to read a GitHub token from env or gh CLI config."""
    token = os.environ.get("GITHUB_TOKEN") or os.environ.get("GH_TOKEN")
    if token:
        return token
    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0 and result.stdout.strip():
            return result.stdout.strip()
    except (FileNotFoundError, subprocess.TimeoutExpired):
        pass
    return None


@dataclass(frozen=True)
class Settings:
    """Timeouts, pool sizing, retry policy and endpoints for one run."""

    github_token: str | None = None
    api_base: str = DEFAULT_API_BASE
    raw_base: str = DEFAULT_RAW_BASE
    upstream_list_url: str = DEFAULT_UPSTREAM_LIST_URL
    request_timeout: float = 30.0  # seconds, per network call
    dump_timeout: float = 50.0  # seconds, per dump process
    concurrency: int = 10
    retry_limit: int = 3
    rate_limit_cooldown: float = 60.0
    max_cooldown: float = 900.0
    request_throttle: float = 0.5  # only applied when concurrency == 1
    dump_command: tuple[str, ...] = field(default=DEFAULT_DUMP_COMMAND)
    reject_forks: bool = True

    def __post_init__(self) -> None:
        for name in ("concurrency", "retry_limit", "request_timeout", "dump_timeout"):
            value = getattr(self, name)
            if value <= 0:
                raise ConfigurationError(_env_key(name), f"must be > 0, got {value}")
        for name in ("rate_limit_cooldown", "max_cooldown", "request_throttle"):
            value = getattr(self, name)
            if value < 0:
                raise ConfigurationError(_env_key(name), f"must be >= 0, got {value}")
        if not self.dump_command:
            raise ConfigurationError(_env_key("dump_command"), "must not be empty")

    @classmethod
    def from_env(cls) -> Settings:
        """Build settings from ``PACKAGELIST_*`` environment variables."""
        dump_command = os.environ.get("PACKAGELIST_DUMP_COMMAND")
        return cls(
            github_token=get_github_token(),
            api_base=os.environ.get("PACKAGELIST_API_BASE", DEFAULT_API_BASE),
            raw_base=os.environ.get("PACKAGELIST_RAW_BASE", DEFAULT_RAW_BASE),
            upstream_list_url=os.environ.get(
                "PACKAGELIST_UPSTREAM_LIST_URL", DEFAULT_UPSTREAM_LIST_URL
            ),
            request_timeout=_env_float("PACKAGELIST_REQUEST_TIMEOUT", 30.0),
            dump_timeout=_env_float("PACKAGELIST_DUMP_TIMEOUT", 50.0),
            concurrency=_env_int("PACKAGELIST_CONCURRENCY", 10),
            retry_limit=_env_int("PACKAGELIST_RETRY_LIMIT", 3),
            rate_limit_cooldown=_env_float("PACKAGELIST_RATE_LIMIT_COOLDOWN", 60.0),
            max_cooldown=_env_float("PACKAGELIST_MAX_COOLDOWN", 900.0),
            request_throttle=_env_float("PACKAGELIST_REQUEST_THROTTLE", 0.5),
            dump_command=(
                tuple(shlex.split(dump_command)) if dump_command else DEFAULT_DUMP_COMMAND
            ),
            reject_forks=_env_bool("PACKAGELIST_REJECT_FORKS", True),
        )

    def with_overrides(self, **changes: object) -> Settings:
        """Return a copy with the non-``None`` *changes* applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})
