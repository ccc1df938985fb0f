"""Shared fixtures for packagelist tests (no network, no dump tool)."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from packagelist.core.config import Settings


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        github_token="test-token",
        request_timeout=5.0,
        dump_timeout=5.0,
        concurrency=4,
        request_throttle=0.0,
    )


@pytest.fixture
def write_list(tmp_path: Path):
    """Write a package list the way it is stored and return its path."""

    def _write(urls: list[str], name: str = "packages.json") -> Path:
        path = tmp_path / name
        path.write_text(json.dumps(urls, indent=2) + "\n", encoding="utf-8")
        return path

    return _write
