"""ManifestDumper — run the external dump tool and classify its result."""

from __future__ import annotations

import re
from collections.abc import Awaitable, Callable
from pathlib import Path

import structlog
from pydantic import ValidationError

from packagelist.core.config import Settings
from packagelist.engines.manifest.models import PackageManifest
from packagelist.engines.manifest.process import ProcessResult, run_process
from packagelist.errors import (
    BadManifestDumpError,
    DecodingError,
    DumpTimeoutError,
    MissingProductsError,
    OutdatedToolchainError,
)

log = structlog.get_logger("packagelist.engine")

ProcessRunner = Callable[[list[str], Path, float], Awaitable[ProcessResult]]

# e.g. "package 'foo' is using Swift tools version 3.1.0 which is no longer supported"
_OUTDATED_TOOLS_RE = re.compile(r"tools version \S+ which is no longer supported", re.IGNORECASE)


def parse_manifest(payload: str, url: str | None = None) -> PackageManifest:
    """Decode dump output, raising :class:`DecodingError` on schema mismatch."""
    try:
        return PackageManifest.model_validate_json(payload)
    except ValidationError as exc:
        raise DecodingError(url, f"Invalid manifest dump ({exc.error_count()} error(s))") from exc


class ManifestDumper:
    """Invokes the dump command inside a directory holding manifest files."""

    def __init__(self, settings: Settings, runner: ProcessRunner = run_process) -> None:
        self._command = list(settings.dump_command)
        self._timeout = settings.dump_timeout
        self._runner = runner

    async def dump(self, directory: Path, url: str | None = None) -> PackageManifest:
        """Dump the manifest in *directory*.

        Raises :class:`DumpTimeoutError`, :class:`OutdatedToolchainError`,
        :class:`BadManifestDumpError`, :class:`DecodingError` or
        :class:`MissingProductsError`.
        """
        result = await self._runner(self._command, directory, self._timeout)

        if result.timed_out:
            raise DumpTimeoutError(url)

        if result.exit_code != 0:
            log.info("dumper.failed", url=url, exit_code=result.exit_code)
            if _OUTDATED_TOOLS_RE.search(result.stderr):
                raise OutdatedToolchainError(url)
            raise BadManifestDumpError(url, result.stderr)

        manifest = parse_manifest(result.stdout, url)
        if not manifest.products:
            raise MissingProductsError(url)
        return manifest
