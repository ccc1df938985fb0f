"""Reconciler & persister — final dedup/sort, change detection, safe write."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import structlog

from packagelist.core.storage import atomic_write_text, dump_urls
from packagelist.engines.normalizer.urls import dedup

log = structlog.get_logger("packagelist.engine")


@dataclass
class Reconciliation:
    urls: list[str]
    text: str
    changed: bool


def reconcile(original_text: str, urls: list[str]) -> Reconciliation:
    """Dedup and sort *urls*, serialize, and compare with the original text verbatim.

    A trailing newline is kept only when the original file had one.
    """
    final = dedup(urls)
    text = dump_urls(final, trailing_newline=original_text.endswith("\n"))
    return Reconciliation(urls=final, text=text, changed=text != original_text)


def backup_path_for(path: Path) -> Path:
    """``packages.json`` → ``packages.backup.json`` in the same directory."""
    return path.with_name(f"{path.stem}.backup{path.suffix}")


def persist(
    path: Path,
    reconciliation: Reconciliation,
    original_text: str,
    *,
    backup_path: Path | None = None,
    force: bool = False,
) -> bool:
    """Write the reconciled list to *path* if it changed (or *force* is set).

    A backup of *original_text* is written first when the content changed.
    The backup is best-effort: failing to write it is logged and the main
    write still happens. Returns True if *path* was written.
    """
    if not reconciliation.changed and not force:
        log.info("reconciler.no_changes", path=str(path))
        return False

    if reconciliation.changed:
        backup = backup_path or backup_path_for(path)
        try:
            backup.write_bytes(original_text.encode("utf-8"))
            log.info("reconciler.backup_written", path=str(backup))
        except OSError as exc:
            log.warning("reconciler.backup_failed", path=str(backup), error=str(exc))

    atomic_write_text(path, reconciliation.text)
    log.info("reconciler.written", path=str(path), count=len(reconciliation.urls))
    return True
