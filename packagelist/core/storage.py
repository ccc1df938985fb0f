"""Package list and deny list file I/O."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path

from packagelist.errors import DecodingError, FileSystemError


def load_package_list(path: Path) -> tuple[str, list[str]]:
    """Read *path* and return ``(original_text, urls)``.

    The original text is kept verbatim so change detection and backups work on
    the exact bytes that were on disk.
    """
    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise FileSystemError(str(path), f"Cannot read package list: {exc}") from exc
    try:
        text = raw.decode("utf-8")
        data = json.loads(text)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise DecodingError(str(path), f"Invalid JSON: {exc}") from exc
    if not isinstance(data, list) or not all(isinstance(u, str) for u in data):
        raise DecodingError(str(path), "Package list must be a JSON array of strings")
    return text, data


def dump_urls(urls: list[str], trailing_newline: bool = False) -> str:
    """Serialize a URL list the way ``packages.json`` is stored.

    Two-space indentation, forward slashes unescaped.
    No trailing newline unless *trailing_newline* is set.
    """
    text = json.dumps(urls, indent=2, ensure_ascii=False)
    return text + "\n" if trailing_newline else text


def atomic_write_text(path: Path, text: str) -> None:
    """Write *text* to *path* via a temp file + ``os.replace``.

    The target is never left truncated: readers either see the old content or
    the new content.
    """
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
            fh.write(text)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_name, path)
    except OSError as exc:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise FileSystemError(str(path), f"Cannot write file: {exc}") from exc


def load_deny_list(path: Path) -> list[dict[str, str]]:
    """Read a deny list: a JSON array of ``{"notes", "package_url"}`` objects."""
    if not path.exists():
        return []
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise FileSystemError(str(path), f"Cannot read deny list: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise DecodingError(str(path), f"Invalid JSON: {exc}") from exc
    if not isinstance(data, list):
        raise DecodingError(str(path), "Deny list must be a JSON array")
    entries: list[dict[str, str]] = []
    for item in data:
        if not isinstance(item, dict) or "package_url" not in item:
            raise DecodingError(str(path), f"Malformed deny list entry: {item!r}")
        entries.append({"notes": str(item.get("notes", "")), "package_url": item["package_url"]})
    return entries


def dump_deny_list(entries: list[dict[str, str]]) -> str:
    return json.dumps(entries, indent=2, ensure_ascii=False, sort_keys=True) + "\n"
