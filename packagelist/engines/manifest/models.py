"""Parsed manifest dump schema."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator


class Product(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str


class Dependency(BaseModel):
    """A directly declared dependency: a name and a repository URL."""

    model_config = ConfigDict(extra="ignore")

    name: str | None = None
    url: str


def _dependency_entry(raw: Any) -> Any:
    """Flatten the shapes dump tools emit into ``{name, url}``.

    Handles the plain ``{name, url}`` form, and the ``sourceControl`` form
    (``identity`` + ``location.remote[0]``, either a string or a
    ``{urlString}`` object). Returns ``None`` for dependencies without a
    remote URL (local path dependencies).
    """
    if not isinstance(raw, dict):
        return raw
    if "url" in raw:
        return raw
    if "fileSystem" in raw:
        return None
    entries = raw.get("sourceControl")
    if not isinstance(entries, list) or not entries or not isinstance(entries[0], dict):
        return raw
    entry = entries[0]
    location = entry.get("location")
    url: Any = None
    if isinstance(location, dict):
        remote = location.get("remote")
        if isinstance(remote, list) and remote:
            first = remote[0]
            url = first.get("urlString") if isinstance(first, dict) else first
    elif isinstance(location, str):
        url = location
    if url is None:
        return None
    return {"name": entry.get("identity"), "url": url}


class PackageManifest(BaseModel):
    """Output of the manifest dump tool, reduced to what validation needs."""

    model_config = ConfigDict(extra="ignore")

    name: str
    products: list[Product]
    dependencies: list[Dependency] = []

    @field_validator("dependencies", mode="before")
    @classmethod
    def _normalize_dependencies(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return value
        flattened = [_dependency_entry(item) for item in value]
        return [item for item in flattened if item is not None]

    @property
    def product_names(self) -> list[str]:
        return [p.name for p in self.products]

    @property
    def dependency_urls(self) -> list[str]:
        return [d.url for d in self.dependencies]
