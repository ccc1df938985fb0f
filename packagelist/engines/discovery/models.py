"""Data models for the dependency discovery engine."""

from __future__ import annotations

from dataclasses import dataclass, field

from packagelist.errors import ValidatorError


@dataclass
class Failure:
    """A URL that failed validation, with the error that stopped it."""

    url: str
    error: Exception

    @property
    def reason(self) -> str:
        if isinstance(self.error, ValidatorError):
            return self.error.reason
        return str(self.error) or type(self.error).__name__


@dataclass
class DiscoveryResult:
    """Summary of one discovery pass."""

    validated: int = 0
    candidates: list[str] = field(default_factory=list)
    added: list[str] = field(default_factory=list)
    failures: list[Failure] = field(default_factory=list)  # existing members
    rejected: list[Failure] = field(default_factory=list)  # dependency candidates
    unresolved: list[str] = field(default_factory=list)
