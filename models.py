"""Shared typed models for the pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Literal

RunState = Literal["processing", "completed", "error"]


@dataclass(frozen=True, slots=True)
class CredentialRecord:
    """OAuth credentials for the accounting API.

    ``expires_at`` is an absolute timestamp in epoch milliseconds.
    """

    access_token: str
    refresh_token: str
    expires_at: int
    client_id: str
    client_secret: str

    def with_access_token(self, access_token: str, expires_at: int) -> CredentialRecord:
        """Return a copy with a new access token and expiry, everything else kept."""
        return replace(self, access_token=access_token, expires_at=expires_at)

    def to_dict(self) -> dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CredentialRecord:
        return cls(
            access_token=str(data["access_token"]),
            refresh_token=str(data["refresh_token"]),
            expires_at=int(data["expires_at"]),
            client_id=str(data["client_id"]),
            client_secret=str(data["client_secret"]),
        )


@dataclass(frozen=True, slots=True)
class ItemRecord:
    """Minimal projection of an upstream inventory item."""

    item_name: str | None
    rate: Any
    unit: str | None

    @classmethod
    def from_upstream(cls, record: Any) -> ItemRecord:
        """Project a raw API record; absent fields map to None."""
        if not isinstance(record, dict):
            return cls(item_name=None, rate=None, unit=None)
        return cls(
            item_name=record.get("item_name"),
            rate=record.get("rate"),
            unit=record.get("unit"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"item_name": self.item_name, "rate": self.rate, "unit": self.unit}


@dataclass(frozen=True, slots=True)
class DuplicateGroup:
    """Items the analyzer judged to be the same product."""

    items: tuple[ItemRecord, ...]
    confidence_score: Any = None
    reason: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": [item.to_dict() for item in self.items],
            "confidence_score": self.confidence_score,
            "reason": self.reason,
        }


@dataclass(slots=True)
class RunStatus:
    """Progress record for one triggered run."""

    run_id: str
    state: RunState = "processing"
    progress: str = ""
    error: str | None = None
    filename: str | None = None
    diagnostic_file: str | None = None
    failed_batches: list[int] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "status": self.state,
            "progress": self.progress,
            "error": self.error,
            "filename": self.filename,
            "diagnostic_file": self.diagnostic_file,
            "failed_batches": list(self.failed_batches),
        }
