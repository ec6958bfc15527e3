"""Workflow records: live entries, immutable movement records, history pages."""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

from dealer_mcp.constants import DEFAULT_ENTRY_PRIORITY


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 string (or date) into an aware UTC datetime."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


@dataclass(frozen=True)
class MovementRecord:
    """One transition of one vehicle. Never edited after it is appended."""
    id: str
    timestamp: str
    vehicle_id: str
    from_location: str
    to_location: str
    from_status: str
    to_status: str
    reason: str
    moved_by: str
    notes: str | None = None

    @classmethod
    def create(
        cls,
        *,
        vehicle_id: str,
        from_location: str,
        to_location: str,
        from_status: str,
        to_status: str,
        reason: str,
        moved_by: str,
        notes: str | None = None,
        now: datetime | None = None,
    ) -> MovementRecord:
        return cls(
            id=f"mov-{uuid.uuid4().hex[:12]}",
            timestamp=(now or utc_now()).isoformat(),
            vehicle_id=vehicle_id,
            from_location=from_location,
            to_location=to_location,
            from_status=from_status,
            to_status=to_status,
            reason=reason,
            moved_by=moved_by,
            notes=notes,
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MovementRecord:
        return cls(
            id=data["id"],
            timestamp=data["timestamp"],
            vehicle_id=data["vehicle_id"],
            from_location=data.get("from_location", ""),
            to_location=data["to_location"],
            from_status=data.get("from_status", ""),
            to_status=data["to_status"],
            reason=data.get("reason", "other"),
            moved_by=data.get("moved_by", ""),
            notes=data.get("notes"),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class WorkflowEntry:
    """Live workflow state of one vehicle.

    ``workflow_stage`` is always recomputed from location and status on load,
    and ``history`` is only populated when explicitly requested.
    """
    vehicle_id: str
    model: str
    current_location: str
    current_status: str
    workflow_stage: str
    last_update: str
    priority: str = DEFAULT_ENTRY_PRIORITY
    history_count: int = 0
    assigned_to: str | None = None
    notes: str | None = None
    history: list[MovementRecord] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WorkflowEntry:
        return cls(
            vehicle_id=data["vehicle_id"],
            model=data.get("model", ""),
            current_location=data["current_location"],
            current_status=data["current_status"],
            workflow_stage=data.get("workflow_stage", ""),
            last_update=data["last_update"],
            priority=data.get("priority", DEFAULT_ENTRY_PRIORITY),
            history_count=int(data.get("history_count", 0)),
            assigned_to=data.get("assigned_to"),
            notes=data.get("notes"),
        )

    def to_dict(self, *, include_history: bool = False) -> dict[str, Any]:
        d = {
            "vehicle_id": self.vehicle_id,
            "model": self.model,
            "current_location": self.current_location,
            "current_status": self.current_status,
            "workflow_stage": self.workflow_stage,
            "last_update": self.last_update,
            "priority": self.priority,
            "history_count": self.history_count,
            "assigned_to": self.assigned_to,
            "notes": self.notes,
        }
        if include_history:
            d["history"] = [r.to_dict() for r in self.history]
        return d


@dataclass(frozen=True)
class HistoryPage:
    """A window over a vehicle's movement history in append order."""
    vehicle_id: str
    records: list[MovementRecord]
    cursor: int
    next_cursor: int | None
    total: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "vehicle_id": self.vehicle_id,
            "cursor": self.cursor,
            "next_cursor": self.next_cursor,
            "total": self.total,
            "records": [r.to_dict() for r in self.records],
        }
