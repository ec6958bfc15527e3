"""Operational notification center.

Notifications are kept newest-first under a single key and capped at
``MAX_NOTIFICATIONS``. Delivery (push, e-mail) is somebody else's job; this
module only scores, stores and acknowledges.
"""

from __future__ import annotations

import threading
import uuid
from datetime import datetime, timezone
from typing import Any

from dealer_mcp.data.inventory import get_store
from dealer_mcp.data.kv import KeyValueStore
from dealer_mcp.errors import ValidationError

NOTIFICATIONS_KEY = "notifications"
MAX_NOTIFICATIONS = 1000

SEVERITY_BASE_PRIORITY: dict[str, int] = {
    "critical": 10,
    "high": 7,
    "medium": 4,
    "low": 2,
}
UNKNOWN_SEVERITY_PRIORITY = 1
MAX_PRIORITY = 10

STATUS_ACTIVE = "active"
STATUS_ACKNOWLEDGED = "acknowledged"


def calculate_priority(severity: str, estimated_impact: dict[str, Any] | None = None) -> int:
    """Score 1-10 from severity, boosted by financial and workflow impact."""
    priority = SEVERITY_BASE_PRIORITY.get(severity, UNKNOWN_SEVERITY_PRIORITY)
    impact = estimated_impact or {}
    try:
        financial = float(impact.get("financial") or 0)
    except (TypeError, ValueError):
        financial = 0.0
    if financial > 1000:
        priority += 2
    if impact.get("workflow_disruption") == "major":
        priority += 3
    return min(priority, MAX_PRIORITY)


class NotificationCenter:
    """Thread-safe notification store on top of a KeyValueStore."""

    def __init__(self, store: KeyValueStore | None = None) -> None:
        self._store = store
        self._lock = threading.RLock()

    @property
    def store(self) -> KeyValueStore:
        return self._store if self._store is not None else get_store()

    def _load(self) -> list[dict[str, Any]]:
        value = self.store.get(NOTIFICATIONS_KEY, [])
        return value if isinstance(value, list) else []

    def publish(
        self,
        *,
        title: str,
        description: str,
        category: str,
        severity: str,
        location: str = "",
        estimated_impact: dict[str, Any] | None = None,
        source: str = "workflow",
    ) -> dict[str, Any]:
        if not title or not title.strip():
            raise ValidationError("Notification title is required.", code="missing_title")
        impact = {
            "financial": 0,
            "time_minutes": 0,
            "customer_satisfaction": 0,
            "workflow_disruption": "minor",
            **(estimated_impact or {}),
        }
        notification: dict[str, Any] = {
            "id": f"notif-{uuid.uuid4().hex[:12]}",
            "created_at": datetime.now(timezone.utc).isoformat(),
            "title": title.strip(),
            "description": description,
            "category": category,
            "severity": severity,
            "location": location,
            "estimated_impact": impact,
            "priority": calculate_priority(severity, impact),
            "status": STATUS_ACTIVE,
            "read": False,
            "source": source,
        }
        with self._lock:
            items = self._load()
            items.insert(0, notification)
            self.store.set(NOTIFICATIONS_KEY, items[:MAX_NOTIFICATIONS])
        return notification

    def list_notifications(
        self,
        *,
        limit: int = 50,
        status: str = "",
        category: str = "",
    ) -> list[dict[str, Any]]:
        """Highest priority first; ties keep newest first."""
        items = self._load()
        if status:
            items = [n for n in items if n.get("status") == status]
        if category:
            items = [n for n in items if n.get("category") == category]
        items.sort(key=lambda n: n.get("priority", 0), reverse=True)
        return items[: max(limit, 0)]

    def has_active(self, title: str) -> bool:
        return any(
            n.get("title") == title and n.get("status") == STATUS_ACTIVE
            for n in self._load()
        )

    def acknowledge(self, notification_id: str) -> bool:
        """Mark an active notification acknowledged. Returns True if one was updated."""
        with self._lock:
            items = self._load()
            for n in items:
                if n.get("id") == notification_id and n.get("status") == STATUS_ACTIVE:
                    n["status"] = STATUS_ACKNOWLEDGED
                    n["read"] = True
                    n["acknowledged_at"] = datetime.now(timezone.utc).isoformat()
                    self.store.set(NOTIFICATIONS_KEY, items)
                    return True
        return False


_center: NotificationCenter | None = None


def get_notification_center() -> NotificationCenter:
    global _center  # noqa: PLW0603
    if _center is None:
        _center = NotificationCenter()
    return _center


def set_notification_center(center: NotificationCenter | None) -> None:
    global _center  # noqa: PLW0603
    _center = center
