"""Background workflow monitor.

Wakes on every ``vehicle_moved`` event and otherwise on a fixed interval,
then turns bottlenecks and critical delays into notifications. Alerts with
the same title are not re-raised while one is still active.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from dealer_mcp.attention.engine import get_cars_needing_attention
from dealer_mcp.collaborators.notifications import (
    NotificationCenter,
    get_notification_center,
)
from dealer_mcp.data.kv import KeyValueStore
from dealer_mcp.workflow import events
from dealer_mcp.workflow.analytics import get_workflow_analytics

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 120.0
CRITICAL_DELAY_HOURS = 8
BOTTLENECK_COST_PER_STAGE = 300
BOTTLENECK_MINUTES_PER_STAGE = 120
DELAY_COST_PER_VEHICLE = 500

BOTTLENECK_TITLE = "Workflow bottleneck detected"
CRITICAL_DELAY_TITLE = "Critical workflow delays"


class WorkflowMonitor:
    """Polls analytics and attention; raises operational notifications."""

    def __init__(
        self,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        *,
        notifications: NotificationCenter | None = None,
        store: KeyValueStore | None = None,
    ) -> None:
        self.interval_seconds = interval_seconds
        self._notifications = notifications
        self._store = store
        self._stop = threading.Event()
        self._wake = threading.Event()
        self._thread: threading.Thread | None = None
        self._tick_lock = threading.Lock()

    @property
    def notifications(self) -> NotificationCenter:
        return self._notifications or get_notification_center()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # ── Lifecycle ──────────────────────────────────────────────────

    def start(self) -> None:
        if self.running:
            if self._stop.is_set():
                logger.warning("Workflow monitor is still stopping; not restarted")
            return
        self._stop.clear()
        events.register_listener(self._on_event)
        self._thread = threading.Thread(
            target=self._run, name="workflow-monitor", daemon=True
        )
        self._thread.start()
        logger.info("Workflow monitor started (interval=%ss)", self.interval_seconds)

    def stop(self, timeout: float | None = 5.0) -> None:
        events.unregister_listener(self._on_event)
        self._stop.set()
        self._wake.set()
        if self._thread is None:
            return
        self._thread.join(timeout)
        if self._thread.is_alive():
            # Keep the reference so start() cannot spawn a second loop.
            logger.warning("Workflow monitor did not stop within %ss", timeout)
            return
        self._thread = None
        logger.info("Workflow monitor stopped")

    def _on_event(self, event_name: str, payload: dict[str, Any]) -> None:
        if event_name == events.VEHICLE_MOVED:
            self._wake.set()

    def _run(self) -> None:
        while True:
            # Clear before the tick so a move during it triggers another.
            self._wake.clear()
            if self._stop.is_set():
                break
            try:
                self.run_once()
            except Exception:
                logger.exception("Workflow monitor tick failed")
            self._wake.wait(self.interval_seconds)

    # ── Checks ─────────────────────────────────────────────────────

    def run_once(self) -> list[dict[str, Any]]:
        """Run every check once. Returns the notifications published."""
        with self._tick_lock:
            published: list[dict[str, Any]] = []
            for check in (self.check_bottlenecks, self.check_critical_delays):
                try:
                    notification = check()
                except Exception:
                    logger.exception("Monitor check %s failed", check.__name__)
                    continue
                if notification is not None:
                    published.append(notification)
            return published

    def _publish_once(self, title: str, **kwargs: Any) -> dict[str, Any] | None:
        if self.notifications.has_active(title):
            logger.debug("Skipping duplicate alert %r", title)
            return None
        return self.notifications.publish(title=title, **kwargs)

    def check_bottlenecks(self) -> dict[str, Any] | None:
        analytics = get_workflow_analytics(self._store)
        bottlenecks = analytics.get("bottlenecks") or []
        if not bottlenecks:
            return None
        count = len(bottlenecks)
        return self._publish_once(
            BOTTLENECK_TITLE,
            description=(
                f"{count} workflow stage(s) over capacity: {', '.join(bottlenecks)}."
            ),
            category="workflow",
            severity="high" if count > 2 else "medium",
            location="Multiple",
            estimated_impact={
                "financial": count * BOTTLENECK_COST_PER_STAGE,
                "time_minutes": count * BOTTLENECK_MINUTES_PER_STAGE,
                "customer_satisfaction": 3,
                "workflow_disruption": "major" if count > 2 else "moderate",
            },
            source="workflow_monitor",
        )

    def check_critical_delays(self) -> dict[str, Any] | None:
        items = get_cars_needing_attention(self._store)
        critical = [
            item
            for item in items
            if item.priority == "urgent" or item.days_waiting * 24 >= CRITICAL_DELAY_HOURS
        ]
        if not critical:
            return None
        vins = ", ".join(item.vehicle_id for item in critical[:5])
        return self._publish_once(
            CRITICAL_DELAY_TITLE,
            description=f"{len(critical)} vehicle(s) delayed or urgent: {vins}.",
            category="workflow",
            severity="critical",
            location=critical[0].location,
            estimated_impact={
                "financial": len(critical) * DELAY_COST_PER_VEHICLE,
                "time_minutes": sum(item.days_waiting for item in critical) * 24 * 60,
                "customer_satisfaction": 4,
                "workflow_disruption": "major",
            },
            source="workflow_monitor",
        )
