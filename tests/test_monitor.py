"""Workflow monitor tests."""

from __future__ import annotations

import threading
import time

from dealer_mcp.collaborators.notifications import NotificationCenter
from dealer_mcp.monitoring import (
    BOTTLENECK_TITLE,
    CRITICAL_DELAY_TITLE,
    WorkflowMonitor,
)
from dealer_mcp.workflow import events
from dealer_mcp.workflow.engine import move


def _place(vin: str, location: str, status: str) -> None:
    move(vin, "Voyah Free", "", location, "", status, "relocation", "lot")


def _scenario_bottlenecks() -> None:
    for i in range(5):
        _place(f"PDI-{i}", "pdi_bay", "in_progress")
        _place(f"REP-{i}", "garage_repair", "in_repair")
    _place("ARR-0", "new_arrivals", "pending")
    _place("SHO-0", "showroom_floor1", "on_display")


def _wait_for(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


class TestRunOnce:
    def test_seeded_store_raises_critical_delays(self):
        monitor = WorkflowMonitor(notifications=NotificationCenter())
        published = monitor.run_once()
        assert [n["title"] for n in published] == [CRITICAL_DELAY_TITLE]
        alert = published[0]
        assert alert["severity"] == "critical"
        assert alert["priority"] == 10
        assert alert["source"] == "workflow_monitor"
        assert alert["estimated_impact"]["financial"] >= 500

    def test_active_alert_not_duplicated(self):
        center = NotificationCenter()
        monitor = WorkflowMonitor(notifications=center)
        monitor.run_once()
        assert monitor.run_once() == []
        assert len(center.list_notifications()) == 1

    def test_realerts_after_acknowledge(self):
        center = NotificationCenter()
        monitor = WorkflowMonitor(notifications=center)
        first = monitor.run_once()[0]
        center.acknowledge(first["id"])
        assert [n["title"] for n in monitor.run_once()] == [CRITICAL_DELAY_TITLE]

    def test_bottleneck_alert(self):
        _scenario_bottlenecks()
        monitor = WorkflowMonitor(notifications=NotificationCenter())
        alert = monitor.check_bottlenecks()
        assert alert is not None
        assert alert["title"] == BOTTLENECK_TITLE
        assert alert["severity"] == "medium"
        assert alert["estimated_impact"]["financial"] == 600
        assert "pdi" in alert["description"] and "repair" in alert["description"]

    def test_no_bottleneck_on_empty_workflow(self):
        assert WorkflowMonitor(notifications=NotificationCenter()).check_bottlenecks() is None

    def test_failing_check_does_not_stop_others(self, monkeypatch):
        monitor = WorkflowMonitor(notifications=NotificationCenter())

        def _boom():
            raise RuntimeError("analytics down")

        monkeypatch.setattr(monitor, "check_bottlenecks", _boom)
        assert [n["title"] for n in monitor.run_once()] == [CRITICAL_DELAY_TITLE]


class TestLifecycle:
    def test_start_and_stop(self):
        center = NotificationCenter()
        monitor = WorkflowMonitor(60.0, notifications=center)
        monitor.start()
        try:
            assert monitor.running
            assert _wait_for(lambda: center.has_active(CRITICAL_DELAY_TITLE))
        finally:
            monitor.stop()
        assert not monitor.running

    def test_move_wakes_monitor(self):
        center = NotificationCenter()
        monitor = WorkflowMonitor(60.0, notifications=center)
        monitor.start()
        try:
            assert _wait_for(lambda: center.has_active(CRITICAL_DELAY_TITLE))
            _scenario_bottlenecks()
            assert _wait_for(lambda: center.has_active(BOTTLENECK_TITLE))
        finally:
            monitor.stop()

    def test_start_is_idempotent(self):
        monitor = WorkflowMonitor(60.0, notifications=NotificationCenter())
        monitor.start()
        try:
            thread = monitor._thread
            monitor.start()
            assert monitor._thread is thread
        finally:
            monitor.stop()

    def test_stop_timeout_keeps_thread_until_exit(self, monkeypatch):
        monitor = WorkflowMonitor(60.0, notifications=NotificationCenter())
        entered = threading.Event()
        release = threading.Event()

        def _slow_tick():
            entered.set()
            release.wait(5.0)
            return []

        monkeypatch.setattr(monitor, "run_once", _slow_tick)
        monitor.start()
        try:
            assert entered.wait(5.0)
            thread = monitor._thread
            monitor.stop(timeout=0.05)
            assert monitor.running
            monitor.start()
            assert monitor._thread is thread
        finally:
            release.set()
        assert _wait_for(lambda: not monitor.running)
        monitor.stop()
        assert monitor._thread is None

    def test_move_during_tick_triggers_another(self, monkeypatch):
        monitor = WorkflowMonitor(60.0, notifications=NotificationCenter())
        calls: list[int] = []
        entered = threading.Event()
        release = threading.Event()

        def _tick():
            calls.append(1)
            if len(calls) == 1:
                entered.set()
                release.wait(5.0)
            return []

        monkeypatch.setattr(monitor, "run_once", _tick)
        monitor.start()
        try:
            assert entered.wait(5.0)
            events.publish(events.VEHICLE_MOVED, {"vehicle_id": "VIN-W"})
            release.set()
            assert _wait_for(lambda: len(calls) >= 2)
        finally:
            release.set()
            monitor.stop()
