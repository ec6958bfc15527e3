"""Cost attribution and notification center tests."""

from __future__ import annotations

import pytest

from dealer_mcp.collaborators import (
    CostAttribution,
    LedgerCostAttribution,
    NotificationCenter,
    get_cost_attribution,
    get_notification_center,
)
from dealer_mcp.collaborators.costs import price_item, PART_PRICES, DEFAULT_PART_PRICE
from dealer_mcp.collaborators.notifications import (
    MAX_NOTIFICATIONS,
    calculate_priority,
)
from dealer_mcp.data.kv import SqliteKeyValueStore
from dealer_mcp.errors import ValidationError


# ── Cost attribution ────────────────────────────────────────────


class TestCostAttribution:
    def test_default_is_ledger(self):
        attribution = get_cost_attribution()
        assert isinstance(attribution, LedgerCostAttribution)
        assert isinstance(attribution, CostAttribution)

    def test_prices_by_keyword(self):
        assert price_item("Front Brake Pads", PART_PRICES, DEFAULT_PART_PRICE) == 150.0
        assert price_item("wiper blade", PART_PRICES, DEFAULT_PART_PRICE) == 75.0

    def test_record_status_change(self):
        costs = LedgerCostAttribution()
        entry = costs.record_status_change({
            "vehicle_id": "V1",
            "model": "Voyah Free",
            "from_status": "needs_repair",
            "to_status": "in_repair",
            "actor": "Ahmad",
            "parts_used": ["oil filter", "tire"],
            "tools_used": ["diagnostic scanner", "torque wrench", "  "],
        })
        assert entry["id"].startswith("cost-")
        assert entry["parts_cost"] == 225.0
        assert entry["tools_cost"] == 250.0
        assert entry["total_cost"] == 475.0
        assert entry["tools_used"] == ["diagnostic scanner", "torque wrench"]

    def test_requires_vehicle_id(self):
        with pytest.raises(ValidationError):
            LedgerCostAttribution().record_status_change({"from_status": "a"})

    def test_ledger_and_summary(self):
        costs = LedgerCostAttribution()
        costs.record_status_change({"vehicle_id": "V1", "parts_used": ["battery"]})
        costs.record_status_change({"vehicle_id": "V2", "tools_used": ["lift"]})
        costs.record_status_change({"vehicle_id": "V1", "tools_used": ["multimeter"]})
        assert len(costs.get_ledger()) == 3
        assert [e["vehicle_id"] for e in costs.get_ledger("V1")] == ["V1", "V1"]
        assert costs.summarize("V1") == {
            "entries": 2,
            "parts_cost": 120.0,
            "tools_cost": 100.0,
            "total_cost": 220.0,
        }

    def test_explicit_store(self):
        other = SqliteKeyValueStore(":memory:")
        LedgerCostAttribution(other).record_status_change({"vehicle_id": "V9"})
        assert LedgerCostAttribution().get_ledger("V9") == []
        assert len(LedgerCostAttribution(other).get_ledger("V9")) == 1


# ── Notifications ───────────────────────────────────────────────


class TestCalculatePriority:
    @pytest.mark.parametrize(
        "severity,impact,expected",
        [
            ("critical", None, 10),
            ("high", None, 7),
            ("medium", {"financial": 1500}, 6),
            ("low", {"workflow_disruption": "major"}, 5),
            ("high", {"financial": 5000, "workflow_disruption": "major"}, 10),
            ("weird", None, 1),
            ("low", {"financial": "lots"}, 2),
        ],
    )
    def test_priority(self, severity, impact, expected):
        assert calculate_priority(severity, impact) == expected


class TestNotificationCenter:
    def _publish(self, center: NotificationCenter, title: str, severity: str = "medium"):
        return center.publish(
            title=title, description="d", category="workflow", severity=severity,
        )

    def test_publish_fills_defaults(self):
        n = self._publish(get_notification_center(), "Bay full")
        assert n["id"].startswith("notif-")
        assert n["status"] == "active"
        assert n["read"] is False
        assert n["estimated_impact"]["workflow_disruption"] == "minor"
        assert n["priority"] == 4

    def test_title_required(self):
        with pytest.raises(ValidationError):
            self._publish(NotificationCenter(), "  ")

    def test_list_sorted_by_priority_then_newest(self):
        center = NotificationCenter()
        self._publish(center, "old medium")
        self._publish(center, "critical", severity="critical")
        self._publish(center, "new medium")
        titles = [n["title"] for n in center.list_notifications()]
        assert titles == ["critical", "new medium", "old medium"]

    def test_filters_and_limit(self):
        center = NotificationCenter()
        center.publish(title="a", description="", category="inventory", severity="low")
        center.publish(title="b", description="", category="workflow", severity="low")
        assert [n["title"] for n in center.list_notifications(category="inventory")] == ["a"]
        assert len(center.list_notifications(limit=1)) == 1

    def test_acknowledge(self):
        center = NotificationCenter()
        n = self._publish(center, "Bay full")
        assert center.has_active("Bay full")
        assert center.acknowledge(n["id"]) is True
        assert center.acknowledge(n["id"]) is False
        assert not center.has_active("Bay full")
        stored = center.list_notifications(status="acknowledged")[0]
        assert stored["read"] is True
        assert "acknowledged_at" in stored

    def test_acknowledge_unknown(self):
        assert NotificationCenter().acknowledge("notif-missing") is False

    def test_capped(self, store: SqliteKeyValueStore):
        center = NotificationCenter()
        store.set("notifications", [
            {"id": f"n{i}", "title": f"t{i}", "status": "acknowledged", "priority": 1}
            for i in range(MAX_NOTIFICATIONS)
        ])
        self._publish(center, "newest")
        items = store.get("notifications")
        assert len(items) == MAX_NOTIFICATIONS
        assert items[0]["title"] == "newest"
