"""Attention engine tests: per-source rules and global ordering."""

from __future__ import annotations

import dataclasses
from datetime import datetime, timedelta, timezone

import pytest

from dealer_mcp.attention import engine as attention
from dealer_mcp.attention.engine import (
    GARAGE_SOURCE,
    MAIN_SOURCE,
    SHOWROOM_SOURCE,
    AttentionItem,
    days_since,
    get_cars_needing_attention,
    sort_attention_items,
)
from dealer_mcp.constants import (
    GARAGE_COLLECTION,
    MAIN_COLLECTION,
    PRIORITY_RANK,
    SHOWROOM_COLLECTION,
)
from dealer_mcp.data.inventory import set_collection
from dealer_mcp.data.kv import SqliteKeyValueStore
from dealer_mcp.workflow.engine import move

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def _ago(days: float) -> str:
    return (NOW - timedelta(days=days)).isoformat()


def _evaluate(source, record):
    return source.evaluate(record, NOW, None)


# ── Garage ──────────────────────────────────────────────────────


class TestGarageSource:
    def test_low_battery_beats_days_waiting(self):
        item = _evaluate(GARAGE_SOURCE, {
            "vin": "G1", "status": "needs_repair", "battery_level": 15,
            "last_update": _ago(1),
        })
        assert item.priority == "urgent"
        assert item.attention_type == "low_battery"
        assert item.days_waiting == 1

    def test_waiting_parts(self):
        item = _evaluate(GARAGE_SOURCE, {
            "vin": "G2", "status": "waiting_parts", "battery_level": 80,
            "last_update": _ago(9), "parts_needed": ["brake pads", "rotor"],
        })
        assert item.attention_type == "parts_waiting"
        assert item.priority == "high"
        assert item.description == "Waiting for parts: brake pads, rotor"

    def test_parts_description_without_parts(self):
        item = _evaluate(GARAGE_SOURCE, {
            "vin": "G2", "status": "waiting_parts", "last_update": _ago(0),
        })
        assert item.description == "Waiting for parts: Parts ordered"

    def test_low_battery_described_before_parts(self):
        item = _evaluate(GARAGE_SOURCE, {
            "vin": "G2", "status": "waiting_parts", "battery_level": 35,
            "last_update": _ago(2), "parts_needed": ["brake pads"],
        })
        assert item.attention_type == "parts_waiting"
        assert item.description == "Low battery: 35% - Needs charging"

    def test_unknown_attention_type_rejected(self):
        with pytest.raises(ValueError, match="unknown attention types"):
            dataclasses.replace(GARAGE_SOURCE, default_type="needs_wash")

    def test_customer_priority_high(self):
        item = _evaluate(GARAGE_SOURCE, {
            "vin": "G3", "status": "needs_repair", "customer_priority": "high",
            "last_update": _ago(0),
        })
        assert item.priority == "high"
        assert item.attention_type == "repair_needed"
        assert item.description == "Repair needed - awaiting diagnosis"

    @pytest.mark.parametrize(
        "days,battery,expected",
        [(5, 80, "medium"), (1, 45, "medium"), (1, 80, "low"), (8, 80, "high")],
    )
    def test_priority_table(self, days, battery, expected):
        item = _evaluate(GARAGE_SOURCE, {
            "vin": "G4", "status": "needs_repair", "battery_level": battery,
            "last_update": _ago(days),
        })
        assert item.priority == expected

    def test_emergency_repair_is_urgent(self):
        item = _evaluate(GARAGE_SOURCE, {
            "vin": "G5", "status": "emergency_repair", "battery_level": 30,
            "last_update": _ago(0),
        })
        assert item.priority == "urgent"

    def test_healthy_vehicle_not_flagged(self):
        assert _evaluate(GARAGE_SOURCE, {
            "vin": "G6", "status": "ready", "battery_level": 90,
        }) is None

    def test_low_battery_alone_triggers(self):
        item = _evaluate(GARAGE_SOURCE, {"vin": "G7", "status": "ready", "battery_level": 30})
        assert item.attention_type == "low_battery"
        assert item.description == "Low battery: 30% - Needs charging"

    def test_defaults_estimated_hours_and_mechanic(self):
        item = _evaluate(GARAGE_SOURCE, {
            "vin": "G8", "status": "needs_repair", "assigned_mechanic": "Sara",
        })
        assert item.estimated_hours == 2.0
        assert item.assigned_to == "Sara"


# ── Showroom and main inventory ─────────────────────────────────


class TestShowroomSource:
    @pytest.mark.parametrize("days,expected", [(8, "high"), (5, "medium"), (2, "low")])
    def test_pdi_priority(self, days, expected):
        item = _evaluate(SHOWROOM_SOURCE, {
            "vin": "S1", "pdi_status": "incomplete", "arrival_date": _ago(days),
        })
        assert item.priority == expected
        assert item.estimated_hours == 3.0

    def test_pdi_description(self):
        item = _evaluate(SHOWROOM_SOURCE, {"vin": "S2", "pdi_status": "pending"})
        assert item.description == "PDI incomplete - Awaiting PDI completion"

    def test_completed_pdi_ignored(self):
        assert _evaluate(SHOWROOM_SOURCE, {"vin": "S3", "pdi_status": "complete"}) is None


class TestMainSource:
    def test_overdue_forty_days_is_urgent(self):
        item = _evaluate(MAIN_SOURCE, {"vin": "M1", "next_service_date": _ago(40)})
        assert item.attention_type == "overdue_service"
        assert item.priority == "urgent"
        assert item.days_waiting == 40
        assert item.description == "Service overdue by 40 days"
        assert item.next_deadline == _ago(40)

    @pytest.mark.parametrize("days,expected", [(20, "high"), (10, "medium")])
    def test_overdue_priority(self, days, expected):
        item = _evaluate(MAIN_SOURCE, {"vin": "M2", "next_service_date": _ago(days)})
        assert item.priority == expected

    def test_future_service_ignored(self):
        assert _evaluate(MAIN_SOURCE, {"vin": "M3", "next_service_date": _ago(-5)}) is None

    def test_missing_service_date_ignored(self):
        assert _evaluate(MAIN_SOURCE, {"vin": "M4"}) is None


# ── Helpers ─────────────────────────────────────────────────────


class TestHelpers:
    def test_days_since_floors_and_clamps(self):
        assert days_since(_ago(2.9), NOW) == 2
        assert days_since(_ago(-3), NOW) == 0
        assert days_since(None, NOW) == 0
        assert days_since("not a date", NOW) == 0

    def test_sort_order(self):
        def item(priority, days):
            return AttentionItem("V", "M", "L", "repair_needed", priority, "", days, "garage")

        ordered = sort_attention_items([
            item("low", 50), item("urgent", 1), item("high", 3), item("high", 9),
        ])
        assert [(i.priority, i.days_waiting) for i in ordered] == [
            ("urgent", 1), ("high", 9), ("high", 3), ("low", 50),
        ]


# ── Global list ─────────────────────────────────────────────────


class TestGetCarsNeedingAttention:
    def test_seeded_list(self):
        items = get_cars_needing_attention()
        assert [(i.vehicle_id[-3:], i.priority, i.attention_type) for i in items] == [
            ("003", "urgent", "overdue_service"),
            ("005", "urgent", "low_battery"),
            ("002", "high", "overdue_service"),
            ("003", "high", "parts_waiting"),
            ("007", "medium", "repair_needed"),
        ]

    def test_ordering_is_non_increasing(self):
        items = get_cars_needing_attention()
        keys = [(PRIORITY_RANK[i.priority], i.days_waiting) for i in items]
        assert keys == sorted(keys, reverse=True)

    def test_seeded_parts_car_reports_battery_first(self):
        item = next(
            i for i in get_cars_needing_attention()
            if i.vehicle_id.endswith("003") and i.source == "garage"
        )
        assert item.description == "Low battery: 40% - Needs charging"

    def test_source_names(self):
        sources = {i.source for i in get_cars_needing_attention()}
        assert sources == {"garage", "showroom", "inventory"}

    def test_odd_field_types_are_tolerated(self, store: SqliteKeyValueStore):
        set_collection(GARAGE_COLLECTION, [{
            "vin": "ODD", "status": "needs_repair", "battery_level": "ten",
            "last_update": 12345, "estimated_repair_hours": "soon",
        }], store)
        item = next(i for i in get_cars_needing_attention() if i.vehicle_id == "ODD")
        assert item.attention_type == "repair_needed"
        assert item.days_waiting == 0
        assert item.estimated_hours == 2.0

    def test_source_exception_is_isolated(self, monkeypatch):
        real_scan = attention.scan_source

        def _scan(source, store, *, now, entries):
            if source.name == "garage":
                raise RuntimeError("garage collection unreadable")
            return real_scan(source, store, now=now, entries=entries)

        monkeypatch.setattr(attention, "scan_source", _scan)
        items = get_cars_needing_attention()
        assert {i.source for i in items} == {"showroom", "inventory"}

    def test_empty_collections(self, store: SqliteKeyValueStore):
        for name in (GARAGE_COLLECTION, SHOWROOM_COLLECTION, MAIN_COLLECTION):
            set_collection(name, [], store)
        assert get_cars_needing_attention() == []

    def test_workflow_entry_fills_missing_fields(self, store: SqliteKeyValueStore):
        move(
            "WF-1", "Voyah Free", "", "garage_repair", "", "in_repair",
            "repair_required", "tech", assigned_to="Ahmad",
        )
        set_collection(GARAGE_COLLECTION, [{"vin": "WF-1", "status": "needs_repair"}], store)
        item = next(i for i in get_cars_needing_attention() if i.vehicle_id == "WF-1")
        assert item.model == "Voyah Free"
        assert item.location == "garage_repair"
        assert item.assigned_to == "Ahmad"
