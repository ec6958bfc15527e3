"""Workflow analytics: stage occupancy, dwell time, bottlenecks, capacity.

Occupancy and dwell totals are kept in a ``StageAggregate`` that follows
``vehicle_moved`` events. It remembers how many ledger records it has folded
in; when that drifts from the ledger (missed events, a swapped store) the next
read rebuilds it from a full scan.
"""

from __future__ import annotations

import logging
import threading
from collections import Counter, defaultdict
from datetime import datetime, timezone
from typing import Any

from dealer_mcp.attention.engine import get_cars_needing_attention
from dealer_mcp.constants import DEFAULT_LOCATION_CAPACITY, WORKFLOW_STAGES
from dealer_mcp.data.inventory import get_store
from dealer_mcp.data.kv import KeyValueStore
from dealer_mcp.data.locations import list_locations
from dealer_mcp.workflow import events
from dealer_mcp.workflow.engine import get_workflow_entries
from dealer_mcp.workflow.ledger import ledger_size, read_ledger
from dealer_mcp.workflow.models import MovementRecord, parse_timestamp
from dealer_mcp.workflow.stages import classify_stage

logger = logging.getLogger(__name__)

BOTTLENECK_FACTOR = 1.5
SECONDS_PER_DAY = 86_400


def find_bottlenecks(
    stage_counts: dict[str, int],
    factor: float = BOTTLENECK_FACTOR,
) -> list[str]:
    """Stages whose count exceeds ``factor`` x the mean over occupied stages."""
    occupied = {stage: count for stage, count in stage_counts.items() if count > 0}
    if not occupied:
        return []
    threshold = factor * sum(occupied.values()) / len(occupied)
    return [stage for stage, count in occupied.items() if count > threshold]


def compute_dwell_seconds(records: list[MovementRecord]) -> dict[str, list[float]]:
    """Completed stays per stage, from consecutive records of the same vehicle.

    The gap between two records is charged to the stage the vehicle entered
    with the earlier one. The latest record of each vehicle opens a stay that
    has not ended and is not counted.
    """
    by_vehicle: dict[str, list[tuple[datetime, MovementRecord]]] = defaultdict(list)
    for record in records:
        ts = parse_timestamp(record.timestamp)
        if ts is not None:
            by_vehicle[record.vehicle_id].append((ts, record))

    stays: dict[str, list[float]] = defaultdict(list)
    for timeline in by_vehicle.values():
        timeline.sort(key=lambda pair: pair[0])
        for (start, rec), (end, _) in zip(timeline, timeline[1:]):
            stage = classify_stage(rec.to_location, rec.to_status)
            stays[stage].append((end - start).total_seconds())
    return dict(stays)


def _average_days(totals: dict[str, float], counts: dict[str, int]) -> dict[str, float]:
    return {
        stage: round(totals[stage] / counts[stage] / SECONDS_PER_DAY, 2)
        for stage in WORKFLOW_STAGES
        if counts.get(stage)
    }


class StageAggregate:
    """Occupancy counts and dwell totals maintained from move events."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._store: KeyValueStore | None = None
        self._ledger_seen = 0
        self._stage_by_vehicle: dict[str, str] = {}
        self._last_move: dict[str, tuple[datetime, MovementRecord]] = {}
        self._dwell_total: dict[str, float] = defaultdict(float)
        self._dwell_count: dict[str, int] = defaultdict(int)

    def rebuild(self, store: KeyValueStore) -> None:
        records = read_ledger(store)
        entries = get_workflow_entries(store)
        with self._lock:
            self._store = store
            self._ledger_seen = len(records)
            self._stage_by_vehicle = {e.vehicle_id: e.workflow_stage for e in entries}
            self._last_move = {}
            for record in records:
                ts = parse_timestamp(record.timestamp)
                if ts is None:
                    continue
                last = self._last_move.get(record.vehicle_id)
                if last is None or ts >= last[0]:
                    self._last_move[record.vehicle_id] = (ts, record)
            self._dwell_total = defaultdict(float)
            self._dwell_count = defaultdict(int)
            for stage, stays in compute_dwell_seconds(records).items():
                self._dwell_total[stage] = sum(stays)
                self._dwell_count[stage] = len(stays)
        logger.debug("Stage aggregate rebuilt from %d ledger records", len(records))

    def apply_move(self, payload: dict[str, Any]) -> None:
        record = MovementRecord.from_dict(payload["record"])
        ts = parse_timestamp(record.timestamp)
        with self._lock:
            self._ledger_seen += 1
            self._stage_by_vehicle[record.vehicle_id] = payload.get(
                "workflow_stage"
            ) or classify_stage(record.to_location, record.to_status)
            if ts is None:
                return
            last = self._last_move.get(record.vehicle_id)
            if last is not None and ts >= last[0]:
                prev_ts, prev = last
                stage = classify_stage(prev.to_location, prev.to_status)
                self._dwell_total[stage] += (ts - prev_ts).total_seconds()
                self._dwell_count[stage] += 1
            if last is None or ts >= last[0]:
                self._last_move[record.vehicle_id] = (ts, record)

    def handle_event(self, event_name: str, payload: dict[str, Any]) -> None:
        if event_name == events.VEHICLE_MOVED:
            self.apply_move(payload)

    def snapshot(self, store: KeyValueStore) -> tuple[dict[str, int], dict[str, float]]:
        """Return ``(stage_counts, avg_days_per_stage)``, rebuilding if stale."""
        with self._lock:
            stale = self._store is not store or self._ledger_seen != ledger_size(store)
        if stale:
            self.rebuild(store)
        with self._lock:
            counts = Counter(self._stage_by_vehicle.values())
            stage_counts = {stage: counts.get(stage, 0) for stage in WORKFLOW_STAGES}
            averages = _average_days(self._dwell_total, self._dwell_count)
        return stage_counts, averages


_aggregate = StageAggregate()


def get_stage_aggregate() -> StageAggregate:
    """Return the shared aggregate, subscribed to move events."""
    events.register_listener(_aggregate.handle_event)
    return _aggregate


# ── Public API ─────────────────────────────────────────────────────


def get_location_capacity(store: KeyValueStore | None = None) -> dict[str, dict[str, Any]]:
    """Occupancy versus capacity for every registry location."""
    occupancy = Counter(e.current_location for e in get_workflow_entries(store))
    report: dict[str, dict[str, Any]] = {}
    for location in list_locations():
        capacity = location.capacity or DEFAULT_LOCATION_CAPACITY
        current = occupancy.get(location.id, 0)
        report[location.id] = {
            "name": location.name,
            "type": location.type,
            "current": current,
            "capacity": capacity,
            "percentage": round(current / capacity * 100, 1),
        }
    return report


def get_workflow_analytics(store: KeyValueStore | None = None) -> dict[str, Any]:
    """Stage distribution, average dwell, bottlenecks and attention count.

    Each part is computed independently; a failing part is logged and left at
    its empty value, and its name is listed under ``degraded``.
    """
    store = store or get_store()
    result: dict[str, Any] = {
        "total_cars": 0,
        "stage_distribution": {stage: 0 for stage in WORKFLOW_STAGES},
        "avg_time_in_stages": {},
        "bottlenecks": [],
        "cars_needing_attention": 0,
        "generated_at": datetime.now(timezone.utc).isoformat(),
    }
    degraded: list[str] = []

    try:
        stage_counts, averages = get_stage_aggregate().snapshot(store)
        result["stage_distribution"] = stage_counts
        result["total_cars"] = sum(stage_counts.values())
        result["avg_time_in_stages"] = averages
        result["bottlenecks"] = find_bottlenecks(stage_counts)
    except Exception:
        logger.exception("Stage analytics failed")
        degraded.append("stages")

    try:
        result["cars_needing_attention"] = len(get_cars_needing_attention(store))
    except Exception:
        logger.exception("Attention count failed")
        degraded.append("attention")

    if degraded:
        result["degraded"] = degraded
    return result
