"""Cross-source attention list.

Each vehicle collection is described by an ``AttentionSource``: a trigger, a
first-match table for the attention type, a first-match table for the
priority and a description template. Sources are scanned independently, so a
broken collection costs its own items and nothing else.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Callable

from dealer_mcp.constants import (
    ATTENTION_TYPES,
    GARAGE_COLLECTION,
    MAIN_COLLECTION,
    PRIORITY_RANK,
    SHOWROOM_COLLECTION,
)
from dealer_mcp.data.inventory import get_collection, get_store
from dealer_mcp.data.kv import KeyValueStore
from dealer_mcp.workflow.engine import get_workflow_entries
from dealer_mcp.workflow.models import WorkflowEntry, parse_timestamp

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86_400

# (record, days_waiting) -> bool
Predicate = Callable[[dict[str, Any], int], bool]


@dataclass(frozen=True)
class AttentionItem:
    """A vehicle that needs someone to act, and why."""
    vehicle_id: str
    model: str
    location: str
    attention_type: str
    priority: str
    description: str
    days_waiting: int
    source: str
    assigned_to: str | None = None
    estimated_hours: float | None = None
    next_deadline: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ── Field helpers ──────────────────────────────────────────────────


def battery_level(record: dict[str, Any], field: str = "battery_level") -> float | None:
    """Numeric battery reading, or None when absent or unparseable."""
    value = record.get(field)
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _battery_below(threshold: float) -> Predicate:
    def check(record: dict[str, Any], _days: int) -> bool:
        level = battery_level(record)
        return level is not None and level < threshold
    return check


def days_since(value: Any, now: datetime) -> int:
    """Whole days from ``value`` to ``now``; 0 when missing or in the future."""
    ts = parse_timestamp(value)
    if ts is None:
        return 0
    return max(math.floor((now - ts).total_seconds() / SECONDS_PER_DAY), 0)


def vehicle_label(record: dict[str, Any], entry: WorkflowEntry | None) -> str:
    parts = [str(record[k]) for k in ("year", "make", "model") if record.get(k)]
    if record.get("make") or record.get("model"):
        return " ".join(parts)
    if entry is not None and entry.model:
        return entry.model
    return str(record.get("vin", ""))


def _fmt_number(value: float) -> str:
    return f"{value:g}"


# ── Source definitions ─────────────────────────────────────────────


@dataclass(frozen=True)
class AttentionSource:
    name: str
    collection: str
    trigger: Callable[[dict[str, Any], datetime], bool]
    reference_days: Callable[[dict[str, Any], datetime], int]
    type_rules: tuple[tuple[Predicate, str], ...]
    default_type: str
    priority_rules: tuple[tuple[Predicate, str], ...]
    default_priority: str
    describe: Callable[[dict[str, Any], str, int], str]
    estimated_hours: Callable[[dict[str, Any]], float | None] = lambda r: None
    assigned_to: Callable[[dict[str, Any]], str | None] = lambda r: r.get("assigned_to")
    next_deadline: Callable[[dict[str, Any]], str | None] = lambda r: None

    def __post_init__(self) -> None:
        labels = {self.default_type, *(label for _, label in self.type_rules)}
        unknown = labels - set(ATTENTION_TYPES)
        if unknown:
            raise ValueError(
                f"Source {self.name!r} uses unknown attention types: {sorted(unknown)}"
            )

    @staticmethod
    def _first(rules: tuple[tuple[Predicate, str], ...], record, days, default) -> str:
        for predicate, value in rules:
            if predicate(record, days):
                return value
        return default

    def evaluate(
        self,
        record: dict[str, Any],
        now: datetime,
        entry: WorkflowEntry | None,
    ) -> AttentionItem | None:
        if not self.trigger(record, now):
            return None
        days = self.reference_days(record, now)
        attention_type = self._first(self.type_rules, record, days, self.default_type)
        priority = self._first(self.priority_rules, record, days, self.default_priority)
        location = record.get("location") or (entry.current_location if entry else "")
        return AttentionItem(
            vehicle_id=str(record.get("vin", "")),
            model=vehicle_label(record, entry),
            location=location or self.name,
            attention_type=attention_type,
            priority=priority,
            description=self.describe(record, attention_type, days),
            days_waiting=days,
            source=self.name,
            assigned_to=self.assigned_to(record) or (entry.assigned_to if entry else None),
            estimated_hours=self.estimated_hours(record),
            next_deadline=self.next_deadline(record),
        )


GARAGE_STATUSES = frozenset({"needs_repair", "waiting_parts"})


def _garage_trigger(record: dict[str, Any], _now: datetime) -> bool:
    level = battery_level(record)
    return record.get("status") in GARAGE_STATUSES or (level is not None and level < 50)


def _describe_garage(record: dict[str, Any], _attention_type: str, _days: int) -> str:
    # Battery wins the description even when the type says parts.
    level = battery_level(record)
    if level is not None and level < 50:
        return f"Low battery: {_fmt_number(level)}% - Needs charging"
    status = record.get("status")
    if status == "waiting_parts":
        parts = [str(p) for p in record.get("parts_needed") or [] if str(p).strip()]
        return f"Waiting for parts: {', '.join(parts) or 'Parts ordered'}"
    if status == "needs_repair":
        return record.get("repair_notes") or "Repair needed - awaiting diagnosis"
    return record.get("notes") or "Requires attention"


def _garage_hours(record: dict[str, Any]) -> float:
    hours = record.get("estimated_repair_hours")
    try:
        return float(hours) if hours else 2.0
    except (TypeError, ValueError):
        return 2.0


GARAGE_SOURCE = AttentionSource(
    name="garage",
    collection=GARAGE_COLLECTION,
    trigger=_garage_trigger,
    reference_days=lambda r, now: days_since(r.get("last_update") or r.get("arrival_date"), now),
    type_rules=(
        (lambda r, d: r.get("status") == "waiting_parts", "parts_waiting"),
        (_battery_below(50), "low_battery"),
    ),
    default_type="repair_needed",
    priority_rules=(
        (_battery_below(20), "urgent"),
        (lambda r, d: r.get("status") == "emergency_repair", "urgent"),
        (lambda r, d: d > 7 or r.get("customer_priority") == "high", "high"),
        (lambda r, d: d > 3, "medium"),
        (_battery_below(50), "medium"),
    ),
    default_priority="low",
    describe=_describe_garage,
    estimated_hours=_garage_hours,
    assigned_to=lambda r: r.get("assigned_mechanic"),
)

SHOWROOM_SOURCE = AttentionSource(
    name="showroom",
    collection=SHOWROOM_COLLECTION,
    trigger=lambda r, now: r.get("pdi_status") in {"incomplete", "pending"},
    reference_days=lambda r, now: days_since(r.get("arrival_date"), now),
    type_rules=(),
    default_type="repair_needed",
    priority_rules=(
        (lambda r, d: d > 7, "high"),
        (lambda r, d: d > 3, "medium"),
    ),
    default_priority="low",
    describe=lambda r, t, d: (
        f"PDI incomplete - {r.get('pdi_notes') or 'Awaiting PDI completion'}"
    ),
    estimated_hours=lambda r: 3.0,
)


def _service_overdue(record: dict[str, Any], now: datetime) -> bool:
    due = parse_timestamp(record.get("next_service_date"))
    return due is not None and due < now


MAIN_SOURCE = AttentionSource(
    name="inventory",
    collection=MAIN_COLLECTION,
    trigger=_service_overdue,
    reference_days=lambda r, now: days_since(r.get("next_service_date"), now),
    type_rules=(),
    default_type="overdue_service",
    priority_rules=(
        (lambda r, d: d > 30, "urgent"),
        (lambda r, d: d > 14, "high"),
    ),
    default_priority="medium",
    describe=lambda r, t, d: f"Service overdue by {d} days",
    next_deadline=lambda r: r.get("next_service_date"),
)

ATTENTION_SOURCES: tuple[AttentionSource, ...] = (
    GARAGE_SOURCE,
    SHOWROOM_SOURCE,
    MAIN_SOURCE,
)


# ── Public API ─────────────────────────────────────────────────────


def sort_attention_items(items: list[AttentionItem]) -> list[AttentionItem]:
    """Priority rank descending, then days waiting descending."""
    return sorted(
        items,
        key=lambda item: (PRIORITY_RANK.get(item.priority, 0), item.days_waiting),
        reverse=True,
    )


def scan_source(
    source: AttentionSource,
    store: KeyValueStore,
    *,
    now: datetime,
    entries: dict[str, WorkflowEntry],
) -> list[AttentionItem]:
    items: list[AttentionItem] = []
    for record in get_collection(source.collection, store):
        item = source.evaluate(record, now, entries.get(str(record.get("vin", ""))))
        if item is not None:
            items.append(item)
    return items


def get_cars_needing_attention(
    store: KeyValueStore | None = None,
    *,
    now: datetime | None = None,
    sources: tuple[AttentionSource, ...] = ATTENTION_SOURCES,
) -> list[AttentionItem]:
    """Merge every source into one globally ordered attention list."""
    try:
        store = store or get_store()
        now = now or datetime.now(timezone.utc)
        try:
            entries = {e.vehicle_id: e for e in get_workflow_entries(store)}
        except Exception:
            logger.exception("Workflow entries unavailable for attention fallbacks")
            entries = {}

        items: list[AttentionItem] = []
        for source in sources:
            try:
                items.extend(scan_source(source, store, now=now, entries=entries))
            except Exception:
                logger.exception("Attention source %s failed; skipping", source.name)
        return sort_attention_items(items)
    except Exception:
        logger.exception("Attention scan failed")
        return []
