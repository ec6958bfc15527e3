"""Workflow store and movement engine.

The engine is the only writer of workflow entries. A move runs in one store
transaction that covers the live entry, the vehicle's history stream, the
cross-vehicle ledger and the per-location collection patches. A collection
patch that fails is logged and skipped without undoing the others. The cost
event and the ``vehicle_moved`` domain event fire after the commit.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from dealer_mcp.collaborators.costs import LedgerCostAttribution, get_cost_attribution
from dealer_mcp.constants import (
    DEFAULT_ENTRY_PRIORITY,
    ENTRY_PRIORITIES,
    GARAGE_COLLECTION,
    MAIN_COLLECTION,
    REASON_CODES,
    SHOWROOM_COLLECTION,
    normalize_reason,
)
from dealer_mcp.data.inventory import get_store, update_vehicle_position
from dealer_mcp.data.kv import KeyValueStore
from dealer_mcp.data.locations import is_known_location
from dealer_mcp.errors import DealerFlowError, NotFoundError, ValidationError
from dealer_mcp.workflow import events
from dealer_mcp.workflow.ledger import record_movement
from dealer_mcp.workflow.models import (
    HistoryPage,
    MovementRecord,
    WorkflowEntry,
    utc_now,
)
from dealer_mcp.workflow.stages import classify_stage

logger = logging.getLogger(__name__)

ENTRY_PREFIX = "workflow:"
HISTORY_PREFIX = "history:"
MAX_HISTORY_PAGE = 500

# Substring of the destination location id -> collection to patch.
# The empty pattern always matches.
FANOUT_RULES: tuple[tuple[str, str], ...] = (
    ("garage", GARAGE_COLLECTION),
    ("showroom", SHOWROOM_COLLECTION),
    ("", MAIN_COLLECTION),
)


def _entry_key(vehicle_id: str) -> str:
    return f"{ENTRY_PREFIX}{vehicle_id}"


def _history_stream(vehicle_id: str) -> str:
    return f"{HISTORY_PREFIX}{vehicle_id}"


def _clean(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def _load_entry(store: KeyValueStore, vehicle_id: str) -> WorkflowEntry | None:
    data = store.get(_entry_key(vehicle_id))
    if data is None:
        return None
    entry = WorkflowEntry.from_dict(data)
    entry.workflow_stage = classify_stage(entry.current_location, entry.current_status)
    return entry


def _save_entry(store: KeyValueStore, entry: WorkflowEntry) -> None:
    store.set(_entry_key(entry.vehicle_id), entry.to_dict())


# ── Validation ─────────────────────────────────────────────────────


def validate_move(
    *,
    vehicle_id: str,
    model: str,
    from_location: str,
    to_location: str,
    to_status: str,
    reason: str,
    moved_by: str,
) -> str:
    """Raise ValidationError for a bad move request. Returns the normalized reason."""
    missing = [
        name
        for name, value in (
            ("vehicle_id", vehicle_id),
            ("model", model),
            ("to_location", to_location),
            ("to_status", to_status),
            ("moved_by", moved_by),
        )
        if not value
    ]
    if missing:
        raise ValidationError(
            f"Missing required field(s): {', '.join(missing)}.",
            code="missing_fields",
            details={"fields": missing},
        )
    if not is_known_location(to_location):
        raise ValidationError(
            f"Unknown destination location '{to_location}'.",
            code="unknown_location",
            details={"location": to_location},
        )
    if from_location and not is_known_location(from_location):
        raise ValidationError(
            f"Unknown origin location '{from_location}'.",
            code="unknown_location",
            details={"location": from_location},
        )
    normalized = normalize_reason(reason or "")
    if normalized not in REASON_CODES:
        raise ValidationError(
            f"Unknown reason code '{reason}'. Use one of: {', '.join(sorted(REASON_CODES))}.",
            code="unknown_reason",
        )
    return normalized


# ── Moves ──────────────────────────────────────────────────────────


def _fan_out(store: KeyValueStore, vehicle_id: str, location: str, status: str) -> list[str]:
    updated: list[str] = []
    for pattern, collection in FANOUT_RULES:
        if pattern not in location:
            continue
        try:
            if update_vehicle_position(
                collection, vehicle_id, location=location, status=status, store=store
            ):
                updated.append(collection)
        except Exception:
            logger.exception(
                "Fan-out to %s failed for %s; continuing", collection, vehicle_id
            )
    return updated


def _emit_cost_event(payload: dict[str, Any], store: KeyValueStore) -> None:
    try:
        costs = get_cost_attribution()
        if isinstance(costs, LedgerCostAttribution):
            costs.record_status_change(payload, store=store)
        else:
            costs.record_status_change(payload)
    except Exception:
        logger.exception("Cost attribution failed for %s", payload.get("vehicle_id"))


def move(
    vehicle_id: str,
    model: str,
    from_location: str,
    to_location: str,
    from_status: str,
    to_status: str,
    reason: str,
    moved_by: str,
    notes: str | None = None,
    *,
    parts_used: list[str] | None = None,
    tools_used: list[str] | None = None,
    assigned_to: str | None = None,
    store: KeyValueStore | None = None,
    now: datetime | None = None,
) -> MovementRecord:
    """Apply one movement and return the appended record.

    Raises ValidationError for bad input and propagates store failures;
    ``move_car`` is the forgiving wrapper.
    """
    vehicle_id = _clean(vehicle_id)
    model = _clean(model)
    from_location = _clean(from_location)
    to_location = _clean(to_location)
    from_status = _clean(from_status)
    to_status = _clean(to_status)
    moved_by = _clean(moved_by)
    reason_code = validate_move(
        vehicle_id=vehicle_id,
        model=model,
        from_location=from_location,
        to_location=to_location,
        to_status=to_status,
        reason=reason,
        moved_by=moved_by,
    )

    store = store or get_store()
    record = MovementRecord.create(
        vehicle_id=vehicle_id,
        from_location=from_location,
        to_location=to_location,
        from_status=from_status,
        to_status=to_status,
        reason=reason_code,
        moved_by=moved_by,
        notes=notes or None,
        now=now,
    )
    stage = classify_stage(to_location, to_status)

    with store.transaction():
        entry = _load_entry(store, vehicle_id)
        previous_stage = entry.workflow_stage if entry else None
        if entry is None:
            entry = WorkflowEntry(
                vehicle_id=vehicle_id,
                model=model,
                current_location=to_location,
                current_status=to_status,
                workflow_stage=stage,
                last_update=record.timestamp,
                priority=DEFAULT_ENTRY_PRIORITY,
            )
        else:
            entry.model = entry.model or model
            entry.current_location = to_location
            entry.current_status = to_status
            entry.workflow_stage = stage
            entry.last_update = record.timestamp
        if assigned_to:
            entry.assigned_to = assigned_to.strip()
        if notes:
            entry.notes = notes
        store.append(_history_stream(vehicle_id), record.to_dict())
        entry.history_count = store.stream_length(_history_stream(vehicle_id))
        _save_entry(store, entry)
        record_movement(store, record)
        updated = _fan_out(store, vehicle_id, to_location, to_status)

    logger.info(
        "Moved %s %s -> %s (%s, stage=%s, collections=%s)",
        vehicle_id,
        from_location or "?",
        to_location,
        reason_code,
        stage,
        ",".join(updated) or "none",
    )

    if from_status != to_status:
        _emit_cost_event({
            "vehicle_id": vehicle_id,
            "model": model,
            "from_status": from_status,
            "to_status": to_status,
            "actor": moved_by,
            "notes": notes,
            "parts_used": list(parts_used or []),
            "tools_used": list(tools_used or []),
        }, store)

    events.publish(events.VEHICLE_MOVED, {
        "vehicle_id": vehicle_id,
        "record": record.to_dict(),
        "previous_stage": previous_stage,
        "workflow_stage": stage,
        "created": previous_stage is None,
    })
    return record


def move_car(
    vehicle_id: str,
    model: str,
    from_location: str,
    to_location: str,
    from_status: str,
    to_status: str,
    reason: str,
    moved_by: str,
    notes: str | None = None,
    *,
    parts_used: list[str] | None = None,
    tools_used: list[str] | None = None,
    assigned_to: str | None = None,
    store: KeyValueStore | None = None,
) -> bool:
    """Move a vehicle. Returns False (and logs) instead of raising."""
    try:
        move(
            vehicle_id,
            model,
            from_location,
            to_location,
            from_status,
            to_status,
            reason,
            moved_by,
            notes,
            parts_used=parts_used,
            tools_used=tools_used,
            assigned_to=assigned_to,
            store=store,
        )
    except ValidationError as exc:
        logger.warning("Rejected move for %r: %s", vehicle_id, exc)
        return False
    except Exception:
        logger.exception("Error moving vehicle %r", vehicle_id)
        return False
    return True


# ── Reads and small updates ────────────────────────────────────────


def get_workflow_entries(store: KeyValueStore | None = None) -> list[WorkflowEntry]:
    """Return every workflow entry, stages re-derived, ordered by vehicle id."""
    store = store or get_store()
    entries: list[WorkflowEntry] = []
    for key in store.keys(ENTRY_PREFIX):
        entry = _load_entry(store, key[len(ENTRY_PREFIX):])
        if entry is not None:
            entries.append(entry)
    return entries


def get_car_workflow(
    vehicle_id: str,
    *,
    include_history: bool = False,
    store: KeyValueStore | None = None,
) -> WorkflowEntry:
    """Look up one entry. Raises NotFoundError when the vehicle has never moved."""
    store = store or get_store()
    entry = _load_entry(store, _clean(vehicle_id))
    if entry is None:
        raise NotFoundError(
            f"No workflow entry for vehicle '{vehicle_id}'.",
            code="unknown_vehicle",
        )
    if include_history:
        entry.history = [
            MovementRecord.from_dict(payload)
            for _, payload in store.read_stream(_history_stream(entry.vehicle_id))
        ]
    return entry


def get_history(
    vehicle_id: str,
    *,
    cursor: int = 0,
    limit: int = 50,
    store: KeyValueStore | None = None,
) -> HistoryPage:
    """Page through a vehicle's movement history in append order."""
    if cursor < 0:
        raise ValidationError("Cursor must be 0 or greater.", code="bad_cursor")
    if limit <= 0 or limit > MAX_HISTORY_PAGE:
        raise ValidationError(
            f"Limit must be between 1 and {MAX_HISTORY_PAGE}.", code="bad_limit"
        )
    store = store or get_store()
    vehicle_id = _clean(vehicle_id)
    stream = _history_stream(vehicle_id)
    total = store.stream_length(stream)
    if total == 0 and store.get(_entry_key(vehicle_id)) is None:
        raise NotFoundError(
            f"No workflow entry for vehicle '{vehicle_id}'.",
            code="unknown_vehicle",
        )
    rows = store.read_stream(stream, cursor=cursor, limit=limit)
    records = [MovementRecord.from_dict(payload) for _, payload in rows]
    next_cursor = rows[-1][0] + 1 if rows and rows[-1][0] + 1 < total else None
    return HistoryPage(
        vehicle_id=vehicle_id,
        records=records,
        cursor=cursor,
        next_cursor=next_cursor,
        total=total,
    )


def update_car_priority(
    vehicle_id: str,
    priority: str,
    store: KeyValueStore | None = None,
    now: datetime | None = None,
) -> bool:
    """Set an entry's priority and stamp ``last_update``.

    Returns False for unknown vehicles or priorities.
    """
    normalized = _clean(priority).lower()
    if normalized not in ENTRY_PRIORITIES:
        logger.warning("Rejected priority %r for %s", priority, vehicle_id)
        return False
    try:
        store = store or get_store()
        with store.transaction():
            entry = _load_entry(store, _clean(vehicle_id))
            if entry is None:
                return False
            previous = entry.priority
            entry.priority = normalized
            entry.last_update = (now or utc_now()).isoformat()
            _save_entry(store, entry)
    except DealerFlowError:
        logger.exception("Error updating priority for %s", vehicle_id)
        return False
    events.publish(events.PRIORITY_CHANGED, {
        "vehicle_id": entry.vehicle_id,
        "previous_priority": previous,
        "priority": normalized,
    })
    return True


def search_workflow(query: str, store: KeyValueStore | None = None) -> list[WorkflowEntry]:
    """Case-insensitive substring match over id, model, location, status, assignee."""
    needle = _clean(query).lower()
    entries = get_workflow_entries(store)
    if not needle:
        return entries
    return [
        e
        for e in entries
        if any(
            needle in (value or "").lower()
            for value in (
                e.vehicle_id,
                e.model,
                e.current_location,
                e.current_status,
                e.assigned_to,
            )
        )
    ]
