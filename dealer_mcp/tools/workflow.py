"""Movement and workflow-entry tool implementations (no LLM)."""

from __future__ import annotations

from dealer_mcp.data.locations import list_locations
from dealer_mcp.errors import NotFoundError, ValidationError
from dealer_mcp.tools.orchestration import dump_json
from dealer_mcp.workflow.engine import (
    get_car_workflow,
    get_history,
    move,
    search_workflow,
    update_car_priority,
)


def list_locations_impl() -> str:
    """Return the location catalog as JSON."""
    return dump_json({"locations": list_locations()})


def _split_items(value: str) -> list[str]:
    return [item.strip() for item in (value or "").split(",") if item.strip()]


def move_car_impl(
    *,
    vehicle_id: str,
    model: str,
    from_location: str,
    to_location: str,
    from_status: str,
    to_status: str,
    reason: str,
    moved_by: str,
    notes: str = "",
    parts_used: str = "",
    tools_used: str = "",
    assigned_to: str = "",
) -> str:
    """Record a move and report the resulting workflow entry."""
    try:
        record = move(
            vehicle_id,
            model,
            from_location,
            to_location,
            from_status,
            to_status,
            reason,
            moved_by,
            notes or None,
            parts_used=_split_items(parts_used),
            tools_used=_split_items(tools_used),
            assigned_to=assigned_to or None,
        )
    except ValidationError as exc:
        return f"Move rejected: {exc.message}"

    entry = get_car_workflow(record.vehicle_id)
    return (
        f"Vehicle {record.vehicle_id} moved to {record.to_location} "
        f"({record.to_status}); stage is now {entry.workflow_stage}. "
        f"Movement {record.id} recorded, {entry.history_count} in history."
    )


def get_car_workflow_impl(*, vehicle_id: str, include_history: bool = False) -> str:
    if not vehicle_id or not vehicle_id.strip():
        return "Error: vehicle_id is required."
    try:
        entry = get_car_workflow(vehicle_id, include_history=include_history)
    except NotFoundError as exc:
        return exc.message
    return dump_json(entry.to_dict(include_history=include_history))


def get_movement_history_impl(*, vehicle_id: str, cursor: int = 0, limit: int = 50) -> str:
    """Return one page of a vehicle's movement history."""
    if not vehicle_id or not vehicle_id.strip():
        return "Error: vehicle_id is required."
    try:
        page = get_history(vehicle_id, cursor=cursor, limit=limit)
    except (NotFoundError, ValidationError) as exc:
        return exc.message
    return dump_json(page)


def update_car_priority_impl(*, vehicle_id: str, priority: str) -> str:
    if not vehicle_id or not vehicle_id.strip():
        return "Error: vehicle_id is required."
    if update_car_priority(vehicle_id.strip(), priority):
        return f"Priority for {vehicle_id.strip()} set to {priority.strip().lower()}."
    return (
        f"Priority for {vehicle_id} not updated: unknown vehicle or "
        "priority (use low, medium or high)."
    )


def search_workflow_impl(*, query: str = "", limit: int = 50) -> str:
    """Substring search across workflow entries."""
    if limit <= 0:
        return "Limit must be greater than 0."
    entries = search_workflow(query)
    return dump_json({
        "query": query,
        "count": len(entries),
        "entries": [e.to_dict() for e in entries[:limit]],
    })
