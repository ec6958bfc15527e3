"""Workflow analytics and capacity tool implementations."""

from __future__ import annotations

from typing import Any

from cip_protocol import CIP

from dealer_mcp.tools.orchestration import run_tool_with_orchestration
from dealer_mcp.workflow.analytics import get_location_capacity, get_workflow_analytics

NEAR_CAPACITY_PERCENT = 85.0


async def get_workflow_analytics_impl(
    cip: CIP,
    *,
    scaffold_id: str | None = None,
    policy: str | None = None,
    context_notes: str | None = None,
    raw: bool = False,
) -> str:
    """Stage distribution, dwell time and bottlenecks via CIP."""
    analytics = get_workflow_analytics()
    bottlenecks = analytics.get("bottlenecks") or []

    user_input = (
        f"Brief the operations manager on {analytics['total_cars']} tracked vehicle(s). "
        "Explain the stage distribution and average time in each stage"
    )
    if bottlenecks:
        user_input += f", and flag the bottleneck stage(s): {', '.join(bottlenecks)}"
    user_input += "."

    data_context: dict[str, Any] = {"analytics": analytics}

    return await run_tool_with_orchestration(
        cip,
        user_input=user_input,
        tool_name="get_workflow_analytics",
        data_context=data_context,
        scaffold_id=scaffold_id,
        policy=policy,
        context_notes=context_notes,
        raw=raw,
    )


async def get_location_capacity_impl(
    cip: CIP,
    *,
    location_type: str = "",
    scaffold_id: str | None = None,
    policy: str | None = None,
    context_notes: str | None = None,
    raw: bool = False,
) -> str:
    """Occupancy versus capacity per location via CIP."""
    capacity = get_location_capacity()
    if location_type:
        capacity = {
            loc_id: row for loc_id, row in capacity.items() if row["type"] == location_type
        }
        if not capacity:
            return f"No locations of type '{location_type}'."

    crowded = sorted(
        loc_id for loc_id, row in capacity.items() if row["percentage"] >= NEAR_CAPACITY_PERCENT
    )

    user_input = f"Summarize occupancy for {len(capacity)} location(s)"
    if crowded:
        user_input += f"; {len(crowded)} are at or near capacity"
    user_input += " and suggest where incoming vehicles should go."

    data_context: dict[str, Any] = {
        "location_type": location_type or "all",
        "near_capacity": crowded,
        "locations": capacity,
    }

    return await run_tool_with_orchestration(
        cip,
        user_input=user_input,
        tool_name="get_location_capacity",
        data_context=data_context,
        scaffold_id=scaffold_id,
        policy=policy,
        context_notes=context_notes,
        raw=raw,
    )
