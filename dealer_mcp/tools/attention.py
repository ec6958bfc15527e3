"""Attention list and delivery readiness tool implementations."""

from __future__ import annotations

from collections import Counter
from typing import Any

from cip_protocol import CIP

from dealer_mcp.attention.engine import get_cars_needing_attention
from dealer_mcp.attention.readiness import get_readiness_board
from dealer_mcp.constants import PRIORITY_RANK
from dealer_mcp.tools.orchestration import run_tool_with_orchestration


async def get_cars_needing_attention_impl(
    cip: CIP,
    *,
    limit: int = 20,
    min_priority: str = "",
    source: str = "",
    scaffold_id: str | None = None,
    policy: str | None = None,
    context_notes: str | None = None,
    raw: bool = False,
) -> str:
    """Ranked attention list across garage, showroom and inventory via CIP."""
    if limit <= 0:
        return "Limit must be greater than 0."
    if limit > 200:
        return "Limit must be 200 or fewer."
    min_priority = (min_priority or "").strip().lower()
    if min_priority and min_priority not in PRIORITY_RANK:
        return (
            f"Unknown priority '{min_priority}'. "
            "Use one of: low, medium, high, urgent."
        )

    items = get_cars_needing_attention()
    if min_priority:
        floor = PRIORITY_RANK[min_priority]
        items = [i for i in items if PRIORITY_RANK.get(i.priority, 0) >= floor]
    if source:
        items = [i for i in items if i.source == source]

    by_priority = Counter(i.priority for i in items)
    shown = items[:limit]

    user_input = (
        f"Triage {len(items)} vehicle(s) needing attention"
        f" ({by_priority.get('urgent', 0)} urgent, {by_priority.get('high', 0)} high). "
        "Start with the most urgent, say what is blocking each vehicle "
        "and who should act."
    )

    data_context: dict[str, Any] = {
        "total": len(items),
        "showing": len(shown),
        "by_priority": dict(by_priority),
        "items": shown,
    }

    return await run_tool_with_orchestration(
        cip,
        user_input=user_input,
        tool_name="get_cars_needing_attention",
        data_context=data_context,
        scaffold_id=scaffold_id,
        policy=policy,
        context_notes=context_notes,
        raw=raw,
    )


async def get_readiness_board_impl(
    cip: CIP,
    *,
    scaffold_id: str | None = None,
    policy: str | None = None,
    context_notes: str | None = None,
    raw: bool = False,
) -> str:
    """Delivery readiness scores and countdown via CIP."""
    board = get_readiness_board()
    urgency = board["urgency_counts"]

    user_input = (
        f"Review delivery readiness: {board['ready_for_delivery']} of "
        f"{board['total_vehicles']} vehicle(s) are ready, "
        f"{board['needs_attention_count']} need work, "
        f"{urgency['critical']} delivery date(s) are critical. "
        "Prioritize the next actions by delivery date."
    )

    data_context: dict[str, Any] = {"readiness": board}

    return await run_tool_with_orchestration(
        cip,
        user_input=user_input,
        tool_name="get_readiness_board",
        data_context=data_context,
        scaffold_id=scaffold_id,
        policy=policy,
        context_notes=context_notes,
        raw=raw,
    )
