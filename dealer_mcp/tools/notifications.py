"""Operational notification tool implementations."""

from __future__ import annotations

from typing import Any

from cip_protocol import CIP

from dealer_mcp.collaborators.notifications import (
    STATUS_ACTIVE,
    NotificationCenter,
)
from dealer_mcp.tools.orchestration import run_tool_with_orchestration


async def get_notifications_impl(
    cip: CIP,
    center: NotificationCenter,
    *,
    limit: int = 20,
    include_acknowledged: bool = False,
    category: str = "",
    scaffold_id: str | None = None,
    policy: str | None = None,
    context_notes: str | None = None,
    raw: bool = False,
) -> str:
    """Return operational alerts, highest priority first."""
    if limit <= 0:
        return "Limit must be greater than 0."
    if limit > 200:
        return "Limit must be 200 or fewer."

    notifications = center.list_notifications(
        limit=limit,
        status="" if include_acknowledged else STATUS_ACTIVE,
        category=category,
    )

    scope = "all statuses" if include_acknowledged else "active only"
    if category:
        scope += f", category '{category}'"

    user_input = (
        f"Present {len(notifications)} operational alert(s) ({scope}). "
        "For each, explain the impact on the workflow and the first step to clear it."
    )

    data_context: dict[str, Any] = {
        "notification_count": len(notifications),
        "filter": scope,
        "notifications": notifications,
    }

    return await run_tool_with_orchestration(
        cip,
        user_input=user_input,
        tool_name="get_notifications",
        data_context=data_context,
        scaffold_id=scaffold_id,
        policy=policy,
        context_notes=context_notes,
        raw=raw,
    )


def acknowledge_notification_impl(
    center: NotificationCenter,
    *,
    notification_id: str,
) -> str:
    """Mark a notification as acknowledged."""
    if not notification_id or not notification_id.strip():
        return "Error: notification_id is required."

    if center.acknowledge(notification_id.strip()):
        return f"Notification {notification_id} acknowledged."
    return f"Notification {notification_id} not found or already acknowledged."
