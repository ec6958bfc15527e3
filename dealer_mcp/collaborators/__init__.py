"""Default collaborators that consume movement-engine payloads."""

from dealer_mcp.collaborators.costs import (
    CostAttribution,
    LedgerCostAttribution,
    get_cost_attribution,
    set_cost_attribution,
)
from dealer_mcp.collaborators.notifications import (
    NotificationCenter,
    get_notification_center,
    set_notification_center,
)

__all__ = [
    "CostAttribution",
    "LedgerCostAttribution",
    "NotificationCenter",
    "get_cost_attribution",
    "get_notification_center",
    "set_cost_attribution",
    "set_notification_center",
]
