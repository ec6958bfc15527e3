"""Cost ledger tool implementation."""

from __future__ import annotations

from dealer_mcp.collaborators.costs import LedgerCostAttribution, get_cost_attribution
from dealer_mcp.tools.orchestration import dump_json


def get_cost_ledger_impl(*, vehicle_id: str = "", limit: int = 50) -> str:
    """Return recent cost entries and totals, optionally for one vehicle."""
    if limit <= 0:
        return "Limit must be greater than 0."

    attribution = get_cost_attribution()
    if not isinstance(attribution, LedgerCostAttribution):
        return "The installed cost attribution backend does not keep a ledger."

    vehicle_id = vehicle_id.strip()
    rows = attribution.get_ledger(vehicle_id or None)
    return dump_json({
        "vehicle_id": vehicle_id or None,
        "summary": attribution.summarize(vehicle_id or None),
        "entries": list(reversed(rows))[:limit],
    })
