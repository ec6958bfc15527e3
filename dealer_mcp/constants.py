"""Shared constants used across the workflow, attention and tool modules.

Single source of truth for stage names, reason codes and priority ranks.
"""

from __future__ import annotations

# Workflow stages, in the order a vehicle normally passes through them.
STAGE_ARRIVAL = "arrival"
STAGE_PDI = "pdi"
STAGE_INVENTORY = "inventory"
STAGE_SHOWROOM = "showroom"
STAGE_REPAIR = "repair"
STAGE_DELIVERY = "delivery"
STAGE_SOLD = "sold"

WORKFLOW_STAGES: tuple[str, ...] = (
    STAGE_ARRIVAL,
    STAGE_PDI,
    STAGE_INVENTORY,
    STAGE_SHOWROOM,
    STAGE_REPAIR,
    STAGE_DELIVERY,
    STAGE_SOLD,
)

REASON_CODES: frozenset[str] = frozenset({
    "arrival",
    "pdi_start",
    "pdi_complete",
    "stage_complete",
    "repair_required",
    "repair_complete",
    "parts_arrived",
    "showroom_display",
    "customer_reservation",
    "sale",
    "delivery",
    "relocation",
    "other",
})

# Entry priorities are set by staff; attention priorities add "urgent".
ENTRY_PRIORITIES: tuple[str, ...] = ("low", "medium", "high")
DEFAULT_ENTRY_PRIORITY = "medium"

PRIORITY_RANK: dict[str, int] = {
    "urgent": 4,
    "high": 3,
    "medium": 2,
    "low": 1,
}

ATTENTION_TYPES: tuple[str, ...] = (
    "repair_needed",
    "low_battery",
    "parts_waiting",
    "overdue_service",
)

# Per-location vehicle collections in the key-value store.
GARAGE_COLLECTION = "garage_inventory"
SHOWROOM_COLLECTION = "showroom_inventory"
MAIN_COLLECTION = "car_inventory"
VEHICLE_COLLECTIONS: tuple[str, ...] = (
    MAIN_COLLECTION,
    GARAGE_COLLECTION,
    SHOWROOM_COLLECTION,
)

DEFAULT_LOCATION_CAPACITY = 999


def normalize_reason(reason: str) -> str:
    """Lower-case a reason code and fold dashes and spaces to underscores."""
    return reason.strip().lower().replace("-", "_").replace(" ", "_")
