"""Workflow stage classification: pure logic, no DB or I/O."""

from __future__ import annotations

from typing import Callable

from dealer_mcp.constants import (
    STAGE_ARRIVAL,
    STAGE_DELIVERY,
    STAGE_INVENTORY,
    STAGE_PDI,
    STAGE_REPAIR,
    STAGE_SHOWROOM,
    STAGE_SOLD,
)

StagePredicate = Callable[[str, str], bool]

# First match wins. Order matters: a PDI bay is also a garage, and
# "inventory_garage" must classify as inventory rather than repair.
STAGE_RULES: tuple[tuple[StagePredicate, str], ...] = (
    (lambda loc, status: loc == "new_arrivals", STAGE_ARRIVAL),
    (lambda loc, status: loc == "pdi_bay" or "pdi" in status, STAGE_PDI),
    (lambda loc, status: "inventory" in loc, STAGE_INVENTORY),
    (lambda loc, status: "showroom" in loc, STAGE_SHOWROOM),
    (lambda loc, status: "garage" in loc or "repair" in status, STAGE_REPAIR),
    (lambda loc, status: loc == "delivery_lot", STAGE_DELIVERY),
    (lambda loc, status: status == "sold", STAGE_SOLD),
)

FALLBACK_STAGE = STAGE_INVENTORY


def classify_stage(location: str, status: str) -> str:
    """Map a ``(location, status)`` pair to its workflow stage."""
    loc = location or ""
    st = status or ""
    for predicate, stage in STAGE_RULES:
        if predicate(loc, st):
            return stage
    return FALLBACK_STAGE
