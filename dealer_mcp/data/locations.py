"""Static catalog of the dealership's physical and process locations."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

from dealer_mcp.errors import NotFoundError

LOCATION_TYPES: frozenset[str] = frozenset({
    "showroom",
    "garage",
    "inventory",
    "floor",
    "lot",
})


@dataclass(frozen=True)
class Location:
    """A place a vehicle can be moved to."""
    id: str
    name: str
    type: str
    capacity: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


_LOCATIONS: tuple[Location, ...] = (
    Location("new_arrivals", "New Arrivals", "lot", 50),
    Location("pdi_bay", "PDI Bay", "garage", 6),
    Location("inventory_garage", "Inventory Garage", "inventory", 100),
    Location("showroom_floor1", "Showroom Floor 1", "showroom", 12),
    Location("showroom_floor2", "Showroom Floor 2", "showroom", 8),
    Location("inventory_floor2", "Inventory Floor 2", "inventory", 80),
    Location("garage_repair", "Garage Repair Bay", "garage", 15),
    Location("delivery_lot", "Delivery Lot", "lot", 30),
)

_BY_ID: dict[str, Location] = {loc.id: loc for loc in _LOCATIONS}


def list_locations() -> list[Location]:
    """Return every known location in catalog order."""
    return list(_LOCATIONS)


def get_location(location_id: str) -> Location:
    """Look up a location by id. Raises NotFoundError for unknown ids."""
    location = _BY_ID.get(location_id)
    if location is None:
        raise NotFoundError(
            f"Unknown location '{location_id}'.",
            code="unknown_location",
            details={"known": sorted(_BY_ID)},
        )
    return location


def is_known_location(location_id: str) -> bool:
    return location_id in _BY_ID
