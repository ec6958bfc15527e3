"""Per-location vehicle collection tool implementations (pure CRUD, no CIP calls)."""

from __future__ import annotations

import re
from typing import Any

from dealer_mcp.constants import VEHICLE_COLLECTIONS
from dealer_mcp.data.inventory import find_vehicle, upsert_collection_vehicle
from dealer_mcp.data.locations import is_known_location
from dealer_mcp.errors import ValidationError
from dealer_mcp.tools.orchestration import dump_json

_VIN_PATTERN = re.compile(r"^[A-HJ-NPR-Z0-9]{17}$")
_BATTERY_FIELDS = ("battery_level", "battery_percentage")


def _vehicle_warnings(vehicle: dict[str, Any]) -> list[str]:
    warnings: list[str] = []
    vin = str(vehicle.get("vin", "")).strip().upper()
    if vin and not _VIN_PATTERN.fullmatch(vin):
        warnings.append(f"VIN '{vin}' is not a 17-character VIN")
    location = vehicle.get("location")
    if location and not is_known_location(str(location)):
        warnings.append(f"location '{location}' is not in the location catalog")
    for field in _BATTERY_FIELDS:
        if field not in vehicle:
            continue
        try:
            level = float(vehicle[field])
        except (TypeError, ValueError):
            warnings.append(f"{field} is not numeric")
            continue
        if not 0 <= level <= 100:
            warnings.append(f"{field} {level:g} is outside 0-100")
    return warnings


def upsert_collection_vehicle_impl(collection: str, vehicle: Any) -> str:
    """Insert or merge a vehicle record into a per-location collection."""
    if collection not in VEHICLE_COLLECTIONS:
        return (
            f"Error: unknown collection '{collection}'. "
            f"Use one of: {', '.join(VEHICLE_COLLECTIONS)}."
        )
    if not isinstance(vehicle, dict):
        return "Error: vehicle payload must be a dict."

    try:
        created = upsert_collection_vehicle(collection, vehicle)
    except ValidationError as exc:
        return f"Error: {exc.message}"

    vin = str(vehicle.get("vin")).strip()
    verb = "added to" if created else "updated in"
    warnings = _vehicle_warnings(vehicle)
    if warnings:
        return f"Vehicle {vin} {verb} {collection} with {len(warnings)} warning(s): {'; '.join(warnings)}"
    return f"Vehicle {vin} {verb} {collection}."


def get_collection_vehicle_impl(vin: str) -> str:
    """Look a VIN up across collections, main inventory first."""
    if not vin or not vin.strip():
        return "Error: vin is required."
    record = find_vehicle(vin.strip())
    if record is None:
        return f"Vehicle {vin} not found in any collection."
    return dump_json(record)
