"""Store singleton and per-location vehicle collections.

The garage, showroom and main inventory collections are JSON arrays under
fixed keys. Other dashboards own their full contents; the workflow engine only
ever patches ``location`` and ``status`` on records that already exist.
"""

from __future__ import annotations

import logging
from typing import Any

from dealer_mcp.config import load_settings
from dealer_mcp.constants import VEHICLE_COLLECTIONS
from dealer_mcp.data.kv import KeyValueStore, SqliteKeyValueStore
from dealer_mcp.errors import ValidationError

logger = logging.getLogger(__name__)

_store: KeyValueStore | None = None


def get_store() -> KeyValueStore:
    """Return the active KeyValueStore singleton, creating + seeding if needed."""
    global _store  # noqa: PLW0603
    if _store is None:
        settings = load_settings()
        store = SqliteKeyValueStore(settings.db_path)
        if settings.seed_demo and not store.keys("collection:"):
            from dealer_mcp.data.seed import seed_demo_data
            seed_demo_data(store)
        _store = store
    return _store


def set_store(store: KeyValueStore | None) -> None:
    """Inject a store instance for testing (mirrors ``set_cip_override``)."""
    global _store  # noqa: PLW0603
    _store = store


def _collection_key(name: str) -> str:
    return f"collection:{name}"


def _require_collection(name: str) -> None:
    if name not in VEHICLE_COLLECTIONS:
        raise ValidationError(
            f"Unknown collection '{name}'. Use one of: {', '.join(VEHICLE_COLLECTIONS)}.",
            code="unknown_collection",
        )


# ── Public helpers ─────────────────────────────────────────────────


def get_collection(name: str, store: KeyValueStore | None = None) -> list[dict[str, Any]]:
    """Return every vehicle record in a collection (empty when unset)."""
    _require_collection(name)
    value = (store or get_store()).get(_collection_key(name), [])
    return value if isinstance(value, list) else []


def set_collection(
    name: str,
    vehicles: list[dict[str, Any]],
    store: KeyValueStore | None = None,
) -> None:
    _require_collection(name)
    (store or get_store()).set(_collection_key(name), list(vehicles))


def upsert_collection_vehicle(
    name: str,
    vehicle: dict[str, Any],
    store: KeyValueStore | None = None,
) -> bool:
    """Insert or replace a record matched by VIN. Returns True when it was new."""
    vin = str(vehicle.get("vin") or "").strip()
    if not vin:
        raise ValidationError("Vehicle record must include a 'vin'.", code="missing_vin")
    target = store or get_store()
    vehicles = get_collection(name, target)
    record = {**vehicle, "vin": vin}
    for i, existing in enumerate(vehicles):
        if existing.get("vin") == vin:
            vehicles[i] = {**existing, **record}
            set_collection(name, vehicles, target)
            return False
    vehicles.append(record)
    set_collection(name, vehicles, target)
    return True


def update_vehicle_position(
    name: str,
    vin: str,
    *,
    location: str,
    status: str,
    store: KeyValueStore | None = None,
) -> bool:
    """Patch location/status on an existing record. Returns False if the VIN is absent."""
    target = store or get_store()
    vehicles = get_collection(name, target)
    for record in vehicles:
        if record.get("vin") == vin:
            record["location"] = location
            record["status"] = status
            set_collection(name, vehicles, target)
            return True
    return False


def find_vehicle(vin: str, store: KeyValueStore | None = None) -> dict[str, Any] | None:
    """Find a VIN across collections, main inventory first."""
    target = store or get_store()
    for name in VEHICLE_COLLECTIONS:
        for record in get_collection(name, target):
            if record.get("vin") == vin:
                return record
    return None
