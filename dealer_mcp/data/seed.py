"""Demo collections for a fresh store.

Dates are relative to the seeding moment so attention ages stay stable.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from dealer_mcp.constants import (
    GARAGE_COLLECTION,
    MAIN_COLLECTION,
    SHOWROOM_COLLECTION,
)
from dealer_mcp.data.kv import KeyValueStore


def _shift(now: datetime, days: float) -> str:
    return (now + timedelta(days=days)).isoformat()


def build_demo_collections(now: datetime | None = None) -> dict[str, list[dict[str, Any]]]:
    """Return demo records keyed by collection name."""
    now = now or datetime.now(timezone.utc)
    main = [
        {
            "vin": "LDP95H961PE000001",
            "year": 2024,
            "make": "Voyah",
            "model": "Free",
            "category": "EV",
            "status": "in_stock",
            "location": "showroom_floor1",
            "battery_percentage": 92,
            "pdi_completed": True,
            "customs": "paid",
            "next_service_date": _shift(now, 60),
        },
        {
            "vin": "LDP95H961PE000002",
            "year": 2024,
            "make": "Voyah",
            "model": "Dreamer",
            "category": "REV",
            "status": "reserved",
            "location": "inventory_garage",
            "battery_percentage": 65,
            "pdi_completed": False,
            "customs": "not_paid",
            "customer_name": "Rania Haddad",
            "delivery_date": _shift(now, 5.5),
            "next_service_date": _shift(now, -20),
        },
        {
            "vin": "LDP95H961PE000003",
            "year": 2023,
            "make": "Voyah",
            "model": "Passion",
            "category": "EV",
            "status": "in_repair",
            "location": "garage_repair",
            "battery_percentage": 40,
            "pdi_completed": True,
            "customs": "paid",
            "garage_status": "awaiting_parts",
            "customer_name": "Omar Khalil",
            "delivery_date": _shift(now, 1.5),
            "next_service_date": _shift(now, -40),
        },
        {
            "vin": "LDP95H961PE000004",
            "year": 2024,
            "make": "Voyah",
            "model": "Courage",
            "category": "REV",
            "status": "in_stock",
            "location": "inventory_floor2",
            "battery_percentage": 85,
            "pdi_completed": True,
            "customs": "paid",
        },
    ]
    garage = [
        {
            "vin": "LDP95H961PE000003",
            "year": 2023,
            "make": "Voyah",
            "model": "Passion",
            "status": "waiting_parts",
            "location": "garage_repair",
            "battery_level": 40,
            "last_update": _shift(now, -9),
            "arrival_date": _shift(now, -12),
            "parts_needed": ["brake pads", "rear rotor"],
            "customer_priority": "normal",
            "estimated_repair_hours": 6,
            "assigned_mechanic": "Ahmad",
        },
        {
            "vin": "LDP95H961PE000005",
            "year": 2024,
            "make": "Voyah",
            "model": "Free",
            "status": "needs_repair",
            "location": "garage_repair",
            "battery_level": 15,
            "last_update": _shift(now, -1),
            "repair_notes": "Charging port fault",
            "assigned_mechanic": "Sara",
        },
        {
            "vin": "LDP95H961PE000006",
            "year": 2023,
            "make": "Voyah",
            "model": "Dreamer",
            "status": "ready",
            "location": "pdi_bay",
            "battery_level": 90,
            "last_update": _shift(now, -2),
        },
    ]
    showroom = [
        {
            "vin": "LDP95H961PE000001",
            "year": 2024,
            "make": "Voyah",
            "model": "Free",
            "status": "on_display",
            "location": "showroom_floor1",
            "pdi_status": "complete",
            "arrival_date": _shift(now, -10),
        },
        {
            "vin": "LDP95H961PE000007",
            "year": 2024,
            "make": "Voyah",
            "model": "Dreamer",
            "status": "on_display",
            "location": "showroom_floor2",
            "pdi_status": "pending",
            "pdi_notes": "Awaiting software update",
            "arrival_date": _shift(now, -5),
        },
    ]
    return {
        MAIN_COLLECTION: main,
        GARAGE_COLLECTION: garage,
        SHOWROOM_COLLECTION: showroom,
    }


DEMO_VINS: tuple[str, ...] = tuple(f"LDP95H961PE00000{i}" for i in range(1, 8))


def seed_demo_data(store: KeyValueStore, now: datetime | None = None) -> int:
    """Write demo collections into ``store``. Returns the number of records written."""
    collections = build_demo_collections(now)
    count = 0
    with store.transaction():
        for name, vehicles in collections.items():
            store.set(f"collection:{name}", vehicles)
            count += len(vehicles)
    return count
