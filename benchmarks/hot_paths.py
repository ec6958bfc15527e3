#!/usr/bin/env python3
"""Performance benchmark for DealerOps movement and attention hot paths."""

from __future__ import annotations

import argparse
import asyncio
import os
import tempfile
import time
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from dealer_mcp.attention.engine import get_cars_needing_attention
from dealer_mcp.attention.readiness import get_readiness_board
from dealer_mcp.constants import GARAGE_COLLECTION, MAIN_COLLECTION
from dealer_mcp.data.inventory import set_collection, set_store
from dealer_mcp.data.kv import SqliteKeyValueStore
from dealer_mcp.tools.attention import get_cars_needing_attention_impl
from dealer_mcp.workflow import events
from dealer_mcp.workflow.analytics import get_workflow_analytics
from dealer_mcp.workflow.engine import move

ROUTE = [
    ("new_arrivals", "arrived", "arrival"),
    ("pdi_bay", "pdi_in_progress", "pdi_start"),
    ("inventory_garage", "in_stock", "pdi_complete"),
    ("showroom_floor1", "on_display", "showroom_display"),
    ("delivery_lot", "awaiting_delivery", "customer_reservation"),
]
MODELS = ["BYD Seal", "BYD Atto 3", "Zeekr 001", "Li L9", "Voyah Free"]


def make_vin(i: int) -> str:
    return f"BMK{i:014d}"


def make_record(i: int, now: datetime) -> dict:
    return {
        "vin": make_vin(i),
        "make": MODELS[i % 5].split()[0],
        "model": MODELS[i % 5].split(" ", 1)[1],
        "year": 2023 + (i % 3),
        "category": "EV" if i % 2 else "REV",
        "status": "needs_repair" if i % 7 == 0 else "in_stock",
        "battery_level": 15 + (i % 85),
        "battery_percentage": 15 + (i % 85),
        "pdi_completed": i % 3 != 0,
        "customs": "paid" if i % 4 else "not_paid",
        "last_update": (now - timedelta(days=i % 12)).isoformat(),
        "next_service_date": (now + timedelta(days=30 - i % 60)).isoformat(),
        "delivery_date": (now + timedelta(days=i % 20)).isoformat(),
    }


class NullCIP:
    """Minimal CIP mock that accepts all keyword args from orchestration."""

    async def run(self, user_input, **kwargs):
        return SimpleNamespace(response=SimpleNamespace(content="ok"))


def _make_store(vehicles: int, *, db_path: str = ":memory:") -> SqliteKeyValueStore:
    now = datetime.now(timezone.utc)
    store = SqliteKeyValueStore(db_path)
    records = [make_record(i, now) for i in range(vehicles)]
    with store.transaction():
        set_collection(MAIN_COLLECTION, records, store)
        set_collection(GARAGE_COLLECTION, records[: vehicles // 3], store)
    return store


def _walk(store: SqliteKeyValueStore, vehicles: int) -> int:
    moves = 0
    for i in range(vehicles):
        previous_location, previous_status = "", ""
        for location, status, reason in ROUTE:
            move(
                make_vin(i),
                MODELS[i % 5],
                previous_location,
                location,
                previous_status,
                status,
                reason,
                "bench",
                store=store,
            )
            previous_location, previous_status = location, status
            moves += 1
    return moves


# ── Benchmarks ────────────────────────────────────────────────────────


def bench_disk_moves(vehicles: int) -> tuple[float, float]:
    with tempfile.NamedTemporaryFile(prefix="dealerops-bench-", suffix=".db", delete=False) as tmp:
        db_path = tmp.name

    try:
        store = _make_store(vehicles, db_path=db_path)
        start = time.perf_counter()
        moves = _walk(store, vehicles)
        elapsed = time.perf_counter() - start
        store.close()
    finally:
        for suffix in ("", "-wal", "-shm"):
            try:
                os.remove(db_path + suffix)
            except FileNotFoundError:
                pass

    return elapsed, moves / max(elapsed, 1e-9)


def bench_attention_scan(vehicles: int, repeats: int) -> tuple[float, int]:
    store = _make_store(vehicles)
    items = get_cars_needing_attention(store)
    start = time.perf_counter()
    for _ in range(repeats):
        get_cars_needing_attention(store)
    elapsed = time.perf_counter() - start
    return elapsed / max(repeats, 1) * 1000, len(items)


def bench_readiness(vehicles: int, repeats: int) -> float:
    store = _make_store(vehicles)
    start = time.perf_counter()
    for _ in range(repeats):
        get_readiness_board(store)
    return (time.perf_counter() - start) / max(repeats, 1) * 1000


def bench_analytics(vehicles: int, repeats: int) -> tuple[float, float]:
    """Cold (rebuild from ledger) versus warm (event-maintained) analytics."""
    store = _make_store(vehicles)
    _walk(store, vehicles)

    start = time.perf_counter()
    get_workflow_analytics(store)
    cold = time.perf_counter() - start

    start = time.perf_counter()
    for _ in range(repeats):
        get_workflow_analytics(store)
    warm = (time.perf_counter() - start) / max(repeats, 1)
    return cold * 1000, warm * 1000


async def bench_attention_tool(vehicles: int, repeats: int) -> float:
    set_store(_make_store(vehicles))
    cip = NullCIP()
    await get_cars_needing_attention_impl(cip, raw=True)

    start = time.perf_counter()
    for _ in range(repeats):
        await get_cars_needing_attention_impl(cip, raw=True)
    elapsed = time.perf_counter() - start
    set_store(None)
    return elapsed / max(repeats, 1) * 1000


# ── Main ──────────────────────────────────────────────────────────────


async def main() -> None:
    parser = argparse.ArgumentParser(description="Benchmark DealerOps hot paths.")
    parser.add_argument("--vehicles", type=int, default=2_000)
    parser.add_argument("--repeats", type=int, default=20)
    args = parser.parse_args()

    print("dealerops_hot_path_benchmark")
    print(f"vehicles={args.vehicles}")
    print(f"repeats={args.repeats}")
    print()

    disk_elapsed, disk_mps = bench_disk_moves(args.vehicles // 4)
    print(f"disk_moves_seconds={disk_elapsed:.6f}")
    print(f"disk_moves_per_sec={disk_mps:.0f}")

    scan_ms, item_count = bench_attention_scan(args.vehicles, args.repeats)
    print(f"attention_scan_ms={scan_ms:.3f}")
    print(f"attention_items={item_count}")

    print(f"readiness_board_ms={bench_readiness(args.vehicles, args.repeats):.3f}")

    cold_ms, warm_ms = bench_analytics(args.vehicles // 4, args.repeats)
    print(f"analytics_cold_ms={cold_ms:.3f}")
    print(f"analytics_warm_ms={warm_ms:.3f}")

    tool_ms = await bench_attention_tool(args.vehicles, args.repeats)
    print(f"attention_tool_raw_ms={tool_ms:.3f}")

    events.clear_listeners()


if __name__ == "__main__":
    asyncio.run(main())
