"""Cross-vehicle movement ledger.

Written alongside each vehicle's own history, never derived from it.
"""

from __future__ import annotations

from dealer_mcp.data.kv import KeyValueStore
from dealer_mcp.workflow.models import MovementRecord

LEDGER_STREAM = "movement_ledger"


def record_movement(store: KeyValueStore, record: MovementRecord) -> int:
    """Append one record to the ledger. Returns its ledger sequence number."""
    return store.append(LEDGER_STREAM, record.to_dict())


def read_ledger(
    store: KeyValueStore,
    *,
    vehicle_id: str | None = None,
    cursor: int = 0,
    limit: int | None = None,
) -> list[MovementRecord]:
    """Return ledger records in append order, optionally for one vehicle."""
    rows = store.read_stream(LEDGER_STREAM, cursor=cursor, limit=limit)
    records = [MovementRecord.from_dict(payload) for _, payload in rows]
    if vehicle_id:
        records = [r for r in records if r.vehicle_id == vehicle_id]
    return records


def ledger_size(store: KeyValueStore) -> int:
    return store.stream_length(LEDGER_STREAM)
