"""Cost attribution for status changes.

The workflow engine hands a status-change payload to whichever
``CostAttribution`` is installed. The default prices parts and tools by
keyword and appends the result to the ``cost_ledger`` stream.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Protocol, runtime_checkable

from dealer_mcp.data.inventory import get_store
from dealer_mcp.data.kv import KeyValueStore
from dealer_mcp.errors import ValidationError

logger = logging.getLogger(__name__)

COST_LEDGER_STREAM = "cost_ledger"

# First keyword contained in the (lower-cased) item name wins.
PART_PRICES: tuple[tuple[str, float], ...] = (
    ("engine", 500.0),
    ("transmission", 300.0),
    ("brake", 150.0),
    ("tire", 200.0),
    ("battery", 120.0),
    ("filter", 25.0),
    ("oil", 50.0),
)
DEFAULT_PART_PRICE = 75.0

TOOL_PRICES: tuple[tuple[str, float], ...] = (
    ("diagnostic", 200.0),
    ("lift", 150.0),
    ("wrench", 50.0),
    ("screwdriver", 20.0),
    ("multimeter", 100.0),
)
DEFAULT_TOOL_PRICE = 30.0


def price_item(name: str, table: tuple[tuple[str, float], ...], default: float) -> float:
    lowered = name.lower()
    for keyword, price in table:
        if keyword in lowered:
            return price
    return default


@runtime_checkable
class CostAttribution(Protocol):
    """Receives status-change payloads from the movement engine."""

    def record_status_change(self, payload: dict[str, Any]) -> dict[str, Any]: ...


class LedgerCostAttribution:
    """Keyword-priced cost ledger persisted in the key-value store."""

    def __init__(self, store: KeyValueStore | None = None) -> None:
        self._store = store

    @property
    def store(self) -> KeyValueStore:
        return self._store if self._store is not None else get_store()

    def record_status_change(
        self, payload: dict[str, Any], *, store: KeyValueStore | None = None
    ) -> dict[str, Any]:
        """Price one status change and append it to the ledger.

        ``store`` overrides the ledger's own store for this entry so a move
        applied to an injected store keeps its cost row alongside it.
        """
        vehicle_id = str(payload.get("vehicle_id") or "").strip()
        if not vehicle_id:
            raise ValidationError("Cost payload requires vehicle_id.", code="missing_vehicle_id")

        parts = [str(p).strip() for p in payload.get("parts_used") or [] if str(p).strip()]
        tools = [str(t).strip() for t in payload.get("tools_used") or [] if str(t).strip()]
        parts_cost = sum(price_item(p, PART_PRICES, DEFAULT_PART_PRICE) for p in parts)
        tools_cost = sum(price_item(t, TOOL_PRICES, DEFAULT_TOOL_PRICE) for t in tools)

        entry: dict[str, Any] = {
            "id": f"cost-{uuid.uuid4().hex[:12]}",
            "created_at": datetime.now(timezone.utc).isoformat(),
            "vehicle_id": vehicle_id,
            "model": payload.get("model", ""),
            "from_status": payload.get("from_status", ""),
            "to_status": payload.get("to_status", ""),
            "actor": payload.get("actor", ""),
            "notes": payload.get("notes"),
            "parts_used": parts,
            "tools_used": tools,
            "parts_cost": round(parts_cost, 2),
            "tools_cost": round(tools_cost, 2),
            "total_cost": round(parts_cost + tools_cost, 2),
        }
        (store or self.store).append(COST_LEDGER_STREAM, entry)
        logger.debug("Cost entry %s recorded for %s", entry["id"], vehicle_id)
        return entry

    def get_ledger(self, vehicle_id: str | None = None) -> list[dict[str, Any]]:
        rows = [payload for _, payload in self.store.read_stream(COST_LEDGER_STREAM)]
        if vehicle_id:
            rows = [r for r in rows if r.get("vehicle_id") == vehicle_id]
        return rows

    def summarize(self, vehicle_id: str | None = None) -> dict[str, Any]:
        rows = self.get_ledger(vehicle_id)
        return {
            "entries": len(rows),
            "parts_cost": round(sum(r.get("parts_cost", 0.0) for r in rows), 2),
            "tools_cost": round(sum(r.get("tools_cost", 0.0) for r in rows), 2),
            "total_cost": round(sum(r.get("total_cost", 0.0) for r in rows), 2),
        }


_cost_attribution: CostAttribution | None = None


def get_cost_attribution() -> CostAttribution:
    global _cost_attribution  # noqa: PLW0603
    if _cost_attribution is None:
        _cost_attribution = LedgerCostAttribution()
    return _cost_attribution


def set_cost_attribution(collaborator: CostAttribution | None) -> None:
    """Swap the cost collaborator (tests, alternative pricing backends)."""
    global _cost_attribution  # noqa: PLW0603
    _cost_attribution = collaborator
