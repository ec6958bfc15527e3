"""DealerOps MCP server: FastMCP entry point for the vehicle workflow engine."""

from __future__ import annotations

import json
import logging
import os
import sys
from pathlib import Path
from typing import Any

from cip_protocol import CIP
from cip_protocol.orchestration.errors import (
    log_and_return_tool_error as _log_and_return_tool_error,
)
from cip_protocol.orchestration.pool import ProviderPool
from cip_protocol.scaffold.loader import load_scaffold_directory
from cip_protocol.scaffold.registry import ScaffoldRegistry
from mcp.server.fastmcp import FastMCP

from dealer_mcp.collaborators.notifications import get_notification_center
from dealer_mcp.config import DEALER_DOMAIN_CONFIG, load_settings
from dealer_mcp.errors import DealerFlowError
from dealer_mcp.monitoring import WorkflowMonitor
from dealer_mcp.tools.analytics import (
    get_location_capacity_impl,
    get_workflow_analytics_impl,
)
from dealer_mcp.tools.attention import (
    get_cars_needing_attention_impl,
    get_readiness_board_impl,
)
from dealer_mcp.tools.collections import (
    get_collection_vehicle_impl,
    upsert_collection_vehicle_impl,
)
from dealer_mcp.tools.costs import get_cost_ledger_impl
from dealer_mcp.tools.notifications import (
    acknowledge_notification_impl,
    get_notifications_impl,
)
from dealer_mcp.tools.workflow import (
    get_car_workflow_impl,
    get_movement_history_impl,
    list_locations_impl,
    move_car_impl,
    search_workflow_impl,
    update_car_priority_impl,
)

# Load .env from project root (no extra dependency)
_ENV_FILE = Path(__file__).resolve().parent.parent / ".env"
if _ENV_FILE.is_file():
    for line in _ENV_FILE.read_text().splitlines():
        line = line.strip()
        if line and not line.startswith("#") and "=" in line:
            k, _, v = line.partition("=")
            os.environ.setdefault(k.strip(), v.strip())

mcp = FastMCP("DealerOps")
logger = logging.getLogger(__name__)

_SCAFFOLD_DIR = str(Path(__file__).parent / "scaffolds")

_pool = ProviderPool(DEALER_DOMAIN_CONFIG, _SCAFFOLD_DIR)

_scaffold_registry_ref: ScaffoldRegistry | None = None


def _get_scaffold_registry() -> ScaffoldRegistry:
    """Lazy scaffold registry accessor for resources/prompts."""
    global _scaffold_registry_ref  # noqa: PLW0603
    if _scaffold_registry_ref is None:
        reg = ScaffoldRegistry()
        load_scaffold_directory(_SCAFFOLD_DIR, reg)
        _scaffold_registry_ref = reg
    return _scaffold_registry_ref


def _compact_scaffold_entry(scaffold: Any) -> dict[str, Any]:
    applicability = scaffold.applicability
    return {
        "id": scaffold.id,
        "display_name": scaffold.display_name,
        "description": scaffold.description,
        "tools": list(applicability.tools or []),
        "intent_signals": list(applicability.intent_signals or []),
        "keywords": list(applicability.keywords or []),
        "tags": list(scaffold.tags or []),
    }


def _build_scaffold_catalog_payload() -> dict[str, Any]:
    scaffolds = sorted(_get_scaffold_registry().all(), key=lambda s: s.id)
    entries = [_compact_scaffold_entry(s) for s in scaffolds]
    return {
        "domain": DEALER_DOMAIN_CONFIG.name,
        "default_scaffold_id": DEALER_DOMAIN_CONFIG.default_scaffold_id,
        "count": len(entries),
        "scaffolds": entries,
    }


def _build_orchestration_entry_payload() -> dict[str, Any]:
    scaffold = _get_scaffold_registry().get("orchestration_entry")
    if scaffold is None:
        return {
            "error": True,
            "message": "orchestration_entry scaffold is not available.",
        }

    return {
        "orchestration_entry": {
            "id": scaffold.id,
            "display_name": scaffold.display_name,
            "description": scaffold.description,
            "reasoning_framework": scaffold.reasoning_framework,
            "domain_knowledge_activation": scaffold.domain_knowledge_activation,
            "guardrails": {
                "disclaimers": scaffold.guardrails.disclaimers,
                "escalation_triggers": scaffold.guardrails.escalation_triggers,
                "prohibited_actions": scaffold.guardrails.prohibited_actions,
            },
            "tags": list(scaffold.tags or []),
        },
        "scaffold_catalog": _build_scaffold_catalog_payload(),
    }


@mcp.resource("dealerops://scaffolds/catalog")
def scaffold_catalog_resource() -> dict[str, Any]:
    """List available scaffold_id values with routing hints for orchestrators."""
    return _build_scaffold_catalog_payload()


@mcp.resource("dealerops://orchestration/entry")
def orchestration_entry_resource() -> dict[str, Any]:
    """Expose orchestration entry guidance plus the scaffold catalog."""
    return _build_orchestration_entry_payload()


@mcp.prompt()
def orchestration_entry_prompt() -> str:
    """Prompt-friendly orchestration briefing with scaffold catalog."""
    payload = _build_orchestration_entry_payload()
    return (
        "Use this orchestration entry and scaffold catalog when selecting "
        "`scaffold_id` values for DealerOps tool calls.\n\n"
        f"{json.dumps(payload, indent=2)}"
    )


def set_cip_override(cip: CIP | None) -> None:
    """Inject a CIP instance (e.g. with MockProvider) for testing."""
    _pool.set_override(cip)


def _prepare_cip_orchestration(
    *,
    tool_name: str,
    provider: str = "",
    scaffold_id: str = "",
    policy: str = "",
    context_notes: str = "",
) -> tuple[CIP, str | None, str | None, str | None]:
    return _pool.prepare_orchestration(
        tool_name=tool_name,
        provider=provider,
        scaffold_id=scaffold_id,
        policy=policy,
        context_notes=context_notes,
    )


# ── Provider tools ──────────────────────────────────────────────────


@mcp.tool()
def set_llm_provider(provider: str, model: str = "") -> str:
    """Set the default LLM provider used for CIP reasoning.

    provider: 'anthropic' or 'openai'
    model: optional model override
    """
    try:
        return _pool.set_provider(provider, model)
    except Exception as exc:
        return _log_and_return_tool_error(
            tool_name="set_llm_provider",
            exc=exc,
            user_message=f"Failed to switch to {provider}: check API key is set.",
        )


@mcp.tool()
def get_llm_provider() -> str:
    """Return current default provider/model and initialized provider pool details."""
    return _pool.get_info()


# ── Workflow tools (no LLM) ─────────────────────────────────────────


@mcp.tool()
def list_locations() -> str:
    """List every location a vehicle can be moved to, with type and capacity."""
    try:
        return list_locations_impl()
    except Exception as exc:
        return _log_and_return_tool_error(
            tool_name="list_locations",
            exc=exc,
            user_message=(
                "I am having trouble loading the location catalog right now. "
                "Please try again in a moment."
            ),
        )


@mcp.tool()
def move_car(
    vehicle_id: str,
    model: str,
    to_location: str,
    to_status: str,
    reason: str,
    moved_by: str,
    from_location: str = "",
    from_status: str = "",
    notes: str = "",
    parts_used: str = "",
    tools_used: str = "",
    assigned_to: str = "",
) -> str:
    """Move a vehicle to a new location/status and record the movement.

    reason: one of arrival, pdi_start, pdi_complete, stage_complete,
    repair_required, repair_complete, parts_arrived, showroom_display,
    customer_reservation, sale, delivery, relocation, other.
    parts_used / tools_used: comma-separated, used for cost attribution.
    """
    try:
        return move_car_impl(
            vehicle_id=vehicle_id,
            model=model,
            from_location=from_location,
            to_location=to_location,
            from_status=from_status,
            to_status=to_status,
            reason=reason,
            moved_by=moved_by,
            notes=notes,
            parts_used=parts_used,
            tools_used=tools_used,
            assigned_to=assigned_to,
        )
    except (ValueError, DealerFlowError) as exc:
        return str(exc)
    except Exception as exc:
        return _log_and_return_tool_error(
            tool_name="move_car",
            exc=exc,
            user_message=(
                "I am having trouble recording that move right now. "
                "Please try again in a moment."
            ),
        )


@mcp.tool()
def get_car_workflow(vehicle_id: str, include_history: bool = False) -> str:
    """Get a vehicle's current workflow entry, optionally with its full history."""
    try:
        return get_car_workflow_impl(vehicle_id=vehicle_id, include_history=include_history)
    except Exception as exc:
        return _log_and_return_tool_error(
            tool_name="get_car_workflow",
            exc=exc,
            user_message=(
                "I am having trouble loading that workflow entry right now. "
                "Please try again in a moment."
            ),
        )


@mcp.tool()
def get_movement_history(vehicle_id: str, cursor: int = 0, limit: int = 50) -> str:
    """Page through a vehicle's movement history. Pass next_cursor to continue."""
    try:
        return get_movement_history_impl(vehicle_id=vehicle_id, cursor=cursor, limit=limit)
    except Exception as exc:
        return _log_and_return_tool_error(
            tool_name="get_movement_history",
            exc=exc,
            user_message=(
                "I am having trouble loading movement history right now. "
                "Please try again in a moment."
            ),
        )


@mcp.tool()
def update_car_priority(vehicle_id: str, priority: str) -> str:
    """Set a tracked vehicle's priority to low, medium or high."""
    try:
        return update_car_priority_impl(vehicle_id=vehicle_id, priority=priority)
    except Exception as exc:
        return _log_and_return_tool_error(
            tool_name="update_car_priority",
            exc=exc,
            user_message=(
                "I am having trouble updating that priority right now. "
                "Please try again in a moment."
            ),
        )


@mcp.tool()
def search_workflow(query: str = "", limit: int = 50) -> str:
    """Search workflow entries by VIN, model, location, status or assignee."""
    try:
        return search_workflow_impl(query=query, limit=limit)
    except Exception as exc:
        return _log_and_return_tool_error(
            tool_name="search_workflow",
            exc=exc,
            user_message=(
                "I am having trouble searching the workflow right now. "
                "Please try again in a moment."
            ),
        )


# ── Reporting tools (CIP-routed) ────────────────────────────────────


@mcp.tool()
async def get_workflow_analytics(
    provider: str = "",
    scaffold_id: str = "",
    policy: str = "",
    context_notes: str = "",
    raw: bool = False,
) -> str:
    """Stage distribution, average time in stage, bottlenecks and attention count."""
    try:
        cip, resolved_scaffold_id, resolved_policy, resolved_context_notes = (
            _prepare_cip_orchestration(
                tool_name="get_workflow_analytics",
                provider=provider,
                scaffold_id=scaffold_id,
                policy=policy,
                context_notes=context_notes,
            )
        )
        return await get_workflow_analytics_impl(
            cip,
            scaffold_id=resolved_scaffold_id,
            policy=resolved_policy,
            context_notes=resolved_context_notes,
            raw=raw,
        )
    except (ValueError, DealerFlowError) as exc:
        return str(exc)
    except Exception as exc:
        return _log_and_return_tool_error(
            tool_name="get_workflow_analytics",
            exc=exc,
            user_message=(
                "I am having trouble computing workflow analytics right now. "
                "Please try again in a moment."
            ),
        )


@mcp.tool()
async def get_location_capacity(
    location_type: str = "",
    provider: str = "",
    scaffold_id: str = "",
    policy: str = "",
    context_notes: str = "",
    raw: bool = False,
) -> str:
    """Current occupancy versus capacity for each location."""
    try:
        cip, resolved_scaffold_id, resolved_policy, resolved_context_notes = (
            _prepare_cip_orchestration(
                tool_name="get_location_capacity",
                provider=provider,
                scaffold_id=scaffold_id,
                policy=policy,
                context_notes=context_notes,
            )
        )
        return await get_location_capacity_impl(
            cip,
            location_type=location_type.strip(),
            scaffold_id=resolved_scaffold_id,
            policy=resolved_policy,
            context_notes=resolved_context_notes,
            raw=raw,
        )
    except (ValueError, DealerFlowError) as exc:
        return str(exc)
    except Exception as exc:
        return _log_and_return_tool_error(
            tool_name="get_location_capacity",
            exc=exc,
            user_message=(
                "I am having trouble checking location capacity right now. "
                "Please try again in a moment."
            ),
        )


@mcp.tool()
async def get_cars_needing_attention(
    limit: int = 20,
    min_priority: str = "",
    source: str = "",
    provider: str = "",
    scaffold_id: str = "",
    policy: str = "",
    context_notes: str = "",
    raw: bool = False,
) -> str:
    """Ranked list of vehicles that need action across garage, showroom and inventory.

    source: optional filter (garage, showroom, inventory).
    """
    try:
        cip, resolved_scaffold_id, resolved_policy, resolved_context_notes = (
            _prepare_cip_orchestration(
                tool_name="get_cars_needing_attention",
                provider=provider,
                scaffold_id=scaffold_id,
                policy=policy,
                context_notes=context_notes,
            )
        )
        return await get_cars_needing_attention_impl(
            cip,
            limit=limit,
            min_priority=min_priority,
            source=source.strip(),
            scaffold_id=resolved_scaffold_id,
            policy=resolved_policy,
            context_notes=resolved_context_notes,
            raw=raw,
        )
    except (ValueError, DealerFlowError) as exc:
        return str(exc)
    except Exception as exc:
        return _log_and_return_tool_error(
            tool_name="get_cars_needing_attention",
            exc=exc,
            user_message=(
                "I am having trouble building the attention list right now. "
                "Please try again in a moment."
            ),
        )


@mcp.tool()
async def get_readiness_board(
    provider: str = "",
    scaffold_id: str = "",
    policy: str = "",
    context_notes: str = "",
    raw: bool = False,
) -> str:
    """Delivery readiness scores, next actions and delivery countdown."""
    try:
        cip, resolved_scaffold_id, resolved_policy, resolved_context_notes = (
            _prepare_cip_orchestration(
                tool_name="get_readiness_board",
                provider=provider,
                scaffold_id=scaffold_id,
                policy=policy,
                context_notes=context_notes,
            )
        )
        return await get_readiness_board_impl(
            cip,
            scaffold_id=resolved_scaffold_id,
            policy=resolved_policy,
            context_notes=resolved_context_notes,
            raw=raw,
        )
    except (ValueError, DealerFlowError) as exc:
        return str(exc)
    except Exception as exc:
        return _log_and_return_tool_error(
            tool_name="get_readiness_board",
            exc=exc,
            user_message=(
                "I am having trouble building the readiness board right now. "
                "Please try again in a moment."
            ),
        )


@mcp.tool()
async def get_notifications(
    limit: int = 20,
    include_acknowledged: bool = False,
    category: str = "",
    provider: str = "",
    scaffold_id: str = "",
    policy: str = "",
    context_notes: str = "",
    raw: bool = False,
) -> str:
    """Operational alerts raised by the workflow monitor, highest priority first."""
    try:
        cip, resolved_scaffold_id, resolved_policy, resolved_context_notes = (
            _prepare_cip_orchestration(
                tool_name="get_notifications",
                provider=provider,
                scaffold_id=scaffold_id,
                policy=policy,
                context_notes=context_notes,
            )
        )
        return await get_notifications_impl(
            cip,
            get_notification_center(),
            limit=limit,
            include_acknowledged=include_acknowledged,
            category=category.strip(),
            scaffold_id=resolved_scaffold_id,
            policy=resolved_policy,
            context_notes=resolved_context_notes,
            raw=raw,
        )
    except (ValueError, DealerFlowError) as exc:
        return str(exc)
    except Exception as exc:
        return _log_and_return_tool_error(
            tool_name="get_notifications",
            exc=exc,
            user_message=(
                "I am having trouble retrieving notifications right now. "
                "Please try again in a moment."
            ),
        )


# ── Collaborator and collection tools (no LLM) ──────────────────────


@mcp.tool()
def acknowledge_notification(notification_id: str) -> str:
    """Mark an operational alert as acknowledged."""
    try:
        return acknowledge_notification_impl(
            get_notification_center(), notification_id=notification_id
        )
    except Exception as exc:
        return _log_and_return_tool_error(
            tool_name="acknowledge_notification",
            exc=exc,
            user_message=(
                "I am having trouble acknowledging that notification right now. "
                "Please try again in a moment."
            ),
        )


@mcp.tool()
def get_cost_ledger(vehicle_id: str = "", limit: int = 50) -> str:
    """Parts and tool costs attributed to status changes, newest first."""
    try:
        return get_cost_ledger_impl(vehicle_id=vehicle_id, limit=limit)
    except Exception as exc:
        return _log_and_return_tool_error(
            tool_name="get_cost_ledger",
            exc=exc,
            user_message=(
                "I am having trouble loading the cost ledger right now. "
                "Please try again in a moment."
            ),
        )


@mcp.tool()
def upsert_collection_vehicle(collection: str, vehicle: dict) -> str:
    """Add or update a vehicle record in garage_inventory, showroom_inventory or
    car_inventory. Must include a 'vin' field."""
    try:
        return upsert_collection_vehicle_impl(collection, vehicle)
    except Exception as exc:
        return _log_and_return_tool_error(
            tool_name="upsert_collection_vehicle",
            exc=exc,
            user_message=(
                "I am having trouble saving that vehicle right now. "
                "Please try again in a moment."
            ),
        )


@mcp.tool()
def get_collection_vehicle(vin: str) -> str:
    """Look up a vehicle record by VIN across the per-location collections."""
    try:
        return get_collection_vehicle_impl(vin)
    except Exception as exc:
        return _log_and_return_tool_error(
            tool_name="get_collection_vehicle",
            exc=exc,
            user_message=(
                "I am having trouble looking up that vehicle right now. "
                "Please try again in a moment."
            ),
        )


def main() -> None:
    """Run the MCP server over stdio, with the workflow monitor alongside."""
    settings = load_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    monitor = WorkflowMonitor(settings.monitor_interval_seconds)
    monitor.start()
    try:
        mcp.run()
    finally:
        monitor.stop()


if __name__ == "__main__":
    main()
