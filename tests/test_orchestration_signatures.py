"""Signature coverage for orchestration controls on server tool wrappers."""

from __future__ import annotations

import inspect

import pytest

import dealer_mcp.server as server

ORCHESTRATION_PARAMS = {"provider", "scaffold_id", "policy", "context_notes", "raw"}
ORCHESTRATION_EXCEPT_PROVIDER = {"scaffold_id", "policy", "context_notes", "raw"}

CIP_ROUTED_TOOLS = [
    "get_workflow_analytics",
    "get_location_capacity",
    "get_cars_needing_attention",
    "get_readiness_board",
    "get_notifications",
]

NON_CIP_TOOLS = [
    "list_locations",
    "move_car",
    "get_car_workflow",
    "get_movement_history",
    "update_car_priority",
    "search_workflow",
    "acknowledge_notification",
    "get_cost_ledger",
    "upsert_collection_vehicle",
    "get_collection_vehicle",
    "set_llm_provider",
    "get_llm_provider",
]


@pytest.mark.parametrize("tool_name", CIP_ROUTED_TOOLS)
def test_cip_routed_tools_accept_orchestration_params(tool_name: str):
    fn = getattr(server, tool_name)
    params = set(inspect.signature(fn).parameters)
    assert ORCHESTRATION_PARAMS.issubset(params), (
        f"{tool_name} missing orchestration params: "
        f"{sorted(ORCHESTRATION_PARAMS - params)}"
    )


@pytest.mark.parametrize("tool_name", CIP_ROUTED_TOOLS)
def test_cip_routed_tools_are_async(tool_name: str):
    assert inspect.iscoroutinefunction(getattr(server, tool_name))


@pytest.mark.parametrize("tool_name", NON_CIP_TOOLS)
def test_non_cip_tools_do_not_accept_orchestration_params(tool_name: str):
    fn = getattr(server, tool_name)
    params = set(inspect.signature(fn).parameters)
    assert ORCHESTRATION_EXCEPT_PROVIDER.isdisjoint(params), (
        f"{tool_name} unexpectedly accepts orchestration params: "
        f"{sorted(ORCHESTRATION_EXCEPT_PROVIDER & params)}"
    )
    if tool_name != "set_llm_provider":
        assert "provider" not in params, f"{tool_name} should not expose provider override."
