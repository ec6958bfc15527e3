"""Server integration tests: MCP tool wrappers, provider pool and guardrails."""

from __future__ import annotations

import json

from cip_protocol import CIP
from cip_protocol.llm.providers.mock import MockProvider

import dealer_mcp.server as server_mod
from dealer_mcp.collaborators.notifications import get_notification_center
from dealer_mcp.server import (
    acknowledge_notification,
    get_car_workflow,
    get_cars_needing_attention,
    get_collection_vehicle,
    get_cost_ledger,
    get_llm_provider,
    get_location_capacity,
    get_movement_history,
    get_notifications,
    get_readiness_board,
    get_workflow_analytics,
    list_locations,
    move_car,
    search_workflow,
    set_cip_override,
    set_llm_provider,
    update_car_priority,
    upsert_collection_vehicle,
)


def _move(vehicle_id: str = "VIN-S1") -> str:
    return move_car(
        vehicle_id=vehicle_id,
        model="Voyah Free",
        to_location="new_arrivals",
        to_status="pending",
        reason="arrival",
        moved_by="Yard",
    )


# ── MCP tool wrapper tests ──────────────────────────────────────


class TestMCPToolWrappers:
    """Verify that MCP-registered functions return strings and work end-to-end."""

    def test_workflow_tools_round_trip(self):
        assert _move().startswith("Vehicle VIN-S1 moved to new_arrivals")
        assert json.loads(get_car_workflow(vehicle_id="VIN-S1"))["workflow_stage"] == "arrival"
        assert json.loads(get_movement_history(vehicle_id="VIN-S1"))["total"] == 1
        assert "set to low" in update_car_priority(vehicle_id="VIN-S1", priority="low")
        assert json.loads(search_workflow(query="VIN-S1"))["count"] == 1

    def test_list_locations_returns_string(self):
        assert isinstance(list_locations(), str)

    def test_move_rejection_is_a_message(self):
        result = move_car(
            vehicle_id="VIN-S1", model="Voyah Free", to_location="new_arrivals",
            to_status="pending", reason="arrival", moved_by="",
        )
        assert result.startswith("Move rejected: Missing required field(s): moved_by")

    async def test_get_workflow_analytics_returns_string(self):
        result = await get_workflow_analytics()
        assert isinstance(result, str)
        assert len(result) > 0

    async def test_get_location_capacity_returns_string(self):
        assert isinstance(await get_location_capacity(location_type="garage"), str)

    async def test_get_cars_needing_attention_returns_string(self):
        assert isinstance(await get_cars_needing_attention(min_priority="high"), str)

    async def test_get_readiness_board_returns_string(self):
        assert isinstance(await get_readiness_board(), str)

    async def test_notifications_round_trip(self):
        notification = get_notification_center().publish(
            title="Bay full", description="", category="capacity", severity="high"
        )
        raw = json.loads(await get_notifications(raw=True))
        assert raw["data"]["notification_count"] == 1
        assert "acknowledged" in acknowledge_notification(notification_id=notification["id"])
        raw = json.loads(await get_notifications(raw=True))
        assert raw["data"]["notification_count"] == 0

    def test_collection_tools(self):
        result = upsert_collection_vehicle(
            collection="showroom_inventory",
            vehicle={"vin": "LDP95H961PE000042", "pdi_status": "pending"},
        )
        assert result.startswith("Vehicle LDP95H961PE000042 added to showroom_inventory")
        record = json.loads(get_collection_vehicle(vin="LDP95H961PE000042"))
        assert record["pdi_status"] == "pending"

    def test_cost_ledger_returns_json(self):
        _move()
        payload = json.loads(get_cost_ledger(vehicle_id="VIN-S1"))
        assert payload["summary"]["entries"] == 1

    async def test_attention_wrapper_sanitizes_internal_errors(self, monkeypatch):
        async def _raise(*_args, **_kwargs):
            raise RuntimeError("simulated-failure")

        monkeypatch.setattr("dealer_mcp.server.get_cars_needing_attention_impl", _raise)
        result = await get_cars_needing_attention()
        assert "having trouble" in result.lower()
        assert "simulated-failure" not in result.lower()

    def test_move_wrapper_sanitizes_internal_errors(self, monkeypatch):
        def _raise(**_kwargs):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr("dealer_mcp.server.move_car_impl", _raise)
        result = _move()
        assert "having trouble recording that move" in result.lower()
        assert "disk on fire" not in result

    async def test_analytics_wrapper_accepts_orchestration_params(self):
        result = await get_workflow_analytics(
            provider="anthropic",
            scaffold_id="workflow_analytics",
            policy="compact mode",
            context_notes="Manager wants a two-line answer.",
            raw=False,
        )
        assert isinstance(result, str)
        assert len(result) > 0

    async def test_invalid_scaffold_id_fails_fast(self, mock_provider: MockProvider):
        result = await get_readiness_board(scaffold_id="missing_scaffold")
        assert "unknown scaffold_id" in result.lower()
        assert "missing_scaffold" in result
        assert mock_provider.call_count == 0

    async def test_provider_override_is_forwarded(self, monkeypatch, mock_cip: CIP):
        captured: dict[str, str] = {}

        def _fake_prepare_cip_orchestration(**kwargs):
            captured["provider"] = kwargs["provider"]
            captured["tool_name"] = kwargs["tool_name"]
            return mock_cip, None, None, None

        monkeypatch.setattr(
            server_mod,
            "_prepare_cip_orchestration",
            _fake_prepare_cip_orchestration,
        )
        await get_location_capacity(provider="openai")
        assert captured == {"provider": "openai", "tool_name": "get_location_capacity"}


# ── Provider pool ───────────────────────────────────────────────


def _reset_provider_state() -> None:
    pool = server_mod._pool
    pool._pool.clear()
    pool._provider_models.clear()
    pool._default_provider = ""
    pool.set_override(None)


class TestProviderPool:
    def test_provider_pool_builds_lazily_and_caches(self, monkeypatch):
        _reset_provider_state()
        monkeypatch.delenv("CIP_LLM_PROVIDER", raising=False)
        monkeypatch.delenv("CIP_LLM_MODEL", raising=False)
        builds: list[tuple[str, str]] = []
        pool = server_mod._pool

        def _fake_build(provider: str, model: str = "") -> object:
            builds.append((provider, model))
            return {"provider": provider, "model": model}

        monkeypatch.setattr(pool, "_build", _fake_build)
        anth_1 = pool.get("anthropic")
        anth_2 = pool.get("anthropic")
        openai_1 = pool.get("openai")

        assert anth_1 is anth_2
        assert anth_1 is not openai_1
        assert builds == [("anthropic", ""), ("openai", "")]

    def test_set_cip_override_still_wins(self, mock_cip: CIP):
        _reset_provider_state()
        set_cip_override(mock_cip)
        assert server_mod._pool.get("anthropic") is mock_cip

    def test_set_llm_provider_persists_model(self, monkeypatch):
        _reset_provider_state()
        monkeypatch.delenv("CIP_LLM_PROVIDER", raising=False)
        monkeypatch.delenv("CIP_LLM_MODEL", raising=False)
        pool = server_mod._pool

        def _fake_build(provider: str, model: str = "") -> object:
            return {"provider": provider, "model": model}

        monkeypatch.setattr(pool, "_build", _fake_build)
        msg = set_llm_provider("anthropic", "claude-custom")
        assert "anthropic/claude-custom" in msg
        status = get_llm_provider()
        assert status.startswith("anthropic/claude-custom")
        assert "default=anthropic" in status

    def test_unknown_provider(self):
        _reset_provider_state()
        assert "unknown provider" in set_llm_provider("carrier-pigeon").lower()


# ── Adversarial guardrail tests ─────────────────────────────────


class TestGuardrails:
    """CIP guardrails flag operational guarantees coming back from the provider."""

    async def test_delivery_guarantee_flagged(
        self, mock_cip: CIP, mock_provider: MockProvider
    ):
        mock_provider.response_content = (
            "I guarantee delivery on Friday for every vehicle on the board."
        )
        result = await mock_cip.run(
            "When will the cars be delivered?",
            tool_name="get_readiness_board",
            data_context={"readiness": {"total_vehicles": 1}},
        )
        assert len(result.response.guardrail_flags) > 0

    async def test_safety_sign_off_flagged(self, mock_cip: CIP, mock_provider: MockProvider):
        mock_provider.response_content = "You can skip the PDI on this one."
        result = await mock_cip.run(
            "Can we hand this car over?",
            tool_name="get_cars_needing_attention",
            data_context={"items": []},
        )
        assert len(result.response.guardrail_flags) > 0

    async def test_regex_repair_eta(self, mock_cip: CIP, mock_provider: MockProvider):
        mock_provider.response_content = "Repairs will definitely be done by noon."
        result = await mock_cip.run(
            "When is the repair finished?",
            tool_name="get_workflow_analytics",
            data_context={"analytics": {}},
        )
        assert len(result.response.guardrail_flags) > 0

    async def test_clean_response_not_flagged(
        self, mock_cip: CIP, mock_provider: MockProvider
    ):
        mock_provider.response_content = "Two vehicles wait for parts; chase the supplier."
        result = await mock_cip.run(
            "What is blocked?",
            tool_name="get_cars_needing_attention",
            data_context={"items": []},
        )
        flags = result.response.guardrail_flags
        assert not [
            f for f in flags
            if f.startswith(("prohibited_pattern", "regex_policy_violation"))
        ]
