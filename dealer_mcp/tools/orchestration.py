"""Shared orchestration helpers for CIP-routed tool implementations."""

from __future__ import annotations

import json
from dataclasses import asdict, is_dataclass
from typing import Any

from cip_protocol import CIP

RAW_SCHEMA_VERSION = 1


def to_jsonable(value: Any) -> Any:
    """Turn dataclasses (and containers of them) into plain JSON-ready data."""
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


def _build_raw_response(tool_name: str, data_context: dict[str, Any]) -> str:
    payload = {
        "_raw": True,
        "_tool": tool_name,
        "_meta": {"schema_version": RAW_SCHEMA_VERSION},
        "data": to_jsonable(data_context),
    }
    return json.dumps(payload, indent=2, default=str)


def _build_cross_domain_context(context_notes: str | None) -> dict[str, Any] | None:
    normalized = (context_notes or "").strip()
    return {"orchestrator_notes": normalized} if normalized else None


async def run_tool_with_orchestration(
    cip: CIP,
    *,
    user_input: str,
    tool_name: str,
    data_context: dict[str, Any],
    scaffold_id: str | None = None,
    policy: str | None = None,
    context_notes: str | None = None,
    raw: bool = False,
) -> str:
    """Return the raw JSON envelope, or a CIP-narrated briefing of ``data_context``."""
    if raw:
        return _build_raw_response(tool_name, data_context)

    result = await cip.run(
        user_input,
        tool_name=tool_name,
        data_context=to_jsonable(data_context),
        scaffold_id=scaffold_id,
        policy=policy,
        cross_domain_context=_build_cross_domain_context(context_notes),
    )
    return result.response.content


def dump_json(data: Any) -> str:
    """Pretty JSON for CRUD tool replies."""
    return json.dumps(to_jsonable(data), indent=2, default=str)
