"""CIP DomainConfig for the dealer_operations domain, plus runtime settings."""

from __future__ import annotations

import os
from dataclasses import dataclass

from cip_protocol import DomainConfig

DEALER_DOMAIN_CONFIG = DomainConfig(
    name="dealer_operations",
    display_name="DealerOps Vehicle Workflow",
    system_prompt=(
        "You are a specialist analyst within a multi-agent system. Your response will "
        "be returned to an orchestrating AI assistant that is helping dealership staff "
        "run the lot, so write information-dense operational analysis for that "
        "assistant to relay. Be concise: every token you emit is consumed by the "
        "orchestrator's context window, so eliminate filler and preamble. Lead with "
        "the vehicles or stages that need action, then supporting detail. Respect the "
        "scaffold's length guidance strictly. "
        "You are an expert in dealership operations: vehicle intake, pre-delivery "
        "inspection, workshop scheduling, showroom rotation and customer delivery. "
        "Work only from the supplied data and never invent vehicles or dates."
    ),
    default_scaffold_id="operations_briefing",
    data_context_label="Workflow Data",
    prohibited_indicators={
        "delivery_guarantees": (
            "i guarantee delivery",
            "the car will definitely be ready",
            "delivery is guaranteed",
            "will be delivered on time for sure",
        ),
        "safety_sign_off": (
            "the vehicle is safe to drive",
            "no inspection is needed",
            "you can skip the pdi",
        ),
        "financial_guarantees": (
            "this repair will cost exactly",
            "i promise the cost will be",
        ),
    },
    regex_guardrail_policies={
        "exact_repair_eta": (
            r"(?i)repairs?\s+will\s+(?:definitely|certainly)\s+be\s+"
            r"(?:done|finished|complete)"
        ),
    },
    redaction_message="[Removed: contains an unsupported operational guarantee]",
)

_DEFAULT_DB_PATH = os.path.join(os.path.dirname(__file__), "data", "dealerflow.db")


@dataclass(frozen=True)
class Settings:
    """Runtime knobs read from the environment."""

    db_path: str = _DEFAULT_DB_PATH
    monitor_interval_seconds: float = 120.0
    seed_demo: bool = True
    log_level: str = "INFO"


def _env_flag(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def load_settings() -> Settings:
    """Build Settings from ``DEALERFLOW_*`` environment variables."""
    interval_raw = os.environ.get("DEALERFLOW_MONITOR_INTERVAL", "").strip()
    try:
        interval = float(interval_raw) if interval_raw else 120.0
    except ValueError:
        interval = 120.0
    return Settings(
        db_path=os.environ.get("DEALERFLOW_DB_PATH", _DEFAULT_DB_PATH),
        monitor_interval_seconds=interval if interval > 0 else 120.0,
        seed_demo=_env_flag(os.environ.get("DEALERFLOW_SEED_DEMO"), True),
        log_level=os.environ.get("DEALERFLOW_LOG_LEVEL", "INFO").strip().upper() or "INFO",
    )
