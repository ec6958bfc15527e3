"""Delivery readiness: one rule table, two views.

Every vehicle is evaluated once against ``READINESS_RULES``. The resulting
``ReadinessAssessment`` feeds both the completion-score view (issues, score,
next action) and the delivery-countdown view (days left, urgency bucket).
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from dealer_mcp.attention.engine import battery_level
from dealer_mcp.constants import VEHICLE_COLLECTIONS
from dealer_mcp.data.inventory import get_collection, get_store
from dealer_mcp.data.kv import KeyValueStore
from dealer_mcp.workflow.models import parse_timestamp

FULL_SCORE = 100
EV_CATEGORIES = frozenset({"EV", "REV"})
CHARGE_TARGET = 80
READY_ACTION = "Ready for delivery"


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1", "yes", "y"}
    return bool(value)


def _in_repair(v: dict[str, Any]) -> bool:
    return v.get("garage_status") == "in_repair" or v.get("repair_status") == "in_progress"


def _awaiting_parts(v: dict[str, Any]) -> bool:
    return "awaiting_parts" in (v.get("garage_status"), v.get("repair_status"))


def _customs(v: dict[str, Any]) -> str:
    return str(v.get("customs") or "not_paid")


def _needs_charge(v: dict[str, Any]) -> bool:
    level = battery_level(v, "battery_percentage")
    category = str(v.get("category") or "EV").upper()
    return category in EV_CATEGORIES and level is not None and level < CHARGE_TARGET


@dataclass(frozen=True)
class ReadinessRule:
    issue_code: str
    predicate: Callable[[dict[str, Any]], bool]
    weight: int
    message: Callable[[dict[str, Any]], str]
    action: str
    blocks_delivery: bool
    eta: str | None = None


# Table order is action precedence: the first fired rule names the next action.
READINESS_RULES: tuple[ReadinessRule, ...] = (
    ReadinessRule(
        "in_repair", _in_repair, 15,
        lambda v: "Under repair", "Complete repairs", True, "1-2 days",
    ),
    ReadinessRule(
        "awaiting_parts", _awaiting_parts, 20,
        lambda v: "Waiting for parts", "Parts delivery pending", True, "3-5 days",
    ),
    ReadinessRule(
        "pdi_incomplete", lambda v: not _flag(v.get("pdi_completed")), 30,
        lambda v: "PDI not completed", "Complete PDI inspection", True, "1 day",
    ),
    ReadinessRule(
        "customs_unpaid", lambda v: _customs(v) != "paid", 25,
        lambda v: f"Customs {_customs(v).replace('_', ' ')}",
        "Complete customs payment", True, "2-3 days",
    ),
    ReadinessRule(
        "low_battery", _needs_charge, 10,
        lambda v: f"Low battery: {battery_level(v, 'battery_percentage'):g}%",
        f"Charge battery to {CHARGE_TARGET}%+", False,
    ),
)

# Longest wait first when several issues are open.
ETA_PRECEDENCE: tuple[str, ...] = (
    "awaiting_parts",
    "in_repair",
    "pdi_incomplete",
    "customs_unpaid",
)
DEFAULT_ETA = "< 1 day"


def delivery_countdown(delivery_date: Any, now: datetime) -> tuple[int | None, str]:
    """Return ``(whole days until delivery, urgency bucket)``."""
    due = parse_timestamp(delivery_date)
    if due is None:
        return None, "future"
    days = math.trunc((due - now).total_seconds() / 86_400)
    if days < 0 or days <= 2:
        return days, "critical"
    if days <= 7:
        return days, "urgent"
    return days, "normal"


@dataclass
class ReadinessAssessment:
    vehicle_id: str
    model: str
    location: str
    source: str
    issues: list[dict[str, Any]] = field(default_factory=list)
    completion_percentage: int = FULL_SCORE
    ready_for_delivery: bool = True
    next_action: str = READY_ACTION
    estimated_completion: str = "Complete"
    delivery_date: str | None = None
    days_until_delivery: int | None = None
    urgency: str = "future"

    @property
    def needs_attention(self) -> bool:
        return not self.ready_for_delivery

    def completion_view(self) -> dict[str, Any]:
        return {
            "vehicle_id": self.vehicle_id,
            "model": self.model,
            "location": self.location,
            "source": self.source,
            "issues": [i["message"] for i in self.issues],
            "issue_codes": [i["code"] for i in self.issues],
            "completion_percentage": self.completion_percentage,
            "ready_for_delivery": self.ready_for_delivery,
            "next_action": self.next_action,
            "estimated_completion": self.estimated_completion,
        }

    def countdown_view(self) -> dict[str, Any]:
        return {
            "vehicle_id": self.vehicle_id,
            "model": self.model,
            "delivery_date": self.delivery_date,
            "days_until_delivery": self.days_until_delivery,
            "urgency": self.urgency,
            "completion_percentage": self.completion_percentage,
            "next_action": self.next_action,
        }


def assess_vehicle(
    vehicle: dict[str, Any],
    *,
    source: str = "car_inventory",
    now: datetime | None = None,
) -> ReadinessAssessment:
    """Evaluate one vehicle record against the readiness rules."""
    now = now or datetime.now(timezone.utc)
    fired = [rule for rule in READINESS_RULES if rule.predicate(vehicle)]
    ready = not any(rule.blocks_delivery for rule in fired)

    eta = next((r.eta for code in ETA_PRECEDENCE for r in fired if r.issue_code == code), None)
    days, urgency = delivery_countdown(vehicle.get("delivery_date"), now)
    label = " ".join(str(vehicle[k]) for k in ("year", "make", "model") if vehicle.get(k))

    return ReadinessAssessment(
        vehicle_id=str(vehicle.get("vin", "")),
        model=label or str(vehicle.get("vin", "")),
        location=str(vehicle.get("location") or source),
        source=source,
        issues=[
            {
                "code": rule.issue_code,
                "message": rule.message(vehicle),
                "weight": rule.weight,
                "blocks_delivery": rule.blocks_delivery,
            }
            for rule in fired
        ],
        completion_percentage=max(FULL_SCORE - sum(r.weight for r in fired), 0),
        ready_for_delivery=ready,
        next_action=fired[0].action if fired else READY_ACTION,
        estimated_completion="Complete" if ready else (eta or DEFAULT_ETA),
        delivery_date=vehicle.get("delivery_date"),
        days_until_delivery=days,
        urgency=urgency,
    )


def assess_collections(
    store: KeyValueStore | None = None,
    *,
    now: datetime | None = None,
) -> list[ReadinessAssessment]:
    """Assess each VIN once, preferring the main inventory record."""
    store = store or get_store()
    now = now or datetime.now(timezone.utc)
    seen: set[str] = set()
    assessments: list[ReadinessAssessment] = []
    for name in VEHICLE_COLLECTIONS:
        for record in get_collection(name, store):
            vin = str(record.get("vin", ""))
            if not vin or vin in seen:
                continue
            seen.add(vin)
            assessments.append(assess_vehicle(record, source=name, now=now))
    return assessments


def get_readiness_board(
    store: KeyValueStore | None = None,
    *,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Both readiness projections plus summary counts."""
    assessments = assess_collections(store, now=now)
    attention = sorted(
        (a for a in assessments if a.needs_attention),
        key=lambda a: a.completion_percentage,
    )
    scheduled = sorted(
        (a for a in assessments if a.days_until_delivery is not None),
        key=lambda a: a.days_until_delivery,
    )
    urgency_counts = {"critical": 0, "urgent": 0, "normal": 0, "future": 0}
    for a in assessments:
        urgency_counts[a.urgency] += 1
    return {
        "total_vehicles": len(assessments),
        "ready_for_delivery": sum(1 for a in assessments if a.ready_for_delivery),
        "needs_attention_count": len(attention),
        "urgency_counts": urgency_counts,
        "needs_attention": [a.completion_view() for a in attention],
        "delivery_countdown": [a.countdown_view() for a in scheduled],
    }
