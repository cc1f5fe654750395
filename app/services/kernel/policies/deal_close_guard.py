"""
Policy (guard): fechar deal como ganho com valor não positivo exige override.
"""
import math

from app.services.kernel.types import (
    DecisionType,
    GuardResponse,
    GuardResult,
    KernelDecision,
    KernelEvent,
)
from ._helpers import get_number, get_string

POLICY_NAME = "revenue_os.pipeline.deal_close_guard_v1"


def handle(event: KernelEvent) -> list[KernelDecision]:
    deal_id = get_string(event.payload, "deal_id") or event.entity_id
    new_stage = get_string(event.payload, "new_stage")
    deal_value = get_number(event.payload, "deal_value")
    if deal_value is None:
        deal_value = 0.0

    guard = GuardResponse(
        result=GuardResult.ALLOW.value,
        reason_code=f"{POLICY_NAME}.allow",
        reason_text="Allowed",
    )

    if new_stage == "closed_won" and (not math.isfinite(deal_value) or deal_value <= 0):
        guard = GuardResponse(
            result=GuardResult.ALLOW_WITH_OVERRIDE.value,
            reason_code=f"{POLICY_NAME}.override_required.non_positive_value",
            reason_text="Closing a deal as won with non-positive value requires override",
            override_required=True,
        )

    return [
        KernelDecision(
            tenant_id=event.tenant_id,
            correlation_id=event.correlation_id,
            policy_name=POLICY_NAME,
            decision_type=DecisionType.GUARD,
            decision_json={"guard": guard.to_dict(), "deal_id": deal_id},
        )
    ]
