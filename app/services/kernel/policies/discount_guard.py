"""
Policy (guard): desconto sobre o valor do deal.

Queda >= 20% exige override; >= 50% bloqueia. Sem valores válidos
(ou old_value <= 0) permite.
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

POLICY_NAME = "revenue_os.margin.discount_guard_v1"

LIMITE_OVERRIDE = 0.2
LIMITE_BLOCK = 0.5


def handle(event: KernelEvent) -> list[KernelDecision]:
    deal_id = get_string(event.payload, "deal_id") or event.entity_id
    old_value = get_number(event.payload, "old_value")
    new_value = get_number(event.payload, "new_value")

    guard = GuardResponse(
        result=GuardResult.ALLOW.value,
        reason_code=f"{POLICY_NAME}.allow",
        reason_text="Allowed",
    )

    if (
        old_value is not None
        and new_value is not None
        and math.isfinite(old_value)
        and math.isfinite(new_value)
        and old_value > 0
    ):
        queda = (old_value - new_value) / old_value
        if queda >= LIMITE_BLOCK:
            guard = GuardResponse(
                result=GuardResult.BLOCK.value,
                reason_code=f"{POLICY_NAME}.block.discount_ge_50pct",
                reason_text="Discount >= 50% blocked",
                override_required=True,
            )
        elif queda >= LIMITE_OVERRIDE:
            guard = GuardResponse(
                result=GuardResult.ALLOW_WITH_OVERRIDE.value,
                reason_code=f"{POLICY_NAME}.override_required.discount_ge_20pct",
                reason_text="Discount >= 20% requires override",
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
