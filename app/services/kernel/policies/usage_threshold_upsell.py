"""
Policy: uso do produto cruzou o limite → sinal de upsell.

Só sinaliza: auto_execute=False, nenhum canal é acionado.
"""
from app.services.kernel.types import (
    ActionTarget,
    ActionType,
    DecisionType,
    KernelDecision,
    KernelEvent,
    RevenueAction,
)
from ._helpers import get_number, get_string

POLICY_NAME = "revenue_os.growth.usage_threshold_upsell_v1"


def handle(event: KernelEvent) -> list[KernelDecision]:
    account_id = get_string(event.payload, "account_id") or event.entity_id

    action = RevenueAction(
        type=ActionType.UPSELL_TRIGGER.value,
        target=ActionTarget(kind="account", id=account_id),
        reason_code=f"{POLICY_NAME}.upsell_trigger",
        reason_text="Usage threshold crossed (shadow signal)",
        auto_execute=False,
        metadata={
            "metric": get_string(event.payload, "metric"),
            "threshold": get_number(event.payload, "threshold"),
            "value": get_number(event.payload, "value"),
        },
    )

    return [
        KernelDecision(
            tenant_id=event.tenant_id,
            correlation_id=event.correlation_id,
            policy_name=POLICY_NAME,
            decision_type=DecisionType.EMIT_ACTIONS,
            decision_json={"actions": [action.to_dict()]},
        )
    ]
