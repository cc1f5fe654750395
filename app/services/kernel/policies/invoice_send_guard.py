"""
Policy (guard): envio de fatura.

Entrega de faturas não está configurada: sempre BLOCK com override.
"""
from app.services.kernel.types import (
    DecisionType,
    GuardResponse,
    GuardResult,
    KernelDecision,
    KernelEvent,
)
from ._helpers import get_string

POLICY_NAME = "revenue_os.pipeline.invoice_send_guard_v1"


def handle(event: KernelEvent) -> list[KernelDecision]:
    invoice_id = get_string(event.payload, "invoice_id") or event.entity_id

    guard = GuardResponse(
        result=GuardResult.BLOCK.value,
        reason_code=f"{POLICY_NAME}.block.not_implemented",
        reason_text="Invoice sending is not configured in this environment",
        override_required=True,
    )

    return [
        KernelDecision(
            tenant_id=event.tenant_id,
            correlation_id=event.correlation_id,
            policy_name=POLICY_NAME,
            decision_type=DecisionType.GUARD,
            decision_json={"guard": guard.to_dict(), "invoice_id": invoice_id},
        )
    ]
