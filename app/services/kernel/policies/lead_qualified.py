"""
Policy: lead qualificado → task de follow-up comercial.
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

POLICY_NAME = "revenue_os.growth.lead_qualified_v1"


def handle(event: KernelEvent) -> list[KernelDecision]:
    lead_id = get_string(event.payload, "lead_id") or event.entity_id
    lead_name = get_string(event.payload, "lead_name") or "New Lead"
    score = get_number(event.payload, "lead_score")

    action = RevenueAction(
        type=ActionType.TASK_CREATE.value,
        target=ActionTarget(kind="lead", id=lead_id),
        reason_code="QUALIFIED_LEAD_FOLLOWUP",
        reason_text=f"Follow up with qualified lead: {lead_name}",
        metadata={
            "title": f"Follow up with qualified lead: {lead_name}",
            "description": (
                f"Lead qualified from campaign. Score: {score if score is not None else 'N/A'}. "
                "Schedule demo or discovery call."
            ),
            "due_in_hours": 4,
            "task_type": "sales_followup",
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
