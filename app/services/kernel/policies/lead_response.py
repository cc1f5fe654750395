"""
Policy: resposta rápida a lead novo.

lead_captured (cmo_campaigns) → email de primeiro contato + task de follow-up.
"""
from app.services.kernel.types import (
    ActionTarget,
    ActionType,
    DecisionType,
    KernelDecision,
    KernelEvent,
    RevenueAction,
)
from ._helpers import get_string

POLICY_NAME = "revenue_os.growth.lead_response_v1"


def handle(event: KernelEvent) -> list[KernelDecision]:
    lead = ActionTarget(kind="lead", id=event.entity_id)
    campaign_id = get_string(event.payload, "campaign_id")

    actions = [
        RevenueAction(
            type=ActionType.OUTBOUND_EMAIL.value,
            target=lead,
            reason_code=f"{POLICY_NAME}.send_email",
            reason_text="Send immediate lead confirmation / first-touch email",
            metadata={
                "subject": "Thanks for reaching out - quick next step",
                "html_body": (
                    "<p>Hi {{first_name}},</p><p>Thanks for reaching out. What's the best "
                    "time for a quick 10-minute call to learn what you're trying to achieve?"
                    "</p><p>{{company}}</p>"
                ),
                "to_email": get_string(event.payload, "email"),
                "campaign_id": campaign_id,
                "schedule": {"when": "now"},
            },
        ),
        RevenueAction(
            type=ActionType.TASK_CREATE.value,
            target=lead,
            reason_code=f"{POLICY_NAME}.create_task",
            reason_text="Create follow-up task to ensure no lead stalls",
            metadata={
                "title": "Follow up with new lead",
                "description": "New lead captured. Confirm fit and propose next step.",
                "due_in_hours": 1,
            },
        ),
    ]

    return [
        KernelDecision(
            tenant_id=event.tenant_id,
            correlation_id=event.correlation_id,
            policy_name=POLICY_NAME,
            decision_type=DecisionType.EMIT_ACTIONS,
            decision_json={"actions": [a.to_dict() for a in actions]},
        )
    ]
