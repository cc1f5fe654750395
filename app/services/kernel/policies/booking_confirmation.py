"""
Policy: reserva criada no marketplace.

booking_created (fts_marketplace) → confirmação, lembrete 24h antes e
task de preparação.
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

POLICY_NAME = "revenue_os.fts.booking_confirmation_v1"


def handle(event: KernelEvent) -> list[KernelDecision]:
    booking = ActionTarget(kind="booking", id=event.entity_id)
    invitee_email = get_string(event.payload, "invitee_email")
    scheduled_at = get_string(event.payload, "scheduled_at")

    actions = [
        RevenueAction(
            type=ActionType.OUTBOUND_EMAIL.value,
            target=booking,
            reason_code=f"{POLICY_NAME}.confirmation",
            reason_text="Send booking confirmation",
            metadata={
                "to_email": invitee_email,
                "subject": "Booking confirmed",
                "html_body": (
                    "<p>Thanks, your booking is confirmed.</p>"
                    "<p>If you need anything before the call, just reply to this email.</p>"
                ),
                "schedule": {"when": "now"},
            },
        ),
        RevenueAction(
            type=ActionType.OUTBOUND_EMAIL.value,
            target=booking,
            reason_code=f"{POLICY_NAME}.reminder",
            reason_text="Schedule booking reminder",
            metadata={
                "to_email": invitee_email,
                "subject": "Reminder: upcoming booking",
                "html_body": "<p>Quick reminder about your upcoming booking.</p>",
                "schedule": {"when": "relative", "minutes_before": 1440, "anchor": scheduled_at},
            },
        ),
        RevenueAction(
            type=ActionType.TASK_CREATE.value,
            target=booking,
            reason_code=f"{POLICY_NAME}.roster_request",
            reason_text="Create roster request task",
            metadata={
                "title": "Prepare roster / intake for booked customer",
                "description": "Booking created. Request roster/intake info before the session.",
                "due_in_hours": 4,
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
