"""
Decision engine: roteia KernelEvent para as policies.

Roteamento por (type, source). Eventos sem rota são registrados e não
produzem decisão. Rotas "só auditoria" (campaign_launched, meeting_booked,
campaign_optimized) apenas logam.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from .policies import (
    booking_confirmation,
    deal_close_guard,
    discount_guard,
    invoice_send_guard,
    lead_qualified,
    lead_response,
    usage_threshold_upsell,
)
from .types import KernelDecision, KernelEvent

logger = logging.getLogger(__name__)

PolicyHandler = Callable[[KernelEvent], list[KernelDecision]]


@dataclass(frozen=True)
class PolicyRoute:
    event_type: str
    sources: frozenset
    handler: Optional[PolicyHandler] = None  # None = só auditoria

    def matches(self, event: KernelEvent) -> bool:
        return event.type == self.event_type and event.source in self.sources


ROUTES: tuple[PolicyRoute, ...] = (
    PolicyRoute("lead_captured", frozenset({"cmo_campaigns"}), lead_response.handle),
    PolicyRoute("campaign_launched", frozenset({"cmo_campaigns"})),
    PolicyRoute("lead_qualified", frozenset({"cmo_campaigns", "crm"}), lead_qualified.handle),
    PolicyRoute("meeting_booked", frozenset({"cmo_campaigns"})),
    PolicyRoute("booking_created", frozenset({"fts_marketplace"}), booking_confirmation.handle),
    PolicyRoute("usage_threshold_crossed", frozenset({"product_usage"}), usage_threshold_upsell.handle),
    PolicyRoute("deal_close_attempted", frozenset({"crm"}), deal_close_guard.handle),
    PolicyRoute("discount_attempted", frozenset({"crm"}), discount_guard.handle),
    PolicyRoute("invoice_send_attempted", frozenset({"billing"}), invoice_send_guard.handle),
    PolicyRoute("campaign_optimized", frozenset({"cmo_campaigns"})),
)


def run_decision_engine(
    event: KernelEvent,
    routes: tuple[PolicyRoute, ...] = ROUTES,
) -> list[KernelDecision]:
    """
    Aplica todas as rotas que casam com o evento.

    Returns:
        Decisões produzidas, na ordem das rotas
    """
    rotas = [r for r in routes if r.matches(event)]
    if not rotas:
        logger.info(
            f"Nenhuma policy para {event.type}/{event.source}",
            extra={"event": "kernel_no_policy_route", "correlation_id": event.correlation_id},
        )
        return []

    decisions: list[KernelDecision] = []
    for rota in rotas:
        if rota.handler is None:
            logger.info(
                f"Evento {event.type} registrado para auditoria",
                extra={"event": "kernel_audit_only", "correlation_id": event.correlation_id},
            )
            continue
        decisions.extend(rota.handler(event))

    return decisions
