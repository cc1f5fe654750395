"""
Guard do kernel: verificação síncrona antes de uma ação sensível.

evento → kernel_events (idempotente) → decision engine → decisões GUARD
→ kernel_decisions → veredito mais restrito

Nunca executa ações: decisões EMIT_ACTIONS do mesmo evento são ignoradas
aqui (o runtime cuida delas).
"""
import logging
from dataclasses import dataclass, field

from .decision_engine import run_decision_engine
from .events import emit_kernel_event, validate_kernel_event
from .runtime import inserir_decisao
from .types import (
    DecisionStatus,
    DecisionType,
    GuardResponse,
    GuardResult,
    KernelEvent,
)

logger = logging.getLogger(__name__)

GUARD_NO_POLICY = GuardResponse(
    result=GuardResult.ALLOW.value,
    reason_code="revenue_os.guard.no_policy",
    reason_text="No guard policy matched",
)

GUARD_NO_DECISION = GuardResponse(
    result=GuardResult.ALLOW.value,
    reason_code="revenue_os.guard.no_guard_decision",
    reason_text="No guard decision produced",
)


@dataclass
class GuardRunResult:
    event_id: str
    correlation_id: str
    guard: GuardResponse
    decision_ids: list[str] = field(default_factory=list)
    skipped_idempotent: bool = False

    def to_dict(self) -> dict:
        return {
            "event_id": self.event_id,
            "correlation_id": self.correlation_id,
            "decision_ids": self.decision_ids,
            "skipped_idempotent": self.skipped_idempotent,
            "guard": self.guard.to_dict(),
        }


def pick_strictest_guard(responses: list[GuardResponse]) -> GuardResponse:
    """BLOCK > ALLOW_WITH_OVERRIDE > ALLOW; empate fica com o primeiro."""
    if not responses:
        return GUARD_NO_POLICY
    return max(responses, key=lambda r: r.rank)


async def run_kernel_guard(data: KernelEvent | dict) -> GuardRunResult:
    """
    Avalia as policies GUARD para um evento e devolve o veredito.

    Replay do mesmo evento reavalia e devolve o veredito, mas não grava
    decisões de novo.

    Args:
        data: KernelEvent ou corpo bruto (validado aqui)

    Returns:
        GuardRunResult (ALLOW se nenhuma policy GUARD casar)

    Raises:
        ValidationError: Evento inválido
        DatabaseError: Falha de persistência do kernel
    """
    event = data if isinstance(data, KernelEvent) else validate_kernel_event(data)

    emitted = await emit_kernel_event(event)
    guards = [
        d for d in run_decision_engine(event)
        if DecisionType(d.decision_type) == DecisionType.GUARD
    ]

    result = GuardRunResult(
        event_id=emitted.event_id,
        correlation_id=event.correlation_id,
        guard=GUARD_NO_POLICY,
        skipped_idempotent=not emitted.inserted,
    )
    if not guards:
        return result

    for decision in guards:
        decision.event_id = emitted.event_id
        decision.tenant_id = event.tenant_id
        decision.correlation_id = event.correlation_id
        decision.status = decision.status or DecisionStatus.APPROVED

        if emitted.inserted:
            decision.id = await inserir_decisao(decision)
            result.decision_ids.append(decision.id)

    respostas = [d.guard for d in guards if d.guard is not None]
    result.guard = pick_strictest_guard(respostas) if respostas else GUARD_NO_DECISION

    logger.info(
        f"Guard {event.type}/{event.source}: {result.guard.result}",
        extra={
            "event": "kernel_guard_evaluated",
            "tenant_id": event.tenant_id,
            "correlation_id": event.correlation_id,
        },
    )
    return result
