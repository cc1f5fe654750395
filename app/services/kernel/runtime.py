"""
Runtime do Revenue OS Kernel.

evento → kernel_events (idempotente) → decision engine → kernel_decisions
→ dispatcher → kernel_actions

Regra: módulos emitem eventos; kernel decide; dispatcher age; policies
nunca executam.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

from app.core.config import settings
from app.core.exceptions import DatabaseError
from app.services.supabase import supabase
from .decision_engine import run_decision_engine
from .dispatcher import execute_decision
from .events import emit_kernel_event, validate_kernel_event
from .types import (
    DecisionStatus,
    DecisionType,
    KernelDecision,
    KernelEvent,
    KernelRuntimeMode,
)

logger = logging.getLogger(__name__)


@dataclass
class RuntimeResult:
    event_id: str
    correlation_id: str
    mode: str
    decisions_created: int = 0
    actions_logged: bool = False
    skipped_idempotent: bool = False
    actions: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "event_id": self.event_id,
            "correlation_id": self.correlation_id,
            "mode": self.mode,
            "decisions_created": self.decisions_created,
            "actions_logged": self.actions_logged,
            "skipped_idempotent": self.skipped_idempotent,
            "actions": self.actions,
        }


async def inserir_decisao(decision: KernelDecision) -> str:
    """
    Persiste a decisão em kernel_decisions.

    Returns:
        ID da decisão

    Raises:
        DatabaseError: Falha no insert
    """
    try:
        response = supabase.table("kernel_decisions").insert(decision.to_row()).execute()
    except Exception as e:
        raise DatabaseError("KERNEL_DECISION_INSERT_FAILED", original_error=e) from e

    if not response.data or not response.data[0].get("id"):
        raise DatabaseError("KERNEL_DECISION_INSERT_FAILED: missing id")
    return response.data[0]["id"]


async def _atualizar_status_decisao(decision_id: str, status: DecisionStatus) -> None:
    try:
        supabase.table("kernel_decisions").update({"status": status.value}).eq("id", decision_id).execute()
    except Exception as e:
        raise DatabaseError("KERNEL_DECISION_UPDATE_FAILED", original_error=e) from e


async def process_event(
    data: KernelEvent | dict,
    mode: Optional[KernelRuntimeMode | str] = None,
) -> RuntimeResult:
    """
    Processa um evento de ponta a ponta.

    Args:
        data: KernelEvent ou corpo bruto (validado aqui)
        mode: shadow | enforce (default settings.KERNEL_MODE)

    Returns:
        RuntimeResult

    Raises:
        ValidationError: Evento inválido
        DatabaseError: Falha de persistência do kernel
    """
    event = data if isinstance(data, KernelEvent) else validate_kernel_event(data)
    modo = KernelRuntimeMode(mode or settings.kernel_mode)

    logger.info(
        f"Kernel: ingest {event.type}/{event.source} ({modo.value})",
        extra={"event": "kernel_ingest_start", "tenant_id": event.tenant_id, "correlation_id": event.correlation_id},
    )

    emitted = await emit_kernel_event(event)
    result = RuntimeResult(
        event_id=emitted.event_id,
        correlation_id=event.correlation_id,
        mode=modo.value,
    )
    if not emitted.inserted:
        result.skipped_idempotent = True
        return result

    decisions = run_decision_engine(event)
    if not decisions:
        return result

    for decision in decisions:
        decision.event_id = emitted.event_id
        decision.tenant_id = event.tenant_id
        decision.correlation_id = event.correlation_id
        decision.status = decision.status or DecisionStatus.APPROVED

        decision.id = await inserir_decisao(decision)
        result.decisions_created += 1

        if DecisionType(decision.decision_type) != DecisionType.EMIT_ACTIONS:
            continue

        try:
            result.actions.extend(await execute_decision(decision, modo))
        except Exception:
            await _atualizar_status_decisao(decision.id, DecisionStatus.FAILED)
            raise

        result.actions_logged = True
        if modo == KernelRuntimeMode.ENFORCE:
            await _atualizar_status_decisao(decision.id, DecisionStatus.EXECUTED)

    return result
