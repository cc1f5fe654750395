"""
Entrada de eventos no kernel.

- validate_kernel_event(): valida o corpo recebido
- emit_kernel_event(): insert idempotente em kernel_events
  (mesmo evento lógico nunca é processado duas vezes)
"""
import logging
from dataclasses import dataclass
from datetime import datetime

from app.core.exceptions import DatabaseError, ValidationError
from app.core.timezone import agora_utc
from app.services.supabase import supabase, is_unique_violation
from .idempotency import derive_idempotency_key
from .types import KernelEvent

logger = logging.getLogger(__name__)

CAMPOS_OBRIGATORIOS = ("tenant_id", "type", "source", "entity_type", "entity_id", "correlation_id")


@dataclass
class EmitKernelEventResult:
    event_id: str
    inserted: bool
    idempotency_key: str


def validate_kernel_event(data: object) -> KernelEvent:
    """
    Valida e normaliza o corpo de um evento.

    Raises:
        ValidationError: Corpo inválido
    """
    if not isinstance(data, dict):
        raise ValidationError("KERNEL_EVENT_INVALID: body must be an object")

    for campo in CAMPOS_OBRIGATORIOS:
        valor = data.get(campo)
        if not isinstance(valor, str) or not valor.strip():
            raise ValidationError(
                f"KERNEL_EVENT_INVALID: missing/invalid {campo}",
                details={"campo": campo},
            )

    payload = data.get("payload")
    if not isinstance(payload, dict):
        raise ValidationError("KERNEL_EVENT_INVALID: payload must be an object")

    occurred_at = data.get("occurred_at")
    if occurred_at is not None:
        if not isinstance(occurred_at, str):
            raise ValidationError("KERNEL_EVENT_INVALID: occurred_at must be an ISO timestamp")
        try:
            datetime.fromisoformat(occurred_at.replace("Z", "+00:00"))
        except ValueError:
            raise ValidationError("KERNEL_EVENT_INVALID: occurred_at must be an ISO timestamp")

    return KernelEvent(
        tenant_id=data["tenant_id"],
        type=data["type"],
        source=data["source"],
        entity_type=data["entity_type"],
        entity_id=data["entity_id"],
        correlation_id=data["correlation_id"],
        payload=payload,
        occurred_at=occurred_at,
    )


async def emit_kernel_event(event: KernelEvent) -> EmitKernelEventResult:
    """
    Insere evento em kernel_events de forma idempotente.

    A chave não inclui o payload: o payload pode evoluir sem quebrar dedupe.

    Returns:
        EmitKernelEventResult(inserted=False) se o evento já existia

    Raises:
        DatabaseError: Falha no insert ou na busca do evento existente
    """
    occurred_at = event.occurred_at or agora_utc().isoformat()

    idempotency_key = derive_idempotency_key([
        event.tenant_id,
        event.type,
        event.source,
        event.entity_type,
        event.entity_id,
        event.correlation_id,
        occurred_at,
    ])

    try:
        response = supabase.table("kernel_events").insert({
            "tenant_id": event.tenant_id,
            "type": event.type,
            "source": event.source,
            "entity_type": event.entity_type,
            "entity_id": event.entity_id,
            "correlation_id": event.correlation_id,
            "payload_json": event.payload,
            "status": "pending",
            "occurred_at": occurred_at,
            "idempotency_key": idempotency_key,
        }).execute()
    except Exception as e:
        if not is_unique_violation(e):
            raise DatabaseError("KERNEL_EVENT_INSERT_FAILED", original_error=e) from e
        return await _buscar_evento_existente(event.tenant_id, idempotency_key)

    if not response.data:
        raise DatabaseError("KERNEL_EVENT_INSERT_FAILED: missing id")

    return EmitKernelEventResult(
        event_id=response.data[0]["id"],
        inserted=True,
        idempotency_key=idempotency_key,
    )


async def _buscar_evento_existente(tenant_id: str, idempotency_key: str) -> EmitKernelEventResult:
    """Busca o evento que já ocupa a chave."""
    try:
        response = (
            supabase.table("kernel_events")
            .select("id")
            .eq("tenant_id", tenant_id)
            .eq("idempotency_key", idempotency_key)
            .limit(1)
            .execute()
        )
    except Exception as e:
        raise DatabaseError("KERNEL_EVENT_IDEMPOTENCY_LOOKUP_FAILED", original_error=e) from e

    if not response.data:
        raise DatabaseError("KERNEL_EVENT_IDEMPOTENCY_LOOKUP_FAILED: missing event")

    logger.info(
        f"Evento já processado: {idempotency_key[:16]}...",
        extra={"event": "kernel_event_idempotent_skip", "tenant_id": tenant_id},
    )
    return EmitKernelEventResult(
        event_id=response.data[0]["id"],
        inserted=False,
        idempotency_key=idempotency_key,
    )
