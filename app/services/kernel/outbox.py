"""
Protocolo do outbox transacional (channel_outbox).

Reserva + finalização de tentativas de side-effect (email, ligação, post).

Garantia: no máximo UMA tentativa por (tenant_id, idempotency_key).
A unique constraint do banco é o único ponto de serialização; não há lock
em memória, então vale com N workers concorrentes.

Fluxo:
1. begin_outbox_item() → insert status=queued
   - 23505 (duplicata) → marca a entrada existente como skipped, NÃO chamar provider
   - outro erro → retorna error, nada a limpar
2. Provider chamado com o outbox_id (ver adapters.create_provider_adapter)
3. finalize_outbox_success() ou finalize_outbox_failure(), exatamente uma vez
"""
import logging
from typing import Optional

from app.core.exceptions import ExecutionContractViolation
from app.core.timezone import agora_utc
from app.services.supabase import supabase, is_unique_violation
from .types import (
    BeginOutboxResult,
    Channel,
    OutboxStatus,
    SKIP_REASON_IDEMPOTENT_REPLAY,
    SUCCESS_STATUSES,
)

logger = logging.getLogger(__name__)

MAX_ERROR_CHARS = 500


async def begin_outbox_item(
    *,
    tenant_id: str,
    run_id: Optional[str],
    job_id: Optional[str],
    channel: Channel | str,
    provider: str,
    idempotency_key: str,
    payload: Optional[dict] = None,
    recipient_id: Optional[str] = None,
    recipient_email: Optional[str] = None,
    recipient_phone: Optional[str] = None,
) -> BeginOutboxResult:
    """
    Reserva slot no outbox antes de chamar o provider.

    Args:
        tenant_id: Tenant dono da ação
        run_id: Execução/lote que gerou a tentativa
        job_id: Job dentro do run
        channel: email | voice | social
        provider: Integração concreta (resend, vapi, internal...)
        idempotency_key: Fingerprint do evento lógico (obrigatório)
        payload: Dados opacos para o provider
        recipient_id/recipient_email/recipient_phone: Identidade do destinatário (observabilidade)

    Returns:
        BeginOutboxResult(outbox_id, skipped, error)

    Raises:
        ExecutionContractViolation: Se idempotency_key ausente
    """
    if not idempotency_key:
        raise ExecutionContractViolation("idempotency_key is required")

    row = {
        "tenant_id": tenant_id,
        "run_id": run_id,
        "job_id": job_id,
        "channel": Channel(channel).value,
        "provider": provider,
        "idempotency_key": idempotency_key,
        "payload": payload or {},
        "status": OutboxStatus.QUEUED.value,
        "skipped": False,
    }
    if recipient_id:
        row["recipient_id"] = recipient_id
    if recipient_email:
        row["recipient_email"] = recipient_email
    if recipient_phone:
        row["recipient_phone"] = recipient_phone

    try:
        response = supabase.table("channel_outbox").insert(row).execute()
    except Exception as e:
        if is_unique_violation(e):
            await _marcar_replay(tenant_id, idempotency_key)
            return BeginOutboxResult(outbox_id=None, skipped=True)

        logger.error(
            f"Erro ao reservar outbox: {e}",
            extra={"event": "outbox_begin_failed", "tenant_id": tenant_id, "run_id": run_id},
        )
        return BeginOutboxResult(outbox_id=None, skipped=False, error=str(e))

    if not response.data:
        # Insert sem exception e sem linha retornada
        return BeginOutboxResult(outbox_id=None, skipped=False, error="insert_returned_no_row")

    outbox_id = response.data[0].get("id")
    logger.debug(
        f"Outbox reservado: {outbox_id} ({idempotency_key[:16]}...)",
        extra={
            "event": "outbox_reserved",
            "tenant_id": tenant_id,
            "run_id": run_id,
            "outbox_id": outbox_id,
        },
    )
    return BeginOutboxResult(outbox_id=outbox_id, skipped=False)


async def _marcar_replay(tenant_id: str, idempotency_key: str) -> None:
    """Marca a entrada existente como replay idempotente."""
    logger.info(
        f"Outbox replay idempotente: {idempotency_key[:16]}...",
        extra={
            "event": "outbox_idempotent_replay",
            "tenant_id": tenant_id,
            "idempotency_key": idempotency_key,
        },
    )
    try:
        supabase.table("channel_outbox").update({
            "skipped": True,
            "skip_reason": SKIP_REASON_IDEMPOTENT_REPLAY,
            "status": OutboxStatus.SKIPPED.value,
            "updated_at": agora_utc().isoformat(),
        }).eq("tenant_id", tenant_id).eq("idempotency_key", idempotency_key).execute()
    except Exception as e:
        # Replay já detectado: o caller não chama o provider de qualquer forma
        logger.warning(f"Erro ao marcar replay no outbox: {e}")


async def finalize_outbox_success(
    outbox_id: str,
    provider_message_id: Optional[str],
    provider_response: Optional[dict] = None,
    terminal_status: Optional[OutboxStatus | str] = None,
) -> bool:
    """
    Marca entrada como concluída com sucesso.

    Args:
        outbox_id: ID retornado por begin_outbox_item
        provider_message_id: ID da mensagem no provider
        provider_response: Resposta bruta do provider (opcional)
        terminal_status: sent | called | posted (qualquer outro valor vira sent)

    Returns:
        True se atualizado no banco

    Raises:
        ExecutionContractViolation: Se outbox_id ausente
    """
    if not outbox_id:
        raise ExecutionContractViolation("outbox_id is required to finalize success")

    status = OutboxStatus.SENT.value
    if terminal_status is not None:
        valor = terminal_status.value if isinstance(terminal_status, OutboxStatus) else str(terminal_status)
        if valor in SUCCESS_STATUSES:
            status = valor

    patch = {
        "status": status,
        "provider_message_id": provider_message_id,
        "updated_at": agora_utc().isoformat(),
    }
    if provider_response is not None:
        patch["provider_response"] = provider_response

    try:
        supabase.table("channel_outbox").update(patch).eq("id", outbox_id).execute()
    except Exception as e:
        logger.warning(
            f"Erro ao finalizar outbox {outbox_id} como {status}: {e}",
            extra={"event": "outbox_finalize_failed", "outbox_id": outbox_id},
        )
        return False

    logger.debug(f"Outbox {outbox_id} finalizado: {status}")
    return True


async def finalize_outbox_failure(outbox_id: str, error: str) -> bool:
    """
    Marca entrada como falha do provider.

    Args:
        outbox_id: ID retornado por begin_outbox_item
        error: Mensagem de erro (truncada em 500 chars)

    Returns:
        True se atualizado no banco

    Raises:
        ExecutionContractViolation: Se outbox_id ausente
    """
    if not outbox_id:
        raise ExecutionContractViolation("outbox_id is required to finalize failure")

    try:
        supabase.table("channel_outbox").update({
            "status": OutboxStatus.FAILED.value,
            "error": (error or "unknown_error")[:MAX_ERROR_CHARS],
            "updated_at": agora_utc().isoformat(),
        }).eq("id", outbox_id).execute()
    except Exception as e:
        logger.warning(
            f"Erro ao finalizar outbox {outbox_id} como failed: {e}",
            extra={"event": "outbox_finalize_failed", "outbox_id": outbox_id},
        )
        return False

    return True
