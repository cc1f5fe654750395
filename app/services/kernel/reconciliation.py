"""
Reconciliação de runs contra o channel_outbox.

Somente leitura. Um run só pode ser marcado como concluído quando
verify_all_outbox_terminal() retorna all_terminal=True.

Reservas travadas (queued há muito tempo, worker caiu entre begin e
finalize) são listadas para operação; a recuperação é externa.
"""
import logging
from datetime import timedelta
from typing import Optional

from tenacity import retry, stop_after_attempt, wait_exponential

from app.core.config import settings
from app.core.timezone import agora_utc
from app.services.supabase import supabase
from .types import OutboxStatus, OutboxSummary, TerminalCheck, is_terminal

logger = logging.getLogger(__name__)


@retry(stop=stop_after_attempt(3), wait=wait_exponential(multiplier=0.2, min=0.2, max=2), reraise=True)
async def _buscar_status_do_run(run_id: str, tenant_id: Optional[str] = None) -> list[Optional[str]]:
    """
    Busca o status de todas as entradas do run (paginado).

    Pagina ordenado por id: webhooks atualizam as mesmas linhas durante a
    leitura e, sem ORDER BY, o Postgres pode repetir uma linha e pular outra.
    """
    page_size = settings.OUTBOX_PAGE_SIZE
    status_list: list[Optional[str]] = []
    inicio = 0

    while True:
        query = supabase.table("channel_outbox").select("id, status").eq("run_id", run_id)
        if tenant_id:
            query = query.eq("tenant_id", tenant_id)
        response = query.order("id").range(inicio, inicio + page_size - 1).execute()

        rows = response.data or []
        status_list.extend(row.get("status") for row in rows)

        if len(rows) < page_size:
            return status_list
        inicio += page_size


def _resumir(status_list: list[Optional[str]]) -> OutboxSummary:
    summary = OutboxSummary(total=len(status_list))
    for status in status_list:
        if status == OutboxStatus.SENT.value:
            summary.sent += 1
        elif status == OutboxStatus.CALLED.value:
            summary.called += 1
        elif status == OutboxStatus.POSTED.value:
            summary.posted += 1
        elif status == OutboxStatus.FAILED.value:
            summary.failed += 1
        elif status == OutboxStatus.SKIPPED.value:
            summary.skipped += 1
        else:
            summary.pending += 1
    return summary


def _checar_terminal(status_list: list[Optional[str]]) -> TerminalCheck:
    terminal = sum(1 for s in status_list if is_terminal(s))
    pending = len(status_list) - terminal
    return TerminalCheck(all_terminal=pending == 0, terminal=terminal, pending=pending)


async def get_outbox_summary(run_id: str, tenant_id: Optional[str] = None) -> OutboxSummary:
    """
    Conta entradas do run por status.

    queued, generated, pending_review e valores desconhecidos contam como pending.

    Args:
        run_id: ID do run
        tenant_id: Restringe ao tenant (opcional)

    Returns:
        OutboxSummary (zerado se o banco falhar)
    """
    try:
        status_list = await _buscar_status_do_run(run_id, tenant_id)
    except Exception as e:
        logger.error(
            f"Erro ao buscar resumo do outbox do run {run_id}: {e}",
            extra={"event": "outbox_summary_failed", "run_id": run_id},
        )
        return OutboxSummary()

    return _resumir(status_list)


async def verify_all_outbox_terminal(run_id: str, tenant_id: Optional[str] = None) -> TerminalCheck:
    """
    Verifica se todas as entradas do run estão em status terminal.

    Terminais: sent, called, posted, failed, skipped.

    Returns:
        TerminalCheck; all_terminal=False se o banco falhar
    """
    try:
        status_list = await _buscar_status_do_run(run_id, tenant_id)
    except Exception as e:
        logger.error(
            f"Erro ao verificar outbox do run {run_id}: {e}",
            extra={"event": "outbox_terminal_check_failed", "run_id": run_id},
        )
        return TerminalCheck(all_terminal=False, terminal=0, pending=0)

    return _checar_terminal(status_list)


async def get_outbox_snapshot(
    run_id: str,
    tenant_id: Optional[str] = None,
) -> tuple[OutboxSummary, TerminalCheck]:
    """
    Resumo e verificação de terminal a partir de uma única leitura.

    Os dois resultados sempre concordam entre si (mesma lista de status).

    Returns:
        (OutboxSummary, TerminalCheck); zerado e all_terminal=False se o banco falhar
    """
    try:
        status_list = await _buscar_status_do_run(run_id, tenant_id)
    except Exception as e:
        logger.error(
            f"Erro ao ler outbox do run {run_id}: {e}",
            extra={"event": "outbox_snapshot_failed", "run_id": run_id},
        )
        return OutboxSummary(), TerminalCheck(all_terminal=False, terminal=0, pending=0)

    return _resumir(status_list), _checar_terminal(status_list)


async def listar_reservas_travadas(
    minutos: Optional[int] = None,
    limite: int = 100,
) -> list[dict]:
    """
    Lista entradas presas em queued além da janela.

    Não altera nada: decidir entre reenviar ou marcar falha é operacional.

    Args:
        minutos: Idade mínima da reserva (default OUTBOX_STALE_MINUTES)
        limite: Máximo de entradas retornadas

    Returns:
        Lista de entradas (id, tenant_id, run_id, job_id, channel, provider,
        idempotency_key, created_at)
    """
    minutos = minutos if minutos is not None else settings.OUTBOX_STALE_MINUTES
    corte = (agora_utc() - timedelta(minutes=minutos)).isoformat()

    response = (
        supabase.table("channel_outbox")
        .select("id, tenant_id, run_id, job_id, channel, provider, idempotency_key, created_at")
        .eq("status", OutboxStatus.QUEUED.value)
        .lt("created_at", corte)
        .order("created_at")
        .limit(limite)
        .execute()
    )
    travadas = response.data or []

    if travadas:
        logger.warning(
            f"{len(travadas)} reservas queued há mais de {minutos} min",
            extra={"event": "outbox_stale_reservations"},
        )

    return travadas
