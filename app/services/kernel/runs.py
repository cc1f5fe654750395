"""
Conclusão de runs de campanha.

Um run só vira "completed" quando todas as entradas do outbox estão em
status terminal.
"""
import logging
from dataclasses import dataclass

from app.core.exceptions import DatabaseError
from app.core.timezone import agora_utc
from app.services.supabase import supabase
from .reconciliation import get_outbox_snapshot
from .types import OutboxSummary, TerminalCheck

logger = logging.getLogger(__name__)


@dataclass
class RunCompletion:
    run_id: str
    concluido: bool
    check: TerminalCheck
    summary: OutboxSummary

    def to_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "concluido": self.concluido,
            **self.check.to_dict(),
            "summary": self.summary.to_dict(),
        }


async def concluir_run(run_id: str) -> RunCompletion:
    """
    Marca o run como completed se o outbox estiver todo terminal.

    Returns:
        RunCompletion (concluido=False se ainda há pendentes)

    Raises:
        DatabaseError: Falha ao atualizar campaign_runs
    """
    summary, check = await get_outbox_snapshot(run_id)

    if not check.all_terminal:
        logger.info(
            f"Run {run_id} ainda tem {check.pending} entradas pendentes",
            extra={"event": "run_completion_blocked", "run_id": run_id},
        )
        return RunCompletion(run_id=run_id, concluido=False, check=check, summary=summary)

    try:
        supabase.table("campaign_runs").update({
            "status": "completed",
            "completed_at": agora_utc().isoformat(),
        }).eq("id", run_id).execute()
    except Exception as e:
        raise DatabaseError(f"Erro ao concluir run {run_id}", original_error=e) from e

    logger.info(
        f"Run {run_id} concluído ({check.terminal} entradas terminais)",
        extra={"event": "run_completed", "run_id": run_id},
    )
    return RunCompletion(run_id=run_id, concluido=True, check=check, summary=summary)
