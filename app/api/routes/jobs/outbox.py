"""
Jobs de reconciliação do outbox.

- concluir-run: fecha o run só se o outbox estiver todo terminal
- outbox-travados: lista reservas queued antigas (não altera nada)
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ._helpers import exigir_job_secret, job_endpoint

router = APIRouter(dependencies=[Depends(exigir_job_secret)])


@router.post("/concluir-run/{run_id}")
@job_endpoint("concluir-run")
async def job_concluir_run(run_id: str):
    """
    Marca campaign_runs.status=completed quando todas as entradas do
    outbox do run estão em status terminal.
    """
    from app.services.kernel.runs import concluir_run

    resultado = await concluir_run(run_id)
    mensagem = (
        f"Run {run_id} concluído"
        if resultado.concluido
        else f"Run {run_id} com {resultado.check.pending} pendentes"
    )

    return {"status": "ok", "message": mensagem, **resultado.to_dict()}


@router.get("/outbox-travados")
@job_endpoint("outbox-travados")
async def job_outbox_travados(
    minutos: Optional[int] = Query(None, ge=1),
    limite: int = Query(100, ge=1, le=1000),
):
    """
    Lista entradas presas em queued (worker caiu entre begin e finalize).
    """
    from app.services.kernel.reconciliation import listar_reservas_travadas

    travadas = await listar_reservas_travadas(minutos=minutos, limite=limite)

    return {
        "status": "ok",
        "message": f"{len(travadas)} reservas travadas",
        "total": len(travadas),
        "entradas": travadas,
    }
