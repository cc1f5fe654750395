"""
Endpoints do Revenue OS Kernel.

Entry point: encaminha eventos para o runtime. Nunca importa o dispatcher
(verificado por scripts/kernel_invariants.py).
"""
import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Query
from fastapi.responses import JSONResponse

from app.services.kernel.guard import run_kernel_guard
from app.services.kernel.reconciliation import get_outbox_snapshot
from app.services.kernel.runtime import process_event

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/kernel", tags=["Kernel"])


@router.post("/events")
async def ingerir_evento(
    body: dict[str, Any] = Body(...),
    mode: Optional[str] = Query(None, pattern="^(shadow|enforce)$"),
):
    """
    Ingere um KernelEvent.

    Corpo: tenant_id, type, source, entity_type, entity_id, correlation_id,
    payload, occurred_at (opcional).
    """
    result = await process_event(body, mode=mode)
    return JSONResponse({"status": "ok", **result.to_dict()})


@router.post("/guard")
async def verificar_guard(body: dict[str, Any] = Body(...)):
    """
    Veredito do guard para uma ação sensível (deal, desconto, fatura).

    Corpo: KernelEvent. Retorna o veredito mais restrito entre as policies
    GUARD (BLOCK > ALLOW_WITH_OVERRIDE > ALLOW); quem chama decide se bloqueia.
    """
    result = await run_kernel_guard(body)
    return JSONResponse({"status": "ok", **result.to_dict()})


@router.get("/runs/{run_id}/outbox")
async def status_outbox_run(run_id: str, tenant_id: Optional[str] = Query(None)):
    """Resumo por status + verificação de terminal do run."""
    summary, check = await get_outbox_snapshot(run_id, tenant_id=tenant_id)

    return JSONResponse({
        "status": "ok",
        "run_id": run_id,
        "summary": summary.to_dict(),
        **check.to_dict(),
    })
