"""
Rotas de health check.

- /health: Liveness básico (sempre 200 se app rodando)
- /health/ready: Readiness (Supabase + tabelas do kernel)
"""
from fastapi import APIRouter, Response
import logging

from app.core.config import settings
from app.core.timezone import agora_utc
from app.services.supabase import supabase

router = APIRouter()
logger = logging.getLogger(__name__)

# Tabelas que DEVEM existir para o kernel funcionar
CRITICAL_TABLES = [
    "channel_outbox",
    "kernel_events",
    "kernel_decisions",
    "kernel_actions",
    "campaign_runs",
]


@router.get("/health")
async def health_check():
    """Liveness: app está de pé."""
    return {
        "status": "healthy",
        "timestamp": agora_utc().isoformat(),
        "service": settings.APP_NAME,
        "kernel_mode": settings.kernel_mode,
    }


@router.get("/health/ready")
async def readiness_check(response: Response):
    """Readiness: Supabase responde e as tabelas críticas existem."""
    faltando = []
    for tabela in CRITICAL_TABLES:
        try:
            supabase.table(tabela).select("id").limit(1).execute()
        except Exception as e:
            logger.warning(f"Readiness: tabela {tabela} indisponível: {e}")
            faltando.append(tabela)

    if faltando:
        response.status_code = 503
        return {"status": "not_ready", "missing_tables": faltando}

    return {"status": "ready", "tables": CRITICAL_TABLES}
