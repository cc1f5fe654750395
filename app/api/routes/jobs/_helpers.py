"""
Helpers compartilhados pelos sub-routers de jobs.
"""

import functools
import hmac
import logging
from typing import Any, Callable, Coroutine

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

from app.core.config import settings

logger = logging.getLogger(__name__)


def verificar_job_secret(request: Request, expected: str) -> None:
    """
    Verifica header X-Job-Secret.

    Args:
        request: Request recebido
        expected: Secret configurado (passado explicitamente pelo caller)

    Raises:
        HTTPException 401: Secret ausente, não configurado ou inválido
    """
    recebido = request.headers.get("X-Job-Secret", "")
    if not recebido or not expected or not hmac.compare_digest(recebido, expected):
        raise HTTPException(status_code=401, detail="Job secret inválido")


async def exigir_job_secret(request: Request) -> None:
    """Dependency FastAPI: valida o secret com settings.JOBS_SECRET."""
    verificar_job_secret(request, settings.JOBS_SECRET)


def job_endpoint(name: str):
    """
    Decorator DRY para endpoints de job.

    Encapsula o padrao try/except/JSONResponse comum a todos os handlers.

    Args:
        name: Nome do job para logging de erro.

    Uso:
        @router.post("/meu-job")
        @job_endpoint("meu-job")
        async def job_meu_job():
            return {"status": "ok", "message": "feito"}
    """

    def decorator(
        func: Callable[..., Coroutine[Any, Any, dict | JSONResponse]],
    ) -> Callable[..., Coroutine[Any, Any, JSONResponse]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> JSONResponse:
            try:
                result = await func(*args, **kwargs)
                # Se o handler ja retornou JSONResponse, passar adiante
                if isinstance(result, JSONResponse):
                    return result
                return JSONResponse(result)
            except HTTPException:
                raise
            except Exception as e:
                logger.error(f"Erro no job {name}: {e}")
                return JSONResponse(
                    {"status": "error", "message": str(e)},
                    status_code=500,
                )

        return wrapper

    return decorator
