"""
Exception handlers para FastAPI.
"""

import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.core.exceptions import (
    RevenueOSException,
    DatabaseError,
    ExternalAPIError,
    ValidationError,
    ExecutionContractViolation,
    ConfigurationError,
)

logger = logging.getLogger(__name__)


async def revenue_os_exception_handler(request: Request, exc: RevenueOSException) -> JSONResponse:
    """Handler para todas as exceptions customizadas."""
    status_code = 500
    error_type = exc.__class__.__name__

    # Mapear tipo de exception para status code HTTP
    if isinstance(exc, ValidationError):
        status_code = 400
    elif isinstance(exc, ExternalAPIError):
        status_code = 502
    elif isinstance(exc, DatabaseError):
        status_code = 503

    if isinstance(exc, ExecutionContractViolation):
        logger.critical(
            f"{error_type}: {exc.message}",
            extra={"error_type": error_type, "details": exc.details, "path": request.url.path},
        )
    else:
        logger.error(
            f"{error_type}: {exc.message}",
            extra={"error_type": error_type, "details": exc.details, "path": request.url.path},
        )

    return JSONResponse(
        status_code=status_code,
        content={"error": error_type, "message": exc.message, "details": exc.details},
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler para exceptions nao tratadas."""
    logger.exception(f"Erro nao tratado: {exc}", extra={"path": request.url.path})

    return JSONResponse(
        status_code=500,
        content={
            "error": "InternalServerError",
            "message": "Erro interno do servidor",
            "details": {},
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Registra todos os exception handlers no app FastAPI.

    Usage:
        from app.api.error_handlers import register_exception_handlers

        app = FastAPI()
        register_exception_handlers(app)
    """
    app.add_exception_handler(RevenueOSException, revenue_os_exception_handler)

    for exc_class in (
        DatabaseError,
        ExternalAPIError,
        ValidationError,
        ExecutionContractViolation,
        ConfigurationError,
    ):
        app.add_exception_handler(exc_class, revenue_os_exception_handler)

    # Handler generico para exceptions nao tratadas
    app.add_exception_handler(Exception, generic_exception_handler)
