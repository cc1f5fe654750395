"""
Revenue OS Kernel - API Principal
"""
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.core.logging import setup_logging
from app.api.error_handlers import register_exception_handlers
from app.api.routes import health, jobs, kernel

# Configurar logging
setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Gerencia startup e shutdown da aplicação."""
    logger.info(f"🚀 Iniciando {settings.APP_NAME} (kernel_mode={settings.kernel_mode})")
    yield
    logger.info(f"👋 Encerrando {settings.APP_NAME}...")


app = FastAPI(
    title=settings.APP_NAME,
    description="Revenue OS Kernel - outbox transacional para execução de campanhas",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Rotas
app.include_router(health.router, tags=["Health"])
app.include_router(kernel.router)
app.include_router(jobs.router)


@app.get("/")
async def root():
    """Endpoint raiz."""
    return {
        "app": settings.APP_NAME,
        "status": "running",
        "docs": "/docs",
    }
