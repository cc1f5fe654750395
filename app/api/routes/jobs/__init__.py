"""
Endpoints para jobs e tarefas agendadas.

Sub-routers por domínio; todos exigem header X-Job-Secret.
"""

from fastapi import APIRouter

from .outbox import router as outbox_router

router = APIRouter(prefix="/jobs", tags=["Jobs"])
router.include_router(outbox_router)
