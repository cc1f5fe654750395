"""
Cliente Supabase para operacoes de banco de dados.
"""
from supabase import create_client, Client
from functools import lru_cache
import logging

from app.core.config import settings

logger = logging.getLogger(__name__)

# Código Postgres para violação de unique constraint
UNIQUE_VIOLATION = "23505"


@lru_cache()
def get_supabase_client() -> Client:
    """
    Retorna cliente Supabase cacheado.
    Usa service key para acesso completo.
    """
    if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_KEY:
        raise ValueError("SUPABASE_URL e SUPABASE_SERVICE_KEY sao obrigatorios")

    return create_client(
        settings.SUPABASE_URL,
        settings.SUPABASE_SERVICE_KEY
    )


# Instancia global (use via dependency injection quando possivel)
supabase = get_supabase_client()


def is_unique_violation(error: Exception) -> bool:
    """
    Verifica se o erro é violação de unique constraint.

    postgrest.APIError expõe `code`; outros clientes só trazem a mensagem.
    """
    if getattr(error, "code", None) == UNIQUE_VIOLATION:
        return True
    error_str = str(error).lower()
    return "unique" in error_str or "duplicate" in error_str or UNIQUE_VIOLATION in error_str
