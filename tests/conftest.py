"""
Configuração global de testes - Fixtures compartilhadas.

Este arquivo contém fixtures reutilizáveis em todos os testes do projeto.

Usage:
    Fixtures aqui definidas são automaticamente disponíveis em todos os testes.
    Para fixtures específicas de módulo, use conftest.py local.
"""
import os

# O cliente Supabase é criado no import de app.services.supabase
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault(
    "SUPABASE_SERVICE_KEY",
    "eyJhbGciOiJIUzI1NiJ9.eyJyb2xlIjoic2VydmljZV9yb2xlIn0.dGVzdA",
)

from contextlib import ExitStack
from unittest.mock import patch
from uuid import uuid4

import pytest

from tests.fakes import FakeSupabase, criar_mock_supabase


# Módulos que usam `from app.services.supabase import supabase`
MODULOS_COM_SUPABASE = (
    "app.services.kernel.outbox",
    "app.services.kernel.reconciliation",
    "app.services.kernel.events",
    "app.services.kernel.dispatcher",
    "app.services.kernel.runtime",
    "app.services.kernel.runs",
)


# =============================================================================
# FIXTURES DE MOCKS - Serviços Externos
# =============================================================================


@pytest.fixture
def mock_supabase():
    """
    Mock do cliente Supabase nos módulos do kernel.

    Uso:
        def test_algo(mock_supabase):
            mock_supabase.execute.return_value.data = [...]
    """
    mock = criar_mock_supabase()
    with ExitStack() as stack:
        for modulo in MODULOS_COM_SUPABASE:
            stack.enter_context(patch(f"{modulo}.supabase", mock))
        yield mock


@pytest.fixture
def mock_supabase_factory():
    """Factory para criar mocks de Supabase com dados específicos."""
    return criar_mock_supabase


@pytest.fixture
def fake_supabase():
    """
    Banco em memória (com unique constraints) nos módulos do kernel.

    Uso:
        async def test_algo(fake_supabase):
            await begin_outbox_item(...)
            assert len(fake_supabase.rows("channel_outbox")) == 1
    """
    store = FakeSupabase()
    with ExitStack() as stack:
        for modulo in MODULOS_COM_SUPABASE:
            stack.enter_context(patch(f"{modulo}.supabase", store))
        yield store


# =============================================================================
# FIXTURES DE DADOS - Entidades do Domínio
# =============================================================================


@pytest.fixture
def tenant_id():
    return str(uuid4())


@pytest.fixture
def outbox_kwargs(tenant_id):
    """Argumentos válidos para begin_outbox_item."""
    return {
        "tenant_id": tenant_id,
        "run_id": "run-1",
        "job_id": "job-1",
        "channel": "email",
        "provider": "internal",
        "idempotency_key": "a" * 64,
        "payload": {"subject": "Oi", "html_body": "<p>Oi</p>"},
        "recipient_email": "lead@example.com",
    }


@pytest.fixture
def lead_captured_event(tenant_id):
    """Corpo de evento lead_captured vindo de campanhas."""
    return {
        "tenant_id": tenant_id,
        "type": "lead_captured",
        "source": "cmo_campaigns",
        "entity_type": "lead",
        "entity_id": "lead-1",
        "correlation_id": "corr-1",
        "payload": {"campaign_id": "camp-1", "email": "lead@example.com"},
        "occurred_at": "2026-01-10T12:00:00+00:00",
    }
