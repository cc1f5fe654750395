"""
Testes do dispatcher: protocolo do outbox e execução de decisões.
"""
from unittest.mock import AsyncMock

import pytest

from app.core.exceptions import (
    ConfigurationError,
    DatabaseError,
    ExecutionContractViolation,
    ValidationError,
)
from app.services.kernel.adapters import ProviderResult
from app.services.kernel.dispatcher import (
    DispatchAttempt,
    dispatch_attempt,
    execute_decision,
)
from app.services.kernel.providers import register_provider, unregister_provider
from app.services.kernel.types import (
    ActionTarget,
    ActionType,
    Channel,
    DecisionType,
    KernelDecision,
    RevenueAction,
)


@pytest.fixture
def provider_fake():
    """Provider 'fake' registrado em todos os canais."""
    provider_fn = AsyncMock(return_value=ProviderResult(success=True, message_id="msg-1"))
    for canal in Channel:
        register_provider(canal, "fake", provider_fn)
    yield provider_fn
    for canal in Channel:
        unregister_provider(canal, "fake")


def _attempt(tenant_id, channel=Channel.EMAIL, key="k" * 64, provider="fake"):
    return DispatchAttempt(
        tenant_id=tenant_id,
        run_id="run-1",
        job_id="job-1",
        channel=channel,
        provider=provider,
        idempotency_key=key,
        payload={"subject": "Oi"},
        recipient_email="lead@example.com",
    )


def _decision(tenant_id, actions, decision_type=DecisionType.EMIT_ACTIONS):
    return KernelDecision(
        tenant_id=tenant_id,
        correlation_id="corr-1",
        policy_name="teste",
        decision_type=decision_type,
        decision_json={"actions": [a.to_dict() for a in actions]},
        id="decision-1",
    )


def _email(to_email="lead@example.com", subject="Oi", target=None):
    return RevenueAction(
        type=ActionType.OUTBOUND_EMAIL.value,
        target=target or ActionTarget(kind="lead", id="lead-1"),
        reason_code="teste.send_email",
        reason_text="Enviar email",
        metadata={"to_email": to_email, "subject": subject, "html_body": "<p>Oi</p>"},
    )


def _task():
    return RevenueAction(
        type=ActionType.TASK_CREATE.value,
        target=ActionTarget(kind="lead", id="lead-1"),
        reason_code="teste.create_task",
        reason_text="Criar task",
        metadata={"title": "Follow up", "description": "Ligar", "due_in_hours": 2},
    )


class TestDispatchAttempt:
    """Testes para dispatch_attempt()."""

    @pytest.mark.asyncio
    async def test_sucesso_email_finaliza_sent(self, fake_supabase, provider_fake, tenant_id):
        outcome = await dispatch_attempt(_attempt(tenant_id))

        assert outcome.status == "sent"
        assert outcome.provider_message_id == "msg-1"
        row = fake_supabase.rows("channel_outbox")[0]
        assert row["id"] == outcome.outbox_id
        assert row["status"] == "sent"
        assert row["provider_message_id"] == "msg-1"

        params = provider_fake.call_args.args[0]
        assert params["idempotency_key"] == "k" * 64
        assert params["recipient"]["email"] == "lead@example.com"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("channel,status", [
        (Channel.VOICE, "called"),
        (Channel.SOCIAL, "posted"),
    ])
    async def test_status_terminal_por_canal(self, fake_supabase, provider_fake, tenant_id, channel, status):
        outcome = await dispatch_attempt(_attempt(tenant_id, channel=channel))

        assert outcome.status == status
        assert fake_supabase.rows("channel_outbox")[0]["status"] == status

    @pytest.mark.asyncio
    async def test_replay_nao_chama_provider(self, fake_supabase, provider_fake, tenant_id):
        primeira = await dispatch_attempt(_attempt(tenant_id))
        segunda = await dispatch_attempt(_attempt(tenant_id))

        assert primeira.status == "sent"
        assert segunda.status == "skipped"
        assert segunda.skipped is True
        assert provider_fake.await_count == 1
        assert len(fake_supabase.rows("channel_outbox")) == 1

    @pytest.mark.asyncio
    async def test_provider_retorna_falha(self, fake_supabase, provider_fake, tenant_id):
        provider_fake.return_value = ProviderResult(success=False, error="bounce")

        outcome = await dispatch_attempt(_attempt(tenant_id))

        assert outcome.status == "failed"
        assert outcome.error == "bounce"
        row = fake_supabase.rows("channel_outbox")[0]
        assert row["status"] == "failed"
        assert row["error"] == "bounce"

    @pytest.mark.asyncio
    async def test_provider_levanta_excecao(self, fake_supabase, provider_fake, tenant_id):
        provider_fake.side_effect = RuntimeError("timeout no provider")

        outcome = await dispatch_attempt(_attempt(tenant_id))

        assert outcome.status == "failed"
        assert "timeout" in outcome.error
        assert fake_supabase.rows("channel_outbox")[0]["status"] == "failed"

    @pytest.mark.asyncio
    async def test_violacao_de_contrato_propaga(self, fake_supabase, provider_fake, tenant_id):
        provider_fake.side_effect = ExecutionContractViolation("provider sem outbox")

        with pytest.raises(ExecutionContractViolation):
            await dispatch_attempt(_attempt(tenant_id))

    @pytest.mark.asyncio
    async def test_falha_na_reserva_nao_chama_provider(self, fake_supabase, provider_fake, tenant_id):
        fake_supabase.falhar("channel_outbox", "insert")

        outcome = await dispatch_attempt(_attempt(tenant_id))

        assert outcome.status == "error"
        assert outcome.error
        provider_fake.assert_not_called()

    @pytest.mark.asyncio
    async def test_provider_nao_registrado_nao_reserva(self, fake_supabase, tenant_id):
        with pytest.raises(ConfigurationError):
            await dispatch_attempt(_attempt(tenant_id, provider="nao-existe"))

        assert fake_supabase.rows("channel_outbox") == []

    @pytest.mark.asyncio
    async def test_sem_chave_levanta(self, fake_supabase, provider_fake, tenant_id):
        with pytest.raises(ExecutionContractViolation):
            await dispatch_attempt(_attempt(tenant_id, key=""))

        provider_fake.assert_not_called()


class TestExecuteDecision:
    """Testes para execute_decision()."""

    @pytest.mark.asyncio
    async def test_shadow_so_registra(self, fake_supabase, tenant_id):
        decision = _decision(tenant_id, [_email(), _task()])

        resultados = await execute_decision(decision, "shadow")

        assert [r["status"] for r in resultados] == ["logged", "logged"]
        actions = fake_supabase.rows("kernel_actions")
        assert len(actions) == 2
        assert {a["status"] for a in actions} == {"logged"}
        assert actions[0]["action_json"]["_kernel"]["decision_id"] == "decision-1"
        assert fake_supabase.rows("channel_outbox") == []
        assert fake_supabase.rows("tasks") == []

    @pytest.mark.asyncio
    async def test_enforce_envia_email_e_cria_task(self, fake_supabase, tenant_id):
        decision = _decision(tenant_id, [_email(), _task()])

        resultados = await execute_decision(decision, "enforce")

        assert [r["status"] for r in resultados] == ["executed", "executed"]

        outbox = fake_supabase.rows("channel_outbox")
        assert len(outbox) == 1
        assert outbox[0]["status"] == "sent"
        assert outbox[0]["provider"] == "internal"
        assert outbox[0]["run_id"] == "corr-1"
        assert outbox[0]["job_id"] == "decision-1"
        assert outbox[0]["recipient_email"] == "lead@example.com"
        assert "to_email" not in outbox[0]["payload"]
        assert outbox[0]["payload"]["revenue_os"]["decision_id"] == "decision-1"

        tasks = fake_supabase.rows("tasks")
        assert len(tasks) == 1
        assert tasks[0]["lead_id"] == "lead-1"
        assert tasks[0]["description"].startswith("[correlation_id:corr-1]")

        actions = fake_supabase.rows("kernel_actions")
        assert {a["status"] for a in actions} == {"executed"}
        assert actions[0]["action_json"]["_result"]["status"] == "sent"

    @pytest.mark.asyncio
    async def test_enforce_repetido_nao_reenvia(self, fake_supabase, tenant_id):
        """Retry da mesma decisão: email vira skipped, sem nova entrada."""
        decision = _decision(tenant_id, [_email()])

        await execute_decision(decision, "enforce")
        resultados = await execute_decision(decision, "enforce")

        assert resultados[0]["status"] == "skipped"
        assert len(fake_supabase.rows("channel_outbox")) == 1

    @pytest.mark.asyncio
    async def test_email_do_lead_tem_prioridade(self, fake_supabase, tenant_id):
        fake_supabase.rows("leads").append({"id": "lead-1", "email": "real@example.com"})
        decision = _decision(tenant_id, [_email(to_email="payload@example.com")])

        await execute_decision(decision, "enforce")

        assert fake_supabase.rows("channel_outbox")[0]["recipient_email"] == "real@example.com"

    @pytest.mark.asyncio
    async def test_sem_destinatario_marca_failed_e_levanta(self, fake_supabase, tenant_id):
        decision = _decision(tenant_id, [_email(to_email=None)])

        with pytest.raises(ValidationError):
            await execute_decision(decision, "enforce")

        action = fake_supabase.rows("kernel_actions")[0]
        assert action["status"] == "failed"
        assert "MISSING_RECIPIENT" in action["error"]
        assert fake_supabase.rows("channel_outbox") == []

    @pytest.mark.asyncio
    async def test_falha_na_reserva_levanta_database_error(self, fake_supabase, tenant_id):
        fake_supabase.falhar("channel_outbox", "insert")
        decision = _decision(tenant_id, [_email()])

        with pytest.raises(DatabaseError):
            await execute_decision(decision, "enforce")

        assert fake_supabase.rows("kernel_actions")[0]["status"] == "failed"

    @pytest.mark.asyncio
    async def test_acao_nao_implementada_e_skipped(self, fake_supabase, tenant_id):
        acao = RevenueAction(
            type=ActionType.UPSELL_TRIGGER.value,
            target=ActionTarget(kind="account", id="acc-1"),
            reason_code="teste.upsell",
            reason_text="Upsell",
        )

        resultados = await execute_decision(_decision(tenant_id, [acao]), "enforce")

        assert resultados[0]["status"] == "skipped"
        assert resultados[0]["result"]["reason"] == "action_not_implemented"

    @pytest.mark.asyncio
    async def test_guard_nao_gera_acoes(self, fake_supabase, tenant_id):
        decision = _decision(tenant_id, [], decision_type=DecisionType.GUARD)

        assert await execute_decision(decision, "enforce") == []
        assert fake_supabase.writes == []
