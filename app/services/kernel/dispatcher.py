"""
Dispatcher do Revenue OS Kernel.

Único componente de runtime que transforma decisões em side-effects.

Para cada tentativa:
1. begin_outbox_item() reserva o slot (replay → skipped, provider NÃO é chamado)
2. adapter do provider chamado com o outbox_id
3. finalize_outbox_success() ou finalize_outbox_failure()

Toda ação de uma decisão EMIT_ACTIONS é registrada em kernel_actions.
Em modo shadow nada além disso acontece.

ExecutionContractViolation nunca é tratada aqui.
"""
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional

from app.core.config import settings
from app.core.exceptions import DatabaseError, ExecutionContractViolation, ValidationError
from app.core.timezone import agora_utc
from app.services.supabase import supabase
from .idempotency import derive_idempotency_key
from .outbox import begin_outbox_item, finalize_outbox_failure, finalize_outbox_success
from .providers import get_provider_adapter
from .types import (
    ActionStatus,
    ActionType,
    Channel,
    DecisionType,
    KernelDecision,
    KernelRuntimeMode,
    OutboxStatus,
    RevenueAction,
    terminal_status_for_channel,
)

logger = logging.getLogger(__name__)

KEY_NAMESPACE = "revenue_os_kernel"


@dataclass
class DispatchAttempt:
    """Uma tentativa de side-effect a ser reservada no outbox."""

    tenant_id: str
    run_id: Optional[str]
    job_id: Optional[str]
    channel: Channel
    provider: str
    idempotency_key: str
    payload: dict = field(default_factory=dict)
    recipient_id: Optional[str] = None
    recipient_email: Optional[str] = None
    recipient_phone: Optional[str] = None


@dataclass
class DispatchOutcome:
    """
    Resultado de dispatch_attempt.

    status: sent | called | posted | failed | skipped | error
    ("error" = reserva não obtida por falha de banco; nada foi enviado)
    """

    status: str
    idempotency_key: str
    outbox_id: Optional[str] = None
    provider_message_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def skipped(self) -> bool:
        return self.status == OutboxStatus.SKIPPED.value

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "idempotency_key": self.idempotency_key,
            "outbox_id": self.outbox_id,
            "provider_message_id": self.provider_message_id,
            "error": self.error,
            "skipped": self.skipped,
        }


async def dispatch_attempt(attempt: DispatchAttempt) -> DispatchOutcome:
    """
    Executa uma tentativa pelo protocolo do outbox.

    Falha do provider é registrada no outbox (status failed) e retornada,
    não levantada. O kernel não faz retry.
    """
    # Provider resolvido antes da reserva: config inválida não deixa queued órfão
    adapter = get_provider_adapter(attempt.channel, attempt.provider)

    reserva = await begin_outbox_item(
        tenant_id=attempt.tenant_id,
        run_id=attempt.run_id,
        job_id=attempt.job_id,
        channel=attempt.channel,
        provider=attempt.provider,
        idempotency_key=attempt.idempotency_key,
        payload=attempt.payload,
        recipient_id=attempt.recipient_id,
        recipient_email=attempt.recipient_email,
        recipient_phone=attempt.recipient_phone,
    )

    if reserva.skipped:
        return DispatchOutcome(status=OutboxStatus.SKIPPED.value, idempotency_key=attempt.idempotency_key)

    if not reserva.should_dispatch:
        return DispatchOutcome(
            status="error",
            idempotency_key=attempt.idempotency_key,
            error=reserva.error,
        )

    outbox_id = reserva.outbox_id
    params = {
        "payload": attempt.payload,
        "idempotency_key": attempt.idempotency_key,
        "recipient": {
            "id": attempt.recipient_id,
            "email": attempt.recipient_email,
            "phone": attempt.recipient_phone,
        },
    }

    try:
        result = await adapter(outbox_id, params)
    except ExecutionContractViolation:
        raise
    except Exception as e:
        logger.error(
            f"Provider {attempt.provider} falhou: {e}",
            extra={
                "event": "provider_exception",
                "outbox_id": outbox_id,
                "tenant_id": attempt.tenant_id,
                "provider": attempt.provider,
            },
        )
        await finalize_outbox_failure(outbox_id, str(e))
        return DispatchOutcome(
            status=OutboxStatus.FAILED.value,
            idempotency_key=attempt.idempotency_key,
            outbox_id=outbox_id,
            error=str(e),
        )

    if result.success:
        status = terminal_status_for_channel(attempt.channel)
        await finalize_outbox_success(
            outbox_id,
            provider_message_id=result.message_id,
            provider_response=result.raw_response,
            terminal_status=status,
        )
        return DispatchOutcome(
            status=status.value,
            idempotency_key=attempt.idempotency_key,
            outbox_id=outbox_id,
            provider_message_id=result.message_id,
        )

    erro = result.error or "provider_returned_failure"
    await finalize_outbox_failure(outbox_id, erro)
    return DispatchOutcome(
        status=OutboxStatus.FAILED.value,
        idempotency_key=attempt.idempotency_key,
        outbox_id=outbox_id,
        error=erro,
    )


# =============================================================================
# Decisões → ações
# =============================================================================


@dataclass(frozen=True)
class OutboundConfig:
    """Como uma ação OUTBOUND_* vira DispatchAttempt."""

    channel: Channel
    recipient_key: str        # chave em action.metadata
    lead_field: Optional[str]  # coluna em leads quando o alvo é lead
    discriminator_key: str    # entra na chave de idempotência
    provider_setting: str


OUTBOUND_CONFIGS = {
    ActionType.OUTBOUND_EMAIL.value: OutboundConfig(
        Channel.EMAIL, "to_email", "email", "subject", "KERNEL_EMAIL_PROVIDER"
    ),
    ActionType.OUTBOUND_VOICE.value: OutboundConfig(
        Channel.VOICE, "to_phone", "phone", "script_id", "KERNEL_VOICE_PROVIDER"
    ),
    ActionType.OUTBOUND_SOCIAL.value: OutboundConfig(
        Channel.SOCIAL, "account_id", None, "post_id", "KERNEL_SOCIAL_PROVIDER"
    ),
}

TASK_ACTIONS = {ActionType.TASK_CREATE.value, ActionType.FOLLOW_UP.value}


async def _resolver_destinatario(action: RevenueAction, cfg: OutboundConfig) -> Optional[str]:
    """Destinatário explícito no metadata ou buscado no lead."""
    destinatario = action.metadata.get(cfg.recipient_key)
    if action.target.kind != "lead" or not cfg.lead_field:
        return str(destinatario) if destinatario else None

    try:
        response = (
            supabase.table("leads")
            .select(cfg.lead_field)
            .eq("id", action.target.id)
            .limit(1)
            .execute()
        )
    except Exception as e:
        raise DatabaseError("KERNEL_LEAD_LOOKUP_FAILED", original_error=e) from e

    if response.data and response.data[0].get(cfg.lead_field):
        return str(response.data[0][cfg.lead_field])
    return str(destinatario) if destinatario else None


async def _executar_outbound(decision: KernelDecision, action: RevenueAction) -> dict:
    cfg = OUTBOUND_CONFIGS[action.type]
    destinatario = await _resolver_destinatario(action, cfg)
    if not destinatario:
        raise ValidationError(
            f"KERNEL_{cfg.channel.value.upper()}_MISSING_RECIPIENT",
            details={"reason_code": action.reason_code},
        )

    discriminador = action.metadata.get(cfg.discriminator_key)
    idempotency_key = derive_idempotency_key([
        KEY_NAMESPACE,
        action.type,
        decision.tenant_id,
        decision.correlation_id,
        action.reason_code,
        destinatario,
        str(discriminador) if discriminador is not None else None,
    ])

    payload = {
        key: value
        for key, value in action.metadata.items()
        if key != cfg.recipient_key
    }
    payload["revenue_os"] = {
        "correlation_id": decision.correlation_id,
        "decision_id": decision.id,
        "reason_code": action.reason_code,
    }

    attempt = DispatchAttempt(
        tenant_id=decision.tenant_id,
        run_id=decision.correlation_id,
        job_id=decision.id,
        channel=cfg.channel,
        provider=getattr(settings, cfg.provider_setting),
        idempotency_key=idempotency_key,
        payload=payload,
        recipient_id=action.target.id if action.target.kind == "lead" else None,
        recipient_email=destinatario if cfg.channel == Channel.EMAIL else None,
        recipient_phone=destinatario if cfg.channel == Channel.VOICE else None,
    )
    outcome = await dispatch_attempt(attempt)

    if outcome.status == "error":
        raise DatabaseError(
            f"KERNEL_OUTBOX_BEGIN_FAILED: {outcome.error}",
            details={"idempotency_key": idempotency_key},
        )
    return outcome.to_dict()


async def _executar_task(decision: KernelDecision, action: RevenueAction) -> dict:
    meta = action.metadata
    prefixo = f"[correlation_id:{decision.correlation_id}]"
    descricao = f"{prefixo} {meta.get('description') or ''}".strip()
    due_in_hours = float(meta.get("due_in_hours") or 24)

    row = {
        "tenant_id": decision.tenant_id,
        "lead_id": action.target.id if action.target.kind == "lead" else None,
        "deal_id": action.target.id if action.target.kind == "deal" else None,
        "title": str(meta.get("title") or "Follow up"),
        "description": descricao,
        "due_date": (agora_utc() + timedelta(hours=due_in_hours)).isoformat(),
        "status": "pending",
        "task_type": meta.get("task_type") or "follow_up",
    }

    try:
        response = supabase.table("tasks").insert(row).execute()
    except Exception as e:
        raise DatabaseError("KERNEL_TASK_INSERT_FAILED", original_error=e) from e

    task_id = response.data[0].get("id") if response.data else None
    return {"task_id": task_id}


async def _inserir_action_row(decision: KernelDecision, action: RevenueAction, action_json: dict) -> str:
    try:
        response = supabase.table("kernel_actions").insert({
            "tenant_id": decision.tenant_id,
            "decision_id": decision.id,
            "correlation_id": decision.correlation_id,
            "action_type": action.type,
            "action_json": action_json,
            "status": ActionStatus.LOGGED.value,
        }).execute()
    except Exception as e:
        raise DatabaseError("KERNEL_ACTION_INSERT_FAILED", original_error=e) from e

    if not response.data or not response.data[0].get("id"):
        raise DatabaseError("KERNEL_ACTION_INSERT_FAILED: missing id")
    return response.data[0]["id"]


async def _atualizar_action_row(action_row_id: str, patch: dict) -> None:
    try:
        supabase.table("kernel_actions").update(patch).eq("id", action_row_id).execute()
    except Exception as e:
        raise DatabaseError("KERNEL_ACTION_UPDATE_FAILED", original_error=e) from e


async def execute_decision(
    decision: KernelDecision,
    mode: KernelRuntimeMode | str = KernelRuntimeMode.SHADOW,
) -> list[dict]:
    """
    Registra e (em enforce) executa as ações de uma decisão.

    Args:
        decision: Decisão já persistida (decision.id preenchido)
        mode: shadow | enforce

    Returns:
        Lista com o resultado de cada ação

    Raises:
        Erro da primeira ação que falhar (linha marcada como failed antes)
    """
    if DecisionType(decision.decision_type) != DecisionType.EMIT_ACTIONS:
        return []

    modo = KernelRuntimeMode(mode)
    resultados: list[dict] = []

    for action in decision.actions:
        action_json = {
            **action.to_dict(),
            "_kernel": {
                "tenant_id": decision.tenant_id,
                "correlation_id": decision.correlation_id,
                "decision_id": decision.id,
            },
        }
        action_row_id = await _inserir_action_row(decision, action, action_json)

        if modo != KernelRuntimeMode.ENFORCE:
            resultados.append({"action_id": action_row_id, "status": ActionStatus.LOGGED.value})
            continue

        try:
            if action.type in OUTBOUND_CONFIGS:
                result = await _executar_outbound(decision, action)
            elif action.type in TASK_ACTIONS:
                result = await _executar_task(decision, action)
            else:
                result = {"skipped": True, "reason": "action_not_implemented"}
        except Exception as e:
            await _atualizar_action_row(action_row_id, {
                "status": ActionStatus.FAILED.value,
                "executed_at": agora_utc().isoformat(),
                "error": str(e)[:500],
            })
            raise

        if result.get("status") == OutboxStatus.FAILED.value:
            status = ActionStatus.FAILED
        elif result.get("skipped"):
            status = ActionStatus.SKIPPED
        else:
            status = ActionStatus.EXECUTED

        patch = {
            "status": status.value,
            "executed_at": agora_utc().isoformat(),
            "action_json": {**action_json, "_result": result},
        }
        if status == ActionStatus.FAILED:
            patch["error"] = result.get("error")
        await _atualizar_action_row(action_row_id, patch)

        logger.info(
            f"Ação {action.type} → {status.value}",
            extra={
                "event": "kernel_action_executed",
                "tenant_id": decision.tenant_id,
                "correlation_id": decision.correlation_id,
                "decision_id": decision.id,
            },
        )
        resultados.append({"action_id": action_row_id, "status": status.value, "result": result})

    return resultados
