"""
Tipos e estruturas do Revenue OS Kernel.

Contrato v1: KernelEvent / KernelDecision / RevenueAction são APIs
versionadas. Mudança incompatível exige bump de KERNEL_CONTRACT_VERSION
e migração correspondente.

Este módulo não faz I/O: é importado pelas policies.
"""
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Optional


KERNEL_CONTRACT_VERSION = "v1"


# =============================================================================
# Outbox
# =============================================================================


class OutboxStatus(str, Enum):
    """Status de uma entrada do channel_outbox."""

    QUEUED = "queued"                  # Inicial: reservado, provider ainda não chamado
    GENERATED = "generated"            # Conteúdo aguardando aprovação humana
    PENDING_REVIEW = "pending_review"  # Em revisão antes do dispatch
    SENT = "sent"                      # Email enviado
    CALLED = "called"                  # Ligação realizada
    POSTED = "posted"                  # Post publicado
    FAILED = "failed"                  # Provider falhou
    SKIPPED = "skipped"                # Replay idempotente detectado no insert


TERMINAL_STATUSES = frozenset({
    OutboxStatus.SENT.value,
    OutboxStatus.CALLED.value,
    OutboxStatus.POSTED.value,
    OutboxStatus.FAILED.value,
    OutboxStatus.SKIPPED.value,
})

# Status terminais aceitos por finalize_outbox_success
SUCCESS_STATUSES = frozenset({
    OutboxStatus.SENT.value,
    OutboxStatus.CALLED.value,
    OutboxStatus.POSTED.value,
})

VALID_STATUSES = frozenset(s.value for s in OutboxStatus)

SKIP_REASON_IDEMPOTENT_REPLAY = "idempotent_replay"


def is_terminal(status: Optional[str]) -> bool:
    """True se o status é terminal (generated/pending_review não são)."""
    return status in TERMINAL_STATUSES


class Channel(str, Enum):
    """Canais de saída suportados (conjunto fechado)."""

    EMAIL = "email"
    VOICE = "voice"
    SOCIAL = "social"


_TERMINAL_POR_CANAL = {
    Channel.EMAIL: OutboxStatus.SENT,
    Channel.VOICE: OutboxStatus.CALLED,
    Channel.SOCIAL: OutboxStatus.POSTED,
}


def terminal_status_for_channel(channel: Channel | str) -> OutboxStatus:
    """Status de sucesso apropriado para o canal (email→sent, voice→called, social→posted)."""
    return _TERMINAL_POR_CANAL[Channel(channel)]


@dataclass
class BeginOutboxResult:
    """Resultado de begin_outbox_item."""

    outbox_id: Optional[str] = None
    skipped: bool = False
    error: Optional[str] = None

    @property
    def should_dispatch(self) -> bool:
        """Só chama o provider quando a reserva foi obtida."""
        return bool(self.outbox_id) and not self.skipped


@dataclass
class OutboxSummary:
    """Contagem por status das entradas de um run."""

    total: int = 0
    sent: int = 0
    called: int = 0
    posted: int = 0
    failed: int = 0
    skipped: int = 0
    pending: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class TerminalCheck:
    """Resultado de verify_all_outbox_terminal."""

    all_terminal: bool = False
    terminal: int = 0
    pending: int = 0

    @property
    def counts(self) -> dict:
        return {"terminal": self.terminal, "pending": self.pending}

    def to_dict(self) -> dict:
        return {"all_terminal": self.all_terminal, "counts": self.counts}


# =============================================================================
# Eventos, decisões e ações
# =============================================================================


class KernelRuntimeMode(str, Enum):
    """Modo de execução do runtime."""

    SHADOW = "shadow"    # Registra ações, não executa
    ENFORCE = "enforce"  # Executa via dispatcher


class DecisionType(str, Enum):
    EMIT_ACTIONS = "EMIT_ACTIONS"
    GUARD = "GUARD"
    NOOP = "NOOP"


class DecisionStatus(str, Enum):
    PROPOSED = "proposed"
    APPROVED = "approved"
    EXECUTED = "executed"
    FAILED = "failed"


class ActionStatus(str, Enum):
    """Status de uma linha em kernel_actions."""

    LOGGED = "logged"
    EXECUTED = "executed"
    FAILED = "failed"
    SKIPPED = "skipped"


class ActionType(str, Enum):
    FOLLOW_UP = "FOLLOW_UP"
    TASK_CREATE = "TASK_CREATE"
    OUTBOUND_EMAIL = "OUTBOUND_EMAIL"
    OUTBOUND_SMS = "OUTBOUND_SMS"
    OUTBOUND_VOICE = "OUTBOUND_VOICE"
    OUTBOUND_SOCIAL = "OUTBOUND_SOCIAL"
    BLOCK_DISCOUNT = "BLOCK_DISCOUNT"
    REQUIRE_OVERRIDE = "REQUIRE_OVERRIDE"
    UPSELL_TRIGGER = "UPSELL_TRIGGER"
    RENEWAL_NUDGE = "RENEWAL_NUDGE"
    NOOP = "NOOP"


class GuardResult(str, Enum):
    ALLOW = "ALLOW"
    ALLOW_WITH_OVERRIDE = "ALLOW_WITH_OVERRIDE"
    BLOCK = "BLOCK"


# Mais restrito primeiro vence: BLOCK > ALLOW_WITH_OVERRIDE > ALLOW
_GUARD_RANK = {
    GuardResult.ALLOW.value: 0,
    GuardResult.ALLOW_WITH_OVERRIDE.value: 1,
    GuardResult.BLOCK.value: 2,
}


@dataclass
class GuardResponse:
    """Veredito de uma policy GUARD (decision_json['guard'])."""

    result: str
    reason_code: str
    reason_text: str
    override_required: bool = False

    @property
    def rank(self) -> int:
        return _GUARD_RANK.get(self.result, 0)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "GuardResponse":
        return cls(
            result=data.get("result", GuardResult.ALLOW.value),
            reason_code=data.get("reason_code", ""),
            reason_text=data.get("reason_text", ""),
            override_required=bool(data.get("override_required", False)),
        )


@dataclass
class KernelEvent:
    """Evento de negócio emitido por um módulo (CRM, campanhas, billing...)."""

    tenant_id: str
    type: str
    source: str
    entity_type: str
    entity_id: str
    correlation_id: str
    payload: dict = field(default_factory=dict)
    occurred_at: Optional[str] = None


@dataclass
class ActionTarget:
    """Alvo de uma ação. kind: deal, invoice, account, contact, lead, booking."""

    kind: str
    id: str

    def to_dict(self) -> dict:
        return {"kind": self.kind, f"{self.kind}_id": self.id}

    @classmethod
    def from_dict(cls, data: dict) -> "ActionTarget":
        kind = data.get("kind", "")
        return cls(kind=kind, id=data.get(f"{kind}_id") or data.get("id") or "")


@dataclass
class RevenueAction:
    """Ação proposta por uma policy. Nunca executada pela policy."""

    type: str
    target: ActionTarget
    reason_code: str
    reason_text: str
    severity: str = "info"  # info | warn | block
    auto_execute: bool = True
    override_required: bool = False
    metadata: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "target": self.target.to_dict(),
            "severity": self.severity,
            "auto_execute": self.auto_execute,
            "override_required": self.override_required,
            "reason_code": self.reason_code,
            "reason_text": self.reason_text,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RevenueAction":
        return cls(
            type=data.get("type", ActionType.NOOP.value),
            target=ActionTarget.from_dict(data.get("target") or {}),
            reason_code=data.get("reason_code", ""),
            reason_text=data.get("reason_text", ""),
            severity=data.get("severity", "info"),
            auto_execute=bool(data.get("auto_execute", True)),
            override_required=bool(data.get("override_required", False)),
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass
class KernelDecision:
    """Decisão produzida por uma policy para um evento."""

    tenant_id: str
    correlation_id: str
    policy_name: str
    decision_type: DecisionType
    decision_json: dict = field(default_factory=dict)
    status: DecisionStatus = DecisionStatus.APPROVED
    event_id: str = ""
    id: Optional[str] = None

    @property
    def actions(self) -> list[RevenueAction]:
        """Ações de decision_json['actions'] (lista vazia se ausente ou inválida)."""
        brutas = self.decision_json.get("actions")
        if not isinstance(brutas, list):
            return []
        return [RevenueAction.from_dict(a) for a in brutas if isinstance(a, dict)]

    @property
    def guard(self) -> Optional[GuardResponse]:
        """Veredito de decision_json['guard'] (None se ausente)."""
        bruto = self.decision_json.get("guard")
        if not isinstance(bruto, dict):
            return None
        return GuardResponse.from_dict(bruto)

    def to_row(self) -> dict:
        return {
            "tenant_id": self.tenant_id,
            "event_id": self.event_id,
            "correlation_id": self.correlation_id,
            "policy_name": self.policy_name,
            "decision_type": DecisionType(self.decision_type).value,
            "decision_json": self.decision_json,
            "status": DecisionStatus(self.status).value,
        }
