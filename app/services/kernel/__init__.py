"""
Revenue OS Kernel - outbox transacional + policies + dispatcher.

Componentes:
- types: contrato v1 (eventos, decisões, ações, status do outbox)
- idempotency: derive_idempotency_key
- outbox: begin / finalize (reserva no channel_outbox)
- adapters / providers: chamada de provider exige outbox_id
- reconciliation: resumo e verificação de terminal por run
- dispatcher: único executor de side-effects
- policies / decision_engine: decisão pura
- runtime: ingestão de eventos ponta a ponta
- guard: veredito mais restrito das policies GUARD

Aqui só são reexportados os módulos sem I/O (as policies importam este
pacote). Serviços com banco: importar do submódulo.
"""

from .types import (
    KERNEL_CONTRACT_VERSION,
    TERMINAL_STATUSES,
    ActionStatus,
    ActionTarget,
    ActionType,
    BeginOutboxResult,
    Channel,
    DecisionStatus,
    DecisionType,
    GuardResponse,
    GuardResult,
    KernelDecision,
    KernelEvent,
    KernelRuntimeMode,
    OutboxStatus,
    OutboxSummary,
    RevenueAction,
    TerminalCheck,
    is_terminal,
    terminal_status_for_channel,
)
from .idempotency import derive_idempotency_key

__all__ = [
    "KERNEL_CONTRACT_VERSION",
    "TERMINAL_STATUSES",
    "ActionStatus",
    "ActionTarget",
    "ActionType",
    "BeginOutboxResult",
    "Channel",
    "DecisionStatus",
    "DecisionType",
    "GuardResponse",
    "GuardResult",
    "KernelDecision",
    "KernelEvent",
    "KernelRuntimeMode",
    "OutboxStatus",
    "OutboxSummary",
    "RevenueAction",
    "TerminalCheck",
    "is_terminal",
    "terminal_status_for_channel",
    "derive_idempotency_key",
]
