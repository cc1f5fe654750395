"""
Contrato de adapter de provider.

create_provider_adapter() transforma qualquer função que chama um provider
em outra que exige outbox_id. Chamar provider sem reserva no outbox deixa
de ser convenção e vira erro na chamada.
"""
import functools
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from app.core.exceptions import ExecutionContractViolation


@dataclass
class ProviderResult:
    """Resultado da chamada ao provider."""

    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
    raw_response: Optional[dict] = None


ProviderFn = Callable[[dict], Awaitable[ProviderResult]]
ProviderAdapter = Callable[[str, dict], Awaitable[ProviderResult]]


def create_provider_adapter(provider_fn: ProviderFn) -> ProviderAdapter:
    """
    Envolve provider_fn exigindo outbox_id.

    Args:
        provider_fn: async (params) -> ProviderResult

    Returns:
        async (outbox_id, params) -> ProviderResult

    Uso:
        enviar = create_provider_adapter(enviar_email_resend)
        result = await enviar(reserva.outbox_id, params)
    """

    @functools.wraps(provider_fn)
    async def adapter(outbox_id: str, params: dict) -> ProviderResult:
        if not outbox_id:
            raise ExecutionContractViolation(
                "outbox_id is required before calling a provider",
                details={"provider_fn": getattr(provider_fn, "__name__", repr(provider_fn))},
            )
        return await provider_fn(params)

    adapter.requires_outbox = True  # type: ignore[attr-defined]
    return adapter


def is_provider_adapter(fn: Any) -> bool:
    """True se fn foi criado por create_provider_adapter."""
    return getattr(fn, "requires_outbox", False) is True
