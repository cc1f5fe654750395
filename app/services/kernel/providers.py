"""
Registro de providers por canal.

Integrações concretas (Resend, Vapi, ElevenLabs, APIs sociais) se registram
via register_provider(). O registro só devolve adapters já envolvidos por
create_provider_adapter, então o dispatcher nunca vê a função crua.

O provider "internal" é um dry-run sem rede, registrado para todos os canais.
"""
import logging
from typing import Dict, Tuple
from uuid import uuid4

from app.core.exceptions import ConfigurationError
from .adapters import ProviderAdapter, ProviderFn, ProviderResult, create_provider_adapter
from .types import Channel

logger = logging.getLogger(__name__)

INTERNAL_PROVIDER = "internal"

_registry: Dict[Tuple[str, str], ProviderAdapter] = {}


async def _internal_dry_run(params: dict) -> ProviderResult:
    """Simula envio sem chamar rede."""
    message_id = f"internal-{uuid4().hex[:12]}"
    logger.info(
        f"[dry-run] envio simulado {message_id}",
        extra={"event": "provider_dry_run"},
    )
    return ProviderResult(
        success=True,
        message_id=message_id,
        raw_response={"dry_run": True, "params_keys": sorted(params.keys())},
    )


def register_provider(channel: Channel | str, name: str, provider_fn: ProviderFn) -> ProviderAdapter:
    """
    Registra provider para um canal.

    Args:
        channel: email | voice | social
        name: Nome do provider (gravado em channel_outbox.provider)
        provider_fn: async (params) -> ProviderResult

    Returns:
        Adapter registrado
    """
    adapter = create_provider_adapter(provider_fn)
    _registry[(Channel(channel).value, name)] = adapter
    logger.debug(f"Provider registrado: {Channel(channel).value}/{name}")
    return adapter


def unregister_provider(channel: Channel | str, name: str) -> None:
    """Remove provider do registro (não remove o internal)."""
    if name == INTERNAL_PROVIDER:
        return
    _registry.pop((Channel(channel).value, name), None)


def get_provider_adapter(channel: Channel | str, name: str) -> ProviderAdapter:
    """
    Retorna adapter do provider.

    Raises:
        ConfigurationError: Provider não registrado para o canal
    """
    key = (Channel(channel).value, name)
    adapter = _registry.get(key)
    if adapter is None:
        raise ConfigurationError(
            f"Provider nao registrado: {key[0]}/{name}",
            details={"channel": key[0], "provider": name},
        )
    return adapter


def listar_providers() -> list[tuple[str, str]]:
    """Lista (canal, provider) registrados."""
    return sorted(_registry.keys())


for _channel in Channel:
    register_provider(_channel, INTERNAL_PROVIDER, _internal_dry_run)
