"""
Testes do contrato de adapter e do registro de providers.
"""
from unittest.mock import AsyncMock

import pytest

from app.core.exceptions import ConfigurationError, ExecutionContractViolation
from app.services.kernel.adapters import (
    ProviderResult,
    create_provider_adapter,
    is_provider_adapter,
)
from app.services.kernel.providers import (
    INTERNAL_PROVIDER,
    get_provider_adapter,
    listar_providers,
    register_provider,
    unregister_provider,
)


class TestCreateProviderAdapter:
    """Testes para create_provider_adapter()."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("outbox_id", ["", None])
    async def test_sem_outbox_id_nao_chama_provider(self, outbox_id):
        provider_fn = AsyncMock(return_value=ProviderResult(success=True))
        adapter = create_provider_adapter(provider_fn)

        with pytest.raises(ExecutionContractViolation) as exc:
            await adapter(outbox_id, {"payload": {}})

        assert "outbox_id" in str(exc.value)
        provider_fn.assert_not_called()

    @pytest.mark.asyncio
    async def test_repassa_params_e_resultado(self):
        esperado = ProviderResult(success=True, message_id="msg-1")
        provider_fn = AsyncMock(return_value=esperado)
        adapter = create_provider_adapter(provider_fn)

        result = await adapter("outbox-1", {"payload": {"a": 1}})

        assert result is esperado
        provider_fn.assert_awaited_once_with({"payload": {"a": 1}})

    def test_marca_adapter(self):
        async def enviar(params):
            return ProviderResult(success=True)

        adapter = create_provider_adapter(enviar)

        assert is_provider_adapter(adapter) is True
        assert is_provider_adapter(enviar) is False
        assert adapter.__name__ == "enviar"


class TestRegistroProviders:
    """Testes do registro por canal."""

    def test_internal_registrado_para_todos_canais(self):
        registrados = listar_providers()
        for canal in ("email", "voice", "social"):
            assert (canal, INTERNAL_PROVIDER) in registrados

    @pytest.mark.asyncio
    async def test_internal_e_dry_run(self):
        adapter = get_provider_adapter("email", INTERNAL_PROVIDER)

        result = await adapter("outbox-1", {"payload": {}, "recipient": {}})

        assert result.success is True
        assert result.message_id.startswith("internal-")
        assert result.raw_response["dry_run"] is True

    def test_provider_desconhecido_levanta(self):
        with pytest.raises(ConfigurationError):
            get_provider_adapter("voice", "nao-existe")

    def test_canal_invalido_levanta(self):
        with pytest.raises(ValueError):
            get_provider_adapter("fax", INTERNAL_PROVIDER)

    def test_register_e_unregister(self):
        async def resend(params):
            return ProviderResult(success=True)

        adapter = register_provider("email", "resend_teste", resend)
        try:
            assert get_provider_adapter("email", "resend_teste") is adapter
            assert is_provider_adapter(adapter)
        finally:
            unregister_provider("email", "resend_teste")

        with pytest.raises(ConfigurationError):
            get_provider_adapter("email", "resend_teste")

    def test_internal_nao_pode_ser_removido(self):
        unregister_provider("social", INTERNAL_PROVIDER)
        assert get_provider_adapter("social", INTERNAL_PROVIDER)
