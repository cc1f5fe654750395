"""
Exceptions customizadas do Revenue OS Kernel.
"""
from typing import Optional


class RevenueOSException(Exception):
    """Base exception para todos os erros do sistema."""

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None,
        original_error: Optional[Exception] = None
    ):
        self.message = message
        self.details = details or {}
        self.original_error = original_error
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


class DatabaseError(RevenueOSException):
    """Erro de banco de dados (Supabase)."""
    pass


class ExternalAPIError(RevenueOSException):
    """Erro de API externa (provider de email, voz, social)."""

    def __init__(
        self,
        message: str,
        service: str,
        details: Optional[dict] = None,
        original_error: Optional[Exception] = None
    ):
        self.service = service
        super().__init__(message, details, original_error)


class ValidationError(RevenueOSException):
    """Erro de validacao de dados de entrada."""
    pass


class ExecutionContractViolation(RevenueOSException):
    """
    Violação do contrato de execução do outbox.

    Erro de programação (ex: begin sem idempotency_key, finalize ou
    chamada de provider sem outbox_id). Nunca é tratado internamente:
    derruba o caminho de código que o causou.
    """

    PREFIX = "EXECUTION_CONTRACT_VIOLATION"

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(f"{self.PREFIX}: {message}", details)


class ConfigurationError(RevenueOSException):
    """Erro de configuracao do sistema."""
    pass
