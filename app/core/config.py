"""
Configurações da aplicação.
Carrega variáveis de ambiente.
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Configurações carregadas do .env"""

    # App
    APP_NAME: str = "Revenue OS Kernel"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # APP_ENV: "production" | "dev" (padronizado para auditoria)
    APP_ENV: str = "dev"  # Sempre "dev" por padrão, PROD deve setar "production"

    # Supabase
    SUPABASE_URL: str = ""
    SUPABASE_SERVICE_KEY: str = ""

    # Kernel
    # KERNEL_MODE: "shadow" (só registra ações) | "enforce" (executa via dispatcher)
    KERNEL_MODE: str = "shadow"
    KERNEL_EMAIL_PROVIDER: str = "internal"
    KERNEL_VOICE_PROVIDER: str = "internal"
    KERNEL_SOCIAL_PROVIDER: str = "internal"

    # Reconciliação do outbox
    OUTBOX_STALE_MINUTES: int = 30  # queued há mais que isso = reserva travada
    OUTBOX_PAGE_SIZE: int = 1000  # Limite padrão do PostgREST por request

    # Jobs - secret compartilhado com o scheduler (header X-Job-Secret)
    JOBS_SECRET: str = ""

    # CORS - origens permitidas (separadas por vírgula)
    CORS_ORIGINS: str = "*"  # "*" apenas para desenvolvimento

    @property
    def is_production(self) -> bool:
        """Retorna True se está em produção (APP_ENV == 'production')."""
        return self.APP_ENV.lower() == "production"

    @property
    def kernel_mode(self) -> str:
        """
        Modo normalizado do kernel.

        Qualquer valor diferente de "enforce" cai em "shadow" (fail-closed).
        """
        return "enforce" if self.KERNEL_MODE.strip().lower() == "enforce" else "shadow"

    @property
    def cors_origins_list(self) -> list[str]:
        """
        Retorna lista de origens CORS permitidas.

        Em produção, deve ser configurado explicitamente.
        """
        if self.CORS_ORIGINS == "*":
            if self.ENVIRONMENT == "production":
                import logging
                logging.warning(
                    "⚠️ CORS_ORIGINS='*' em produção. "
                    "Configure origens específicas para maior segurança."
                )
            return ["*"]
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignora variáveis extras do .env


@lru_cache()
def get_settings() -> Settings:
    """Retorna instância cacheada das configurações."""
    return Settings()


settings = get_settings()
