"""
Módulo centralizado para tratamento de timezone.

Convenções:
- `agora_utc()`: Para armazenar no banco
- `para_utc(dt)`: Converter datetime para UTC
"""

from datetime import datetime, timezone


TZ_UTC = timezone.utc


def agora_utc() -> datetime:
    """
    Retorna datetime atual em UTC (timezone-aware).

    Use para:
    - Armazenar no banco de dados
    - Logs e timestamps
    - Comparações com dados do banco

    Returns:
        datetime em UTC com tzinfo
    """
    return datetime.now(TZ_UTC)


def para_utc(dt: datetime) -> datetime:
    """
    Converte datetime para UTC.

    Datetimes naive são assumidos como UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=TZ_UTC)
    return dt.astimezone(TZ_UTC)
