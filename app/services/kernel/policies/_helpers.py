"""Leitura tipada de payloads de eventos."""
from typing import Optional


def get_string(payload: dict, key: str) -> Optional[str]:
    valor = payload.get(key)
    return valor if isinstance(valor, str) else None


def get_number(payload: dict, key: str) -> Optional[float]:
    valor = payload.get(key)
    if isinstance(valor, bool):
        return None
    if isinstance(valor, (int, float)):
        return float(valor)
    if isinstance(valor, str):
        try:
            return float(valor)
        except ValueError:
            return None
    return None
