"""
Derivação de chaves de idempotência.

Regra: descarta partes ausentes/vazias, junta com "|", SHA-256 em hex
minúsculo. A ordem das partes importa (nunca ordenar).

Atenção: como partes vazias são descartadas, ["a", "", "c"] e ["a", "c"]
geram a mesma chave. Callers não devem usar string vazia como
discriminador intencional.
"""
import hashlib
from typing import Optional, Sequence

SEPARADOR = "|"


def derive_idempotency_key(parts: Sequence[Optional[str]]) -> str:
    """
    Gera chave de idempotência determinística.

    Args:
        parts: Partes identificadoras do evento lógico, em ordem

    Returns:
        Hash SHA256 (64 chars, hex minúsculo)
    """
    normalizado = SEPARADOR.join(str(p) for p in parts if p)
    return hashlib.sha256(normalizado.encode("utf-8")).hexdigest()
