"""
Policies do Revenue OS.

IMPORTANTE:
- Policies são funções PURAS (sem I/O)
- Decidem O QUE fazer, nunca COMO enviar
- Só importam app.services.kernel.types e os helpers deste pacote
  (verificado por scripts/kernel_invariants.py)
"""
from . import (
    booking_confirmation,
    deal_close_guard,
    discount_guard,
    invoice_send_guard,
    lead_qualified,
    lead_response,
    usage_threshold_upsell,
)

__all__ = [
    "booking_confirmation",
    "deal_close_guard",
    "discount_guard",
    "invoice_send_guard",
    "lead_qualified",
    "lead_response",
    "usage_threshold_upsell",
]
