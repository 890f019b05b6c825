# ==================== PAYMENTS/BACKENDS/SANDBOX.PY ====================
import logging
import uuid

from .base import BasePaymentBackend, PaymentResult, to_minor_units

logger = logging.getLogger(__name__)


class SandboxBackend(BasePaymentBackend):
    """Approves every request without contacting a gateway (local development)"""

    def __init__(self, **options):
        self.options = options

    def create_order(self, booking):
        order_id = f'order_sandbox_{uuid.uuid4().hex[:14]}'
        logger.info(f"Sandbox order {order_id} for booking {booking.id}")
        return PaymentResult(
            success=True,
            reference=order_id,
            data={'amount': to_minor_units(booking.total_price), 'currency': booking.currency},
        )

    def verify(self, order_id, payment_id, signature):
        return PaymentResult(success=True, reference=payment_id)

    def capture(self, booking):
        reference = booking.payment_reference or f'pay_sandbox_{booking.id}'
        logger.info(f"Sandbox capture {reference} for booking {booking.id}")
        return PaymentResult(success=True, reference=reference)

    def refund(self, booking):
        return PaymentResult(success=True, reference=f'rfnd_sandbox_{booking.id}')
