# ==================== PAYMENTS/BACKENDS/RAZORPAY_BACKEND.PY ====================
import logging

import razorpay
import requests
from django.utils import timezone

from .base import BasePaymentBackend, PaymentResult, to_minor_units

logger = logging.getLogger(__name__)

GATEWAY_ERRORS = (
    razorpay.errors.BadRequestError,
    razorpay.errors.GatewayError,
    razorpay.errors.ServerError,
    requests.RequestException,
)


class RazorpayBackend(BasePaymentBackend):
    """Razorpay payment gateway integration"""

    def __init__(self, key_id='', key_secret='', **options):
        if not key_id or not key_secret:
            raise ValueError('RazorpayBackend needs key_id and key_secret')
        self.client = razorpay.Client(auth=(key_id, key_secret))

    def create_order(self, booking):
        order_data = {
            'amount': to_minor_units(booking.total_price),
            'currency': booking.currency,
            'receipt': f'booking_{booking.id}_{int(timezone.now().timestamp())}',
            'notes': {
                'booking_id': booking.id,
                'renter': booking.renter.username,
                'parking_space': booking.parking_space.title,
            },
        }
        try:
            order = self.client.order.create(data=order_data)
        except GATEWAY_ERRORS as e:
            logger.error(f"Error creating Razorpay order for booking {booking.id}: {str(e)}")
            return PaymentResult(success=False, message=f'Failed to create order: {str(e)}')

        logger.info(f"Razorpay order created: {order['id']} for booking {booking.id}")
        return PaymentResult(success=True, reference=order['id'], data=order)

    def verify(self, order_id, payment_id, signature):
        try:
            self.client.utility.verify_payment_signature({
                'razorpay_order_id': order_id,
                'razorpay_payment_id': payment_id,
                'razorpay_signature': signature,
            })
        except razorpay.errors.SignatureVerificationError:
            logger.error(f"Signature verification failed for payment: {payment_id}")
            return PaymentResult(success=False, message='Payment signature verification failed')

        logger.info(f"Payment verified: {payment_id}")
        return PaymentResult(success=True, reference=payment_id)

    def capture(self, booking):
        if not booking.payment_reference:
            return PaymentResult(success=False, message='No authorized payment for this booking')

        try:
            payment = self.client.payment.capture(
                booking.payment_reference,
                to_minor_units(booking.total_price),
                {'currency': booking.currency},
            )
        except GATEWAY_ERRORS as e:
            logger.error(f"Error capturing payment {booking.payment_reference}: {str(e)}")
            return PaymentResult(success=False, message=f'Payment capture failed: {str(e)}')

        if payment.get('status') != 'captured':
            return PaymentResult(
                success=False,
                message=f"Payment is {payment.get('status')}, not captured",
                data=payment,
            )

        logger.info(f"Payment captured: {payment['id']} for booking {booking.id}")
        return PaymentResult(success=True, reference=payment['id'], data=payment)

    def refund(self, booking):
        try:
            refund = self.client.payment.refund(
                booking.payment_reference,
                {'amount': to_minor_units(booking.total_price), 'notes': {'booking_id': booking.id}},
            )
        except GATEWAY_ERRORS as e:
            logger.error(f"Error creating refund for booking {booking.id}: {str(e)}")
            return PaymentResult(success=False, message=f'Refund failed: {str(e)}')

        logger.info(f"Refund created: {refund['id']} for payment {booking.payment_reference}")
        return PaymentResult(success=True, reference=refund['id'], data=refund)
