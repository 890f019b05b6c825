# ==================== PAYMENTS/VIEWS.PY ====================
import logging

from django.conf import settings
from rest_framework import viewsets, permissions
from rest_framework.decorators import action
from rest_framework.response import Response

from bookings.models import Booking
from bookings.services import start_payment, authorize_payment
from utils.exceptions import NotFound
from .apps import get_payment_backend
from .serializers import PaymentInitiateSerializer, PaymentVerifySerializer, PaymentOrderSerializer

logger = logging.getLogger(__name__)


class PaymentViewSet(viewsets.ViewSet):
    """Renter-side payment flow: open a gateway order, then report the authorized payment.

    The payment is only captured when the owner confirms the booking.
    """
    permission_classes = [permissions.IsAuthenticated]

    @action(detail=False, methods=['post'])
    def initiate_payment(self, request):
        """Initiate payment for a booking

        Body: { "booking_id": 1 }
        """
        serializer = PaymentInitiateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            booking = Booking.objects.select_related('renter', 'parking_space').get(
                id=serializer.validated_data['booking_id']
            )
        except Booking.DoesNotExist:
            raise NotFound('Booking not found')

        start_payment(booking, request.user, get_payment_backend())
        logger.info(f"Payment order {booking.payment_order_id} opened for booking {booking.id}")

        data = dict(PaymentOrderSerializer(booking).data)
        # Public key for the checkout widget; empty with the sandbox backend
        data['key_id'] = settings.PAYMENT_BACKEND_OPTIONS.get('key_id', '')
        return Response(data)

    @action(detail=False, methods=['post'])
    def verify_payment(self, request):
        """Verify Razorpay payment

        Body: {
            "razorpay_order_id": "order_xxx",
            "razorpay_payment_id": "pay_xxx",
            "razorpay_signature": "sig_xxx"
        }
        """
        serializer = PaymentVerifySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        booking = authorize_payment(
            data['razorpay_order_id'],
            data['razorpay_payment_id'],
            data['razorpay_signature'],
            request.user,
            get_payment_backend(),
        )
        return Response({
            'message': 'Payment authorized; it is charged when the owner confirms the booking',
            'booking_id': booking.id,
            'payment_status': booking.payment_status,
        })
