# ==================== PAYMENTS/SERIALIZERS.PY ====================
from rest_framework import serializers


class PaymentInitiateSerializer(serializers.Serializer):
    booking_id = serializers.IntegerField(min_value=1)


class PaymentVerifySerializer(serializers.Serializer):
    razorpay_order_id = serializers.CharField()
    razorpay_payment_id = serializers.CharField()
    razorpay_signature = serializers.CharField()


class PaymentOrderSerializer(serializers.Serializer):
    """What the client needs to open the gateway checkout"""
    booking_id = serializers.IntegerField(source='id')
    order_id = serializers.CharField(source='payment_order_id')
    amount = serializers.DecimalField(source='total_price', max_digits=12, decimal_places=2)
    currency = serializers.CharField()
    payment_status = serializers.CharField()
