# ==================== BOOKINGS/SERIALIZERS.PY ====================
from rest_framework import serializers
from .models import Booking, Review
from parking.serializers import ParkingSpaceListSerializer
from users.serializers import UserSummarySerializer


class BookingCreateSerializer(serializers.Serializer):
    parking_space = serializers.IntegerField()
    start_time = serializers.DateTimeField()
    end_time = serializers.DateTimeField()

    def validate(self, data):
        # Validate end time is after start time
        if data['end_time'] <= data['start_time']:
            raise serializers.ValidationError("End time must be after start time")
        return data


class BookingStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Booking.STATUS_CHOICES)


class BookingListSerializer(serializers.ModelSerializer):
    parking_space_title = serializers.CharField(source='parking_space.title', read_only=True)
    renter_name = serializers.CharField(source='renter.display_name', read_only=True)

    class Meta:
        model = Booking
        fields = ['id', 'parking_space', 'parking_space_title', 'renter_name', 'start_time', 'end_time',
                  'status', 'payment_status', 'total_price', 'currency', 'created_at']
        read_only_fields = fields


class BookingDetailSerializer(serializers.ModelSerializer):
    parking_space = ParkingSpaceListSerializer(read_only=True)
    renter = UserSummarySerializer(read_only=True)

    class Meta:
        model = Booking
        fields = ['id', 'parking_space', 'renter', 'start_time', 'end_time', 'status', 'payment_status',
                  'total_price', 'currency', 'payment_order_id', 'created_at', 'updated_at']
        read_only_fields = fields


class ReviewCreateSerializer(serializers.Serializer):
    booking = serializers.IntegerField()
    rating = serializers.IntegerField(min_value=1, max_value=5)
    comment = serializers.CharField(required=False, allow_blank=True, default='')


class ReviewSerializer(serializers.ModelSerializer):
    reviewer_name = serializers.CharField(source='reviewer.display_name', read_only=True)

    class Meta:
        model = Review
        fields = ['id', 'booking', 'parking_space', 'reviewer_name', 'rating', 'comment', 'created_at']
        read_only_fields = fields
