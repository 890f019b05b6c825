# ==================== PARKING/SERIALIZERS.PY ====================
from rest_framework import serializers
from .models import ParkingSpace
from .search import SORT_CHOICES, SORT_CREATED_AT, MAX_LIMIT, DEFAULT_NEARBY_RADIUS, DEFAULT_NEARBY_LIMIT, SpaceSearchFilters
from users.serializers import UserSummarySerializer

PRICE_FIELDS = ['price_per_hour', 'price_per_day', 'price_per_month']
AMENITY_FIELDS = list(ParkingSpace.AMENITY_FIELDS.values())


class RatingSummaryMixin(serializers.Serializer):
    """average_rating (one decimal place, null without reviews) and review_count"""
    average_rating = serializers.SerializerMethodField()
    review_count = serializers.SerializerMethodField()

    def get_average_rating(self, obj):
        average, _ = obj.rating_summary()
        return None if average is None else round(average, 1)

    def get_review_count(self, obj):
        _, count = obj.rating_summary()
        return count


class ParkingSpaceListSerializer(RatingSummaryMixin, serializers.ModelSerializer):
    """Simplified serializer for listing parking spaces"""
    owner_name = serializers.CharField(source='owner.display_name', read_only=True)
    distance = serializers.SerializerMethodField()

    class Meta:
        model = ParkingSpace
        fields = ['id', 'title', 'address', 'city', 'space_type', 'latitude', 'longitude',
                  *PRICE_FIELDS, *AMENITY_FIELDS, 'owner_name', 'distance', 'average_rating', 'review_count',
                  'created_at']

    def get_distance(self, obj):
        """Miles from the search centre, when the search had one"""
        return self.context.get('distances', {}).get(obj.id)


class ParkingSpaceDetailSerializer(RatingSummaryMixin, serializers.ModelSerializer):
    """Detailed serializer for parking space with all info"""
    owner = UserSummarySerializer(read_only=True)

    class Meta:
        model = ParkingSpace
        fields = '__all__'


class ParkingSpaceCreateUpdateSerializer(serializers.ModelSerializer):
    """For creating/updating parking spaces; moderation is not owner-editable"""

    class Meta:
        model = ParkingSpace
        fields = ['id', 'title', 'description', 'address', 'city', 'latitude', 'longitude',
                  'space_type', *PRICE_FIELDS, *AMENITY_FIELDS, 'is_available', 'moderation_status']
        read_only_fields = ['id', 'moderation_status']
        extra_kwargs = {
            'latitude': {'min_value': -90, 'max_value': 90},
            'longitude': {'min_value': -180, 'max_value': 180},
            'price_per_hour': {'min_value': 0},
            'price_per_day': {'min_value': 0},
            'price_per_month': {'min_value': 0},
        }

    def create(self, validated_data):
        return ParkingSpace.objects.create(owner=self.context['request'].user, **validated_data)


class ModerationSerializer(serializers.Serializer):
    moderation_status = serializers.ChoiceField(choices=ParkingSpace.MODERATION_STATUS_CHOICES)


class CommaSeparatedListField(serializers.ListField):
    """Accepts ?amenities=a,b as well as repeated ?amenities=a&amenities=b"""

    def get_value(self, dictionary):
        if self.field_name not in dictionary:
            return super().get_value(dictionary)
        values = dictionary.getlist(self.field_name) if hasattr(dictionary, 'getlist') else dictionary[self.field_name]
        if isinstance(values, str):
            values = [values]
        return [item.strip() for value in values for item in value.split(',') if item.strip()]


class SpaceSearchQuerySerializer(serializers.Serializer):
    """Validates search query params once and builds SpaceSearchFilters"""
    latitude = serializers.FloatField(required=False, min_value=-90, max_value=90)
    longitude = serializers.FloatField(required=False, min_value=-180, max_value=180)
    radius = serializers.FloatField(required=False, min_value=0.1)
    city = serializers.CharField(required=False, allow_blank=False)
    space_type = serializers.ChoiceField(choices=ParkingSpace.SPACE_TYPE_CHOICES, required=False)
    min_price = serializers.DecimalField(max_digits=10, decimal_places=2, required=False, min_value=0)
    max_price = serializers.DecimalField(max_digits=10, decimal_places=2, required=False, min_value=0)
    search = serializers.CharField(required=False, allow_blank=False)
    amenities = CommaSeparatedListField(
        child=serializers.ChoiceField(choices=list(ParkingSpace.AMENITY_FIELDS)), required=False
    )
    sort_by = serializers.ChoiceField(choices=SORT_CHOICES, default=SORT_CREATED_AT)
    sort_order = serializers.ChoiceField(choices=['asc', 'desc'], required=False)
    page = serializers.IntegerField(default=1, min_value=1)
    limit = serializers.IntegerField(default=10, min_value=1, max_value=MAX_LIMIT)

    def to_filters(self):
        data = self.validated_data
        return SpaceSearchFilters(
            latitude=data.get('latitude'),
            longitude=data.get('longitude'),
            radius=data.get('radius'),
            city=data.get('city'),
            space_type=data.get('space_type'),
            min_price=data.get('min_price'),
            max_price=data.get('max_price'),
            keyword=data.get('search'),
            amenities=tuple(data.get('amenities', ())),
            sort_by=data['sort_by'],
            sort_order=data.get('sort_order'),
            page=data['page'],
            limit=data['limit'],
        )


class NearbyQuerySerializer(serializers.Serializer):
    latitude = serializers.FloatField(min_value=-90, max_value=90)
    longitude = serializers.FloatField(min_value=-180, max_value=180)
    radius = serializers.FloatField(default=DEFAULT_NEARBY_RADIUS, min_value=0.1)
    limit = serializers.IntegerField(default=DEFAULT_NEARBY_LIMIT, min_value=1)


class TimeWindowQuerySerializer(serializers.Serializer):
    start_time = serializers.DateTimeField()
    end_time = serializers.DateTimeField()

    def validate(self, data):
        if data['start_time'] >= data['end_time']:
            raise serializers.ValidationError('End time must be after start time')
        return data


class PriceQuoteSerializer(serializers.Serializer):
    total_hours = serializers.IntegerField()
    months = serializers.IntegerField()
    days = serializers.IntegerField()
    hours = serializers.IntegerField()
    total_price = serializers.DecimalField(source='display_total', max_digits=12, decimal_places=2)
