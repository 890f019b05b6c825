# ============================= PARKING/FILTERS.PY =============================
import django_filters
from django.db.models import Q

from utils.exceptions import InvalidInput
from .models import ParkingSpace


class ParkingSpaceFilter(django_filters.FilterSet):
    """Store-level search predicates for parking spaces"""

    city = django_filters.CharFilter(
        field_name='city',
        lookup_expr='icontains',
        label='City'
    )
    space_type = django_filters.ChoiceFilter(
        choices=ParkingSpace.SPACE_TYPE_CHOICES,
        label='Space Type'
    )
    min_price = django_filters.NumberFilter(
        field_name='price_per_hour',
        lookup_expr='gte',
        label='Minimum Price Per Hour'
    )
    max_price = django_filters.NumberFilter(
        field_name='price_per_hour',
        lookup_expr='lte',
        label='Maximum Price Per Hour'
    )
    search = django_filters.CharFilter(
        method='filter_keyword',
        label='Title, description or address contains'
    )

    has_security_camera = django_filters.BooleanFilter(label='Has Security Camera')
    has_lighting = django_filters.BooleanFilter(label='Has Lighting')
    has_ev_charging = django_filters.BooleanFilter(label='Has EV Charging')
    has_surveillance = django_filters.BooleanFilter(label='Has Surveillance')
    has_covered = django_filters.BooleanFilter(label='Is Covered')
    has_24_7_access = django_filters.BooleanFilter(label='24/7 Access')

    class Meta:
        model = ParkingSpace
        fields = []

    def filter_keyword(self, queryset, name, value):
        return queryset.filter(
            Q(title__icontains=value)
            | Q(description__icontains=value)
            | Q(address__icontains=value)
        )

    @classmethod
    def from_search(cls, filters, queryset):
        """Bind a SpaceSearchFilters to the filter set"""
        data = {}
        if filters.city:
            data['city'] = filters.city
        if filters.space_type:
            data['space_type'] = filters.space_type
        if filters.min_price is not None:
            data['min_price'] = str(filters.min_price)
        if filters.max_price is not None:
            data['max_price'] = str(filters.max_price)
        if filters.keyword:
            data['search'] = filters.keyword
        for amenity in filters.amenities:
            data[ParkingSpace.AMENITY_FIELDS[amenity]] = 'true'
        return cls(data, queryset=queryset)

    def search_queryset(self):
        if not self.is_valid():
            field, messages = next(iter(self.errors.items()))
            raise InvalidInput(f'{field}: {messages[0]}')
        return self.qs
