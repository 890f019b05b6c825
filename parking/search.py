# ==================== PARKING/SEARCH.PY ====================
"""Discovery of parking spaces near a point.

Search runs in two stages. The store narrows candidates with an axis-aligned
bounding box around the centre (cheap, indexable, may over-include), then
every candidate gets an exact Haversine distance and anything beyond the
radius is dropped. Because distance is only known after that second stage,
a search with a radius fetches the whole candidate set and paginates in
memory. That keeps pages exact at the cost of scaling with the number of
spaces inside the box; a spatial index (geohash, PostGIS) would be needed to
push it down to the store.
"""
import logging
import math
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional, Tuple

from utils.exceptions import InvalidInput
from utils.geo import bounding_box, haversine_distance, validate_coordinates
from .filters import ParkingSpaceFilter
from .models import ParkingSpace

logger = logging.getLogger(__name__)

SORT_CREATED_AT = 'created_at'
SORT_PRICE = 'price'
SORT_DISTANCE = 'distance'
SORT_CHOICES = (SORT_CREATED_AT, SORT_PRICE, SORT_DISTANCE)

MAX_LIMIT = 100
DEFAULT_NEARBY_RADIUS = 5  # miles
DEFAULT_NEARBY_LIMIT = 20

# Distances are rounded to 0.1 mile, so a point up to half a step beyond the
# radius still passes the precise filter and must not be cut by the box
ROUNDING_SLACK = 0.05


@dataclass(frozen=True)
class SpaceSearchFilters:
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    radius: Optional[float] = None  # miles
    city: Optional[str] = None
    space_type: Optional[str] = None
    min_price: Optional[Decimal] = None  # per hour
    max_price: Optional[Decimal] = None
    keyword: Optional[str] = None
    amenities: Tuple[str, ...] = ()
    sort_by: str = SORT_CREATED_AT
    sort_order: Optional[str] = None  # defaults: asc for distance, desc otherwise
    page: int = 1
    limit: int = 10

    def __post_init__(self):
        self.validate()

    @property
    def has_center(self):
        return self.latitude is not None and self.longitude is not None

    @property
    def has_radius(self):
        return self.has_center and self.radius is not None

    @property
    def descending(self):
        if self.sort_order is None:
            return self.sort_by != SORT_DISTANCE
        return self.sort_order == 'desc'

    @property
    def offset(self):
        return (self.page - 1) * self.limit

    def validate(self):
        if (self.latitude is None) != (self.longitude is None):
            raise InvalidInput('Latitude and longitude must be given together')
        if self.has_center:
            validate_coordinates(self.latitude, self.longitude)
        if self.radius is not None:
            if not self.has_center:
                raise InvalidInput('A radius needs latitude and longitude')
            if not math.isfinite(self.radius) or self.radius <= 0:
                raise InvalidInput('Radius must be a positive number of miles')
        if self.min_price is not None and self.min_price < 0:
            raise InvalidInput('Minimum price cannot be negative')
        if self.max_price is not None and self.max_price < 0:
            raise InvalidInput('Maximum price cannot be negative')
        if self.min_price is not None and self.max_price is not None and self.min_price > self.max_price:
            raise InvalidInput('Minimum price cannot exceed maximum price')
        unknown = set(self.amenities) - set(ParkingSpace.AMENITY_FIELDS)
        if unknown:
            raise InvalidInput(f"Unknown amenities: {', '.join(sorted(unknown))}")
        if self.sort_by not in SORT_CHOICES:
            raise InvalidInput(f"Cannot sort by '{self.sort_by}'")
        if self.sort_by == SORT_DISTANCE and not self.has_center:
            raise InvalidInput('Sorting by distance needs latitude and longitude')
        if self.sort_order not in (None, 'asc', 'desc'):
            raise InvalidInput("Sort order must be 'asc' or 'desc'")
        if self.page < 1:
            raise InvalidInput('Page must be 1 or greater')
        if not 1 <= self.limit <= MAX_LIMIT:
            raise InvalidInput(f'Limit must be between 1 and {MAX_LIMIT}')


@dataclass(frozen=True)
class SearchResult:
    space: ParkingSpace
    distance: Optional[float] = None  # miles, when the query had a centre


@dataclass
class SearchPage:
    results: List[SearchResult] = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 10

    @property
    def total_pages(self):
        return math.ceil(self.total / self.limit) if self.total else 0


def eligible_spaces():
    """Spaces visible in discovery: available and approved by moderation"""
    return ParkingSpace.objects.filter(
        is_available=True,
        moderation_status=ParkingSpace.MODERATION_APPROVED,
    ).with_ratings()


def filter_queryset(queryset, filters):
    """Store-level predicates, including the bounding-box prefilter"""
    queryset = ParkingSpaceFilter.from_search(filters, queryset).search_queryset()

    if filters.has_radius:
        box = bounding_box(filters.latitude, filters.longitude, filters.radius + ROUNDING_SLACK)
        queryset = queryset.filter(
            latitude__gte=box.min_lat,
            latitude__lte=box.max_lat,
            longitude__gte=box.min_lon,
            longitude__lte=box.max_lon,
        )
    return queryset


def _store_ordering(filters):
    if filters.sort_by == SORT_PRICE:
        fields = ['price_per_hour', 'created_at', 'id']
    else:
        fields = ['created_at', 'id']
    if filters.descending:
        fields = [f'-{name}' for name in fields]
    return fields


def _sort_key(filters):
    if filters.sort_by == SORT_DISTANCE:
        return lambda r: (r.distance, r.space.created_at, r.space.id)
    if filters.sort_by == SORT_PRICE:
        return lambda r: (r.space.price_per_hour, r.space.created_at, r.space.id)
    return lambda r: (r.space.created_at, r.space.id)


def _with_distance(space, filters):
    distance = None
    if filters.has_center:
        distance = haversine_distance(filters.latitude, filters.longitude, space.latitude, space.longitude)
    return SearchResult(space=space, distance=distance)


def search_spaces(filters):
    queryset = filter_queryset(eligible_spaces(), filters).select_related('owner')

    if not filters.has_radius and filters.sort_by != SORT_DISTANCE:
        # Nothing geographic to filter on: let the store sort and paginate
        queryset = queryset.order_by(*_store_ordering(filters))
        total = queryset.count()
        spaces = queryset[filters.offset:filters.offset + filters.limit]
        return SearchPage(
            results=[_with_distance(space, filters) for space in spaces],
            total=total,
            page=filters.page,
            limit=filters.limit,
        )

    candidates = [_with_distance(space, filters) for space in queryset]
    if filters.has_radius:
        matches = [r for r in candidates if r.distance <= filters.radius]
    else:
        matches = candidates
    matches.sort(key=_sort_key(filters), reverse=filters.descending)

    logger.debug(f"Spatial search kept {len(matches)} of {len(candidates)} bounding-box candidates")
    return SearchPage(
        results=matches[filters.offset:filters.offset + filters.limit],
        total=len(matches),
        page=filters.page,
        limit=filters.limit,
    )


def nearby_spaces(latitude, longitude, radius=DEFAULT_NEARBY_RADIUS, limit=DEFAULT_NEARBY_LIMIT):
    """Closest eligible spaces within ``radius`` miles"""
    filters = SpaceSearchFilters(
        latitude=latitude,
        longitude=longitude,
        radius=radius,
        sort_by=SORT_DISTANCE,
        limit=min(MAX_LIMIT, limit),
    )
    return search_spaces(filters)
