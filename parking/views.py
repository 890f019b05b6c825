# ============================= PARKINGSPACE VIEWS =============================
from django.conf import settings
from django.db.models import Q
from rest_framework import viewsets, permissions
from rest_framework.decorators import action
from rest_framework.response import Response

from bookings.pricing import compute_price
from bookings.models import Booking
from bookings.services import availability_slots
from utils.exceptions import BookingConflict
from utils.permissions import IsOwnerOrReadOnly
from .models import ParkingSpace
from .moderation import moderate_space
from .search import search_spaces, nearby_spaces
from .serializers import (
    ParkingSpaceListSerializer,
    ParkingSpaceDetailSerializer,
    ParkingSpaceCreateUpdateSerializer,
    ModerationSerializer,
    SpaceSearchQuerySerializer,
    NearbyQuerySerializer,
    TimeWindowQuerySerializer,
    PriceQuoteSerializer,
)


def _page_response(page, request):
    serializer = ParkingSpaceListSerializer(
        [result.space for result in page.results],
        many=True,
        context={'request': request, 'distances': {r.space.id: r.distance for r in page.results}},
    )
    return {
        'results': serializer.data,
        'pagination': {
            'page': page.page,
            'limit': page.limit,
            'total': page.total,
            'total_pages': page.total_pages,
        },
    }


class ParkingSpaceViewSet(viewsets.ModelViewSet):
    """Parking space listing, creation, management and discovery"""

    permission_classes = [permissions.IsAuthenticatedOrReadOnly, IsOwnerOrReadOnly]

    def get_queryset(self):
        queryset = ParkingSpace.objects.select_related('owner').with_ratings()
        if self.action in ['list', 'retrieve', 'quote', 'availability_slots']:
            # Public reads see approved spaces, owners also see their own
            user = self.request.user
            if user.is_authenticated and user.is_staff:
                return queryset
            visible = Q(moderation_status=ParkingSpace.MODERATION_APPROVED)
            if user.is_authenticated:
                visible |= Q(owner=user)
            return queryset.filter(visible)
        return queryset

    def get_serializer_class(self):
        if self.action == 'list':
            return ParkingSpaceListSerializer
        elif self.action in ['create', 'update', 'partial_update']:
            return ParkingSpaceCreateUpdateSerializer
        return ParkingSpaceDetailSerializer

    def list(self, request, *args, **kwargs):
        """Eligible spaces, newest first (same as search without filters)"""
        return self.search(request)

    @action(detail=False, methods=['get'], permission_classes=[permissions.AllowAny])
    def search(self, request):
        """Search spaces by location, price, type, keyword and amenities

        Query params: latitude, longitude, radius (miles), city, space_type,
        min_price, max_price, search, amenities, sort_by (created_at|price|distance),
        sort_order (asc|desc), page, limit

        Example: /api/v1/parking-spaces/search/?latitude=41.04&longitude=29.0&radius=3&sort_by=distance
        """
        query = SpaceSearchQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        page = search_spaces(query.to_filters())
        return Response(_page_response(page, request))

    @action(detail=False, methods=['get'], permission_classes=[permissions.AllowAny])
    def nearby(self, request):
        """Closest spaces to a point, nearest first

        Query params: latitude, longitude, radius (miles, default 5), limit (max 100)
        """
        query = NearbyQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        data = query.validated_data
        page = nearby_spaces(data['latitude'], data['longitude'], radius=data['radius'], limit=data['limit'])
        body = _page_response(page, request)
        return Response({
            'results': body['results'],
            'search_location': {'latitude': data['latitude'], 'longitude': data['longitude']},
            'radius': data['radius'],
            'total_found': page.total,
        })

    @action(detail=False, methods=['get'], permission_classes=[permissions.IsAuthenticated])
    def my_spaces(self, request):
        """Get all parking spaces owned by current user"""
        spaces = ParkingSpace.objects.filter(owner=request.user).with_ratings()
        serializer = ParkingSpaceDetailSerializer(spaces, many=True)
        return Response(serializer.data)

    @action(detail=True, methods=['get'], permission_classes=[permissions.AllowAny])
    def quote(self, request, pk=None):
        """Price for a time window without booking it

        Query params: start_time, end_time (ISO 8601)
        """
        space = self.get_object()
        query = TimeWindowQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        price = compute_price(space, query.validated_data['start_time'], query.validated_data['end_time'])
        return Response(dict(PriceQuoteSerializer(price).data, currency=settings.BOOKING_CURRENCY))

    @action(detail=True, methods=['get'], permission_classes=[permissions.AllowAny])
    def availability_slots(self, request, pk=None):
        """Free time slots for a parking space inside a window

        Query params: start_time, end_time (ISO 8601)
        """
        space = self.get_object()
        query = TimeWindowQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        slots = availability_slots(space, query.validated_data['start_time'], query.validated_data['end_time'])
        return Response([{'start': start.isoformat(), 'end': end.isoformat()} for start, end in slots])

    @action(detail=True, methods=['post'], permission_classes=[permissions.IsAdminUser])
    def moderate(self, request, pk=None):
        """Approve or reject a parking space (staff only)

        Body: { "moderation_status": "APPROVED|REJECTED|PENDING" }
        """
        space = self.get_object()
        serializer = ModerationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        moderate_space(space, serializer.validated_data['moderation_status'], moderator=request.user)
        return Response(ParkingSpaceDetailSerializer(space).data)

    def perform_destroy(self, instance):
        if instance.bookings.filter(status__in=Booking.ACTIVE_STATUSES).exists():
            raise BookingConflict('Cannot delete a parking space with active bookings')
        instance.delete()
