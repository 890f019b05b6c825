# ============================= BOOKINGS VIEWS =============================
from django.db.models import Q
from rest_framework import viewsets, status, permissions, filters, mixins
from rest_framework.decorators import action
from rest_framework.response import Response
from django_filters.rest_framework import DjangoFilterBackend

from payments.apps import get_payment_backend
from utils.permissions import IsRenterOrSpaceOwner
from .models import Booking, Review
from .serializers import (
    BookingCreateSerializer,
    BookingListSerializer,
    BookingDetailSerializer,
    BookingStatusSerializer,
    ReviewCreateSerializer,
    ReviewSerializer,
)
from .services import create_booking, create_review, transition_booking_status


class BookingViewSet(mixins.CreateModelMixin,
                     mixins.ListModelMixin,
                     mixins.RetrieveModelMixin,
                     viewsets.GenericViewSet):
    """Booking creation, listing and status changes.

    Bookings are never edited or deleted directly; every change goes through
    update_status so the state machine rules apply.
    """

    permission_classes = [permissions.IsAuthenticated, IsRenterOrSpaceOwner]
    filter_backends = [
        DjangoFilterBackend,  # For filtering
        filters.OrderingFilter  # For ordering
    ]
    filterset_fields = ['status', 'payment_status', 'parking_space']
    ordering_fields = ['created_at', 'start_time', 'total_price']
    ordering = ['-created_at']

    def get_serializer_class(self):
        if self.action == 'create':
            return BookingCreateSerializer
        elif self.action in ['list', 'my_bookings', 'my_space_bookings']:
            return BookingListSerializer
        return BookingDetailSerializer

    def get_queryset(self):
        queryset = Booking.objects.select_related('parking_space__owner', 'renter')
        if self.detail:
            # Object access is decided by IsRenterOrSpaceOwner
            return queryset
        user = self.request.user
        # Renters see their own bookings, owners see bookings for their spaces
        return queryset.filter(Q(renter=user) | Q(parking_space__owner=user))

    def create(self, request, *args, **kwargs):
        serializer = BookingCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        booking = create_booking(request.user, data['parking_space'], data['start_time'], data['end_time'])
        return Response(BookingDetailSerializer(booking).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['get'])
    def my_bookings(self, request):
        """Get all bookings made by the current user"""
        bookings = self.filter_queryset(self.get_queryset().filter(renter=request.user))
        serializer = self.get_serializer(bookings, many=True)
        return Response(serializer.data)

    @action(detail=False, methods=['get'])
    def my_space_bookings(self, request):
        """Get all bookings for the current user's parking spaces"""
        bookings = self.get_queryset().filter(parking_space__owner=request.user)
        bookings = self.filter_queryset(bookings).order_by('start_time', 'id')
        serializer = self.get_serializer(bookings, many=True)
        return Response(serializer.data)

    @action(detail=True, methods=['post'])
    def update_status(self, request, pk=None):
        """Update booking status

        Body: { "status": "CONFIRMED|CANCELLED" }
        Owners confirm, renters cancel; completion happens automatically.
        """
        booking = self.get_object()
        serializer = BookingStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        booking = transition_booking_status(
            booking.id,
            serializer.validated_data['status'],
            request.user,
            get_payment_backend(),
        )
        return Response(BookingDetailSerializer(booking).data)

    @action(detail=True, methods=['post'])
    def cancel_booking(self, request, pk=None):
        """Cancel a booking (renter only)"""
        booking = self.get_object()
        booking = transition_booking_status(booking.id, Booking.CANCELLED, request.user, get_payment_backend())
        return Response({'message': 'Booking cancelled successfully', 'status': booking.status})


class ReviewViewSet(mixins.CreateModelMixin,
                    mixins.ListModelMixin,
                    mixins.RetrieveModelMixin,
                    viewsets.GenericViewSet):
    """Reviews of parking spaces; renters post one per completed booking"""

    queryset = Review.objects.select_related('reviewer', 'parking_space')
    serializer_class = ReviewSerializer
    permission_classes = [permissions.IsAuthenticatedOrReadOnly]
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_fields = ['parking_space', 'rating']
    ordering_fields = ['created_at', 'rating']
    ordering = ['-created_at']

    def create(self, request, *args, **kwargs):
        """Body: { "booking": <id>, "rating": 1-5, "comment": "..." }"""
        serializer = ReviewCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        review = create_review(data['booking'], request.user, data['rating'], data['comment'])
        return Response(ReviewSerializer(review).data, status=status.HTTP_201_CREATED)
