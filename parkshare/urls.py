# ==================== PARKSHARE/URLS.PY ====================
from django.contrib import admin
from django.urls import path, include
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import TokenRefreshView, TokenObtainPairView

from parking.views import ParkingSpaceViewSet
from bookings.views import BookingViewSet, ReviewViewSet
from payments.views import PaymentViewSet

# Create router and register viewsets
router = DefaultRouter()
router.register(r'parking-spaces', ParkingSpaceViewSet, basename='parking-space')
router.register(r'bookings', BookingViewSet, basename='booking')
router.register(r'reviews', ReviewViewSet, basename='review')

urlpatterns = [
    # Admin
    path('admin/', admin.site.urls),

    # API versioning
    path('api/v1/', include([
        # Authentication endpoints (identity is managed elsewhere)
        path('auth/', include([
            path('token/', TokenObtainPairView.as_view(), name='token_obtain_pair'),
            path('token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),
        ])),

        # API routes
        path('', include(router.urls)),

        # Payments
        path('payments/', include([
            path('initiate/', PaymentViewSet.as_view({'post': 'initiate_payment'}), name='initiate_payment'),
            path('verify/', PaymentViewSet.as_view({'post': 'verify_payment'}), name='verify_payment'),
        ])),
    ])),
]
