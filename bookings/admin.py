# ==================== BOOKINGS/ADMIN.PY ====================
from django.contrib import admin
from .models import Booking, Review


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = ['id', 'renter', 'parking_space', 'status', 'payment_status', 'start_time', 'end_time',
                    'total_price', 'created_at']
    list_filter = ['status', 'payment_status', 'created_at']
    search_fields = ['renter__username', 'parking_space__title']
    readonly_fields = ['status', 'payment_status', 'total_price', 'currency', 'payment_order_id', 'payment_reference', 'created_at', 'updated_at']


@admin.register(Review)
class ReviewAdmin(admin.ModelAdmin):
    list_display = ['id', 'parking_space', 'reviewer', 'rating', 'created_at']
    list_filter = ['rating', 'created_at']
    search_fields = ['parking_space__title', 'reviewer__username', 'comment']
    readonly_fields = ['booking', 'parking_space', 'reviewer', 'created_at', 'updated_at']
