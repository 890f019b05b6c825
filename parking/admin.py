# ==================== PARKING/ADMIN.PY ====================
from django.contrib import admin
from .models import ParkingSpace
from .moderation import moderate_space


@admin.register(ParkingSpace)
class ParkingSpaceAdmin(admin.ModelAdmin):
    list_display = ['title', 'owner', 'city', 'space_type', 'price_per_hour', 'is_available',
                    'moderation_status', 'created_at']
    list_filter = ['space_type', 'moderation_status', 'is_available', 'city', 'created_at']
    search_fields = ['title', 'address', 'owner__username']
    readonly_fields = ['created_at', 'updated_at']
    actions = ['approve_spaces', 'reject_spaces']
    fieldsets = (
        ('Basic Info', {'fields': ('owner', 'title', 'description', 'address', 'city')}),
        ('Location', {'fields': ('latitude', 'longitude')}),
        ('Space Details', {'fields': ('space_type', 'is_available', 'moderation_status')}),
        ('Pricing', {'fields': ('price_per_hour', 'price_per_day', 'price_per_month')}),
        ('Amenities', {'fields': ('has_security_camera', 'has_lighting', 'has_ev_charging', 'has_surveillance', 'has_covered', 'has_24_7_access')}),
        ('Timestamps', {'fields': ('created_at', 'updated_at'), 'classes': ('collapse',)}),
    )

    @admin.action(description='Approve selected parking spaces')
    def approve_spaces(self, request, queryset):
        for space in queryset:
            moderate_space(space, ParkingSpace.MODERATION_APPROVED, moderator=request.user)

    @admin.action(description='Reject selected parking spaces')
    def reject_spaces(self, request, queryset):
        for space in queryset:
            moderate_space(space, ParkingSpace.MODERATION_REJECTED, moderator=request.user)
