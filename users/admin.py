# ==================== USERS/ADMIN.PY ====================
from django.contrib import admin
from django.contrib.auth.admin import UserAdmin
from .models import CustomUser


@admin.register(CustomUser)
class CustomUserAdmin(UserAdmin):
    list_display = ['username', 'email', 'phone_number', 'user_type', 'is_staff', 'created_at']
    list_filter = ['user_type', 'is_staff', 'created_at']
    search_fields = ['username', 'email', 'phone_number']
    readonly_fields = ['created_at', 'updated_at']
    fieldsets = UserAdmin.fieldsets + (
        ('Marketplace', {'fields': ('user_type', 'phone_number', 'created_at', 'updated_at')}),
    )
