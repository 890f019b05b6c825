# ==================== UTILS/PERMISSIONS.PY ====================
from rest_framework import permissions


class IsOwnerOrReadOnly(permissions.BasePermission):
    """Writes on a parking space are limited to its owner"""

    def has_object_permission(self, request, view, obj):
        if request.method in permissions.SAFE_METHODS:
            return True
        return obj.owner_id == request.user.pk


class IsRenterOrSpaceOwner(permissions.BasePermission):
    """Booking visible to the renter who made it and the owner of its space"""

    def has_object_permission(self, request, view, obj):
        return request.user.pk in (obj.renter_id, obj.parking_space.owner_id)
