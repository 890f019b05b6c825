# ==================== USERS/SERIALIZERS.PY ====================
from rest_framework import serializers
from .models import CustomUser


class UserSummarySerializer(serializers.ModelSerializer):
    display_name = serializers.CharField(read_only=True)

    class Meta:
        model = CustomUser
        fields = ['id', 'username', 'display_name', 'email']
        read_only_fields = fields
