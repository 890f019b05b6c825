from django.db import models
from django.contrib.auth.models import AbstractUser


class CustomUser(AbstractUser):
    """Marketplace identity. Credentials and profiles are managed elsewhere;
    spaces and bookings only need someone to point at."""

    USER_TYPE_CHOICES = (
        ('owner', 'Parking Space Owner'),
        ('renter', 'Renter'),
        ('both', 'Both'),
    )

    user_type = models.CharField(max_length=10, choices=USER_TYPE_CHOICES, default='renter')
    phone_number = models.CharField(max_length=20, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.username} ({self.get_user_type_display()})"

    @property
    def display_name(self):
        """Full name when known, username otherwise"""
        return self.get_full_name() or self.username
