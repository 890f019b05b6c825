# ==================== PARKING/MODELS.PY ====================
from django.db import models
from django.db.models import Avg, Count
from django.core.validators import MinValueValidator, MaxValueValidator
from users.models import CustomUser


class ParkingSpaceQuerySet(models.QuerySet):
    def with_ratings(self):
        """Annotate average_rating and review_count from the space's reviews"""
        return self.annotate(average_rating=Avg('reviews__rating'), review_count=Count('reviews'))


class ParkingSpace(models.Model):
    SPACE_TYPE_CHOICES = (
        ('garage', 'Garage'),
        ('open', 'Open Space'),
        ('covered', 'Covered Space'),
        ('private', 'Private Driveway'),
        ('street', 'Street Parking'),
    )
    MODERATION_PENDING = 'PENDING'
    MODERATION_APPROVED = 'APPROVED'
    MODERATION_REJECTED = 'REJECTED'
    MODERATION_STATUS_CHOICES = (
        (MODERATION_PENDING, 'Pending Review'),
        (MODERATION_APPROVED, 'Approved'),
        (MODERATION_REJECTED, 'Rejected'),
    )

    # Amenity name accepted by search -> boolean field
    AMENITY_FIELDS = {
        'security_camera': 'has_security_camera',
        'lighting': 'has_lighting',
        'ev_charging': 'has_ev_charging',
        'surveillance': 'has_surveillance',
        'covered': 'has_covered',
        '24_7_access': 'has_24_7_access',
    }

    owner = models.ForeignKey(CustomUser, on_delete=models.CASCADE, related_name='owned_parking_spaces')

    # Location info
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    address = models.CharField(max_length=500)
    city = models.CharField(max_length=100, db_index=True)
    latitude = models.FloatField(validators=[MinValueValidator(-90), MaxValueValidator(90)])
    longitude = models.FloatField(validators=[MinValueValidator(-180), MaxValueValidator(180)])

    space_type = models.CharField(max_length=20, choices=SPACE_TYPE_CHOICES)

    # Pricing: hourly is mandatory, day/month tiers are optional
    price_per_hour = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(0)])
    price_per_day = models.DecimalField(
        max_digits=10, decimal_places=2, null=True, blank=True, validators=[MinValueValidator(0)]
    )
    price_per_month = models.DecimalField(
        max_digits=10, decimal_places=2, null=True, blank=True, validators=[MinValueValidator(0)]
    )

    # Amenities
    has_security_camera = models.BooleanField(default=False)
    has_lighting = models.BooleanField(default=False)
    has_ev_charging = models.BooleanField(default=False)
    has_surveillance = models.BooleanField(default=False)
    has_covered = models.BooleanField(default=False)
    has_24_7_access = models.BooleanField(default=False)

    # Availability and moderation
    is_available = models.BooleanField(default=True, db_index=True)
    moderation_status = models.CharField(
        max_length=10, choices=MODERATION_STATUS_CHOICES, default=MODERATION_PENDING, db_index=True
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ParkingSpaceQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['city']),
            models.Index(fields=['latitude', 'longitude']),
            models.Index(fields=['is_available', 'moderation_status']),
            models.Index(fields=['created_at']),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(price_per_hour__gte=0), name='parking_space_price_per_hour_gte_0'
            ),
        ]

    def __str__(self):
        return f"{self.title} - {self.address}"

    @property
    def is_bookable(self):
        """Open for new bookings and visible in discovery"""
        return self.is_available and self.moderation_status == self.MODERATION_APPROVED

    def rating_summary(self):
        """(average rating, review count), from with_ratings() annotations when present"""
        if hasattr(self, 'average_rating'):
            return self.average_rating, self.review_count
        summary = self.reviews.aggregate(average=Avg('rating'), count=Count('id'))
        return summary['average'], summary['count']
