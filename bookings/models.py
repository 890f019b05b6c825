from django.db import models
from django.db.models import F, Q
from users.models import CustomUser
from parking.models import ParkingSpace


class Booking(models.Model):
    PENDING = 'PENDING'
    CONFIRMED = 'CONFIRMED'
    COMPLETED = 'COMPLETED'
    CANCELLED = 'CANCELLED'
    STATUS_CHOICES = (
        (PENDING, 'Pending'),
        (CONFIRMED, 'Confirmed'),
        (COMPLETED, 'Completed'),
        (CANCELLED, 'Cancelled'),
    )
    # Statuses that occupy the space for conflict purposes
    ACTIVE_STATUSES = (PENDING, CONFIRMED)

    UNPAID = 'UNPAID'
    PAID = 'PAID'
    REFUNDED = 'REFUNDED'
    PAYMENT_STATUS_CHOICES = (
        (UNPAID, 'Unpaid'),
        (PAID, 'Paid'),
        (REFUNDED, 'Refunded'),
    )

    # Relations
    renter = models.ForeignKey(CustomUser, on_delete=models.CASCADE, related_name='bookings')
    parking_space = models.ForeignKey(ParkingSpace, on_delete=models.CASCADE, related_name='bookings')

    # Half-open window [start_time, end_time), UTC
    start_time = models.DateTimeField(db_index=True)
    end_time = models.DateTimeField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=PENDING, db_index=True)

    # Pricing, fixed at creation
    total_price = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=3)

    # Payment
    payment_status = models.CharField(max_length=10, choices=PAYMENT_STATUS_CHOICES, default=UNPAID)
    payment_order_id = models.CharField(max_length=100, null=True, blank=True, db_index=True)
    payment_reference = models.CharField(max_length=100, null=True, blank=True)

    reminder_sent = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['renter', 'status']),
            models.Index(fields=['parking_space', 'status']),
            models.Index(fields=['parking_space', 'start_time', 'end_time']),
        ]
        constraints = [
            models.CheckConstraint(condition=Q(start_time__lt=F('end_time')), name='booking_start_before_end'),
            models.CheckConstraint(condition=Q(total_price__gte=0), name='booking_total_price_gte_0'),
        ]

    def __str__(self):
        return f"Booking {self.id} - {self.renter.username} at {self.parking_space.title}"

    @property
    def is_active(self):
        return self.status in self.ACTIVE_STATUSES


class Review(models.Model):
    """A renter's rating of a space, left once their booking is completed"""
    booking = models.OneToOneField(Booking, on_delete=models.CASCADE, related_name='review')
    parking_space = models.ForeignKey(ParkingSpace, on_delete=models.CASCADE, related_name='reviews')
    reviewer = models.ForeignKey(CustomUser, on_delete=models.CASCADE, related_name='given_reviews')

    rating = models.PositiveSmallIntegerField(choices=[(i, i) for i in range(1, 6)])
    comment = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['parking_space', 'created_at']),
        ]
        constraints = [
            models.CheckConstraint(condition=Q(rating__gte=1, rating__lte=5), name='review_rating_1_to_5'),
        ]

    def __str__(self):
        return f"Review by {self.reviewer.username} for {self.parking_space.title}"
