# ==================== BOOKINGS/SERVICES.PY ====================
import logging
from functools import partial

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from parking.models import ParkingSpace
from utils.exceptions import BookingConflict, Forbidden, InvalidInput, NotFound, PaymentFailed
from .models import Booking, Review
from .pricing import compute_price
from .state_machine import check_transition
from . import tasks

logger = logging.getLogger(__name__)


def validate_window(start, end):
    """Both ends must be timezone-aware and start must precede end"""
    if start is None or end is None:
        raise InvalidInput('Start time and end time are required')
    if timezone.is_naive(start) or timezone.is_naive(end):
        raise InvalidInput('Start and end times must include a timezone')
    if start >= end:
        raise InvalidInput('End time must be after start time')


def find_conflicts(space_id, start, end):
    """Active bookings on the space overlapping the half-open window [start, end)"""
    return Booking.objects.filter(
        parking_space_id=space_id,
        status__in=Booking.ACTIVE_STATUSES,
        start_time__lt=end,
        end_time__gt=start,
    ).order_by('start_time', 'id')


def has_conflict(space_id, start, end):
    validate_window(start, end)
    return find_conflicts(space_id, start, end).exists()


def _dispatch(task, object_id):
    """Queue a side-effect task once the surrounding transaction commits"""
    transaction.on_commit(partial(task.delay, object_id))


def create_booking(renter, space_id, start, end):
    """Admit a booking if the window is free, pricing it once.

    The ParkingSpace row is locked for the whole check-then-insert so two
    requests for the same space cannot both pass the conflict check.
    """
    validate_window(start, end)

    with transaction.atomic():
        try:
            space = ParkingSpace.objects.select_for_update().get(pk=space_id)
        except ParkingSpace.DoesNotExist:
            raise NotFound('Parking space not found')

        if not space.is_bookable:
            raise InvalidInput('Parking space is not available for booking')

        if find_conflicts(space.id, start, end).exists():
            raise BookingConflict('Parking space is already booked for this time period')

        price = compute_price(space, start, end)
        booking = Booking.objects.create(
            renter=renter,
            parking_space=space,
            start_time=start,
            end_time=end,
            total_price=price.total,
            currency=settings.BOOKING_CURRENCY,
            status=Booking.PENDING,
            payment_status=Booking.UNPAID,
        )
        logger.info(
            f"Booking {booking.id} created for space {space.id}: "
            f"{price.total_hours}h ({price.months}m/{price.days}d/{price.hours}h) = {price.display_total}"
        )
        _dispatch(tasks.notify_booking_created, booking.id)

    return booking


def _get_booking(booking_id):
    try:
        return Booking.objects.select_related('parking_space').get(pk=booking_id)
    except Booking.DoesNotExist:
        raise NotFound('Booking not found')


def _lock_booking(booking_id):
    try:
        return Booking.objects.select_for_update().select_related('parking_space').get(pk=booking_id)
    except Booking.DoesNotExist:
        raise NotFound('Booking not found')


def transition_booking_status(booking_id, new_status, user, payment_backend):
    """Move a booking to ``new_status`` on behalf of ``user``.

    Notifications and refunds run after commit and can never undo the
    transition. Confirmation goes through confirm_booking because it has to
    talk to the payment gateway first.
    """
    if new_status == Booking.CONFIRMED:
        return confirm_booking(booking_id, user, payment_backend)

    with transaction.atomic():
        booking = _lock_booking(booking_id)
        check_transition(booking, new_status, user)

        previous = booking.status
        booking.status = new_status
        booking.save(update_fields=['status', 'updated_at'])
        logger.info(f"Booking {booking.id}: {previous} -> {new_status}")

        if new_status == Booking.CANCELLED:
            _dispatch(tasks.notify_booking_cancelled, booking.id)
            if booking.payment_status == Booking.PAID:
                _dispatch(tasks.refund_booking_payment, booking.id)

    return booking


def confirm_booking(booking_id, user, payment_backend):
    """Owner confirmation: capture the renter's payment, then mark CONFIRMED/PAID.

    The capture happens before the booking row is locked so a slow gateway
    never holds the lock. The transition is checked again under the lock; if
    the booking changed in between, or the write fails, the captured payment
    is refunded straight away and the original error is raised. A refused
    capture raises PaymentFailed and leaves the booking PENDING and UNPAID.
    """
    booking = _get_booking(booking_id)
    check_transition(booking, Booking.CONFIRMED, user)

    result = payment_backend.capture(booking)
    if not result.success:
        logger.warning(f"Payment capture failed for booking {booking.id}: {result.message}")
        raise PaymentFailed(result.message or 'Payment processing failed')

    try:
        with transaction.atomic():
            booking = _lock_booking(booking_id)
            check_transition(booking, Booking.CONFIRMED, user)
            booking.status = Booking.CONFIRMED
            booking.payment_status = Booking.PAID
            booking.payment_reference = result.reference
            booking.save(update_fields=['status', 'payment_status', 'payment_reference', 'updated_at'])
            logger.info(f"Booking {booking.id}: {Booking.PENDING} -> {Booking.CONFIRMED}")
            _dispatch(tasks.notify_booking_confirmed, booking.id)
    except Exception:
        booking.payment_reference = result.reference
        _refund_captured_payment(booking, payment_backend)
        raise

    return booking


def _refund_captured_payment(booking, payment_backend):
    """Give back a capture whose confirmation was never stored"""
    logger.error(f"Confirmation of booking {booking.id} failed after payment {booking.payment_reference} was captured")
    refund = payment_backend.refund(booking)
    if refund.success:
        logger.info(f"Captured payment {booking.payment_reference} refunded ({refund.reference})")
    else:
        logger.critical(
            f"Could not refund payment {booking.payment_reference} for booking {booking.id}: {refund.message}"
        )


def complete_booking(booking_id, now=None):
    """System entry point for CONFIRMED -> COMPLETED once the booking has ended"""
    now = now or timezone.now()
    with transaction.atomic():
        booking = _lock_booking(booking_id)
        if booking.end_time > now:
            raise InvalidInput('Booking has not ended yet')
        check_transition(booking, Booking.COMPLETED)
        booking.status = Booking.COMPLETED
        booking.save(update_fields=['status', 'updated_at'])
        logger.info(f"Booking {booking.id} completed")
    return booking


def start_payment(booking, user, payment_backend):
    """Open a gateway order so the renter can authorize payment"""
    if user.pk != booking.renter_id:
        raise Forbidden('Only the renter can pay for a booking')
    if booking.status != Booking.PENDING or booking.payment_status != Booking.UNPAID:
        raise InvalidInput(f'Cannot pay for a {booking.status} booking that is {booking.payment_status}')

    result = payment_backend.create_order(booking)
    if not result.success:
        raise PaymentFailed(result.message or 'Failed to initiate payment')

    booking.payment_order_id = result.reference
    booking.save(update_fields=['payment_order_id', 'updated_at'])
    return result


def authorize_payment(order_id, payment_id, signature, user, payment_backend):
    """Record the gateway payment the renter authorized; captured on confirmation"""
    try:
        booking = Booking.objects.get(payment_order_id=order_id)
    except Booking.DoesNotExist:
        raise NotFound('Payment order not found')

    if user.pk != booking.renter_id:
        raise Forbidden('Only the renter can pay for a booking')
    if booking.status != Booking.PENDING or booking.payment_status != Booking.UNPAID:
        raise InvalidInput(f'Cannot pay for a {booking.status} booking that is {booking.payment_status}')

    result = payment_backend.verify(order_id, payment_id, signature)
    if not result.success:
        raise PaymentFailed(result.message or 'Payment verification failed')

    booking.payment_reference = result.reference
    booking.save(update_fields=['payment_reference', 'updated_at'])
    logger.info(f"Payment {payment_id} authorized for booking {booking.id}")
    return booking


def availability_slots(space, window_start, window_end):
    """Free [start, end) gaps inside the window between active bookings"""
    validate_window(window_start, window_end)

    slots = []
    cursor = window_start
    for booking in find_conflicts(space.id, window_start, window_end):
        if cursor < booking.start_time:
            slots.append((cursor, booking.start_time))
        cursor = max(cursor, booking.end_time)

    if cursor < window_end:
        slots.append((cursor, window_end))
    return slots


def create_review(booking_id, user, rating, comment=''):
    """Let the renter rate the space once their booking is COMPLETED; one review per booking"""
    if rating not in range(1, 6):
        raise InvalidInput('Rating must be between 1 and 5')

    with transaction.atomic():
        booking = _lock_booking(booking_id)
        if user.pk != booking.renter_id:
            raise Forbidden('Only the renter can review a booking')
        if booking.status != Booking.COMPLETED:
            raise InvalidInput('Only completed bookings can be reviewed')
        if Review.objects.filter(booking=booking).exists():
            raise BookingConflict('This booking has already been reviewed')

        review = Review.objects.create(
            booking=booking,
            parking_space=booking.parking_space,
            reviewer=user,
            rating=rating,
            comment=comment,
        )
        logger.info(f"Review {review.id} ({rating}/5) posted for space {booking.parking_space_id}")
        _dispatch(tasks.notify_review_posted, review.id)

    return review
