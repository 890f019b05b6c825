# ==================== BOOKINGS/TASKS.PY (CELERY TASKS) ====================
import logging
import smtplib
from datetime import timedelta

from celery import shared_task
from django.conf import settings
from django.core.mail import BadHeaderError, send_mail
from django.utils import timezone

from utils.exceptions import IllegalTransition
from .models import Booking, Review

logger = logging.getLogger(__name__)

MAIL_ERRORS = (smtplib.SMTPException, BadHeaderError, OSError)


def _get_booking(booking_id):
    try:
        return Booking.objects.select_related('renter', 'parking_space__owner').get(id=booking_id)
    except Booking.DoesNotExist:
        logger.warning(f"Booking {booking_id} vanished before its notification was sent")
        return None


def _booking_summary(booking):
    return f'''
            Location: {booking.parking_space.title}, {booking.parking_space.address}
            Check-in: {booking.start_time}
            Check-out: {booking.end_time}
            Amount: {booking.total_price} {booking.currency}
            Booking: #{booking.id}
            '''


def _send(subject, message, recipient, booking_id):
    """Best-effort email; delivery problems are logged, never raised"""
    if not recipient:
        logger.info(f"No email address for booking {booking_id} notification '{subject}'")
        return False
    try:
        send_mail(subject, message, settings.DEFAULT_FROM_EMAIL, [recipient], fail_silently=False)
    except MAIL_ERRORS as e:
        logger.error(f"Error sending booking notification for {booking_id}: {str(e)}")
        return False
    return True


@shared_task
def notify_booking_created(booking_id):
    """Tell the owner a renter requested their space"""
    booking = _get_booking(booking_id)
    if booking is None:
        return False
    return _send(
        f'New Booking Request for {booking.parking_space.title}',
        f'''
            {booking.renter.display_name} requested your parking space.
            {_booking_summary(booking)}
            Confirm it from your dashboard to collect payment.
            ''',
        booking.parking_space.owner.email,
        booking_id,
    )


@shared_task
def notify_booking_confirmed(booking_id):
    booking = _get_booking(booking_id)
    if booking is None:
        return False
    return _send(
        f'Booking Confirmed - {booking.parking_space.title}',
        f'''
            Your booking has been confirmed:
            {_booking_summary(booking)}
            ''',
        booking.renter.email,
        booking_id,
    )


@shared_task
def notify_booking_cancelled(booking_id):
    booking = _get_booking(booking_id)
    if booking is None:
        return False
    return _send(
        f'Booking Cancelled - {booking.parking_space.title}',
        f'''
            Your booking has been cancelled:
            {_booking_summary(booking)}
            ''',
        booking.renter.email,
        booking_id,
    )


@shared_task
def notify_review_posted(review_id):
    """Tell the owner a renter reviewed their space"""
    try:
        review = Review.objects.select_related('reviewer', 'parking_space__owner').get(id=review_id)
    except Review.DoesNotExist:
        logger.warning(f"Review {review_id} vanished before its notification was sent")
        return False
    return _send(
        f'New {review.rating}-star review for {review.parking_space.title}',
        f'''
            {review.reviewer.display_name} rated your parking space {review.rating}/5.
            {review.comment}
            ''',
        review.parking_space.owner.email,
        review.booking_id,
    )


@shared_task
def refund_booking_payment(booking_id):
    """Refund a cancelled booking that had already been paid"""
    from payments.apps import get_payment_backend

    booking = _get_booking(booking_id)
    if booking is None or booking.payment_status != Booking.PAID:
        return False

    result = get_payment_backend().refund(booking)
    if not result.success:
        logger.error(f"Refund failed for booking {booking_id}: {result.message}")
        return False

    Booking.objects.filter(id=booking_id, payment_status=Booking.PAID).update(
        payment_status=Booking.REFUNDED, updated_at=timezone.now()
    )
    logger.info(f"Booking {booking_id} refunded ({result.reference})")
    return True


@shared_task
def auto_complete_bookings():
    """Automatically complete confirmed bookings that have ended"""
    from .services import complete_booking

    now = timezone.now()
    ended = Booking.objects.filter(
        status=Booking.CONFIRMED,
        end_time__lte=now,
    ).values_list('id', flat=True)

    completed = 0
    for booking_id in list(ended):
        try:
            complete_booking(booking_id, now=now)
        except IllegalTransition as e:
            # cancelled between the query and the lock
            logger.info(f"Skipping booking {booking_id}: {e.detail}")
            continue
        completed += 1

    logger.info(f"Auto-completed {completed} bookings")
    return completed


@shared_task
def send_booking_reminders():
    """Remind renters of confirmed bookings starting within the next 24 hours"""
    now = timezone.now()
    upcoming = Booking.objects.select_related('renter', 'parking_space').filter(
        status=Booking.CONFIRMED,
        reminder_sent=False,
        start_time__gte=now,
        start_time__lte=now + timedelta(hours=24),
    )

    sent = 0
    for booking in upcoming:
        delivered = _send(
            f'Reminder: your parking at {booking.parking_space.title}',
            f'''
            Your booking starts soon:
            {_booking_summary(booking)}
            ''',
            booking.renter.email,
            booking.id,
        )
        if delivered:
            Booking.objects.filter(id=booking.id).update(reminder_sent=True)
            sent += 1

    logger.info(f"Sent {sent} booking reminders")
    return sent
