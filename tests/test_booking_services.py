import random
import threading
from datetime import datetime, timedelta
from decimal import Decimal
from itertools import combinations
from unittest import mock

import pytest
from django.core import mail
from django.db import DatabaseError, connection, connections
from django.db.models import QuerySet
from django.test.utils import CaptureQueriesContext

from bookings.models import Booking
from bookings.services import (
    authorize_payment,
    availability_slots,
    complete_booking,
    create_booking,
    find_conflicts,
    has_conflict,
    start_payment,
    transition_booking_status,
)
from parking.models import ParkingSpace
from payments.apps import get_payment_backend
from utils.exceptions import (
    BookingConflict,
    Forbidden,
    IllegalTransition,
    InvalidInput,
    NotFound,
    PaymentFailed,
)

from .conftest import FakePaymentBackend, at

pytestmark = pytest.mark.django_db


# ==================== CREATE ====================

def test_create_booking_prices_and_stores_pending_unpaid(space, renter):
    booking = create_booking(renter, space.id, at(1, 8), at(2, 10))

    assert booking.status == Booking.PENDING
    assert booking.payment_status == Booking.UNPAID
    assert booking.total_price == Decimal('100')
    assert booking.currency == 'INR'
    assert booking.renter == renter


def test_owner_is_notified_after_commit(space, renter, owner, django_capture_on_commit_callbacks):
    with django_capture_on_commit_callbacks(execute=True) as callbacks:
        create_booking(renter, space.id, at(1, 8), at(1, 10))

    assert len(callbacks) == 1
    assert len(mail.outbox) == 1
    assert mail.outbox[0].to == [owner.email]
    assert 'New Booking Request' in mail.outbox[0].subject


def test_overlapping_booking_is_rejected(space, renter, make_user):
    create_booking(renter, space.id, at(1, 10), at(1, 12))

    with pytest.raises(BookingConflict):
        create_booking(make_user(), space.id, at(1, 11), at(1, 13))
    assert Booking.objects.count() == 1


def test_enclosing_booking_is_rejected(space, renter):
    create_booking(renter, space.id, at(1, 10), at(1, 12))

    with pytest.raises(BookingConflict):
        create_booking(renter, space.id, at(1, 9), at(1, 14))


def test_touching_bookings_do_not_conflict(space, renter):
    create_booking(renter, space.id, at(1, 10), at(1, 12))
    create_booking(renter, space.id, at(1, 12), at(1, 14))
    create_booking(renter, space.id, at(1, 8), at(1, 10))

    assert Booking.objects.filter(parking_space=space).count() == 3


def test_cancelled_booking_frees_the_window(space, renter):
    first = create_booking(renter, space.id, at(1, 10), at(1, 12))
    transition_booking_status(first.id, Booking.CANCELLED, renter, FakePaymentBackend())

    second = create_booking(renter, space.id, at(1, 10), at(1, 12))
    assert second.status == Booking.PENDING


def test_bookings_on_other_spaces_do_not_conflict(make_space, renter):
    a, b = make_space(), make_space()
    create_booking(renter, a.id, at(1, 10), at(1, 12))
    create_booking(renter, b.id, at(1, 10), at(1, 12))


@pytest.mark.parametrize('changes', [
    {'moderation_status': ParkingSpace.MODERATION_PENDING},
    {'moderation_status': ParkingSpace.MODERATION_REJECTED},
    {'is_available': False},
])
def test_space_must_be_bookable(make_space, renter, changes):
    space = make_space(**changes)

    with pytest.raises(InvalidInput):
        create_booking(renter, space.id, at(1, 10), at(1, 12))


def test_missing_space(renter):
    with pytest.raises(NotFound):
        create_booking(renter, 999999, at(1, 10), at(1, 12))


@pytest.mark.parametrize('start, end', [
    (at(1, 12), at(1, 10)),
    (at(1, 10), at(1, 10)),
    (datetime(2030, 3, 1, 10), datetime(2030, 3, 1, 12)),
    (None, at(1, 12)),
])
def test_invalid_windows_are_rejected(space, renter, start, end):
    with pytest.raises(InvalidInput):
        create_booking(renter, space.id, start, end)


def test_active_bookings_never_overlap(space, make_user):
    rng = random.Random(2024)
    renters = [make_user() for _ in range(4)]
    origin = at(1)
    backend = FakePaymentBackend()

    for _ in range(80):
        start = origin + timedelta(minutes=30 * rng.randrange(0, 480))
        end = start + timedelta(minutes=30 * rng.randrange(1, 24))
        renter = rng.choice(renters)
        try:
            booking = create_booking(renter, space.id, start, end)
        except BookingConflict:
            continue
        if rng.random() < 0.2:
            transition_booking_status(booking.id, Booking.CANCELLED, renter, backend)

    active = list(Booking.objects.filter(parking_space=space, status__in=Booking.ACTIVE_STATUSES))
    assert active
    for a, b in combinations(active, 2):
        assert a.end_time <= b.start_time or b.end_time <= a.start_time, (a.id, b.id)


def test_has_conflict_and_find_conflicts(space, renter):
    booking = create_booking(renter, space.id, at(1, 10), at(1, 12))

    assert has_conflict(space.id, at(1, 11), at(1, 11, 30))
    assert not has_conflict(space.id, at(1, 12), at(1, 13))
    assert list(find_conflicts(space.id, at(1, 9), at(1, 23))) == [booking]
    with pytest.raises(InvalidInput):
        has_conflict(space.id, at(1, 12), at(1, 11))


# ==================== SERIALIZATION ====================

def test_space_row_is_locked_before_the_conflict_check(space, renter):
    with mock.patch.object(QuerySet, 'select_for_update', autospec=True,
                           side_effect=QuerySet.select_for_update) as lock, \
            CaptureQueriesContext(connection) as queries:
        create_booking(renter, space.id, at(1, 10), at(1, 12))

    assert [call.args[0].model for call in lock.call_args_list] == [ParkingSpace]

    statements = [q['sql'] for q in queries.captured_queries]
    space_read = next(i for i, sql in enumerate(statements) if 'FROM "parking_parkingspace"' in sql)
    conflict_check = next(i for i, sql in enumerate(statements) if 'FROM "bookings_booking"' in sql)
    insert = next(i for i, sql in enumerate(statements) if sql.startswith('INSERT INTO "bookings_booking"'))
    assert space_read < conflict_check < insert
    if connection.features.has_select_for_update:
        assert 'FOR UPDATE' in statements[space_read]


@pytest.mark.skipif(connection.vendor != 'postgresql', reason='row locks need PostgreSQL')
@pytest.mark.django_db(transaction=True)
def test_racing_requests_for_one_window_admit_exactly_one(space, make_user):
    renters = [make_user() for _ in range(4)]
    barrier = threading.Barrier(len(renters))
    outcomes = []

    def attempt(renter):
        barrier.wait()
        try:
            create_booking(renter, space.id, at(1, 10), at(1, 12))
            outcomes.append('booked')
        except BookingConflict:
            outcomes.append('conflict')
        finally:
            connections.close_all()

    threads = [threading.Thread(target=attempt, args=(renter,)) for renter in renters]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(outcomes) == ['booked', 'conflict', 'conflict', 'conflict']
    assert Booking.objects.filter(parking_space=space).count() == 1


# ==================== TRANSITIONS ====================

def test_owner_confirm_captures_payment(space, renter, owner):
    booking = create_booking(renter, space.id, at(1, 10), at(1, 12))
    backend = FakePaymentBackend()

    confirmed = transition_booking_status(booking.id, Booking.CONFIRMED, owner, backend)

    assert confirmed.status == Booking.CONFIRMED
    assert confirmed.payment_status == Booking.PAID
    assert confirmed.payment_reference == f'pay_fake_{booking.id}'
    assert backend.calls == [('capture', f'pay_fake_{booking.id}')]


def test_renter_is_notified_of_confirmation(space, renter, owner, django_capture_on_commit_callbacks):
    booking = create_booking(renter, space.id, at(1, 10), at(1, 12))

    with django_capture_on_commit_callbacks(execute=True):
        transition_booking_status(booking.id, Booking.CONFIRMED, owner, FakePaymentBackend())

    assert [m.to for m in mail.outbox] == [[renter.email]]
    assert 'Booking Confirmed' in mail.outbox[0].subject


def test_failed_capture_leaves_booking_pending_unpaid(space, renter, owner, django_capture_on_commit_callbacks):
    booking = create_booking(renter, space.id, at(1, 10), at(1, 12))

    with django_capture_on_commit_callbacks(execute=True) as callbacks:
        with pytest.raises(PaymentFailed):
            transition_booking_status(booking.id, Booking.CONFIRMED, owner, FakePaymentBackend(fail={'capture'}))

    booking.refresh_from_db()
    assert booking.status == Booking.PENDING
    assert booking.payment_status == Booking.UNPAID
    assert callbacks == []


def test_capture_is_refunded_when_confirmation_cannot_be_saved(space, renter, owner):
    booking = create_booking(renter, space.id, at(1, 10), at(1, 12))
    backend = FakePaymentBackend()

    with mock.patch.object(Booking, 'save', side_effect=DatabaseError('disk full')):
        with pytest.raises(DatabaseError):
            transition_booking_status(booking.id, Booking.CONFIRMED, owner, backend)

    assert backend.calls == [('capture', f'pay_fake_{booking.id}'), ('refund', f'rfnd_fake_{booking.id}')]
    booking.refresh_from_db()
    assert booking.status == Booking.PENDING
    assert booking.payment_status == Booking.UNPAID


class CancelDuringCaptureBackend(FakePaymentBackend):
    """The renter cancels while the gateway is still capturing"""

    def capture(self, booking):
        Booking.objects.filter(id=booking.id).update(status=Booking.CANCELLED)
        return super().capture(booking)


def test_capture_is_refunded_when_booking_changed_meanwhile(space, renter, owner):
    booking = create_booking(renter, space.id, at(1, 10), at(1, 12))
    backend = CancelDuringCaptureBackend()

    with pytest.raises(IllegalTransition):
        transition_booking_status(booking.id, Booking.CONFIRMED, owner, backend)

    assert [operation for operation, _ in backend.calls] == ['capture', 'refund']
    booking.refresh_from_db()
    assert booking.status == Booking.CANCELLED
    assert booking.payment_status == Booking.UNPAID


def test_failed_compensating_refund_is_logged(space, renter, owner, caplog):
    booking = create_booking(renter, space.id, at(1, 10), at(1, 12))
    backend = CancelDuringCaptureBackend(fail={'refund'})

    with pytest.raises(IllegalTransition):
        transition_booking_status(booking.id, Booking.CONFIRMED, owner, backend)

    assert f'Could not refund payment pay_fake_{booking.id}' in caplog.text


def test_renter_cannot_confirm(space, renter):
    booking = create_booking(renter, space.id, at(1, 10), at(1, 12))
    backend = FakePaymentBackend()

    with pytest.raises(Forbidden):
        transition_booking_status(booking.id, Booking.CONFIRMED, renter, backend)

    booking.refresh_from_db()
    assert booking.status == Booking.PENDING
    assert backend.calls == []


def test_stranger_cannot_confirm(space, renter, stranger):
    booking = create_booking(renter, space.id, at(1, 10), at(1, 12))

    with pytest.raises(Forbidden):
        transition_booking_status(booking.id, Booking.CONFIRMED, stranger, FakePaymentBackend())


def test_cancelled_booking_cannot_be_confirmed(space, renter, owner):
    booking = create_booking(renter, space.id, at(1, 10), at(1, 12))
    transition_booking_status(booking.id, Booking.CANCELLED, renter, FakePaymentBackend())

    with pytest.raises(IllegalTransition):
        transition_booking_status(booking.id, Booking.CONFIRMED, owner, FakePaymentBackend())

    booking.refresh_from_db()
    assert booking.status == Booking.CANCELLED


def test_cancelling_paid_booking_refunds_it(space, renter, owner, django_capture_on_commit_callbacks):
    booking = create_booking(renter, space.id, at(1, 10), at(1, 12))
    transition_booking_status(booking.id, Booking.CONFIRMED, owner, get_payment_backend())

    with django_capture_on_commit_callbacks(execute=True) as callbacks:
        transition_booking_status(booking.id, Booking.CANCELLED, renter, get_payment_backend())

    assert len(callbacks) == 2
    booking.refresh_from_db()
    assert booking.status == Booking.CANCELLED
    assert booking.payment_status == Booking.REFUNDED


def test_cancelling_unpaid_booking_does_not_refund(space, renter, django_capture_on_commit_callbacks):
    booking = create_booking(renter, space.id, at(1, 10), at(1, 12))

    with django_capture_on_commit_callbacks(execute=True) as callbacks:
        transition_booking_status(booking.id, Booking.CANCELLED, renter, FakePaymentBackend())

    assert len(callbacks) == 1
    booking.refresh_from_db()
    assert booking.payment_status == Booking.UNPAID


def test_transition_of_missing_booking(owner):
    with pytest.raises(NotFound):
        transition_booking_status(999999, Booking.CONFIRMED, owner, FakePaymentBackend())


# ==================== COMPLETION ====================

def test_complete_booking_after_it_ends(space, renter, owner):
    booking = create_booking(renter, space.id, at(1, 10), at(1, 12))
    transition_booking_status(booking.id, Booking.CONFIRMED, owner, FakePaymentBackend())

    completed = complete_booking(booking.id, now=at(1, 12))
    assert completed.status == Booking.COMPLETED


def test_complete_booking_before_end_is_rejected(space, renter, owner):
    booking = create_booking(renter, space.id, at(1, 10), at(1, 12))
    transition_booking_status(booking.id, Booking.CONFIRMED, owner, FakePaymentBackend())

    with pytest.raises(InvalidInput):
        complete_booking(booking.id, now=at(1, 11))


def test_pending_booking_cannot_complete(space, renter):
    booking = create_booking(renter, space.id, at(1, 10), at(1, 12))

    with pytest.raises(IllegalTransition):
        complete_booking(booking.id, now=at(2))


# ==================== PAYMENTS ====================

def test_start_payment_stores_order(space, renter):
    booking = create_booking(renter, space.id, at(1, 10), at(1, 12))

    result = start_payment(booking, renter, FakePaymentBackend())

    booking.refresh_from_db()
    assert result.success
    assert booking.payment_order_id == f'order_fake_{booking.id}'


def test_only_renter_starts_payment(space, renter, owner):
    booking = create_booking(renter, space.id, at(1, 10), at(1, 12))

    with pytest.raises(Forbidden):
        start_payment(booking, owner, FakePaymentBackend())


def test_confirmed_booking_cannot_start_payment(space, renter, owner):
    booking = create_booking(renter, space.id, at(1, 10), at(1, 12))
    booking = transition_booking_status(booking.id, Booking.CONFIRMED, owner, FakePaymentBackend())

    with pytest.raises(InvalidInput):
        start_payment(booking, renter, FakePaymentBackend())


def test_gateway_refusing_order_is_payment_failed(space, renter):
    booking = create_booking(renter, space.id, at(1, 10), at(1, 12))

    with pytest.raises(PaymentFailed):
        start_payment(booking, renter, FakePaymentBackend(fail={'create_order'}))


def test_authorized_payment_is_captured_on_confirm(space, renter, owner):
    booking = create_booking(renter, space.id, at(1, 10), at(1, 12))
    backend = FakePaymentBackend()
    start_payment(booking, renter, backend)

    authorize_payment(f'order_fake_{booking.id}', 'pay_abc', 'sig', renter, backend)
    confirmed = transition_booking_status(booking.id, Booking.CONFIRMED, owner, backend)

    assert confirmed.payment_reference == 'pay_abc'
    assert ('capture', 'pay_abc') in backend.calls


def test_authorize_payment_checks_order_and_signature(space, renter, stranger):
    booking = create_booking(renter, space.id, at(1, 10), at(1, 12))
    start_payment(booking, renter, FakePaymentBackend())
    order_id = f'order_fake_{booking.id}'

    with pytest.raises(NotFound):
        authorize_payment('order_missing', 'pay_abc', 'sig', renter, FakePaymentBackend())
    with pytest.raises(Forbidden):
        authorize_payment(order_id, 'pay_abc', 'sig', stranger, FakePaymentBackend())
    with pytest.raises(PaymentFailed):
        authorize_payment(order_id, 'pay_abc', 'sig', renter, FakePaymentBackend(fail={'verify'}))

    booking.refresh_from_db()
    assert booking.payment_reference is None


@pytest.mark.parametrize('status', [Booking.CANCELLED, Booking.CONFIRMED])
def test_authorize_payment_needs_a_pending_unpaid_booking(space, renter, owner, status):
    booking = create_booking(renter, space.id, at(1, 10), at(1, 12))
    backend = FakePaymentBackend()
    start_payment(booking, renter, backend)
    transition_booking_status(booking.id, status, owner if status == Booking.CONFIRMED else renter, backend)
    reference = Booking.objects.get(id=booking.id).payment_reference

    with pytest.raises(InvalidInput):
        authorize_payment(f'order_fake_{booking.id}', 'pay_late', 'sig', renter, backend)

    booking.refresh_from_db()
    assert booking.payment_reference == reference
    assert ('verify', 'pay_late') not in backend.calls


# ==================== AVAILABILITY ====================

def test_availability_slots_are_gaps_between_active_bookings(space, renter):
    create_booking(renter, space.id, at(1, 10), at(1, 12))
    create_booking(renter, space.id, at(1, 12), at(1, 13))
    create_booking(renter, space.id, at(1, 15), at(1, 16))
    cancelled = create_booking(renter, space.id, at(1, 16), at(1, 17))
    transition_booking_status(cancelled.id, Booking.CANCELLED, renter, FakePaymentBackend())

    slots = availability_slots(space, at(1, 8), at(1, 18))

    assert slots == [(at(1, 8), at(1, 10)), (at(1, 13), at(1, 15)), (at(1, 16), at(1, 18))]


def test_availability_slots_clip_bookings_to_the_window(space, renter):
    create_booking(renter, space.id, at(1, 6), at(1, 9))
    create_booking(renter, space.id, at(1, 17), at(1, 20))

    assert availability_slots(space, at(1, 8), at(1, 18)) == [(at(1, 9), at(1, 17))]


def test_fully_booked_window_has_no_slots(space, renter):
    create_booking(renter, space.id, at(1, 6), at(1, 20))

    assert availability_slots(space, at(1, 8), at(1, 18)) == []
