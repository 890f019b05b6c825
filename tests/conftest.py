import itertools
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from rest_framework.test import APIClient

from parking.models import ParkingSpace
from payments.backends.base import BasePaymentBackend, PaymentResult

_usernames = itertools.count(1)


def at(day, hour=0, minute=0):
    """Aware UTC datetime in March 2030"""
    return datetime(2030, 3, day, hour, minute, tzinfo=timezone.utc)


class FakePaymentBackend(BasePaymentBackend):
    """Records every call; each operation can be told to fail"""

    def __init__(self, fail=()):
        self.fail = set(fail)
        self.calls = []

    def _result(self, operation, reference):
        self.calls.append((operation, reference))
        if operation in self.fail:
            return PaymentResult(success=False, message=f'{operation} declined')
        return PaymentResult(success=True, reference=reference)

    def create_order(self, booking):
        return self._result('create_order', f'order_fake_{booking.id}')

    def verify(self, order_id, payment_id, signature):
        return self._result('verify', payment_id)

    def capture(self, booking):
        return self._result('capture', booking.payment_reference or f'pay_fake_{booking.id}')

    def refund(self, booking):
        return self._result('refund', f'rfnd_fake_{booking.id}')


@pytest.fixture
def make_user(django_user_model):
    def _make_user(user_type='renter', **kwargs):
        n = next(_usernames)
        kwargs.setdefault('username', f'user{n}')
        kwargs.setdefault('email', f'user{n}@example.com')
        return django_user_model.objects.create_user(password='pass1234', user_type=user_type, **kwargs)
    return _make_user


@pytest.fixture
def owner(make_user):
    return make_user(user_type='owner', first_name='Olivia', last_name='Owner')


@pytest.fixture
def renter(make_user):
    return make_user(user_type='renter', first_name='Rene', last_name='Renter')


@pytest.fixture
def stranger(make_user):
    return make_user(user_type='both')


@pytest.fixture
def staff(make_user):
    return make_user(user_type='both', is_staff=True)


@pytest.fixture
def make_space(owner):
    def _make_space(**kwargs):
        defaults = {
            'owner': owner,
            'title': 'Covered spot near the station',
            'description': 'Quiet street, easy access',
            'address': '12 Harbour Road',
            'city': 'Istanbul',
            'latitude': 41.0,
            'longitude': 29.0,
            'space_type': 'covered',
            'price_per_hour': Decimal('10.00'),
            'price_per_day': Decimal('80.00'),
            'moderation_status': ParkingSpace.MODERATION_APPROVED,
        }
        defaults.update(kwargs)
        return ParkingSpace.objects.create(**defaults)
    return _make_space


@pytest.fixture
def space(make_space):
    return make_space()


@pytest.fixture
def fake_backend():
    return FakePaymentBackend()


@pytest.fixture
def api_client():
    return APIClient()
