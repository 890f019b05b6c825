from unittest import mock

import pytest

from .test_payments import booking_stub

razorpay = pytest.importorskip('razorpay')


@pytest.fixture
def razorpay_client():
    with mock.patch('payments.backends.razorpay_backend.razorpay.Client') as client_class:
        yield client_class.return_value


@pytest.fixture
def backend(razorpay_client):
    from payments.backends.razorpay_backend import RazorpayBackend

    return RazorpayBackend(key_id='rzp_test_key', key_secret='secret')


def test_razorpay_needs_keys():
    from payments.backends.razorpay_backend import RazorpayBackend

    with pytest.raises(ValueError):
        RazorpayBackend(key_id='', key_secret='')


def test_razorpay_order_is_in_paise(backend, razorpay_client):
    razorpay_client.order.create.return_value = {'id': 'order_1', 'amount': 15050}

    result = backend.create_order(booking_stub())

    assert result.success and result.reference == 'order_1'
    data = razorpay_client.order.create.call_args.kwargs['data']
    assert data['amount'] == 15050
    assert data['currency'] == 'INR'
    assert data['notes']['booking_id'] == 7


def test_razorpay_order_failure(backend, razorpay_client):
    razorpay_client.order.create.side_effect = razorpay.errors.ServerError('gateway down')

    result = backend.create_order(booking_stub())

    assert not result.success
    assert 'gateway down' in result.message


def test_razorpay_bad_signature(backend, razorpay_client):
    razorpay_client.utility.verify_payment_signature.side_effect = (
        razorpay.errors.SignatureVerificationError('bad signature')
    )

    assert not backend.verify('order_1', 'pay_1', 'forged').success


def test_razorpay_good_signature(backend, razorpay_client):
    result = backend.verify('order_1', 'pay_1', 'sig')

    assert result.success and result.reference == 'pay_1'
    razorpay_client.utility.verify_payment_signature.assert_called_once_with({
        'razorpay_order_id': 'order_1',
        'razorpay_payment_id': 'pay_1',
        'razorpay_signature': 'sig',
    })


def test_razorpay_capture(backend, razorpay_client):
    razorpay_client.payment.capture.return_value = {'id': 'pay_abc', 'status': 'captured'}

    result = backend.capture(booking_stub())

    assert result.success and result.reference == 'pay_abc'
    razorpay_client.payment.capture.assert_called_once_with('pay_abc', 15050, {'currency': 'INR'})


def test_razorpay_capture_without_authorization(backend, razorpay_client):
    result = backend.capture(booking_stub(payment_reference=None))

    assert not result.success
    razorpay_client.payment.capture.assert_not_called()


def test_razorpay_capture_not_captured(backend, razorpay_client):
    razorpay_client.payment.capture.return_value = {'id': 'pay_abc', 'status': 'failed'}

    assert not backend.capture(booking_stub()).success


def test_razorpay_refund(backend, razorpay_client):
    razorpay_client.payment.refund.return_value = {'id': 'rfnd_1'}

    result = backend.refund(booking_stub())

    assert result.success and result.reference == 'rfnd_1'
    args = razorpay_client.payment.refund.call_args.args
    assert args[0] == 'pay_abc'
    assert args[1]['amount'] == 15050
