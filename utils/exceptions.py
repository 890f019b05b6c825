# ==================== UTILS/EXCEPTIONS.PY ====================
from rest_framework.exceptions import APIException
from rest_framework import status


class NotFound(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Requested resource was not found.'
    default_code = 'not_found'


class BookingConflict(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Parking space is already booked for this time period.'
    default_code = 'conflict'


class Forbidden(APIException):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'You do not have permission to perform this action.'
    default_code = 'forbidden'


class InvalidInput(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid input.'
    default_code = 'invalid_input'


class IllegalTransition(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Booking status change is not allowed.'
    default_code = 'illegal_transition'


class UpstreamFailure(APIException):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = 'An external service failed.'
    default_code = 'upstream_failure'


class PaymentFailed(UpstreamFailure):
    status_code = status.HTTP_402_PAYMENT_REQUIRED
    default_detail = 'Payment processing failed.'
    default_code = 'payment_failed'
