# ==================== UTILS/EXCEPTION_HANDLER.PY ====================
import logging

from rest_framework.exceptions import ValidationError
from rest_framework.settings import api_settings
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)

# DRF built-in codes folded into the booking engine's error kinds
CODE_ALIASES = {
    'permission_denied': 'forbidden',
    'invalid': 'invalid_input',
    'parse_error': 'invalid_input',
}


def _first_message(detail):
    """Flatten serializer errors to a single human-readable line"""
    if isinstance(detail, dict):
        field, errors = next(iter(detail.items()))
        message = _first_message(errors)
        if field in (api_settings.NON_FIELD_ERRORS_KEY, 'detail'):
            return message
        return f'{field}: {message}'
    if isinstance(detail, list):
        return _first_message(detail[0]) if detail else 'Invalid input.'
    return str(detail)


def api_exception_handler(exc, context):
    """Render every API error as {"error": <message>, "code": <kind>}"""
    response = exception_handler(exc, context)
    if response is None:
        return None

    if isinstance(exc, ValidationError):
        message = _first_message(exc.detail)
        code = 'invalid_input'
    else:
        detail = response.data.get('detail', response.data) if isinstance(response.data, dict) else response.data
        message = _first_message(detail)
        code = getattr(detail, 'code', None) or 'error'
        code = CODE_ALIASES.get(code, code)

    if response.status_code >= 500:
        logger.error(f"{code}: {message}")

    response.data = {'error': message, 'code': code}
    return response
