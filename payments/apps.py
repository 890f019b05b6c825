import logging

from django.apps import AppConfig

logger = logging.getLogger(__name__)


class PaymentsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'payments'
    backend = None

    def ready(self):
        from .backends import load_backend

        self.backend = load_backend()
        logger.info(f"Payment backend ready: {type(self.backend).__name__}")


def get_payment_backend():
    from django.apps import apps

    return apps.get_app_config('payments').backend
