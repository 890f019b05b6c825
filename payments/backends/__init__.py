from django.conf import settings
from django.utils.module_loading import import_string


def load_backend(path=None, **options):
    """Build the configured payment backend.

    ``PAYMENT_BACKEND`` is a dotted path, like Django's EMAIL_BACKEND;
    ``PAYMENT_BACKEND_OPTIONS`` are passed to its constructor.
    """
    backend_class = import_string(path or settings.PAYMENT_BACKEND)
    kwargs = dict(getattr(settings, 'PAYMENT_BACKEND_OPTIONS', {}))
    kwargs.update(options)
    return backend_class(**kwargs)
