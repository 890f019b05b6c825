"""WSGI config for the parkshare project."""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'parkshare.settings')

application = get_wsgi_application()
