# ==================== PARKSHARE/CELERY.PY ====================
import os

from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'parkshare.settings')

app = Celery('parkshare')

# All CELERY_* names in settings.py configure the app
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()
