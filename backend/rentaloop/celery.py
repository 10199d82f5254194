import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "rentaloop.settings.base")
app = Celery("rentaloop")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()
