"""
Celery application for the chat delivery service.

Runs background work that must not hold up a request or a WebSocket
handshake: the reconnect catch-up and analytics publishing in chat.tasks.

Broker and result backend are Redis (CELERY_BROKER_URL,
CELERY_RESULT_BACKEND). Tasks are auto-discovered from each installed
app's tasks.py.

Usage:
    celery -A config worker -l info
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("chat_delivery")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
