"""
WSGI entry point (``gunicorn hospital.wsgi``).

Plain HTTP only; the dashboard WebSocket needs the ASGI application in
:mod:`hospital.asgi`.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'hospital.settings')

application = get_wsgi_application()
