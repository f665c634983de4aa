"""
WSGI config for the donormatch project.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'donormatch.settings')

application = get_wsgi_application()
