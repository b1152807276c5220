"""
WSGI config for cafe_office project.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'cafe_office.settings.local')

application = get_wsgi_application()
