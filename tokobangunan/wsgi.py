"""
WSGI config for the tokobangunan project.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "tokobangunan.settings")

application = get_wsgi_application()
