"""
WSGI config for poker_server project.

Only the HTTP endpoints work under WSGI; websockets need the ASGI application.
"""
# Load secrets (if configured) before Django settings are loaded
import poker_server.env_bootstrap  # noqa: F401

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'poker_server.settings')

application = get_wsgi_application()
