"""
ASGI config for poker_server project.

It exposes the ASGI callable as a module-level variable named ``application``.

Serve with uvicorn: `uvicorn poker_server.asgi:application --app-dir poker_server`.
"""
# Load secrets (if configured) before Django settings are loaded
import poker_server.env_bootstrap  # noqa: F401

import os

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "poker_server.settings")

from channels.routing import ProtocolTypeRouter, URLRouter
from channels.security.websocket import AllowedHostsOriginValidator
from django.conf import settings
from django.core.asgi import get_asgi_application

# Standard Django ASGI application for HTTP. Initialise before importing
# anything that touches models or app registry.
django_asgi_app = get_asgi_application()

from poker_server.routing import websocket_urlpatterns  # noqa: E402

# Channels router for WebSockets. Outside DEBUG, reject sockets whose Origin
# host is not in ALLOWED_HOSTS.
websocket_app = URLRouter(websocket_urlpatterns)
if not settings.DEBUG:
    websocket_app = AllowedHostsOriginValidator(websocket_app)

application = ProtocolTypeRouter(
    {
        "http": django_asgi_app,
        "websocket": websocket_app,
    }
)
