"""
URL configuration for poker_server project.

HTTP only; websocket routes live in poker_server.routing.
"""
from django.urls import path

from realtime.views import create_session, join_by_pin, session_detail
from .health import health

urlpatterns = [
    # Health check endpoint for the load balancer
    path("health/", health),
    path("api/sessions/", create_session),
    # Before the detail route so "join" is never read as a session id
    path("api/sessions/join/", join_by_pin),
    path("api/sessions/<str:session_id>/", session_detail),
]
