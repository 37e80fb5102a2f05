from django.urls import re_path

from .consumers import PokerConsumer


websocket_urlpatterns = [
    # Single endpoint; the session is chosen by the join_session message.
    re_path(r"^ws/?$", PokerConsumer.as_asgi()),
]
