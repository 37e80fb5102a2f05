"""
Shared pytest fixtures.

Every test gets a fresh store/engine and, for websocket tests, a fresh
in-memory channel layer and process-wide SessionManager.
"""

import pytest
import pytest_asyncio
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator

from realtime.config import Settings
from realtime.engine import SessionEngine
from realtime.routing import websocket_urlpatterns
from realtime.session_manager import reset_session_manager
from realtime.storage import MemoryStorage


@pytest.fixture
def poker_settings():
    return Settings(REDACT_UNREVEALED_VOTES=False)


@pytest.fixture
def store():
    return MemoryStorage()


@pytest.fixture
def engine(store, poker_settings):
    return SessionEngine(store, poker_settings)


@pytest.fixture
def channel_layer_settings(settings):
    # Changing CHANNEL_LAYERS makes Channels drop its cached layer instances.
    settings.CHANNEL_LAYERS = {"default": {"BACKEND": "channels.layers.InMemoryChannelLayer"}}
    return settings


@pytest.fixture
def manager(channel_layer_settings, poker_settings):
    return reset_session_manager(settings=poker_settings)


@pytest_asyncio.fixture
async def open_socket(manager):
    """Factory for connected /ws/ communicators; all are disconnected at teardown."""
    application = URLRouter(websocket_urlpatterns)
    opened = []

    async def _open():
        communicator = WebsocketCommunicator(application, "/ws/")
        connected, _ = await communicator.connect()
        assert connected
        opened.append(communicator)
        return communicator

    yield _open

    for communicator in opened:
        if not communicator.future.done():
            await communicator.disconnect()

