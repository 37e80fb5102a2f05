"""
Process-wide owner of the poker session state.

Ties together the store, the engine, the connection registry and the
broadcaster, and serializes work per session: every "mutate, then broadcast"
round for a session runs under that session's asyncio lock, so the next
message for the same session always sees the finished state.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from typing import Any, Dict, Optional, Tuple

from .broadcast import Broadcaster, build_snapshot, render_snapshot
from .config import Settings, config
from .engine import LeaveOutcome, SessionEngine
from .errors import SessionNotFound
from .models import Participant, Session, Vote, VoteHistory, VoteValue
from .presence import ConnectionRegistry
from .storage import MemoryStorage, Storage

logger = logging.getLogger(__name__)


class SessionManager:
    def __init__(
        self,
        store: Optional[Storage] = None,
        settings: Optional[Settings] = None,
        channel_layer: Any = None,
    ):
        self.settings = settings or config
        self.store = store if store is not None else MemoryStorage()
        self.registry = ConnectionRegistry()
        self.engine = SessionEngine(self.store, self.settings)
        self.broadcaster = Broadcaster(self.store, self.registry, self.settings, channel_layer)
        # A lock lives only while some operation holds or waits on it.
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def lock(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = self._locks[session_id] = asyncio.Lock()
        return lock

    # Request/response helpers (no broadcast needed: nobody is connected yet, or nothing changes)

    def create_session(self, pin: Optional[str] = None, host_name: Optional[str] = None) -> Tuple[Session, Participant]:
        return self.engine.create_session(pin=pin, host_name=host_name)

    def join_by_pin(self, pin: str) -> str:
        return self.engine.join_by_pin(pin)

    def get_snapshot(self, session_id: str, viewer_id: Optional[str] = None) -> Dict[str, Any]:
        snapshot = build_snapshot(self.store, session_id)
        if snapshot is None:
            raise SessionNotFound()
        return render_snapshot(snapshot, viewer_id, redact=self.settings.REDACT_UNREVEALED_VOTES)

    # Realtime operations

    async def join(
        self,
        session_id: str,
        participant_name: str,
        participant_id: Optional[str],
        channel_name: str,
    ) -> Participant:
        async with self.lock(session_id):
            participant = self.engine.join_session(session_id, participant_name, participant_id)
            self.registry.register(participant_id=participant.id, session_id=session_id, channel_name=channel_name)
            await self.broadcaster.publish(session_id)
        return participant

    async def start_vote(self, session_id: str, label: str) -> Session:
        async with self.lock(session_id):
            session = self.engine.start_vote(session_id, label)
            await self.broadcaster.publish(session_id)
        return session

    async def submit_vote(self, session_id: str, participant_id: str, value: VoteValue) -> Vote:
        async with self.lock(session_id):
            vote = self.engine.submit_vote(session_id, participant_id, value)
            await self.broadcaster.publish(session_id)
        return vote

    async def reveal_votes(self, session_id: str) -> Session:
        async with self.lock(session_id):
            session = self.engine.reveal_votes(session_id)
            await self.broadcaster.publish(session_id)
        return session

    async def reset_votes(self, session_id: str) -> Optional[VoteHistory]:
        async with self.lock(session_id):
            history = self.engine.reset_votes(session_id)
            await self.broadcaster.publish(session_id)
        return history

    async def leave(self, session_id: str, participant_id: str) -> LeaveOutcome:
        async with self.lock(session_id):
            outcome = self.engine.leave_session(session_id, participant_id)
            await self._finish_leave(outcome)
        return outcome

    async def end_session(self, session_id: str, requester_id: Optional[str]) -> LeaveOutcome:
        async with self.lock(session_id):
            outcome = self.engine.end_session(session_id, requester_id)
            await self._finish_leave(outcome)
        return outcome

    async def _finish_leave(self, outcome: LeaveOutcome) -> None:
        if outcome.session_ended:
            # Session is already inactive: notify and close channels, then drop the records.
            await self.broadcaster.end_session(
                outcome.session_id, outcome.removed_ids, self.settings.SESSION_ENDED_MESSAGE
            )
            self.engine.purge_participants(outcome.session_id)
            return
        for participant_id in outcome.removed_ids:
            await self.broadcaster.disconnect(participant_id)
        await self.broadcaster.publish(outcome.session_id)

    async def remove_participant(self, session_id: str, participant_id: str, requester_id: Optional[str]) -> Participant:
        async with self.lock(session_id):
            removed = self.engine.remove_participant(session_id, participant_id, requester_id)
            await self.broadcaster.disconnect(participant_id)
            await self.broadcaster.publish(session_id)
        return removed

    async def disconnect(self, participant_id: str, channel_name: str) -> bool:
        """
        Handle a closed socket: mark the participant disconnected, never delete it.

        Ignored when the participant has since been bound to a newer channel or
        was removed explicitly.
        """
        conn = self.registry.lookup(participant_id)
        if conn is None or conn.channel_name != channel_name:
            return False
        async with self.lock(conn.session_id):
            if self.registry.unregister(participant_id, channel_name=channel_name) is None:
                return False
            self.engine.mark_disconnected(participant_id)
            await self.broadcaster.publish(conn.session_id)
        logger.info("Participant %s disconnected from session %s", participant_id, conn.session_id)
        return True


_session_manager: Optional[SessionManager] = None


def get_session_manager() -> SessionManager:
    """Returns the process-wide SessionManager, creating it on first use."""
    global _session_manager
    if _session_manager is None:
        _session_manager = SessionManager()
    return _session_manager


def reset_session_manager(**kwargs: Any) -> SessionManager:
    """Replace the process-wide SessionManager (fresh state). Used by tests."""
    global _session_manager
    _session_manager = SessionManager(**kwargs)
    return _session_manager
