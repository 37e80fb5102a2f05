"""
Snapshot fan-out.

After every state change the full session snapshot (session, participants,
open-round votes, vote history) is rebuilt and sent to every participant of
the session that has a live channel. No diffs: each message replaces the
client's whole view.

Delivery goes through the Channels layer to individual channel names; the
consumer owning the channel turns the layer event into wire JSON. Participants
without a live channel are skipped, as are channels the layer refuses.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional

from channels.exceptions import ChannelFull
from channels.layers import get_channel_layer

from .config import Settings, config
from .presence import ConnectionRegistry
from .serializers import SessionSnapshot
from .storage import Storage

logger = logging.getLogger(__name__)

# Layer event types; Channels dispatches "session.update" to Consumer.session_update etc.
SESSION_UPDATE = "session.update"
SESSION_ENDED = "session.ended"
PARTICIPANT_REMOVED = "participant.removed"


def build_snapshot(store: Storage, session_id: str) -> Optional[SessionSnapshot]:
    session = store.get_session(session_id)
    if session is None:
        return None
    votes = store.get_votes_by_session(session_id, session.current_vote.label) if session.current_vote else []
    return SessionSnapshot(
        session=session,
        participants=store.get_participants_by_session(session_id),
        votes=votes,
        vote_history=store.get_vote_history(session_id),
    )


def render_snapshot(snapshot: SessionSnapshot, viewer_id: Optional[str] = None, redact: bool = False) -> Dict[str, Any]:
    """
    Wire form of a snapshot as seen by `viewer_id`.

    With `redact`, vote values of an unrevealed round are nulled for everyone
    but their author; the vote records stay so clients can show who voted.
    """
    payload = snapshot.to_wire()
    current = snapshot.session.current_vote
    if redact and current is not None and not current.is_revealed:
        for vote in payload["votes"]:
            if vote["participantId"] != viewer_id:
                vote["voteValue"] = None
    return payload


class Broadcaster:
    def __init__(
        self,
        store: Storage,
        registry: ConnectionRegistry,
        settings: Optional[Settings] = None,
        channel_layer: Any = None,
    ):
        self.store = store
        self.registry = registry
        self.settings = settings or config
        self._channel_layer = channel_layer

    @property
    def channel_layer(self):
        if self._channel_layer is None:
            self._channel_layer = get_channel_layer()
        return self._channel_layer

    async def _send(self, channel_name: str, event: Dict[str, Any]) -> bool:
        try:
            await self.channel_layer.send(channel_name, event)
        except ChannelFull:
            logger.warning("Channel %s is full; dropping %s", channel_name, event.get("type"))
            return False
        return True

    async def publish(self, session_id: str) -> int:
        """Send the current snapshot to every reachable participant. Returns the number of deliveries."""
        snapshot = build_snapshot(self.store, session_id)
        if snapshot is None:
            return 0

        redact = self.settings.REDACT_UNREVEALED_VOTES
        shared = None if redact else render_snapshot(snapshot)
        participant_ids = [p.id for p in snapshot.participants]

        delivered = 0
        for conn in self.registry.connections_for(session_id, participant_ids):
            data = shared if shared is not None else render_snapshot(snapshot, conn.participant_id, redact=True)
            if await self._send(conn.channel_name, {"type": SESSION_UPDATE, "data": data}):
                delivered += 1

        logger.debug(
            "Session %s snapshot delivered to %d/%d participants", session_id, delivered, len(participant_ids)
        )
        return delivered

    async def end_session(self, session_id: str, participant_ids: Iterable[str], message: str) -> int:
        """Notify and close every listed participant's channel, dropping their registry entries."""
        closed = 0
        for participant_id in participant_ids:
            conn = self.registry.unregister(participant_id)
            if conn is None:
                continue
            if conn.session_id != session_id:
                logger.warning("Participant %s registered to session %s, not %s", participant_id, conn.session_id, session_id)
            if await self._send(conn.channel_name, {"type": SESSION_ENDED, "message": message}):
                closed += 1
        return closed

    async def disconnect(self, participant_id: str, channel_name: Optional[str] = None) -> bool:
        """Force-close one participant's channel. False when it had none."""
        conn = self.registry.unregister(participant_id, channel_name=channel_name)
        if conn is None:
            return False
        return await self._send(conn.channel_name, {"type": PARTICIPANT_REMOVED})
