"""
WebSocket consumer for planning-poker sessions.

Key behavior:
- URL: /ws/
- Client messages are {"type": ..., "data": {...}} envelopes validated against
  the inbound schemas; anything malformed gets an error envelope and changes nothing.
- A successful join binds this socket to one participant. From then on every
  state change in the session is pushed as a full `session_update` snapshot.
- Closing the socket only marks the participant disconnected. Leaving or being
  removed are explicit messages.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from channels.generic.websocket import AsyncWebsocketConsumer
from pydantic import ValidationError

from .errors import InvalidMessage, SessionError
from .serializers import (
    EndSessionMessage,
    ErrorEvent,
    JoinSessionMessage,
    LeaveSessionMessage,
    RemoveParticipantMessage,
    ResetVotesMessage,
    RevealVotesMessage,
    SessionEndedEvent,
    SessionUpdateEvent,
    StartVoteMessage,
    SubmitVoteMessage,
    parse_inbound,
)
from .session_manager import get_session_manager

logger = logging.getLogger(__name__)

# Close codes for server-initiated closes.
CLOSE_SESSION_ENDED = 4000
CLOSE_REMOVED = 4001


class PokerConsumer(AsyncWebsocketConsumer):
    """
    One socket per browser tab.

    Notes:
    - Messages on one socket are handled one at a time, in order (Channels
      guarantees this per consumer).
    - Ordering across sockets of the same session comes from the session lock
      held by SessionManager.
    """

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.session_id: Optional[str] = None
        self.participant_id: Optional[str] = None

    @property
    def manager(self):
        return get_session_manager()

    async def connect(self) -> None:
        await self.accept()

    async def disconnect(self, close_code: int) -> None:
        await self._release()

    async def receive(self, text_data: Optional[str] = None, bytes_data: Optional[bytes] = None) -> None:
        if not text_data:
            return

        try:
            msg = json.loads(text_data)
        except json.JSONDecodeError:
            await self.send_error(InvalidMessage("Invalid JSON"))
            return

        try:
            message = parse_inbound(msg)
        except ValidationError as exc:
            logger.debug("Rejected message on %s: %s", self.channel_name, exc)
            await self.send_error(InvalidMessage())
            return

        handler = self._handlers.get(type(message))
        try:
            await handler(self, message)
        except SessionError as exc:
            logger.warning("Refused %s from participant %s: %s", message.type, self.participant_id, exc.message)
            await self.send_error(exc)
        except Exception:
            logger.exception("PokerConsumer error handling %s (participant=%s)", message.type, self.participant_id)
            await self.send_error(SessionError("Server error"))

    # Inbound handlers

    async def _join_session(self, message: JoinSessionMessage) -> None:
        data = message.data
        if self.participant_id and self.participant_id != data.participant_id:
            # A socket speaks for one participant; the previous one goes offline first.
            await self._release()
        participant = await self.manager.join(
            data.session_id, data.participant_name, data.participant_id, self.channel_name
        )
        self.session_id = data.session_id
        self.participant_id = participant.id

    async def _start_vote(self, message: StartVoteMessage) -> None:
        await self.manager.start_vote(message.data.session_id, message.data.label)

    async def _submit_vote(self, message: SubmitVoteMessage) -> None:
        data = message.data
        await self.manager.submit_vote(data.session_id, data.participant_id, data.vote_value)

    async def _reveal_votes(self, message: RevealVotesMessage) -> None:
        await self.manager.reveal_votes(message.data.session_id)

    async def _reset_votes(self, message: ResetVotesMessage) -> None:
        await self.manager.reset_votes(message.data.session_id)

    async def _leave_session(self, message: LeaveSessionMessage) -> None:
        data = message.data
        await self.manager.leave(data.session_id, data.participant_id)
        if data.participant_id == self.participant_id:
            # Our own channel gets the close event; nothing left to mark on disconnect.
            self._unbind()

    async def _remove_participant(self, message: RemoveParticipantMessage) -> None:
        data = message.data
        await self.manager.remove_participant(data.session_id, data.participant_id, self.participant_id)

    async def _end_session(self, message: EndSessionMessage) -> None:
        await self.manager.end_session(message.data.session_id, self.participant_id)

    _handlers = {
        JoinSessionMessage: _join_session,
        StartVoteMessage: _start_vote,
        SubmitVoteMessage: _submit_vote,
        RevealVotesMessage: _reveal_votes,
        ResetVotesMessage: _reset_votes,
        LeaveSessionMessage: _leave_session,
        RemoveParticipantMessage: _remove_participant,
        EndSessionMessage: _end_session,
    }

    # Channel layer events (see realtime.broadcast)

    async def session_update(self, event: Dict[str, Any]) -> None:
        await self.send_json(SessionUpdateEvent(data=event["data"]).model_dump())

    async def session_ended(self, event: Dict[str, Any]) -> None:
        self._unbind()
        await self.send_json(SessionEndedEvent(message=event["message"]).model_dump())
        await self.close(code=CLOSE_SESSION_ENDED)

    async def participant_removed(self, event: Dict[str, Any]) -> None:
        self._unbind()
        await self.close(code=CLOSE_REMOVED)

    async def _release(self) -> None:
        if self.participant_id:
            await self.manager.disconnect(self.participant_id, self.channel_name)
            self._unbind()

    def _unbind(self) -> None:
        self.session_id = None
        self.participant_id = None

    async def send_error(self, exc: SessionError) -> None:
        await self.send_json(ErrorEvent(error=exc.message, code=exc.code).model_dump())

    async def send_json(self, payload: Dict[str, Any]) -> None:
        await self.send(text_data=json.dumps(payload, separators=(",", ":"), ensure_ascii=False))
