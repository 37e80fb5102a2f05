"""
Refusals raised by the session engine.

Every error here is recoverable by the caller: the operation is refused before
any state is touched, the websocket stays open and the client receives an
error envelope carrying `code` and the message.
"""

from __future__ import annotations

from typing import Optional


class SessionError(Exception):
    code = "session_error"
    default_message = "Request refused"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFound(SessionError):
    code = "not_found"
    default_message = "Not found"


class SessionNotFound(NotFound):
    default_message = "Session not found"


class ParticipantNotFound(NotFound):
    default_message = "Participant not found"


class PinConflict(SessionError):
    code = "pin_conflict"
    default_message = "Session PIN already exists"


class NoActiveVote(SessionError):
    code = "no_active_vote"
    default_message = "No active vote"


class Unauthorized(SessionError):
    code = "unauthorized"
    default_message = "Unauthorized"


class InvalidMessage(SessionError):
    code = "validation_error"
    default_message = "Invalid message format"
