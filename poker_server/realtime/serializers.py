"""
Pydantic models for request validation and response serialization.
These models are used for both HTTP endpoints and WebSocket message handling.

Inbound websocket messages share one envelope: {"type": <kind>, "data": {...}}.
"""

from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

from .models import PIN_PATTERN, Participant, Session, Vote, VoteHistory, VoteValue


class Payload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SessionRef(Payload):
    session_id: str = Field(min_length=1)


class JoinSessionData(SessionRef):
    participant_name: str = Field(min_length=1, max_length=64)
    participant_id: Optional[str] = None


class StartVoteData(SessionRef):
    label: str = Field(min_length=1, max_length=200)


class SubmitVoteData(SessionRef):
    participant_id: str = Field(min_length=1)
    vote_value: VoteValue


class ParticipantRef(SessionRef):
    participant_id: str = Field(min_length=1)


class JoinSessionMessage(BaseModel):
    type: Literal["join_session"]
    data: JoinSessionData


class StartVoteMessage(BaseModel):
    type: Literal["start_vote"]
    data: StartVoteData


class SubmitVoteMessage(BaseModel):
    type: Literal["submit_vote"]
    data: SubmitVoteData


class RevealVotesMessage(BaseModel):
    type: Literal["reveal_votes"]
    data: SessionRef


class ResetVotesMessage(BaseModel):
    type: Literal["reset_votes"]
    data: SessionRef


class LeaveSessionMessage(BaseModel):
    type: Literal["leave_session"]
    data: ParticipantRef


class RemoveParticipantMessage(BaseModel):
    type: Literal["remove_participant"]
    data: ParticipantRef


class EndSessionMessage(BaseModel):
    type: Literal["end_session"]
    data: SessionRef


InboundMessage = Annotated[
    Union[
        JoinSessionMessage,
        StartVoteMessage,
        SubmitVoteMessage,
        RevealVotesMessage,
        ResetVotesMessage,
        LeaveSessionMessage,
        RemoveParticipantMessage,
        EndSessionMessage,
    ],
    Field(discriminator="type"),
]

inbound_adapter: TypeAdapter[InboundMessage] = TypeAdapter(InboundMessage)


def parse_inbound(raw: Any) -> InboundMessage:
    """Validate a decoded JSON message. Raises pydantic.ValidationError."""
    return inbound_adapter.validate_python(raw)


class SessionSnapshot(BaseModel):
    """Full state of one session, sent as a single broadcast unit."""

    session: Session
    participants: List[Participant]
    votes: List[Vote]
    vote_history: List[VoteHistory]

    def to_wire(self) -> Dict[str, Any]:
        return {
            "session": self.session.to_wire(),
            "participants": [p.to_wire() for p in self.participants],
            "votes": [v.to_wire() for v in self.votes],
            "voteHistory": [h.to_wire() for h in self.vote_history],
        }


class SessionUpdateEvent(BaseModel):
    type: Literal["session_update"] = "session_update"
    data: Dict[str, Any]


class SessionEndedEvent(BaseModel):
    type: Literal["session_ended"] = "session_ended"
    message: str


class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    error: str
    code: str = "validation_error"


# HTTP bodies


class CreateSessionRequest(Payload):
    pin: Optional[str] = Field(default=None, pattern=PIN_PATTERN)
    host_name: Optional[str] = Field(default=None, max_length=64)


class JoinByPinRequest(Payload):
    pin: str = Field(pattern=PIN_PATTERN)
