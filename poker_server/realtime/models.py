"""
Records held by the state store.

Attributes are snake_case in Python and camelCase on the wire; use
`to_wire()` to get the JSON-ready dict that clients receive.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt
from pydantic.alias_generators import to_camel

# Largest magnitude accepted for a numeric vote; keeps averages finite.
VOTE_LIMIT = 1_000_000

NumericVote = Union[
    Annotated[StrictInt, Field(ge=-VOTE_LIMIT, le=VOTE_LIMIT)],
    Annotated[StrictFloat, Field(ge=-VOTE_LIMIT, le=VOTE_LIMIT, allow_inf_nan=False)],
]
SentinelVote = Literal["coffee", "?"]
VoteValue = Union[NumericVote, SentinelVote]

PIN_PATTERN = r"^[0-9]{4}$"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


def is_numeric_vote(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class Record(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class CurrentVote(Record):
    label: str
    is_revealed: bool = False
    started_at: datetime = Field(default_factory=utcnow)


class Session(Record):
    id: str = Field(default_factory=new_id)
    pin: str = Field(pattern=PIN_PATTERN)
    host_id: str
    created_at: datetime = Field(default_factory=utcnow)
    is_active: bool = True
    current_vote: Optional[CurrentVote] = None


class Participant(Record):
    id: str = Field(default_factory=new_id)
    session_id: str
    name: str
    is_host: bool = False
    joined_at: datetime = Field(default_factory=utcnow)
    is_connected: bool = False


class Vote(Record):
    id: str = Field(default_factory=new_id)
    session_id: str
    participant_id: str
    vote_value: VoteValue
    vote_label: str
    submitted_at: datetime = Field(default_factory=utcnow)


class VoteHistory(Record):
    id: str = Field(default_factory=new_id)
    session_id: str
    label: str
    votes: List[Vote]
    average: Optional[float] = None
    completed_at: datetime = Field(default_factory=utcnow)


def average_of(votes: List[Vote]) -> Optional[float]:
    """Mean of the numeric votes; sentinel votes are ignored. None when there are none."""
    numeric = [v.vote_value for v in votes if is_numeric_vote(v.vote_value)]
    if not numeric:
        return None
    return math.fsum(numeric) / len(numeric)
