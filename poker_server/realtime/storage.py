"""
State store for sessions, participants, votes and vote history.

Pure data access: nothing here knows about websockets or broadcasting.
`MemoryStorage` keeps everything in process; a durable backend implements the
same `Storage` interface.

Records are pydantic models and are replaced (never mutated in place) on
update, so a record handed to a caller is a stable snapshot.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from .models import Participant, Session, Vote, VoteHistory


class Storage(ABC):
    # Sessions
    @abstractmethod
    def create_session(self, session: Session) -> Session: ...

    @abstractmethod
    def create_session_if_pin_free(self, session: Session) -> Optional[Session]:
        """Insert `session` unless an active session already holds its PIN (then None)."""

    @abstractmethod
    def get_session(self, session_id: str) -> Optional[Session]: ...

    @abstractmethod
    def get_session_by_pin(self, pin: str) -> Optional[Session]: ...

    @abstractmethod
    def update_session(self, session_id: str, **updates: Any) -> Optional[Session]: ...

    @abstractmethod
    def delete_session(self, session_id: str) -> bool: ...

    @abstractmethod
    def list_sessions(self, active_only: bool = True) -> List[Session]: ...

    # Participants
    @abstractmethod
    def add_participant(self, participant: Participant) -> Participant: ...

    @abstractmethod
    def get_participant(self, participant_id: str) -> Optional[Participant]: ...

    @abstractmethod
    def get_participants_by_session(self, session_id: str) -> List[Participant]: ...

    @abstractmethod
    def update_participant(self, participant_id: str, **updates: Any) -> Optional[Participant]: ...

    @abstractmethod
    def remove_participant(self, participant_id: str) -> bool: ...

    # Votes
    @abstractmethod
    def submit_vote(self, vote: Vote) -> Vote: ...

    @abstractmethod
    def get_vote(self, participant_id: str, session_id: str, label: str) -> Optional[Vote]: ...

    @abstractmethod
    def get_votes_by_session(self, session_id: str, label: str) -> List[Vote]: ...

    @abstractmethod
    def clear_votes(self, session_id: str, label: str) -> int: ...

    @abstractmethod
    def remove_votes_by_participant(self, participant_id: str) -> int: ...

    # Vote history
    @abstractmethod
    def save_vote_history(self, history: VoteHistory) -> VoteHistory: ...

    @abstractmethod
    def get_vote_history(self, session_id: str) -> List[VoteHistory]: ...


class MemoryStorage(Storage):
    """
    In-process store.

    Lookups by id are dict hits; PIN lookup and per-session listings scan,
    which is fine for the number of sessions one process holds.
    """

    def __init__(self) -> None:
        self._sessions: Dict[str, Session] = {}
        self._participants: Dict[str, Participant] = {}
        self._votes: Dict[str, Vote] = {}
        self._history: Dict[str, VoteHistory] = {}
        self._lock = threading.RLock()

    # Sessions

    def create_session(self, session: Session) -> Session:
        with self._lock:
            self._sessions[session.id] = session
            return session

    def create_session_if_pin_free(self, session: Session) -> Optional[Session]:
        with self._lock:
            if self.get_session_by_pin(session.pin) is not None:
                return None
            self._sessions[session.id] = session
            return session

    def get_session(self, session_id: str) -> Optional[Session]:
        return self._sessions.get(session_id)

    def get_session_by_pin(self, pin: str) -> Optional[Session]:
        with self._lock:
            for session in self._sessions.values():
                if session.is_active and session.pin == pin:
                    return session
        return None

    def update_session(self, session_id: str, **updates: Any) -> Optional[Session]:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            updated = session.model_copy(update=updates)
            self._sessions[session_id] = updated
            return updated

    def delete_session(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def list_sessions(self, active_only: bool = True) -> List[Session]:
        with self._lock:
            return [s for s in self._sessions.values() if s.is_active or not active_only]

    # Participants

    def add_participant(self, participant: Participant) -> Participant:
        with self._lock:
            self._participants[participant.id] = participant
            return participant

    def get_participant(self, participant_id: str) -> Optional[Participant]:
        return self._participants.get(participant_id)

    def get_participants_by_session(self, session_id: str) -> List[Participant]:
        with self._lock:
            members = [p for p in self._participants.values() if p.session_id == session_id]
        # Stable ordering for clients
        members.sort(key=lambda p: (p.joined_at, p.id))
        return members

    def update_participant(self, participant_id: str, **updates: Any) -> Optional[Participant]:
        with self._lock:
            participant = self._participants.get(participant_id)
            if participant is None:
                return None
            updated = participant.model_copy(update=updates)
            self._participants[participant_id] = updated
            return updated

    def remove_participant(self, participant_id: str) -> bool:
        with self._lock:
            return self._participants.pop(participant_id, None) is not None

    # Votes

    def submit_vote(self, vote: Vote) -> Vote:
        """Store `vote`, replacing any earlier vote for the same participant, session and label."""
        with self._lock:
            stale = [
                key
                for key, v in self._votes.items()
                if v.participant_id == vote.participant_id
                and v.session_id == vote.session_id
                and v.vote_label == vote.vote_label
            ]
            for key in stale:
                del self._votes[key]
            self._votes[vote.id] = vote
            return vote

    def get_vote(self, participant_id: str, session_id: str, label: str) -> Optional[Vote]:
        with self._lock:
            for v in self._votes.values():
                if v.participant_id == participant_id and v.session_id == session_id and v.vote_label == label:
                    return v
        return None

    def get_votes_by_session(self, session_id: str, label: str) -> List[Vote]:
        with self._lock:
            votes = [v for v in self._votes.values() if v.session_id == session_id and v.vote_label == label]
        votes.sort(key=lambda v: v.submitted_at)
        return votes

    def clear_votes(self, session_id: str, label: str) -> int:
        with self._lock:
            doomed = [k for k, v in self._votes.items() if v.session_id == session_id and v.vote_label == label]
            for key in doomed:
                del self._votes[key]
            return len(doomed)

    def remove_votes_by_participant(self, participant_id: str) -> int:
        with self._lock:
            doomed = [k for k, v in self._votes.items() if v.participant_id == participant_id]
            for key in doomed:
                del self._votes[key]
            return len(doomed)

    # Vote history

    def save_vote_history(self, history: VoteHistory) -> VoteHistory:
        with self._lock:
            self._history[history.id] = history
            return history

    def get_vote_history(self, session_id: str) -> List[VoteHistory]:
        """Newest first."""
        with self._lock:
            entries = [h for h in self._history.values() if h.session_id == session_id]
        # Reverse insertion order first so equal timestamps still come out newest first.
        entries.reverse()
        return sorted(entries, key=lambda h: h.completed_at, reverse=True)
