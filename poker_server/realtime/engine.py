"""
Session lifecycle and voting-round state machine.

A round moves NoRound -> Open(unrevealed) -> Open(revealed) -> NoRound.
`start_vote` is the only way in (and overwrites an open round), `reveal_votes`
the only way to reveal, `reset_votes` the only way out.

Every operation either completes or raises a `SessionError` before touching the
store. Nothing here awaits; callers serialize a session's operations and
handle broadcasting.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .config import Settings, config
from .errors import NoActiveVote, ParticipantNotFound, PinConflict, SessionNotFound, Unauthorized
from .models import CurrentVote, Participant, Session, Vote, VoteHistory, VoteValue, average_of, new_id
from .storage import Storage

logger = logging.getLogger(__name__)


@dataclass
class LeaveOutcome:
    session_id: str
    # True when the host left and the whole session was torn down.
    session_ended: bool
    removed_ids: List[str] = field(default_factory=list)


class SessionEngine:
    def __init__(self, store: Storage, settings: Optional[Settings] = None):
        self.store = store
        self.settings = settings or config

    # Lookups

    def get_session(self, session_id: str) -> Session:
        session = self.store.get_session(session_id)
        if session is None:
            raise SessionNotFound()
        return session

    def _active_session(self, session_id: str) -> Session:
        session = self.get_session(session_id)
        if not session.is_active:
            raise SessionNotFound("Session has ended")
        return session

    def _member(self, session_id: str, participant_id: Optional[str]) -> Optional[Participant]:
        if not participant_id:
            return None
        participant = self.store.get_participant(participant_id)
        if participant is None or participant.session_id != session_id:
            return None
        return participant

    def _require_host(self, session_id: str, requester_id: Optional[str]) -> Participant:
        requester = self._member(session_id, requester_id)
        if requester is None or not requester.is_host:
            raise Unauthorized()
        return requester

    # Session lifecycle

    def create_session(self, pin: Optional[str] = None, host_name: Optional[str] = None) -> Tuple[Session, Participant]:
        """Create a session and its host participant (initially disconnected)."""
        host_id = new_id()
        if pin is None:
            session = self._create_with_generated_pin(host_id)
        else:
            session = self.store.create_session_if_pin_free(Session(pin=pin, host_id=host_id))
            if session is None:
                raise PinConflict()

        host = self.store.add_participant(
            Participant(
                id=host_id,
                session_id=session.id,
                name=host_name or self.settings.DEFAULT_HOST_NAME,
                is_host=True,
                is_connected=False,
            )
        )
        logger.info("Session %s created with PIN %s (host=%s)", session.id, session.pin, host.id)
        return session, host

    def _create_with_generated_pin(self, host_id: str) -> Session:
        for _ in range(self.settings.PIN_GENERATION_ATTEMPTS):
            pin = f"{secrets.randbelow(10000):04d}"
            session = self.store.create_session_if_pin_free(Session(pin=pin, host_id=host_id))
            if session is not None:
                return session
        raise PinConflict("No free session PIN available")

    def join_by_pin(self, pin: str) -> str:
        session = self.store.get_session_by_pin(pin)
        if session is None or not session.is_active:
            raise SessionNotFound("Session not found or inactive")
        return session.id

    def join_session(self, session_id: str, participant_name: str, participant_id: Optional[str] = None) -> Participant:
        """
        Attach a caller to a session.

        Resolution order: explicit participant id (reconnect), then display name
        (rejoin after a reload without a saved id), then a new non-host participant.
        """
        self._active_session(session_id)

        participant = self._member(session_id, participant_id)
        if participant is None:
            participant = next(
                (p for p in self.store.get_participants_by_session(session_id) if p.name == participant_name),
                None,
            )

        if participant is not None:
            updated = self.store.update_participant(participant.id, is_connected=True)
            logger.info("Participant %s rejoined session %s", participant.id, session_id)
            return updated

        participant = self.store.add_participant(
            Participant(session_id=session_id, name=participant_name, is_host=False, is_connected=True)
        )
        logger.info("Participant %s (%s) joined session %s", participant.id, participant_name, session_id)
        return participant

    def mark_disconnected(self, participant_id: str) -> Optional[Participant]:
        return self.store.update_participant(participant_id, is_connected=False)

    def leave_session(self, session_id: str, participant_id: str) -> LeaveOutcome:
        """
        A non-host leaving is removed at once. The host leaving ends the session:
        it is marked inactive and every participant is listed in the outcome, but
        the records are only dropped by `purge_participants()` once their
        channels have been notified and closed.
        """
        self._active_session(session_id)
        participant = self._member(session_id, participant_id)
        if participant is None:
            raise ParticipantNotFound()

        if participant.is_host:
            return self._teardown(session_id)

        self.store.remove_participant(participant_id)
        self.store.remove_votes_by_participant(participant_id)
        logger.info("Participant %s left session %s", participant_id, session_id)
        return LeaveOutcome(session_id=session_id, session_ended=False, removed_ids=[participant_id])

    def end_session(self, session_id: str, requester_id: Optional[str]) -> LeaveOutcome:
        self._active_session(session_id)
        self._require_host(session_id, requester_id)
        return self._teardown(session_id)

    def _teardown(self, session_id: str) -> LeaveOutcome:
        """Mark the session inactive and report every participant; records stay until purge_participants()."""
        self.store.update_session(session_id, is_active=False)
        ids = [p.id for p in self.store.get_participants_by_session(session_id)]
        logger.info("Session %s ended by host (%d participants)", session_id, len(ids))
        return LeaveOutcome(session_id=session_id, session_ended=True, removed_ids=ids)

    def purge_participants(self, session_id: str) -> int:
        """Remove every participant record (and their votes) of a session."""
        removed = 0
        for participant in self.store.get_participants_by_session(session_id):
            self.store.remove_votes_by_participant(participant.id)
            if self.store.remove_participant(participant.id):
                removed += 1
        return removed

    def remove_participant(self, session_id: str, participant_id: str, requester_id: Optional[str]) -> Participant:
        self._active_session(session_id)
        self._require_host(session_id, requester_id)
        target = self._member(session_id, participant_id)
        if target is None:
            raise ParticipantNotFound()
        if target.is_host:
            raise Unauthorized("The host cannot be removed")

        self.store.remove_participant(participant_id)
        self.store.remove_votes_by_participant(participant_id)
        logger.info("Participant %s removed from session %s by %s", participant_id, session_id, requester_id)
        return target

    # Voting rounds

    def start_vote(self, session_id: str, label: str) -> Session:
        self._active_session(session_id)
        session = self.store.update_session(session_id, current_vote=CurrentVote(label=label))
        logger.info("Session %s started vote %r", session_id, label)
        return session

    def _open_round(self, session_id: str) -> Tuple[Session, CurrentVote]:
        session = self._active_session(session_id)
        if session.current_vote is None:
            raise NoActiveVote()
        return session, session.current_vote

    def submit_vote(self, session_id: str, participant_id: str, value: VoteValue) -> Vote:
        _, current = self._open_round(session_id)
        if self._member(session_id, participant_id) is None:
            raise ParticipantNotFound()
        return self.store.submit_vote(
            Vote(
                session_id=session_id,
                participant_id=participant_id,
                vote_value=value,
                vote_label=current.label,
            )
        )

    def reveal_votes(self, session_id: str) -> Session:
        _, current = self._open_round(session_id)
        return self.store.update_session(
            session_id, current_vote=current.model_copy(update={"is_revealed": True})
        )

    def reset_votes(self, session_id: str) -> Optional[VoteHistory]:
        """Close the open round. A revealed round is archived; an unrevealed one is discarded."""
        _, current = self._open_round(session_id)

        history = None
        if current.is_revealed:
            votes = self.store.get_votes_by_session(session_id, current.label)
            history = self.store.save_vote_history(
                VoteHistory(session_id=session_id, label=current.label, votes=votes, average=average_of(votes))
            )
            logger.info(
                "Session %s archived round %r (%d votes, average=%s)",
                session_id,
                current.label,
                len(votes),
                history.average,
            )

        self.store.clear_votes(session_id, current.label)
        self.store.update_session(session_id, current_vote=None)
        return history
