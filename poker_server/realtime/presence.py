"""
Connection registry: which live channel belongs to which participant.

WHY:
- Channels gives every consumer a `channel_name` but no way to find the one
  that belongs to a participant.
- A participant can exist in the store with no live connection (host created
  over HTTP, participant between reloads). Registry entries and participant
  records are added and removed independently.

Design:
- One dict participant_id -> Connection (channel name, session).
- One dict channel_name -> participant_id so a closing socket can find itself.
- Registering a participant that already has a channel overwrites it: the
  most recent join wins, and the older socket no longer receives broadcasts.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Connection:
    participant_id: str
    session_id: str
    channel_name: str


class ConnectionRegistry:
    def __init__(self) -> None:
        self._by_participant: Dict[str, Connection] = {}
        self._by_channel: Dict[str, str] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        return len(self._by_participant)

    def register(self, *, participant_id: str, session_id: str, channel_name: str) -> Optional[Connection]:
        """
        Bind `participant_id` to `channel_name`.

        Returns the connection it replaced, if any. A channel can only speak for
        one participant, so any earlier binding of the same channel is dropped.
        """
        with self._lock:
            previous_owner = self._by_channel.get(channel_name)
            if previous_owner is not None and previous_owner != participant_id:
                self._by_participant.pop(previous_owner, None)

            replaced = self._by_participant.get(participant_id)
            if replaced is not None:
                self._by_channel.pop(replaced.channel_name, None)
                if replaced.channel_name != channel_name:
                    logger.info(
                        "Participant %s reconnected; channel %s replaced by %s",
                        participant_id,
                        replaced.channel_name,
                        channel_name,
                    )

            self._by_participant[participant_id] = Connection(
                participant_id=participant_id, session_id=session_id, channel_name=channel_name
            )
            self._by_channel[channel_name] = participant_id
            return replaced

    def lookup(self, participant_id: str) -> Optional[Connection]:
        return self._by_participant.get(participant_id)

    def unregister(self, participant_id: str, *, channel_name: Optional[str] = None) -> Optional[Connection]:
        """
        Drop the participant's entry.

        With `channel_name`, only drop it if it still points at that channel, so
        a stale socket closing after a reconnect leaves the new entry alone.
        Returns the removed connection, or None when nothing was removed.
        """
        with self._lock:
            conn = self._by_participant.get(participant_id)
            if conn is None:
                return None
            if channel_name is not None and conn.channel_name != channel_name:
                return None
            del self._by_participant[participant_id]
            self._by_channel.pop(conn.channel_name, None)
            return conn

    def connections_for(self, session_id: str, participant_ids: Iterable[str]) -> List[Connection]:
        """Live connections of the given participants that belong to `session_id`. Misses are skipped."""
        found: List[Connection] = []
        for participant_id in participant_ids:
            conn = self._by_participant.get(participant_id)
            if conn is None or conn.session_id != session_id:
                continue
            found.append(conn)
        return found

