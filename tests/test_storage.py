from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

from realtime.models import Participant, Session, Vote, VoteHistory


def make_session(store, pin="1234", **kwargs):
    return store.create_session(Session(pin=pin, host_id="host", **kwargs))


class TestSessions:
    def test_get_by_id_and_pin(self, store):
        session = make_session(store)

        assert store.get_session(session.id) == session
        assert store.get_session_by_pin("1234") == session
        assert store.get_session_by_pin("9999") is None

    def test_create_if_pin_free(self, store):
        first = store.create_session_if_pin_free(Session(pin="1234", host_id="h1"))

        assert first is not None
        assert store.create_session_if_pin_free(Session(pin="1234", host_id="h2")) is None
        assert store.list_sessions() == [first]

        store.update_session(first.id, is_active=False)
        assert store.create_session_if_pin_free(Session(pin="1234", host_id="h3")) is not None

    def test_create_if_pin_free_across_threads(self, store):
        candidates = [Session(pin="4321", host_id=f"h{i}") for i in range(16)]

        with ThreadPoolExecutor(max_workers=8) as pool:
            created = [s for s in pool.map(store.create_session_if_pin_free, candidates) if s is not None]

        assert len(created) == 1
        assert store.list_sessions() == created

    def test_pin_lookup_ignores_inactive_sessions(self, store):
        session = make_session(store)
        store.update_session(session.id, is_active=False)

        assert store.get_session_by_pin("1234") is None
        assert store.list_sessions() == []
        assert len(store.list_sessions(active_only=False)) == 1

    def test_update_merges_fields(self, store):
        session = make_session(store)

        updated = store.update_session(session.id, is_active=False)

        assert updated.is_active is False
        assert updated.pin == "1234"
        assert updated.created_at == session.created_at
        # The record handed out earlier is not changed behind the caller's back.
        assert session.is_active is True

    def test_update_missing_returns_none(self, store):
        assert store.update_session("missing", is_active=False) is None

    def test_delete_is_idempotent(self, store):
        session = make_session(store)

        assert store.delete_session(session.id) is True
        assert store.delete_session(session.id) is False
        assert store.get_session(session.id) is None


class TestParticipants:
    def test_filtered_by_session_in_join_order(self, store):
        first = store.add_participant(Participant(session_id="s1", name="Ann"))
        second = store.add_participant(
            Participant(session_id="s1", name="Bob", joined_at=first.joined_at + timedelta(seconds=1))
        )
        store.add_participant(Participant(session_id="s2", name="Cid"))

        assert [p.id for p in store.get_participants_by_session("s1")] == [first.id, second.id]

    def test_update_and_remove(self, store):
        participant = store.add_participant(Participant(session_id="s1", name="Ann"))

        assert store.update_participant(participant.id, is_connected=True).is_connected is True
        assert store.remove_participant(participant.id) is True
        assert store.remove_participant(participant.id) is False
        assert store.update_participant(participant.id, is_connected=False) is None


class TestVotes:
    def test_resubmitting_replaces_previous_vote(self, store):
        store.submit_vote(Vote(session_id="s1", participant_id="p1", vote_value=3, vote_label="Story"))
        latest = store.submit_vote(Vote(session_id="s1", participant_id="p1", vote_value=8, vote_label="Story"))

        votes = store.get_votes_by_session("s1", "Story")
        assert votes == [latest]
        assert store.get_vote("p1", "s1", "Story").vote_value == 8

    def test_votes_are_scoped_by_label(self, store):
        store.submit_vote(Vote(session_id="s1", participant_id="p1", vote_value=3, vote_label="A"))
        store.submit_vote(Vote(session_id="s1", participant_id="p1", vote_value=5, vote_label="B"))

        assert len(store.get_votes_by_session("s1", "A")) == 1
        assert store.clear_votes("s1", "A") == 1
        assert store.get_votes_by_session("s1", "A") == []
        assert len(store.get_votes_by_session("s1", "B")) == 1

    def test_remove_votes_by_participant(self, store):
        store.submit_vote(Vote(session_id="s1", participant_id="p1", vote_value=3, vote_label="A"))
        store.submit_vote(Vote(session_id="s1", participant_id="p2", vote_value="?", vote_label="A"))

        assert store.remove_votes_by_participant("p1") == 1
        assert [v.participant_id for v in store.get_votes_by_session("s1", "A")] == ["p2"]


class TestVoteHistory:
    def test_newest_first(self, store):
        older = store.save_vote_history(VoteHistory(session_id="s1", label="first", votes=[]))
        newer = store.save_vote_history(
            VoteHistory(session_id="s1", label="second", votes=[], completed_at=older.completed_at + timedelta(seconds=5))
        )
        store.save_vote_history(VoteHistory(session_id="other", label="x", votes=[]))

        assert [h.id for h in store.get_vote_history("s1")] == [newer.id, older.id]

    def test_equal_timestamps_keep_newest_first(self, store):
        first = store.save_vote_history(VoteHistory(session_id="s1", label="first", votes=[]))
        second = store.save_vote_history(
            VoteHistory(session_id="s1", label="second", votes=[], completed_at=first.completed_at)
        )

        assert [h.id for h in store.get_vote_history("s1")] == [second.id, first.id]
