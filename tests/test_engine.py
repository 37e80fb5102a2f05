import pytest
from pydantic import ValidationError

from realtime.config import Settings
from realtime.engine import SessionEngine
from realtime.errors import NoActiveVote, ParticipantNotFound, PinConflict, SessionNotFound, Unauthorized
from realtime.models import VOTE_LIMIT


@pytest.fixture
def session_and_host(engine):
    return engine.create_session(pin="1234", host_name="Hana")


class TestCreateAndJoin:
    def test_create_session_adds_disconnected_host(self, engine, store, session_and_host):
        session, host = session_and_host

        assert session.pin == "1234"
        assert session.is_active is True
        assert session.current_vote is None
        assert session.host_id == host.id
        assert host.is_host is True
        assert host.is_connected is False
        assert store.get_participants_by_session(session.id) == [host]

    def test_colliding_pin_is_refused(self, engine, store, session_and_host):
        with pytest.raises(PinConflict):
            engine.create_session(pin="1234", host_name="Other")

        assert len(store.list_sessions()) == 1

    def test_pin_is_reusable_after_session_ends(self, engine, session_and_host):
        session, host = session_and_host
        engine.leave_session(session.id, host.id)

        new_session, _ = engine.create_session(pin="1234")

        assert new_session.id != session.id

    def test_generated_pin_and_default_host_name(self, engine):
        session, host = engine.create_session()

        assert len(session.pin) == 4 and session.pin.isdigit()
        assert host.name == "Host"

    def test_generated_pin_gives_up_when_none_free(self, store):
        engine = SessionEngine(store, Settings(PIN_GENERATION_ATTEMPTS=0))

        with pytest.raises(PinConflict):
            engine.create_session()

    def test_join_by_pin(self, engine, session_and_host):
        session, _ = session_and_host

        assert engine.join_by_pin("1234") == session.id
        with pytest.raises(SessionNotFound):
            engine.join_by_pin("0000")

    def test_join_creates_connected_non_host(self, engine, session_and_host):
        session, _ = session_and_host

        participant = engine.join_session(session.id, "Ann")

        assert participant.is_host is False
        assert participant.is_connected is True
        assert participant.session_id == session.id

    def test_join_unknown_session(self, engine):
        with pytest.raises(SessionNotFound):
            engine.join_session("nope", "Ann")

    def test_rejoin_with_id_reuses_record(self, engine, store, session_and_host):
        session, host = session_and_host

        first = engine.join_session(session.id, "Hana", host.id)
        engine.mark_disconnected(host.id)
        second = engine.join_session(session.id, "Hana", host.id)

        assert first.id == second.id == host.id
        assert second.is_host is True
        assert second.is_connected is True
        assert len(store.get_participants_by_session(session.id)) == 1

    def test_rejoin_by_name(self, engine, store, session_and_host):
        session, _ = session_and_host
        ann = engine.join_session(session.id, "Ann")
        engine.mark_disconnected(ann.id)

        again = engine.join_session(session.id, "Ann")

        assert again.id == ann.id
        assert again.is_connected is True
        assert len(store.get_participants_by_session(session.id)) == 2

    def test_participant_id_from_another_session_is_not_reused(self, engine, session_and_host):
        session, _ = session_and_host
        other_session, other_host = engine.create_session(pin="5678")

        participant = engine.join_session(session.id, "Visitor", other_host.id)

        assert participant.id != other_host.id
        assert participant.session_id == session.id


class TestRounds:
    def test_submit_without_round_leaves_store_unchanged(self, engine, store, session_and_host):
        session, host = session_and_host

        with pytest.raises(NoActiveVote):
            engine.submit_vote(session.id, host.id, 5)

        assert store.get_vote(host.id, session.id, "") is None
        assert store._votes == {}

    def test_submit_twice_replaces(self, engine, store, session_and_host):
        session, host = session_and_host
        engine.start_vote(session.id, "Login page")

        engine.submit_vote(session.id, host.id, 3)
        engine.submit_vote(session.id, host.id, 13)

        votes = store.get_votes_by_session(session.id, "Login page")
        assert [v.vote_value for v in votes] == [13]

    def test_submit_from_unknown_participant(self, engine, session_and_host):
        session, _ = session_and_host
        engine.start_vote(session.id, "Story")

        with pytest.raises(ParticipantNotFound):
            engine.submit_vote(session.id, "ghost", 3)

    def test_start_vote_overwrites_open_round(self, engine, session_and_host):
        session, _ = session_and_host
        engine.start_vote(session.id, "First")
        engine.reveal_votes(session.id)

        updated = engine.start_vote(session.id, "Second")

        assert updated.current_vote.label == "Second"
        assert updated.current_vote.is_revealed is False

    def test_reveal_is_idempotent(self, engine, session_and_host):
        session, _ = session_and_host
        engine.start_vote(session.id, "Story")

        assert engine.reveal_votes(session.id).current_vote.is_revealed is True
        assert engine.reveal_votes(session.id).current_vote.is_revealed is True

    def test_reveal_and_reset_need_open_round(self, engine, session_and_host):
        session, _ = session_and_host

        with pytest.raises(NoActiveVote):
            engine.reveal_votes(session.id)
        with pytest.raises(NoActiveVote):
            engine.reset_votes(session.id)

    def test_reset_after_reveal_archives_round(self, engine, store, session_and_host):
        session, host = session_and_host
        voters = [host] + [engine.join_session(session.id, name) for name in ("A", "B", "C")]
        engine.start_vote(session.id, "Checkout")
        for voter, value in zip(voters, [1, 3, 5, "coffee"]):
            engine.submit_vote(session.id, voter.id, value)
        engine.reveal_votes(session.id)

        history = engine.reset_votes(session.id)

        assert history.average == 3.0
        assert len(history.votes) == 4
        assert history.label == "Checkout"
        assert store.get_vote_history(session.id) == [history]
        assert store.get_votes_by_session(session.id, "Checkout") == []
        assert store.get_session(session.id).current_vote is None

    def test_reset_without_reveal_discards_round(self, engine, store, session_and_host):
        session, host = session_and_host
        engine.start_vote(session.id, "Checkout")
        engine.submit_vote(session.id, host.id, 8)

        assert engine.reset_votes(session.id) is None
        assert store.get_vote_history(session.id) == []
        assert store.get_votes_by_session(session.id, "Checkout") == []
        assert store.get_session(session.id).current_vote is None

    @pytest.mark.parametrize("value", [10**400, VOTE_LIMIT + 1, -VOTE_LIMIT - 1, float("inf"), float("nan")])
    def test_out_of_range_vote_is_rejected(self, engine, store, session_and_host, value):
        session, host = session_and_host
        engine.start_vote(session.id, "Story")

        with pytest.raises(ValidationError):
            engine.submit_vote(session.id, host.id, value)

        assert store.get_votes_by_session(session.id, "Story") == []

    def test_average_at_vote_limit(self, engine, session_and_host):
        session, host = session_and_host
        ann = engine.join_session(session.id, "Ann")
        engine.start_vote(session.id, "Epic")
        engine.submit_vote(session.id, host.id, VOTE_LIMIT)
        engine.submit_vote(session.id, ann.id, VOTE_LIMIT - 0.5)
        engine.reveal_votes(session.id)

        history = engine.reset_votes(session.id)

        assert history.average == VOTE_LIMIT - 0.25
        assert engine.get_session(session.id).current_vote is None

    def test_average_absent_with_only_sentinels(self, engine, session_and_host):
        session, host = session_and_host
        engine.start_vote(session.id, "Spike")
        engine.submit_vote(session.id, host.id, "?")
        engine.reveal_votes(session.id)

        history = engine.reset_votes(session.id)

        assert history.average is None
        assert "average" not in history.to_wire()


class TestLeaveAndRemove:
    def test_non_host_leave_removes_only_them(self, engine, store, session_and_host):
        session, host = session_and_host
        ann = engine.join_session(session.id, "Ann")
        bob = engine.join_session(session.id, "Bob")
        engine.start_vote(session.id, "Story")
        engine.submit_vote(session.id, ann.id, 5)

        outcome = engine.leave_session(session.id, ann.id)

        assert outcome.session_ended is False
        assert outcome.removed_ids == [ann.id]
        assert [p.id for p in store.get_participants_by_session(session.id)] == [host.id, bob.id]
        assert store.get_votes_by_session(session.id, "Story") == []
        assert store.get_session(session.id).is_active is True

    def test_host_leave_ends_session(self, engine, store, session_and_host):
        session, host = session_and_host
        ann = engine.join_session(session.id, "Ann")
        bob = engine.join_session(session.id, "Bob")

        outcome = engine.leave_session(session.id, host.id)

        assert outcome.session_ended is True
        assert set(outcome.removed_ids) == {host.id, ann.id, bob.id}
        assert store.get_session(session.id).is_active is False

        assert engine.purge_participants(session.id) == 3
        assert store.get_participants_by_session(session.id) == []

    def test_ended_session_refuses_further_operations(self, engine, session_and_host):
        session, host = session_and_host
        ann = engine.join_session(session.id, "Ann")
        engine.leave_session(session.id, host.id)

        with pytest.raises(SessionNotFound):
            engine.start_vote(session.id, "Late")
        with pytest.raises(SessionNotFound):
            engine.join_session(session.id, "Ann", ann.id)
        with pytest.raises(SessionNotFound):
            engine.join_by_pin("1234")

    def test_end_session_requires_host(self, engine, session_and_host):
        session, host = session_and_host
        ann = engine.join_session(session.id, "Ann")

        with pytest.raises(Unauthorized):
            engine.end_session(session.id, ann.id)

        assert engine.end_session(session.id, host.id).session_ended is True

    def test_remove_requires_host(self, engine, store, session_and_host):
        session, host = session_and_host
        ann = engine.join_session(session.id, "Ann")
        bob = engine.join_session(session.id, "Bob")

        with pytest.raises(Unauthorized):
            engine.remove_participant(session.id, bob.id, ann.id)
        with pytest.raises(Unauthorized):
            engine.remove_participant(session.id, bob.id, None)
        assert store.get_participant(bob.id) is not None

        removed = engine.remove_participant(session.id, bob.id, host.id)

        assert removed.id == bob.id
        assert store.get_participant(bob.id) is None

    def test_host_of_another_session_cannot_remove(self, engine, session_and_host):
        session, _ = session_and_host
        ann = engine.join_session(session.id, "Ann")
        _, other_host = engine.create_session(pin="5678")

        with pytest.raises(Unauthorized):
            engine.remove_participant(session.id, ann.id, other_host.id)

    def test_host_cannot_be_removed(self, engine, session_and_host):
        session, host = session_and_host

        with pytest.raises(Unauthorized):
            engine.remove_participant(session.id, host.id, host.id)

    def test_remove_unknown_participant(self, engine, session_and_host):
        session, host = session_and_host

        with pytest.raises(ParticipantNotFound):
            engine.remove_participant(session.id, "ghost", host.id)
