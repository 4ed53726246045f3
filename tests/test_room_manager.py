import pytest
from sqlalchemy import exc as sa_exc
from sqlalchemy.orm import Session

from models import RoomRecord, RoomStatus
from database import Base
from core import room_store
from core import room_manager
from core.room_manager import RoomManager
from core.exceptions import (
    BadRequest,
    InvalidStateTransition,
    NotRoomHost,
    RoomAlreadyExists,
    RoomNotFound,
    ScoreAlreadySubmitted,
    StoreUnavailable,
    WriteConflict
)


def assert_consistent(room):
    assert len(room.players) == len(set(room.players))
    assert set(room.scores) == set(room.players)
    assert set(room.played) == set(room.players)


def stored_version(db, code):
    return room_store.load_room(db, code).version


def test_create_persists_room(db):
    room = RoomManager.create_room(db, "Alice", code="abcd")
    assert room.code == "ABCD"
    assert room.name == "Alice's Cat Battle"

    record = db.get(RoomRecord, "ABCD")
    assert record.version == 1
    assert record.data == {
        "code": "ABCD",
        "host": "Alice",
        "name": "Alice's Cat Battle",
        "status": "waiting",
        "players": ["Alice"],
        "scores": {"Alice": 0},
        "played": {"Alice": False},
    }


def test_create_is_not_idempotent(db):
    RoomManager.create_room(db, "Alice", code="ABCD")
    with pytest.raises(RoomAlreadyExists):
        RoomManager.create_room(db, "Alice", code="ABCD")


def test_create_generates_code_when_missing(db):
    room = RoomManager.create_room(db, "Alice", name="Finals")
    assert len(room.code) == 4
    assert room.name == "Finals"
    assert RoomManager.get_state(db, room.code)[0].host == "Alice"


@pytest.mark.parametrize("code", ["", "ABC", "ABCDE", "AB-D", None])
def test_bad_room_code_is_rejected(db, code):
    with pytest.raises(BadRequest):
        RoomManager.join_room(db, code, "Bob")


@pytest.mark.parametrize("name", ["", "   ", None, "x" * 41])
def test_bad_player_name_is_rejected(db, name):
    RoomManager.create_room(db, "Alice", code="ABCD")
    with pytest.raises(BadRequest):
        RoomManager.join_room(db, "ABCD", name)


def test_join_unknown_room(db):
    with pytest.raises(RoomNotFound):
        RoomManager.join_room(db, "ZZZZ", "Bob")


def test_repeated_join_returns_same_players_without_writing(db):
    RoomManager.create_room(db, "Alice", code="ABCD")
    first = RoomManager.join_room(db, "ABCD", "Bob")
    version = stored_version(db, "ABCD")

    second = RoomManager.join_room(db, "ABCD", "Bob")
    assert second.players == first.players == ["Alice", "Bob"]
    assert stored_version(db, "ABCD") == version


def test_non_host_cannot_start(db):
    RoomManager.create_room(db, "Alice", code="ABCD")
    RoomManager.join_room(db, "ABCD", "Bob")
    with pytest.raises(NotRoomHost):
        RoomManager.start_game(db, "ABCD", "Bob")


def test_min_players_comes_from_settings(db, settings, monkeypatch):
    monkeypatch.setattr(settings, "min_players", 1)
    RoomManager.create_room(db, "Alice", code="SOLO")
    room = RoomManager.start_game(db, "SOLO", "Alice")
    assert room.status == RoomStatus.STARTED


def test_full_tournament(db):
    RoomManager.create_room(db, "A", code="ABCD")
    RoomManager.join_room(db, "ABCD", "B")
    started = RoomManager.start_game(db, "ABCD", "A")
    assert started.status == RoomStatus.STARTED
    assert started.started_at is not None

    with pytest.raises(InvalidStateTransition):
        RoomManager.join_room(db, "ABCD", "C")

    room, _ = RoomManager.submit_score(db, "ABCD", "A", 50)
    assert room.status == RoomStatus.STARTED

    room, leaderboard = RoomManager.submit_score(db, "ABCD", "B", 80)
    assert room.status == RoomStatus.FINISHED
    assert room.finished_at is not None
    assert [entry.model_dump() for entry in leaderboard] == [
        {"rank": 1, "name": "B", "score": 80},
        {"rank": 2, "name": "A", "score": 50},
    ]

    persisted, persisted_board = RoomManager.get_state(db, "ABCD")
    assert persisted.status == RoomStatus.FINISHED
    assert persisted_board == leaderboard
    assert_consistent(persisted)


def test_second_submission_leaves_scores_unchanged(db):
    RoomManager.create_room(db, "A", code="ABCD")
    RoomManager.join_room(db, "ABCD", "B")
    RoomManager.start_game(db, "ABCD", "A")
    RoomManager.submit_score(db, "ABCD", "A", 50)
    version = stored_version(db, "ABCD")

    with pytest.raises(ScoreAlreadySubmitted):
        RoomManager.submit_score(db, "ABCD", "A", 90)

    room, _ = RoomManager.get_state(db, "ABCD")
    assert room.scores == {"A": 50, "B": 0}
    assert room.played == {"A": True, "B": False}
    assert stored_version(db, "ABCD") == version


def test_concurrent_joins_keep_both_players(db, session_factory, monkeypatch):
    RoomManager.create_room(db, "Alice", code="ABCD")
    original_load = room_store.load_room
    raced = {"done": False}

    def load_then_race(session, code):
        snapshot = original_load(session, code)
        if not raced["done"]:
            # Another client joins between our load and our store
            raced["done"] = True
            with session_factory() as other:
                RoomManager.join_room(other, code, "Carol")
        return snapshot

    monkeypatch.setattr(room_store, "load_room", load_then_race)

    room = RoomManager.join_room(db, "ABCD", "Bob")

    assert room.players == ["Alice", "Carol", "Bob"]
    assert_consistent(room)
    assert original_load(db, "ABCD").room.players == ["Alice", "Carol", "Bob"]


def test_unconditional_writes_validate_but_may_lose_updates(db, session_factory, settings, monkeypatch):
    monkeypatch.setattr(settings, "conditional_writes", False)
    RoomManager.create_room(db, "Alice", code="ABCD")
    original_load = room_store.load_room
    raced = {"done": False}

    def load_then_race(session, code):
        snapshot = original_load(session, code)
        if not raced["done"]:
            raced["done"] = True
            with session_factory() as other:
                RoomManager.join_room(other, code, "Carol")
        return snapshot

    monkeypatch.setattr(room_store, "load_room", load_then_race)

    RoomManager.join_room(db, "ABCD", "Bob")

    # Last writer wins: Carol's join may have been overwritten by Bob's.
    # The surviving record is still internally consistent.
    room = original_load(db, "ABCD").room
    assert "Bob" in room.players
    assert_consistent(room)


def test_gives_up_after_bounded_retries(db, session_factory, settings, monkeypatch):
    monkeypatch.setattr(settings, "max_write_retries", 2)
    RoomManager.create_room(db, "Alice", code="ABCD")
    original_load = room_store.load_room
    state = {"nested": False, "rivals": 0}

    def load_then_always_race(session, code):
        snapshot = original_load(session, code)
        if not state["nested"]:
            state["nested"] = True
            try:
                state["rivals"] += 1
                with session_factory() as other:
                    RoomManager.join_room(other, code, f"Rival{state['rivals']}")
            finally:
                state["nested"] = False
        return snapshot

    monkeypatch.setattr(room_store, "load_room", load_then_always_race)

    with pytest.raises(WriteConflict) as excinfo:
        RoomManager.join_room(db, "ABCD", "Bob")

    assert excinfo.value.attempts == 3
    room = original_load(db, "ABCD").room
    assert "Bob" not in room.players
    assert room.players == ["Alice", "Rival1", "Rival2", "Rival3"]


def test_store_failure_is_reported_as_unavailable(db, engine):
    RoomManager.create_room(db, "Alice", code="ABCD")
    db.close()
    Base.metadata.drop_all(bind=engine)

    with pytest.raises(StoreUnavailable):
        RoomManager.get_state(db, "ABCD")

    Base.metadata.create_all(bind=engine)


def test_generated_code_skips_existing_room(db, monkeypatch):
    RoomManager.create_room(db, "Alice", code="ABCD")
    codes = iter(["ABCD", "WXYZ"])
    monkeypatch.setattr(room_manager, "generate_room_code", lambda: next(codes))

    room = RoomManager.create_room(db, "Bob")

    assert room.code == "WXYZ"
    assert RoomManager.get_state(db, "ABCD")[0].host == "Alice"
    assert RoomManager.get_state(db, "WXYZ")[0].host == "Bob"


def test_generated_code_taken_during_insert_is_regenerated(db, session_factory, monkeypatch):
    original_load = room_store.load_room
    codes = iter(["AB12", "CD34"])
    monkeypatch.setattr(room_manager, "generate_room_code", lambda: next(codes))

    def load_then_take_code(session, code):
        snapshot = original_load(session, code)
        if code == "AB12":
            # Another host creates the same code after our existence check
            with session_factory() as other:
                RoomManager.create_room(other, "Mallory", code=code)
        return snapshot

    monkeypatch.setattr(room_store, "load_room", load_then_take_code)

    room = RoomManager.create_room(db, "Alice")

    assert room.code == "CD34"
    assert original_load(db, "AB12").room.host == "Mallory"
    assert original_load(db, "CD34").room.host == "Alice"


def test_failed_commit_is_reported_as_unavailable(db, monkeypatch):
    RoomManager.create_room(db, "Alice", code="ABCD")

    def dropped_connection(self):
        raise sa_exc.DisconnectionError("connection dropped mid-commit")

    monkeypatch.setattr(Session, "commit", dropped_connection)

    with pytest.raises(StoreUnavailable):
        RoomManager.join_room(db, "ABCD", "Bob")

    assert RoomManager.get_state(db, "ABCD")[0].players == ["Alice"]
