import json
import os

from sbq_core.session import EMPTY_SESSION, OverlaySessionStore, SessionState, SessionStore


def test_no_session_reads_as_empty(session):
    state = session.read()
    assert state == EMPTY_SESSION
    assert state.is_empty


def test_start_replaces_the_whole_record(session):
    session.start(scene="Menu", parent="Canvas", resolution=(800, 600))
    session.start(scene="Game")

    state = session.read()
    assert state.scene == "Game"
    assert state.parent is None
    assert state.resolution is None


def test_set_parent_keeps_the_rest(session):
    session.start(scene="Menu", resolution=(1280, 720))
    session.set_parent("Canvas/Header")

    state = session.read()
    assert (state.scene, state.parent, state.resolution) == ("Menu", "Canvas/Header", (1280, 720))


def test_writes_are_stamped(session, clock):
    first = session.start(scene="Menu")
    second = session.set_parent("Canvas")
    assert second.last_updated > first.last_updated
    assert session.read().last_updated == second.last_updated


def test_state_survives_a_new_store(cfg, session):
    session.start(scene="Menu", parent="Canvas")
    again = SessionStore(cfg["session"]["path"])
    assert again.read().parent == "Canvas"


def test_file_is_replaced_atomically(session):
    session.start(scene="Menu", resolution=(1920, 1080))

    assert not os.path.exists(session.path + ".tmp")
    with open(session.path, encoding="utf-8") as f:
        data = json.load(f)
    assert data["scene"] == "Menu"
    assert data["resolution"] == [1920, 1080]
    assert "lastUpdated" in data


def test_clear(session):
    session.start(scene="Menu")
    assert session.clear() is True
    assert not os.path.exists(session.path)
    assert session.clear() is False
    assert session.read().is_empty


def test_damaged_file_reads_as_empty(session):
    os.makedirs(os.path.dirname(session.path), exist_ok=True)
    with open(session.path, "w", encoding="utf-8") as f:
        f.write("{not json")
    assert session.read().is_empty

    session.start(scene="Menu")
    assert session.read().scene == "Menu"


def test_overlay_never_touches_disk(session):
    session.start(scene="Menu")
    overlay = OverlaySessionStore(session)

    overlay.set_parent("Canvas")
    assert overlay.read().parent == "Canvas"
    assert overlay.clear() is True
    assert overlay.read().is_empty

    assert session.read() == SessionState(scene="Menu", last_updated=session.read().last_updated)
