import pytest

from sbq_core.commands.parser import parse_batch
from sbq_core.errors import ErrorKind
from sbq_core.executor import BatchStatus, CommandStatus, Executor
from sbq_core.hosts.memory import MemoryHost
from sbq_core.session import SessionStore

SCENE = {"action": "create-scene", "name": "Menu", "path": "Assets/Scenes"}
CANVAS = {"action": "add-canvas", "name": "Canvas", "scene": "Menu"}


@pytest.fixture
def executor(cfg, host, session):
    return Executor(host, session, cfg)


def _run(executor, cfg, batch, dry_run=False):
    return executor.run(parse_batch(batch, cfg), dry_run=dry_run)


def _paths(host, scene):
    return [n.path for n in host.list_nodes(scene)]


class RecordingHost(MemoryHost):
    def __init__(self, *a, **kw):
        super().__init__(*a, **kw)
        self.calls = []

    def create_scene(self, name, path, setup, add_to_build):
        self.calls.append(("create_scene", name))
        return super().create_scene(name, path, setup, add_to_build)

    def create_node(self, scene, parent_path, kind, name, props):
        self.calls.append(("create_node", name))
        return super().create_node(scene, parent_path, kind, name, props)


class BrokenHost(MemoryHost):
    """Fails to create any node called "Broken"."""

    def create_node(self, scene, parent_path, kind, name, props):
        if name == "Broken":
            raise RuntimeError("disk full")
        return super().create_node(scene, parent_path, kind, name, props)


def test_full_menu_chains_within_one_batch(executor, cfg, host, make_batch):
    result = _run(executor, cfg, make_batch(
        SCENE, CANVAS,
        {"action": "add-panel", "name": "Header", "scene": "Menu", "parent": "Canvas", "width": 800, "height": 100},
        {"action": "add-button", "name": "Play", "scene": "Menu", "parent": "Header", "text": "Play"},
        {"action": "add-text", "name": "Title", "scene": "Menu", "parent": "Header", "text": "My Game"},
    ))

    assert result.status == BatchStatus.ALL_SUCCEEDED
    assert [r.created for r in result.per_command] == [
        "Assets/Scenes/Menu.scene", "Menu:Canvas", "Menu:Canvas/Header",
        "Menu:Canvas/Header/Play", "Menu:Canvas/Header/Title"]
    assert host.node_props("Menu", "Canvas/Header")["width"] == 800


def test_commands_run_in_file_order(cfg, session, make_batch):
    host = RecordingHost(cfg["host"]["state_path"])
    _run(Executor(host, session, cfg), cfg, make_batch(
        SCENE, CANVAS,
        {"action": "add-panel", "name": "A", "scene": "Menu", "parent": "Canvas", "width": 1, "height": 1},
        {"action": "add-panel", "name": "B", "scene": "Menu", "parent": "A", "width": 1, "height": 1},
    ))

    assert host.calls == [("create_scene", "Menu"), ("create_node", "Canvas"),
                          ("create_node", "EventSystem"), ("create_node", "A"), ("create_node", "B")]


def test_first_failure_aborts_the_rest(executor, cfg, host, make_batch):
    result = _run(executor, cfg, make_batch(
        SCENE,
        {"action": "add-panel", "name": "P", "scene": "Menu", "parent": "Missing", "width": 10, "height": 10},
        CANVAS,
    ))

    assert [r.status for r in result.per_command] == [
        CommandStatus.SUCCEEDED, CommandStatus.FAILED, CommandStatus.SKIPPED]
    assert result.status == BatchStatus.PARTIALLY_FAILED
    assert result.first_failure.index == 1
    assert result.first_failure.error == ErrorKind.REFERENCE_NOT_FOUND
    assert "not attempted" in result.per_command[2].message
    # no rollback of what already happened, nothing after the failure
    assert [s.name for s in host.list_scenes()] == ["Menu"]
    assert _paths(host, "Menu") == []


def test_host_failure_is_reported_with_its_cause(cfg, session, make_batch):
    host = BrokenHost(cfg["host"]["state_path"])
    result = _run(Executor(host, session, cfg), cfg, make_batch(
        SCENE, CANVAS,
        {"action": "add-panel", "name": "Broken", "scene": "Menu", "parent": "Canvas", "width": 1, "height": 1},
        {"action": "add-text", "name": "T", "scene": "Menu", "parent": "Canvas", "text": "x"},
    ))

    failed = result.first_failure
    assert failed.index == 2
    assert failed.error == ErrorKind.HOST_PRIMITIVE_FAILURE
    assert "disk full" in failed.message
    assert result.per_command[3].status == CommandStatus.SKIPPED


def test_duplicate_scene(executor, cfg, make_batch):
    _run(executor, cfg, make_batch(SCENE))
    result = _run(executor, cfg, make_batch(SCENE))
    assert result.first_failure.error == ErrorKind.DUPLICATE_TARGET


def test_duplicate_sibling(executor, cfg, host, make_batch):
    panel = {"action": "add-panel", "name": "P", "scene": "Menu", "parent": "Canvas", "width": 1, "height": 1}
    result = _run(executor, cfg, make_batch(SCENE, CANVAS, panel, panel))

    assert result.first_failure.index == 3
    assert result.first_failure.error == ErrorKind.DUPLICATE_TARGET
    assert _paths(host, "Menu").count("Canvas/P") == 1


def test_session_fills_unset_fields(executor, cfg, host, session, make_batch):
    _run(executor, cfg, make_batch(SCENE, CANVAS))
    session.start(scene="Menu", parent="Canvas")

    result = _run(executor, cfg, make_batch(
        {"action": "add-panel", "name": "P", "width": 10, "height": 10, "useSession": True}))

    r = result.per_command[0]
    assert r.created == "Menu:Canvas/P"
    assert r.resolved["scene"].method == "session"
    assert r.resolved["parent"].method == "session"


def test_explicit_values_beat_the_session(executor, cfg, host, session, make_batch):
    _run(executor, cfg, make_batch(
        SCENE, CANVAS,
        {"action": "create-scene", "name": "Options", "path": "Assets/Scenes"},
        {"action": "add-canvas", "name": "Canvas", "scene": "Options"},
    ))
    session.start(scene="Menu", parent="Canvas")

    result = _run(executor, cfg, make_batch(
        {"action": "add-panel", "name": "P", "scene": "Options", "width": 10, "height": 10, "useSession": True}))

    assert result.per_command[0].created == "Options:Canvas/P"


def test_session_ignored_without_use_session(executor, cfg, session, make_batch):
    _run(executor, cfg, make_batch(SCENE, CANVAS))
    session.start(scene="Menu", parent="Canvas")

    result = _run(executor, cfg, make_batch(
        {"action": "add-panel", "name": "P", "scene": "Menu", "parent": "Nowhere", "width": 1, "height": 1}))
    assert result.first_failure.error == ErrorKind.REFERENCE_NOT_FOUND


def test_guessed_scene_is_flagged(executor, cfg, host, make_batch):
    _run(executor, cfg, make_batch(
        SCENE, {"action": "create-scene", "name": "Game", "path": "Assets/Scenes"}))

    result = _run(executor, cfg, make_batch({"action": "add-canvas", "name": "HUD"}))

    r = result.per_command[0]
    assert r.created == "Game:HUD"
    assert r.resolved["scene"].heuristic
    assert result.heuristic_choices == [r]
    assert r.to_dict()["resolved"]["scene"]["heuristic"] is True


def test_canvas_reference_size(executor, cfg, host, session, make_batch):
    _run(executor, cfg, make_batch(SCENE))
    session.start(scene="Menu", resolution=(1280, 720))

    _run(executor, cfg, make_batch(
        {"action": "add-canvas", "name": "FromSession", "useSession": True},
        {"action": "add-canvas", "name": "FromConfig", "scene": "Menu"},
        {"action": "add-canvas", "name": "Explicit", "scene": "Menu", "referenceWidth": 640, "useSession": True},
    ))

    assert host.node_props("Menu", "FromSession")["reference_width"] == 1280
    assert host.node_props("Menu", "FromConfig")["reference_width"] == 1920
    props = host.node_props("Menu", "Explicit")
    assert (props["reference_width"], props["reference_height"]) == (640, 720)


def test_one_event_system_per_scene(executor, cfg, host, make_batch):
    _run(executor, cfg, make_batch(
        SCENE, CANVAS, {"action": "add-canvas", "name": "Overlay", "scene": "Menu"}))

    kinds = [n.kind for n in host.list_nodes("Menu")]
    assert kinds.count("event-system") == 1


def test_default_objects_setup(executor, cfg, host, make_batch):
    _run(executor, cfg, make_batch(
        {"action": "create-scene", "name": "World", "path": "Assets/Scenes", "type": "3D"}))
    assert _paths(host, "World") == ["Main Camera", "Directional Light"]


def test_update_session_remembers_what_was_created(executor, cfg, session, make_batch):
    _run(executor, cfg, make_batch(
        dict(SCENE, updateSession=True),
        {"action": "add-canvas", "name": "Canvas", "useSession": True, "updateSession": True},
        {"action": "add-panel", "name": "Body", "useSession": True, "updateSession": True,
         "width": 10, "height": 10},
        {"action": "add-button", "name": "Ok", "useSession": True, "text": "OK"},
    ))

    state = session.read()
    assert (state.scene, state.parent) == ("Menu", "Canvas/Body")


def test_session_commands_inside_a_batch(executor, cfg, host, session, make_batch):
    result = _run(executor, cfg, make_batch(
        SCENE, CANVAS,
        {"action": "start-session", "scene": "Menu", "parent": "Canvas"},
        {"action": "add-panel", "name": "Header", "width": 10, "height": 10, "useSession": True},
        {"action": "set-parent", "name": "Header"},
        {"action": "add-text", "name": "Title", "text": "Hi", "useSession": True},
        {"action": "end-session"},
    ))

    assert result.all_succeeded
    assert "Canvas/Header/Title" in _paths(host, "Menu")
    assert session.read().is_empty


def test_dry_run_changes_nothing(executor, cfg, host, session, make_batch):
    result = _run(executor, cfg, make_batch(
        SCENE, CANVAS,
        {"action": "add-panel", "name": "P", "scene": "Menu", "parent": "Canvas", "width": 1, "height": 1},
        {"action": "start-session", "scene": "Menu"},
        {"action": "save-scene", "scene": "Menu"},
    ), dry_run=True)

    assert result.dry_run and result.all_succeeded
    assert result.per_command[2].created == "Menu:Canvas/P"
    assert host.list_scenes() == []
    assert session.read().is_empty


def test_dry_run_reports_the_same_failures(executor, cfg, host, make_batch):
    result = _run(executor, cfg, make_batch(
        SCENE,
        {"action": "add-text", "name": "T", "scene": "Menu", "parent": "Nope", "text": "x"},
    ), dry_run=True)

    assert result.first_failure.error == ErrorKind.REFERENCE_NOT_FOUND
    assert host.list_scenes() == []


def test_unsaved_nodes_do_not_survive_a_restart(cfg, session, clock, make_batch):
    first = MemoryHost(cfg["host"]["state_path"], clock=clock)
    _run(Executor(first, session, cfg), cfg, make_batch(SCENE, CANVAS))

    restarted = MemoryHost(cfg["host"]["state_path"], clock=clock)
    result = _run(Executor(restarted, session, cfg), cfg, make_batch(
        {"action": "add-panel", "name": "P", "scene": "Menu", "parent": "Canvas", "width": 1, "height": 1}))

    assert [s.name for s in restarted.list_scenes()] == ["Menu"]
    assert result.first_failure.error == ErrorKind.REFERENCE_NOT_FOUND


def test_saved_nodes_are_found_by_a_later_invocation(cfg, session, clock, make_batch):
    first = MemoryHost(cfg["host"]["state_path"], clock=clock)
    _run(Executor(first, session, cfg), cfg, make_batch(
        SCENE, CANVAS, {"action": "save-scene", "scene": "Menu"}))

    restarted = MemoryHost(cfg["host"]["state_path"], clock=clock)
    result = _run(Executor(restarted, session, cfg), cfg, make_batch(
        {"action": "add-panel", "name": "P", "scene": "Menu", "parent": "Canvas", "width": 1, "height": 1}))

    assert result.all_succeeded
    assert result.per_command[0].created == "Menu:Canvas/P"


def test_result_serializes(executor, cfg, make_batch):
    data = _run(executor, cfg, make_batch(SCENE, CANVAS)).to_dict()

    assert data["status"] == "AllSucceeded"
    assert data["counts"]["Succeeded"] == 2
    assert data["perCommand"][1]["command"]["action"] == "add-canvas"
    assert data["perCommand"][1]["resolved"]["parent"]["method"] == "scene_root"


def test_session_write_failure_keeps_per_command_results(cfg, host, tmp_path, make_batch):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("", encoding="utf-8")
    store = SessionStore(str(blocker / "session.json"))

    result = _run(Executor(host, store, cfg), cfg, make_batch(
        SCENE, {"action": "start-session", "scene": "Menu"}, CANVAS))

    assert [r.status for r in result.per_command] == [
        CommandStatus.SUCCEEDED, CommandStatus.FAILED, CommandStatus.SKIPPED]
    assert result.status == BatchStatus.PARTIALLY_FAILED
    assert result.first_failure.error == ErrorKind.HOST_PRIMITIVE_FAILURE
    assert result.per_command[0].created == "Assets/Scenes/Menu.scene"
    assert _paths(host, "Menu") == []
