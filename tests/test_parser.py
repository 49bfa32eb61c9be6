import json

import pytest

from sbq_core.commands.parser import parse_batch, validate_batch
from sbq_core.errors import BatchValidationError, ErrorKind

MENU_BATCH = {
    "version": "1.0",
    "description": "Main menu",
    "commands": [
        {"action": "create-scene", "name": "Menu", "path": "Assets/Scenes", "type": "2D", "addToBuild": True},
        {"action": "add-canvas", "name": "MainCanvas", "scene": "Menu", "renderMode": "ScreenSpaceOverlay",
         "referenceWidth": 1920, "referenceHeight": 1080, "scaleMode": "ScaleWithScreenSize"},
        {"action": "add-panel", "name": "Header", "parent": "MainCanvas", "width": 800, "height": 100,
         "anchor": "top-center", "color": "#336699"},
        {"action": "add-button", "name": "Play", "parent": "Header", "text": "Play", "position": [0, -40]},
        {"action": "add-text", "name": "Title", "parent": "Header", "text": "My Game", "fontSize": 32},
    ],
}


def test_valid_batch_keeps_declaration_order(cfg):
    batch = parse_batch(json.dumps(MENU_BATCH).encode("utf-8"), cfg)

    assert [c.action for c in batch.commands] == [
        "create-scene", "add-canvas", "add-panel", "add-button", "add-text"]
    assert batch.description == "Main menu"
    assert batch.mode == "execute"
    scene, canvas, panel, button, text = batch.commands
    assert scene.type == "2D" and scene.add_to_build is True
    assert canvas.reference_width == 1920
    assert panel.anchor == "top-center"
    assert panel.color == "#336699"
    assert button.position == (0.0, -40.0)
    assert button.width == 160 and button.height == 30
    assert text.font_size == 32


def test_parsing_is_deterministic(cfg):
    raw = json.dumps(MENU_BATCH).encode("utf-8")
    assert parse_batch(raw, cfg) == parse_batch(raw, cfg)


def test_three_missing_fields_give_three_diagnostics(cfg, make_batch):
    _, diags = validate_batch(make_batch({"action": "add-panel", "name": "Orphan"}), cfg)

    assert len(diags) == 3
    assert {d.field for d in diags} == {"width", "height", "parent"}
    assert all(d.index == 0 and d.kind == ErrorKind.MALFORMED_INPUT for d in diags)


def test_problems_in_several_commands_are_all_reported(cfg, make_batch):
    _, diags = validate_batch(make_batch(
        {"action": "create-scene", "name": "A"},
        {"action": "add-panel", "name": "P", "parent": "C", "width": -5, "height": "tall",
         "anchor": "upper-left", "color": "#12"},
    ), cfg)

    by_index = {}
    for d in diags:
        by_index.setdefault(d.index, set()).add(d.field)
    assert by_index[0] == {"path"}
    assert by_index[1] == {"width", "height", "anchor", "color"}


def test_unknown_action(cfg, make_batch):
    _, diags = validate_batch(make_batch({"action": "add-slider", "name": "Volume"}), cfg)

    assert len(diags) == 1
    assert diags[0].kind == ErrorKind.UNKNOWN_ACTION
    assert "add-panel" in diags[0].message


def test_actions_can_be_restricted_by_config(cfg, make_batch):
    cfg["safety"]["allowed_actions"] = ["create-scene"]
    _, diags = validate_batch(make_batch({"action": "add-canvas", "name": "C"}), cfg)

    assert [d.kind for d in diags] == [ErrorKind.UNKNOWN_ACTION]


@pytest.mark.parametrize("raw, expected", [
    (b"{not json", "invalid JSON"),
    (b"[1, 2]", "top level must be an object"),
    (json.dumps({"version": "2.0", "commands": [{"action": "end-session"}]}).encode(), "unsupported version"),
    (json.dumps({"version": "1.0", "commands": []}).encode(), "must not be empty"),
    (json.dumps({"version": "1.0"}).encode(), "missing required field 'commands'"),
])
def test_malformed_top_level(cfg, raw, expected):
    batch, diags = validate_batch(raw, cfg)

    assert batch is None
    assert any(expected in d.message for d in diags)
    assert all(d.kind == ErrorKind.MALFORMED_INPUT for d in diags)


def test_unexpected_fields_are_rejected(cfg, make_batch):
    _, diags = validate_batch(make_batch(
        {"action": "add-canvas", "name": "C", "renderMod": "WorldSpace"}), cfg)

    assert [d.field for d in diags] == ["renderMod"]


def test_enums_are_case_insensitive_and_colors_normalized(cfg, make_batch):
    batch = parse_batch(make_batch(
        {"action": "create-scene", "name": "S", "path": "Assets/Scenes", "type": "defaultgameobjects"},
        {"action": "add-canvas", "name": "C", "renderMode": "worldspace", "worldPosition": [0, 1, 2]},
        {"action": "add-panel", "name": "P", "parent": "C", "width": 1, "height": 1,
         "anchor": "Stretch_Stretch", "color": "white"},
        {"action": "add-text", "name": "T", "parent": "P", "text": "x", "color": "#abc"},
    ), cfg)

    scene, canvas, panel, text = batch.commands
    assert scene.type == "DefaultGameObjects"
    assert canvas.render_mode == "WorldSpace"
    assert panel.anchor == "stretch-stretch"
    assert panel.color == "#FFFFFF"
    assert text.color == "#AABBCC"


@pytest.mark.parametrize("path", ["../Outside", "/abs/Scenes", "C:/Scenes", "Assets/../../x", "Other/Scenes"])
def test_scene_path_must_stay_under_scene_root(cfg, make_batch, path):
    _, diags = validate_batch(make_batch(
        {"action": "create-scene", "name": "S", "path": path}), cfg)

    assert [d.field for d in diags] == ["path"]


def test_scene_name_with_invalid_characters(cfg, make_batch):
    _, diags = validate_batch(make_batch(
        {"action": "create-scene", "name": "Bad:Name", "path": "Assets/Scenes"}), cfg)

    assert [d.field for d in diags] == ["name"]
    assert "invalid characters" in diags[0].message


def test_world_position_needs_world_space(cfg, make_batch):
    _, diags = validate_batch(make_batch(
        {"action": "add-canvas", "name": "C", "worldPosition": [0, 0, 0]}), cfg)

    assert [d.field for d in diags] == ["worldPosition"]


def test_use_session_lifts_the_parent_requirement(cfg, make_batch):
    batch = parse_batch(make_batch(
        {"action": "add-button", "name": "Play", "text": "Play", "useSession": True}), cfg)
    assert batch.commands[0].use_session is True


def test_batch_level_use_session_is_the_default(cfg, make_batch):
    batch = parse_batch(make_batch(
        {"action": "add-text", "name": "A", "text": "a"},
        {"action": "add-text", "name": "B", "text": "b", "parent": "Panel", "useSession": False},
        useSession=True), cfg)

    assert [c.use_session for c in batch.commands] == [True, False]


def test_start_session_resolution_string(cfg, make_batch):
    batch = parse_batch(make_batch(
        {"action": "start-session", "scene": "Menu", "resolution": "1280x720"}), cfg)
    assert batch.commands[0].resolution == (1280, 720)


def test_parse_batch_raises_with_every_diagnostic(cfg, make_batch):
    with pytest.raises(BatchValidationError) as exc:
        parse_batch(make_batch({"action": "add-panel", "name": "P"}), cfg)

    assert exc.value.kind == ErrorKind.MALFORMED_INPUT
    assert len(exc.value.diagnostics) == 3


def test_validation_touches_neither_host_nor_session(cfg, host, session, make_batch):
    validate_batch(json.dumps(MENU_BATCH), cfg)
    validate_batch(make_batch({"action": "start-session", "scene": "Menu"}), cfg)

    assert host.list_scenes() == []
    assert session.read().is_empty


def test_numbers_and_booleans_must_have_json_types(cfg, make_batch):
    _, diags = validate_batch(make_batch(
        {"action": "add-panel", "name": "P", "parent": "C", "width": "200", "height": True}), cfg)

    assert sorted(d.field for d in diags) == ["height", "width"]


def test_strings_are_not_coerced_into_flags_or_positions(cfg, make_batch):
    _, diags = validate_batch(make_batch(
        {"action": "create-scene", "name": "S", "path": "Assets/Scenes", "addToBuild": "yes"},
        {"action": "add-text", "name": "T", "parent": "C", "text": "x", "position": ["1", "2"]},
    ), cfg)

    fields = {(d.index, d.field.split(".")[0]) for d in diags}
    assert fields == {(0, "addToBuild"), (1, "position")}
