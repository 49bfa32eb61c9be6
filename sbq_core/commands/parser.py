# sbq_core/commands/parser.py
"""
Batch parsing and validation.

Validation is pure: it looks only at the bytes and the config, and reports
every problem it finds instead of stopping at the first one.
"""
import json
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import ValidationError

from ..errors import BatchValidationError, Diagnostic, ErrorKind
from .registry import REGISTRY
from .safety import check_scene_path, is_allowed
from .schema import (
    BATCH_MODES,
    PARENTED_ACTIONS,
    SUPPORTED_VERSIONS,
    BatchFile,
    CommandBase,
)

_TOP_LEVEL_KEYS = {"version", "description", "mode", "useSession", "commands"}

Raw = Union[bytes, str, Dict[str, Any]]


def _decode(raw: Raw) -> Tuple[Any, List[Diagnostic]]:
    if isinstance(raw, dict):
        return raw, []
    try:
        text = raw.decode("utf-8-sig") if isinstance(raw, (bytes, bytearray)) else raw
        return json.loads(text), []
    except UnicodeDecodeError as e:
        return None, [Diagnostic(ErrorKind.MALFORMED_INPUT, f"file is not UTF-8: {e}")]
    except json.JSONDecodeError as e:
        return None, [Diagnostic(ErrorKind.MALFORMED_INPUT,
                                 f"invalid JSON at line {e.lineno} column {e.colno}: {e.msg}")]


def _malformed(message: str, **kw) -> Diagnostic:
    return Diagnostic(ErrorKind.MALFORMED_INPUT, message, **kw)


def _check_top_level(data: Any) -> List[Diagnostic]:
    if not isinstance(data, dict):
        return [_malformed(f"top level must be an object, got {type(data).__name__}")]

    diags = []
    for key in sorted(set(data) - _TOP_LEVEL_KEYS):
        diags.append(_malformed(f"unexpected top-level field {key!r}", field=key))

    version = data.get("version")
    if version is None:
        diags.append(_malformed("missing required field 'version'", field="version"))
    elif not isinstance(version, str) or version not in SUPPORTED_VERSIONS:
        diags.append(_malformed(
            f"unsupported version {version!r}; supported: {', '.join(SUPPORTED_VERSIONS)}",
            field="version"))

    if "description" in data and not isinstance(data["description"], str):
        diags.append(_malformed("description must be a string", field="description"))
    if "mode" in data and data["mode"] not in BATCH_MODES:
        diags.append(_malformed(f"mode must be one of {', '.join(BATCH_MODES)}", field="mode"))
    if "useSession" in data and not isinstance(data["useSession"], bool):
        diags.append(_malformed("useSession must be true or false", field="useSession"))

    commands = data.get("commands")
    if commands is None:
        diags.append(_malformed("missing required field 'commands'", field="commands"))
    elif not isinstance(commands, list):
        diags.append(_malformed("commands must be a list", field="commands"))
    elif not commands:
        diags.append(_malformed("commands must not be empty", field="commands"))
    return diags


def _field_of(loc) -> Optional[str]:
    return ".".join(str(p) for p in loc) or None


def _validate_command(index: int, raw_cmd: Any, batch_use_session: bool,
                      cfg) -> Tuple[Optional[CommandBase], List[Diagnostic]]:
    if not isinstance(raw_cmd, dict):
        return None, [_malformed(f"command must be an object, got {type(raw_cmd).__name__}", index=index)]

    action = raw_cmd.get("action")
    if not isinstance(action, str) or not action.strip():
        return None, [_malformed("missing required field 'action'", index=index, field="action")]
    action = action.strip().lower()

    ok, reason = is_allowed(action, cfg)
    if not ok:
        return None, [Diagnostic(ErrorKind.UNKNOWN_ACTION, reason, index=index, action=action, field="action")]

    data = dict(raw_cmd)
    data["action"] = action
    if "useSession" not in data and "use_session" not in data:
        data["useSession"] = batch_use_session

    diags: List[Diagnostic] = []
    cmd = None
    try:
        cmd = REGISTRY.model_for(action).model_validate(data)
    except ValidationError as e:
        for err in e.errors():
            msg = err["msg"]
            if msg.startswith("Value error, "):
                msg = msg[len("Value error, "):]
            diags.append(_malformed(msg, index=index, action=action, field=_field_of(err["loc"])))

    # cross-field rules, checked on the raw mapping so they are reported
    # together with any field-level problems
    use_session = data.get("useSession", data.get("use_session"))
    if action in PARENTED_ACTIONS and not data.get("parent") and use_session is not True:
        diags.append(_malformed("'parent' is required unless useSession is set",
                                index=index, action=action, field="parent"))

    if cmd is not None and action == "create-scene":
        ok, reason = check_scene_path(cmd.path, cfg)
        if not ok:
            diags.append(_malformed(reason, index=index, action=action, field="path"))

    if cmd is not None and action == "add-canvas":
        if cmd.world_position is not None and cmd.render_mode != "WorldSpace":
            diags.append(_malformed("worldPosition only applies to WorldSpace canvases",
                                    index=index, action=action, field="worldPosition"))

    return (cmd if not diags else None), diags


def validate_batch(raw: Raw, cfg=None) -> Tuple[Optional[BatchFile], List[Diagnostic]]:
    """Return (batch, []) for valid input, or (None, diagnostics)."""
    data, diags = _decode(raw)
    if diags:
        return None, diags

    diags = _check_top_level(data)
    commands = data.get("commands") if isinstance(data, dict) else None
    if not isinstance(commands, list):
        return None, diags

    batch_use_session = data.get("useSession") is True
    parsed: List[CommandBase] = []
    for i, raw_cmd in enumerate(commands):
        cmd, cmd_diags = _validate_command(i, raw_cmd, batch_use_session, cfg)
        diags.extend(cmd_diags)
        if cmd is not None:
            parsed.append(cmd)

    if diags:
        return None, diags

    return BatchFile(
        version=data["version"],
        commands=tuple(parsed),
        description=data.get("description"),
        mode=data.get("mode", "execute"),
    ), []


def parse_batch(raw: Raw, cfg=None) -> BatchFile:
    batch, diags = validate_batch(raw, cfg)
    if diags:
        raise BatchValidationError(diags)
    return batch
