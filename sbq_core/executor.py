# sbq_core/executor.py
"""
Action Executor - applies a parsed batch to the host, one command at a time.

Commands run strictly in file order. The first command that fails stops the
batch: everything before it stays applied (there is no rollback) and
everything after it is reported as Skipped without being attempted.
"""
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from analyzers.name_resolver import NameResolver, Resolution

from .commands.schema import BatchFile, CommandBase
from .errors import BatchError, DuplicateTarget, ErrorKind, HostPrimitiveFailure
from .hosts.base import HostError, HostPrimitives, NodeInfo
from .hosts.preview import PreviewHost
from .session import OverlaySessionStore, SessionState, SessionStore

log = logging.getLogger(__name__)


class CommandStatus(str, Enum):
    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    SKIPPED = "Skipped"


class BatchStatus(str, Enum):
    RUNNING = "Running"
    ALL_SUCCEEDED = "AllSucceeded"
    PARTIALLY_FAILED = "PartiallyFailed"


@dataclass
class ExecutionResult:
    index: int
    command: CommandBase
    status: CommandStatus = CommandStatus.PENDING
    error: Optional[ErrorKind] = None
    message: Optional[str] = None
    created: Optional[str] = None
    resolved: Dict[str, Resolution] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.status == CommandStatus.SUCCEEDED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "action": self.command.action,
            "name": self.command.name,
            "status": self.status.value,
            "success": self.success,
            "error": self.error.value if self.error else None,
            "message": self.message,
            "created": self.created,
            "resolved": {k: v.to_dict() for k, v in self.resolved.items()},
            "command": self.command.model_dump(mode="json", by_alias=True, exclude_none=True),
        }


@dataclass
class BatchResult:
    per_command: List[ExecutionResult]
    status: BatchStatus = BatchStatus.RUNNING
    dry_run: bool = False

    @property
    def all_succeeded(self) -> bool:
        return self.status == BatchStatus.ALL_SUCCEEDED

    @property
    def first_failure(self) -> Optional[ExecutionResult]:
        return next((r for r in self.per_command if r.status == CommandStatus.FAILED), None)

    @property
    def heuristic_choices(self) -> List[ExecutionResult]:
        return [r for r in self.per_command if any(v.heuristic for v in r.resolved.values())]

    def counts(self) -> Dict[str, int]:
        out = {s.value: 0 for s in CommandStatus}
        for r in self.per_command:
            out[r.status.value] += 1
        return out

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "allSucceeded": self.all_succeeded,
            "dryRun": self.dry_run,
            "counts": self.counts(),
            "perCommand": [r.to_dict() for r in self.per_command],
        }


@dataclass
class _Run:
    host: HostPrimitives
    session: SessionStore
    resolver: NameResolver


# fields that steer resolution rather than describe the created object
_NON_PROPS = {"action", "name", "scene", "parent", "use_session", "update_session"}

_UI_KINDS = {"add-panel": "panel", "add-button": "button", "add-text": "text"}


def _host_call(what: str, fn: Callable, *args):
    try:
        return fn(*args)
    except BatchError:
        raise
    except Exception as e:
        raise HostPrimitiveFailure(f"{what} failed: {e}") from e


class Executor:
    def __init__(self, host: HostPrimitives, session_store: SessionStore,
                 cfg: Optional[Dict[str, Any]] = None):
        self.host = host
        self.session_store = session_store
        self.cfg = cfg or {}
        self._handlers: Dict[str, Callable[[_Run, Any, ExecutionResult], None]] = {
            "create-scene": self._create_scene,
            "add-canvas": self._add_canvas,
            "add-panel": self._add_ui_node,
            "add-button": self._add_ui_node,
            "add-text": self._add_ui_node,
            "save-scene": self._save_scene,
            "start-session": self._start_session,
            "set-parent": self._set_parent,
            "end-session": self._end_session,
        }

    def run(self, batch: BatchFile, dry_run: bool = False,
            on_command: Optional[Callable[[ExecutionResult], None]] = None) -> BatchResult:
        host = PreviewHost(self.host) if dry_run else self.host
        session = OverlaySessionStore(self.session_store) if dry_run else self.session_store
        ctx = _Run(host=host, session=session, resolver=NameResolver(host))

        result = BatchResult([ExecutionResult(i, c) for i, c in enumerate(batch.commands)],
                             dry_run=dry_run)
        total = len(result.per_command)
        aborted = False

        for r in result.per_command:
            if aborted:
                r.status = CommandStatus.SKIPPED
                r.message = "not attempted: an earlier command failed"
            else:
                r.status = CommandStatus.RUNNING
                try:
                    self._handlers[r.command.action](ctx, r.command, r)
                    r.status = CommandStatus.SUCCEEDED
                    log.info("[%d/%d] %s: ok%s", r.index + 1, total, r.command.label,
                             f" -> {r.created}" if r.created else "")
                except BatchError as e:
                    r.status = CommandStatus.FAILED
                    r.error = e.kind
                    r.message = e.message
                    aborted = True
                    log.error("[%d/%d] %s: %s: %s", r.index + 1, total, r.command.label,
                              e.kind.value, e.message)
                except HostError as e:
                    # raised by host reads during resolution
                    r.status = CommandStatus.FAILED
                    r.error = ErrorKind.HOST_PRIMITIVE_FAILURE
                    r.message = str(e)
                    aborted = True
                    log.error("[%d/%d] %s: %s", r.index + 1, total, r.command.label, e)
                except OSError as e:
                    # session file I/O
                    r.status = CommandStatus.FAILED
                    r.error = ErrorKind.HOST_PRIMITIVE_FAILURE
                    r.message = f"{type(e).__name__}: {e}"
                    aborted = True
                    log.error("[%d/%d] %s: %s", r.index + 1, total, r.command.label, r.message)
            if on_command:
                on_command(r)

        result.status = BatchStatus.PARTIALLY_FAILED if aborted else BatchStatus.ALL_SUCCEEDED
        return result

    # --- helpers ---
    def _check_sibling(self, ctx: _Run, scene: str, parent: Optional[NodeInfo], name: str) -> None:
        parent_path = parent.path if parent else None
        for n in ctx.host.list_nodes(scene):
            if n.parent_path == parent_path and n.name == name:
                where = f"under '{parent_path}'" if parent_path else "at the scene root"
                raise DuplicateTarget(f"'{name}' already exists {where} in scene '{scene}'")

    def _remember(self, ctx: _Run, cmd, **fields) -> None:
        if cmd.update_session:
            ctx.session.write(replace(ctx.session.read(), **fields))

    # --- handlers ---
    def _create_scene(self, ctx: _Run, cmd, r: ExecutionResult) -> None:
        ext = getattr(ctx.host, "scene_ext", "")
        asset = f"{cmd.path.rstrip('/')}/{cmd.name}{ext}"
        for s in ctx.host.list_scenes():
            if s.name == cmd.name or s.path == asset:
                raise DuplicateTarget(f"Scene '{cmd.name}' already exists at {s.path}")

        info = _host_call("create_scene", ctx.host.create_scene,
                          cmd.name, cmd.path, cmd.type, cmd.add_to_build)
        r.created = info.path
        self._remember(ctx, cmd, scene=info.name, parent=None)

    def _resolve_scene(self, ctx: _Run, cmd, state: SessionState, r: ExecutionResult):
        res = ctx.resolver.resolve_scene(cmd.scene, state, cmd.use_session)
        r.resolved["scene"] = res
        return res.target

    def _add_canvas(self, ctx: _Run, cmd, r: ExecutionResult) -> None:
        state = ctx.session.read()
        scene = self._resolve_scene(ctx, cmd, state, r)
        # the session parent is a UI container; canvases only nest when asked to
        parent_res = ctx.resolver.resolve_parent(scene.name, cmd.parent, allow_root=True)
        r.resolved["parent"] = parent_res
        self._check_sibling(ctx, scene.name, parent_res.target, cmd.name)

        canvas_cfg = self.cfg.get("canvas", {})
        session_res = state.resolution if cmd.use_session else None
        width = cmd.reference_width or (session_res[0] if session_res else None) \
            or canvas_cfg.get("reference_width", 1920)
        height = cmd.reference_height or (session_res[1] if session_res else None) \
            or canvas_cfg.get("reference_height", 1080)

        props = cmd.model_dump(exclude=_NON_PROPS)
        props.update(reference_width=width, reference_height=height)
        parent_path = parent_res.target.path if parent_res.target else None
        node = _host_call("create_node", ctx.host.create_node,
                          scene.name, parent_path, "canvas", cmd.name, props)
        r.created = f"{scene.name}:{node.path}"

        if canvas_cfg.get("ensure_event_system", True):
            nodes = ctx.host.list_nodes(scene.name)
            if not any(n.kind == "event-system" for n in nodes) and \
                    not any(n.path == "EventSystem" for n in nodes):
                _host_call("create_node", ctx.host.create_node,
                           scene.name, None, "event-system", "EventSystem", {})
                log.info("Created EventSystem for UI interaction in %s", scene.name)

        self._remember(ctx, cmd, scene=scene.name, parent=node.path)

    def _add_ui_node(self, ctx: _Run, cmd, r: ExecutionResult) -> None:
        state = ctx.session.read()
        scene = self._resolve_scene(ctx, cmd, state, r)
        parent_res = ctx.resolver.resolve_parent(scene.name, cmd.parent, state, cmd.use_session)
        r.resolved["parent"] = parent_res
        parent = parent_res.target
        self._check_sibling(ctx, scene.name, parent, cmd.name)

        node = _host_call("create_node", ctx.host.create_node, scene.name, parent.path,
                          _UI_KINDS[cmd.action], cmd.name, cmd.model_dump(exclude=_NON_PROPS))
        r.created = f"{scene.name}:{node.path}"
        if cmd.action == "add-panel":
            self._remember(ctx, cmd, scene=scene.name, parent=node.path)

    def _save_scene(self, ctx: _Run, cmd, r: ExecutionResult) -> None:
        scene = self._resolve_scene(ctx, cmd, ctx.session.read(), r)
        info = _host_call("save_scene", ctx.host.save_scene, scene.name)
        r.created = info.path

    def _start_session(self, ctx: _Run, cmd, r: ExecutionResult) -> None:
        state = ctx.session.start(cmd.scene, cmd.parent, cmd.resolution)
        r.message = f"session: scene={state.scene} parent={state.parent} resolution={state.resolution}"

    def _set_parent(self, ctx: _Run, cmd, r: ExecutionResult) -> None:
        ctx.session.set_parent(cmd.name)
        r.message = f"session parent: {cmd.name}"

    def _end_session(self, ctx: _Run, cmd, r: ExecutionResult) -> None:
        ctx.session.clear()
        r.message = "session cleared"
