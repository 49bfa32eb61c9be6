# sbq_core/cli.py
"""Command-line front-end: drop batches into the queue and manage the session."""
import json
import time
import uuid
from pathlib import Path
from typing import Any, Dict, Optional

import typer
from pydantic import TypeAdapter

from .commands.parser import validate_batch
from .commands.schema import Command, parse_resolution
from .config import load_config
from .hosts.registry import get_host
from .log import setup_logging
from .pipeline import EXIT_FAILED, EXIT_INVALID, EXIT_OK, make_pipeline
from .queue import make_watcher
from .queue.files import DropDirectoryQueue
from .session import SessionStore

app = typer.Typer(add_completion=False, help="Queue scene/UI batches for the running editor")


def _print(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2, default=str))


def _cfg(ctx: typer.Context) -> Dict[str, Any]:
    return ctx.obj


def _read(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as e:
        _print({"verdict": "Invalid", "exitCode": EXIT_INVALID, "error": f"cannot read {path}: {e}"})
        raise typer.Exit(EXIT_INVALID)


@app.callback()
def main(ctx: typer.Context,
         project: Optional[Path] = typer.Option(None, "--project", "-C",
                                                help="Project root (defaults to the current directory)")):
    cfg = load_config(str(project) if project else None)
    setup_logging(cfg)
    ctx.obj = cfg


@app.command()
def submit(ctx: typer.Context,
           file: Path = typer.Argument(..., help="Batch file (JSON)"),
           validate_only: bool = typer.Option(False, "--validate-only", help="Only validate, queue nothing"),
           dry_run: bool = typer.Option(False, "--dry-run", help="Preview name resolution without changing the scene"),
           wait: bool = typer.Option(False, "--wait", help="Wait for the editor to process the batch"),
           timeout: float = typer.Option(120.0, "--timeout", help="Seconds to wait with --wait")):
    """Validate a batch and drop it into the queue directory."""
    cfg = _cfg(ctx)
    raw = _read(file)
    batch, diags = validate_batch(raw, cfg)
    if diags:
        _print({"verdict": "Invalid", "exitCode": EXIT_INVALID,
                "diagnostics": [d.to_dict() for d in diags]})
        raise typer.Exit(EXIT_INVALID)

    if validate_only:
        _print({"verdict": "Valid", "exitCode": EXIT_OK, "commands": len(batch.commands)})
        raise typer.Exit(EXIT_OK)

    body: Any = raw
    if dry_run:
        data = json.loads(raw.decode("utf-8-sig"))
        data["mode"] = "dry-run"
        body = json.dumps(data, indent=2)

    queue = DropDirectoryQueue(cfg["queue"]["dir"])
    name = queue.submit(body, name=f"{file.stem}-{uuid.uuid4().hex[:8]}.json")
    if not wait:
        _print({"queued": name, "queueDir": queue.root, "commands": len(batch.commands)})
        raise typer.Exit(EXIT_OK)

    deadline = time.time() + timeout
    poll = float(cfg["queue"].get("poll_interval_s", 0.5))
    while time.time() < deadline:
        result = queue.find_result(name)
        if result is not None:
            _print(result)
            raise typer.Exit(int(result.get("exitCode", EXIT_FAILED)))
        time.sleep(poll)
    _print({"queued": name, "verdict": "Timeout", "exitCode": EXIT_FAILED,
            "error": f"no result after {timeout:.0f}s; is the editor watching {queue.root}?"})
    raise typer.Exit(EXIT_FAILED)


@app.command()
def run(ctx: typer.Context,
        file: Path = typer.Argument(..., help="Batch file (JSON)"),
        dry_run: bool = typer.Option(False, "--dry-run", help="Preview without changing the scene")):
    """Run a batch in this process against the configured host."""
    cfg = _cfg(ctx)
    outcome = make_pipeline(cfg).run(_read(file), mode="dry-run" if dry_run else None,
                                     batch_id=file.stem, source=str(file))
    _print(outcome.to_dict())
    raise typer.Exit(outcome.exit_code)


@app.command()
def watch(ctx: typer.Context,
          max_ticks: Optional[int] = typer.Option(None, "--max-ticks", help="Stop after this many polls")):
    """Watch the queue headless (outside the editor)."""
    cfg = _cfg(ctx)
    watcher = make_watcher(cfg)
    if hasattr(watcher.queue, "start"):
        watcher.queue.start()
    try:
        watcher.run_forever(max_ticks=max_ticks)
    except KeyboardInterrupt:
        pass
    finally:
        if hasattr(watcher.queue, "stop"):
            watcher.queue.stop()
    _print({"processed": watcher.processed})


@app.command("start-session")
def start_session(ctx: typer.Context,
                  scene: Optional[str] = typer.Option(None, "--scene"),
                  parent: Optional[str] = typer.Option(None, "--parent"),
                  resolution: Optional[str] = typer.Option(None, "--resolution", help="WIDTHxHEIGHT")):
    """Replace the session defaults."""
    try:
        res = parse_resolution(resolution) if resolution else None
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--resolution")
    state = SessionStore(_cfg(ctx)["session"]["path"]).start(scene, parent, res)
    _print(state.to_dict())


@app.command("set-parent")
def set_parent(ctx: typer.Context, name: str = typer.Argument(...)):
    """Change only the session's default parent."""
    _print(SessionStore(_cfg(ctx)["session"]["path"]).set_parent(name).to_dict())


@app.command("show-session")
def show_session(ctx: typer.Context):
    state = SessionStore(_cfg(ctx)["session"]["path"]).read()
    _print({"active": not state.is_empty, **state.to_dict()})


@app.command("end-session")
def end_session(ctx: typer.Context):
    removed = SessionStore(_cfg(ctx)["session"]["path"]).clear()
    _print({"ended": removed})


@app.command("list-scene-types")
def list_scene_types(ctx: typer.Context):
    cfg = _cfg(ctx)
    host = get_host(cfg["host"]["name"], cfg)
    _print({"host": host.name, "sceneTypes": host.scene_types()})


@app.command()
def schema():
    """Print the JSON schema of a batch command."""
    _print(TypeAdapter(Command).json_schema(by_alias=True))


if __name__ == "__main__":
    app()
