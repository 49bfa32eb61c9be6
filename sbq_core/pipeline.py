# sbq_core/pipeline.py
import os, json, time, logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .commands.parser import Raw, validate_batch
from .errors import Diagnostic
from .executor import BatchResult, ExecutionResult, Executor
from .hosts.base import HostPrimitives
from .session import SessionStore

log = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_INVALID = 1
EXIT_FAILED = 2


def write_progress(repo_root: str, job_id: str, progress: int, state: str) -> None:
    os.makedirs(os.path.join(repo_root, "logs"), exist_ok=True)
    path = os.path.join(repo_root, "logs", "progress.json")
    payload: Dict[str, Any] = {
        "ts": time.time(),
        "job_id": job_id,
        "progress": progress,
        "state": state,
    }
    # atomic-ish write
    tmp = path + ".tmp"
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(payload, f)
    os.replace(tmp, path)

ProgressFn = Callable[[str, int, str], None]  # (batch_id, progress, state)


@dataclass
class BatchOutcome:
    batch_id: str
    mode: str
    source: Optional[str] = None
    diagnostics: List[Diagnostic] = field(default_factory=list)
    result: Optional[BatchResult] = None
    error: Optional[str] = None
    started: float = field(default_factory=time.time)
    finished: Optional[float] = None

    @property
    def exit_code(self) -> int:
        if self.diagnostics:
            return EXIT_INVALID
        if self.error or (self.result is not None and not self.result.all_succeeded):
            return EXIT_FAILED
        return EXIT_OK

    @property
    def verdict(self) -> str:
        if self.diagnostics:
            return "Invalid"
        if self.error:
            return "Error"
        if self.result is None:
            return "Valid"
        return self.result.status.value

    @property
    def succeeded(self) -> bool:
        return self.exit_code == EXIT_OK

    def to_dict(self) -> Dict[str, Any]:
        return {
            "batchId": self.batch_id,
            "source": self.source,
            "mode": self.mode,
            "verdict": self.verdict,
            "exitCode": self.exit_code,
            "diagnostics": [d.to_dict() for d in self.diagnostics],
            "error": self.error,
            "result": self.result.to_dict() if self.result is not None else None,
            "started": self.started,
            "finished": self.finished,
        }


class Pipeline:
    """
    Runs one batch: parse/validate -> resolve + execute.
    Calls on_progress(batch_id, progress:int 0..100, state:str).
    """
    def __init__(self, cfg: Dict[str, Any], host: HostPrimitives, session_store: SessionStore):
        self.cfg = cfg
        self.host = host
        self.session_store = session_store
        self.executor = Executor(host, session_store, cfg)

    def run(self, raw: Raw, mode: Optional[str] = None, batch_id: str = "batch",
            source: Optional[str] = None, on_progress: Optional[ProgressFn] = None) -> BatchOutcome:
        batch, diags = validate_batch(raw, self.cfg)
        outcome = BatchOutcome(batch_id=batch_id, source=source,
                               mode=mode or (batch.mode if batch else "execute"))

        if diags:
            outcome.diagnostics = diags
            outcome.finished = time.time()
            log.error("Batch %s rejected with %d problem(s)", batch_id, len(diags))
            for d in diags:
                log.error("  %s", d)
            if on_progress:
                on_progress(batch_id, 100, "invalid")
            return outcome

        if outcome.mode == "validate-only":
            outcome.finished = time.time()
            log.info("Batch %s is valid (%d commands)", batch_id, len(batch.commands))
            if on_progress:
                on_progress(batch_id, 100, "valid")
            return outcome

        total = len(batch.commands)
        dry_run = outcome.mode == "dry-run"
        log.info("Running batch %s%s: %d command(s)%s", batch_id, " (dry run)" if dry_run else "",
                 total, f" - {batch.description}" if batch.description else "")

        def _step(r: ExecutionResult) -> None:
            if on_progress:
                on_progress(batch_id, int((r.index + 1) * 100 / total), "running")

        if on_progress:
            on_progress(batch_id, 0, "running")
        try:
            outcome.result = self.executor.run(batch, dry_run=dry_run, on_command=_step)
        except Exception as e:
            # a bug or host crash outside the per-command handling; the caller
            # still gets an outcome to file away
            log.exception("Batch %s aborted by unexpected error", batch_id)
            outcome.error = f"{type(e).__name__}: {e}"
        outcome.finished = time.time()

        if outcome.result is not None:
            for r in outcome.result.heuristic_choices:
                log.warning("Command %d (%s) used a guessed scene; check the result", r.index, r.command.label)
        if on_progress:
            on_progress(batch_id, 100, outcome.verdict.lower())
        log.info("Batch %s finished: %s", batch_id, outcome.verdict)
        return outcome


def make_pipeline(cfg: Dict[str, Any], host: Optional[HostPrimitives] = None) -> Pipeline:
    """Pipeline wired to the configured host and session file."""
    if host is None:
        from .hosts.registry import get_host
        host = get_host(cfg.get("host", {}).get("name", "memory"), cfg)
    return Pipeline(cfg, host, SessionStore(cfg["session"]["path"]))
