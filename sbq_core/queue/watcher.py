# sbq_core/queue/watcher.py
"""
Queue Watcher - feeds claimed batches to the pipeline one at a time.

tick() does at most one batch and returns how long to wait before the next
call, so it can be driven by the host's own timer (bpy.app.timers in Blender)
or by run_forever() when running headless. While the queue stays empty the
wait grows by ``backoff`` up to ``max_interval_s``.
"""
import logging
import threading
import time
from typing import Any, Callable, Dict, Optional

from ..errors import Diagnostic, ErrorKind
from ..pipeline import BatchOutcome, Pipeline, write_progress
from .base import Message, MessageQueue

log = logging.getLogger(__name__)


class QueueWatcher:
    def __init__(self, queue: MessageQueue, pipeline: Pipeline, cfg: Optional[Dict[str, Any]] = None,
                 on_outcome: Optional[Callable[[BatchOutcome], None]] = None):
        self.queue = queue
        self.pipeline = pipeline
        self.cfg = cfg or {}
        q = self.cfg.get("queue", {})
        self.poll_interval = float(q.get("poll_interval_s", 0.5))
        self.max_interval = float(q.get("max_interval_s", 5.0))
        self.backoff = max(1.0, float(q.get("backoff", 2.0)))
        self.on_outcome = on_outcome
        self._interval = self.poll_interval
        self._started = False
        self.processed = 0
        self.last_outcome: Optional[BatchOutcome] = None

    def start(self) -> None:
        if not self._started:
            recovered = self.queue.recover()
            if recovered:
                log.warning("Moved %d interrupted batch(es) to failed", recovered)
            self._started = True

    def _idle(self) -> float:
        wait = self._interval
        self._interval = min(self._interval * self.backoff, self.max_interval)
        return wait

    def _progress(self, batch_id: str, progress: int, state: str) -> None:
        root = self.cfg.get("_repo_root")
        if root:
            write_progress(root, batch_id, progress, state)

    def tick(self) -> float:
        self.start()
        try:
            msg = self.queue.claim()
        except OSError as e:
            log.error("Could not read the queue: %s", e)
            return self._idle()
        if msg is None:
            return self._idle()

        self._interval = self.poll_interval
        self.process(msg)
        return self.poll_interval

    def process(self, msg: Message) -> BatchOutcome:
        if msg.read_error:
            outcome = BatchOutcome(batch_id=msg.id, mode="execute", source=msg.source, diagnostics=[
                Diagnostic(ErrorKind.MALFORMED_INPUT, f"unreadable batch file: {msg.read_error}")])
            outcome.finished = time.time()
        else:
            try:
                outcome = self.pipeline.run(msg.body, batch_id=msg.id, source=msg.source,
                                            on_progress=self._progress)
            except Exception as e:
                log.exception("Batch %s crashed the pipeline", msg.id)
                outcome = BatchOutcome(batch_id=msg.id, mode="execute", source=msg.source,
                                       error=f"{type(e).__name__}: {e}")
                outcome.finished = time.time()

        try:
            self.queue.ack(msg, outcome)
        except OSError as e:
            log.error("Could not file away batch %s: %s", msg.id, e)

        self.processed += 1
        self.last_outcome = outcome
        if self.on_outcome:
            self.on_outcome(outcome)
        return outcome

    def run_forever(self, stop: Optional[threading.Event] = None, max_ticks: Optional[int] = None,
                    sleep: Callable[[float], None] = time.sleep) -> int:
        """Headless loop; returns the number of ticks performed."""
        self.start()
        ticks = 0
        while stop is None or not stop.is_set():
            wait = self.tick()
            ticks += 1
            if max_ticks is not None and ticks >= max_ticks:
                break
            if stop is not None:
                stop.wait(wait)
            else:
                sleep(wait)
        return ticks
