# sbq_core/queue/files.py
"""
Drop-directory transport.

    <root>/*.json              pending batches
    <root>/processing/*.json   claimed, being executed
    <root>/processed/*.json    every command succeeded
    <root>/failed/*.json       invalid, failed or interrupted
    ... each filed batch gets a <stem>.result.json sidecar next to it.

A file is claimed by renaming it into processing/ before it is read, so a
batch can only ever be picked up once, however many producers write into the
root at the same time.
"""
import json
import logging
import os
import time
import uuid
from typing import Any, Dict, List, Optional, Union

from ..errors import ErrorKind
from .base import Message

log = logging.getLogger(__name__)

RESULT_SUFFIX = ".result.json"


def _atomic_write_json(path: str, payload: Dict[str, Any]) -> None:
    tmp = path + ".tmp"
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, default=str)
    os.replace(tmp, path)


def sidecar_path(batch_path: str) -> str:
    return os.path.splitext(batch_path)[0] + RESULT_SUFFIX


class DropDirectoryQueue:
    PROCESSING = "processing"
    PROCESSED = "processed"
    FAILED = "failed"

    def __init__(self, root: str):
        self.root = os.path.abspath(root)
        self.processing_dir = os.path.join(self.root, self.PROCESSING)
        self.processed_dir = os.path.join(self.root, self.PROCESSED)
        self.failed_dir = os.path.join(self.root, self.FAILED)
        for d in (self.root, self.processing_dir, self.processed_dir, self.failed_dir):
            os.makedirs(d, exist_ok=True)

    @staticmethod
    def _is_batch_name(name: str) -> bool:
        return (name.endswith(".json") and not name.endswith(RESULT_SUFFIX)
                and not name.startswith("."))

    @staticmethod
    def _unique(directory: str, name: str) -> str:
        dest = os.path.join(directory, name)
        stem, ext = os.path.splitext(name)
        n = 0
        while os.path.exists(dest) or os.path.exists(sidecar_path(dest)):
            n += 1
            dest = os.path.join(directory, f"{stem}.{int(time.time() * 1000)}-{n}{ext}")
        return dest

    def pending(self) -> List[str]:
        """Pending batch names, oldest first."""
        entries = []
        for name in os.listdir(self.root):
            if not self._is_batch_name(name):
                continue
            path = os.path.join(self.root, name)
            try:
                if not os.path.isfile(path):
                    continue
                entries.append((os.stat(path).st_mtime, name))
            except FileNotFoundError:
                continue
        return [name for _, name in sorted(entries)]

    def claim(self) -> Optional[Message]:
        for name in self.pending():
            src = os.path.join(self.root, name)
            staged = self._unique(self.processing_dir, name)
            try:
                os.rename(src, staged)
            except OSError as e:
                # gone, or still held by its producer; retried next tick
                log.debug("Could not claim %s: %s", name, e)
                continue

            msg = Message(id=os.path.splitext(name)[0], body=b"", source=name, path=staged)
            try:
                with open(staged, "rb") as f:
                    msg.body = f.read()
            except OSError as e:
                msg.read_error = str(e)
            log.info("Claimed %s", name)
            return msg
        return None

    def _file(self, message: Message, payload: Dict[str, Any], ok: bool) -> str:
        dest = self._unique(self.processed_dir if ok else self.failed_dir,
                            message.source or os.path.basename(message.path))
        os.replace(message.path, dest)
        _atomic_write_json(sidecar_path(dest), payload)
        log.info("Filed %s -> %s", message.source, os.path.relpath(dest, self.root))
        return dest

    def ack(self, message: Message, outcome) -> str:
        return self._file(message, outcome.to_dict(), outcome.succeeded)

    def recover(self) -> int:
        """Move batches left in processing/ by a crashed run into failed/.

        They are not re-run: some of their commands may already be applied.
        """
        count = 0
        for name in sorted(os.listdir(self.processing_dir)):
            if not self._is_batch_name(name):
                continue
            msg = Message(id=os.path.splitext(name)[0], body=b"", source=name,
                          path=os.path.join(self.processing_dir, name))
            payload = {
                "batchId": msg.id,
                "source": name,
                "verdict": ErrorKind.INTERRUPTED.value,
                "exitCode": 2,
                "error": (f"{ErrorKind.INTERRUPTED.value}: the host stopped while this batch was "
                          "running; commands before the interruption may have been applied"),
                "diagnostics": [],
                "result": None,
                "finished": time.time(),
            }
            self._file(msg, payload, ok=False)
            log.warning("Recovered interrupted batch %s into failed/", name)
            count += 1
        return count

    # --- producer side ---
    def submit(self, data: Union[bytes, str], name: Optional[str] = None) -> str:
        """Drop a batch into the queue atomically; returns the file name used."""
        if isinstance(data, str):
            data = data.encode("utf-8")
        name = name or f"batch-{uuid.uuid4().hex[:12]}.json"
        if not name.endswith(".json"):
            name += ".json"
        final = self._unique(self.root, name)
        tmp = os.path.join(self.root, f".{os.path.basename(final)}.tmp")
        with open(tmp, "wb") as f:
            f.write(data)
        os.replace(tmp, final)
        return os.path.basename(final)

    def find_result(self, name: str) -> Optional[Dict[str, Any]]:
        for d in (self.processed_dir, self.failed_dir):
            side = sidecar_path(os.path.join(d, name))
            if os.path.isfile(side):
                with open(side, "r", encoding="utf-8") as f:
                    return json.load(f)
        return None
