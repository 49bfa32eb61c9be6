# sbq_core/queue/rpc.py
"""
XML-RPC transport: an alternative to the drop directory behind the same
claim/ack interface. The server thread only enqueues; batches still run on
whichever thread calls claim() (the host's main thread).
"""
import logging
import queue
import socket
import threading
import uuid
from typing import Any, Dict, Optional
from xmlrpc.server import SimpleXMLRPCRequestHandler, SimpleXMLRPCServer

from .base import Message

log = logging.getLogger(__name__)


class _RequestHandler(SimpleXMLRPCRequestHandler):
    rpc_paths = ("/RPC2",)


def _port_in_use(host, port):
    """Check if a port is already in use."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.settimeout(0.2)
        return s.connect_ex((host, port)) == 0


class RpcQueue:
    def __init__(self, host: str = "127.0.0.1", port: int = 8766):
        self.host = host
        self.port = port
        self._pending: "queue.Queue[Message]" = queue.Queue()
        self._results: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()
        self._server: Optional[SimpleXMLRPCServer] = None
        self._thread: Optional[threading.Thread] = None

    # --- RPC methods (server thread) ---
    def submit(self, body: str, name: str = "") -> str:
        batch_id = uuid.uuid4().hex[:12]
        self._pending.put(Message(id=batch_id, body=body.encode("utf-8"), source=name or f"rpc:{batch_id}"))
        log.info("RPC batch %s queued", batch_id)
        return batch_id

    def result(self, batch_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            return self._results.get(batch_id)

    def pending_count(self) -> int:
        return self._pending.qsize()

    # --- consumer side (host thread) ---
    def claim(self) -> Optional[Message]:
        try:
            return self._pending.get_nowait()
        except queue.Empty:
            return None

    def ack(self, message: Message, outcome) -> str:
        with self._lock:
            self._results[message.id] = outcome.to_dict()
        return message.id

    def recover(self) -> int:
        return 0  # nothing survives a restart

    # --- server lifecycle ---
    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> bool:
        if self.running:
            return True
        if self.port and _port_in_use(self.host, self.port):
            log.error("Port %s already in use; RPC transport not started", self.port)
            return False
        server = SimpleXMLRPCServer((self.host, self.port), requestHandler=_RequestHandler,
                                    allow_none=True, logRequests=False)
        server.register_introspection_functions()
        server.register_function(lambda: "pong", "ping")
        server.register_function(self.submit, "submit")
        server.register_function(self.result, "result")
        server.register_function(self.pending_count, "pending_count")
        self.port = server.server_address[1]
        self._server = server
        self._thread = threading.Thread(target=server.serve_forever, daemon=True)
        self._thread.start()
        log.info("RPC transport listening on %s:%s", self.host, self.port)
        return True

    def stop(self) -> None:
        if self._server is None:
            return
        self._server.shutdown()
        self._server.server_close()
        self._server = None
        self._thread = None
        log.info("RPC transport stopped")
