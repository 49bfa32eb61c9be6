from ..pipeline import make_pipeline
from .base import Message, MessageQueue
from .files import DropDirectoryQueue
from .rpc import RpcQueue
from .watcher import QueueWatcher


def make_queue(cfg):
    q = cfg.get("queue", {})
    if q.get("transport", "files") == "rpc":
        return RpcQueue(q.get("rpc_host", "127.0.0.1"), int(q.get("rpc_port", 8766)))
    return DropDirectoryQueue(q["dir"])


def make_watcher(cfg, host=None, on_outcome=None):
    return QueueWatcher(make_queue(cfg), make_pipeline(cfg, host), cfg, on_outcome=on_outcome)


__all__ = ["Message", "MessageQueue", "DropDirectoryQueue", "RpcQueue", "QueueWatcher",
           "make_queue", "make_watcher"]
