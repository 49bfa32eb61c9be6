# sbq_core/queue/base.py
import time
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol


@dataclass
class Message:
    """One claimed batch, owned by the watcher until it is acked."""
    id: str
    body: bytes
    source: Optional[str] = None       # original file name / submitter label
    path: Optional[str] = None         # staging location for file transports
    read_error: Optional[str] = None
    claimed_at: float = field(default_factory=time.time)


class MessageQueue(Protocol):
    def claim(self) -> Optional[Message]: ...          # None when nothing is waiting
    def ack(self, message: Message, outcome: Any) -> Any: ...
    def recover(self) -> int: ...                      # leftovers from a crashed run
