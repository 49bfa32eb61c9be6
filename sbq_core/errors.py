# sbq_core/errors.py
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorKind(str, Enum):
    MALFORMED_INPUT = "MalformedInput"
    UNKNOWN_ACTION = "UnknownAction"
    REFERENCE_NOT_FOUND = "ReferenceNotFound"
    HOST_PRIMITIVE_FAILURE = "HostPrimitiveFailure"
    DUPLICATE_TARGET = "DuplicateTarget"
    INTERRUPTED = "Interrupted"


@dataclass(frozen=True)
class Diagnostic:
    """One problem found while parsing/validating a batch file.

    index is the command position (None for top-level problems).
    """
    kind: ErrorKind
    message: str
    index: Optional[int] = None
    action: Optional[str] = None
    field: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["kind"] = self.kind.value
        return d

    def __str__(self) -> str:
        where = "batch" if self.index is None else f"commands[{self.index}]"
        if self.field:
            where += f".{self.field}"
        return f"{where}: {self.kind.value}: {self.message}"


class BatchError(Exception):
    kind = ErrorKind.HOST_PRIMITIVE_FAILURE

    def __init__(self, message: str, kind: Optional[ErrorKind] = None):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind


class MalformedInput(BatchError):
    kind = ErrorKind.MALFORMED_INPUT


class UnknownAction(BatchError):
    kind = ErrorKind.UNKNOWN_ACTION


class ReferenceNotFound(BatchError):
    kind = ErrorKind.REFERENCE_NOT_FOUND


class HostPrimitiveFailure(BatchError):
    kind = ErrorKind.HOST_PRIMITIVE_FAILURE


class DuplicateTarget(BatchError):
    kind = ErrorKind.DUPLICATE_TARGET


class BatchValidationError(MalformedInput):
    """Raised by the parser with every diagnostic collected in one pass."""

    def __init__(self, diagnostics: List[Diagnostic]):
        self.diagnostics = list(diagnostics)
        summary = "; ".join(str(d) for d in self.diagnostics[:3])
        if len(self.diagnostics) > 3:
            summary += f" (+{len(self.diagnostics) - 3} more)"
        super().__init__(f"{len(self.diagnostics)} problem(s): {summary}")
