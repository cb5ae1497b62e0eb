"""
Base Contracts and Shared Types

These are the foundational types used across all layers.
Errors and results are DATA, not exceptions: every operation that the
editor exposes returns an OperationResult whose error (if any) can be
logged, shown to the user and inspected by tests.

ERROR TAXONOMY:
===============
- not-found: referenced chart/node absent in the store
- persistence failure: store/network error during a write
- validation rejection: invalid structural operation, rejected before any
  mutation or persistence call
- malformed import input: individual outline lines skipped, never fatal
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Tuple, Union
from enum import Enum, auto


# Node identifiers are integers for nodes created through the editor and
# outline codes ("1.2.3") for nodes created through outline import.
NodeId = Union[int, str]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def normalize_node_id(value: Any) -> NodeId:
    """
    Coerce a stored/transported identifier back to its canonical form.

    Document stores key documents by string; integer-looking keys are
    turned back into ints so that ``parentId`` references compare equal.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid node id: {value!r}")
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if not text:
        raise ValueError("Node id must not be empty")
    if text.isdigit():
        return int(text)
    return text


def numeric_id(value: NodeId) -> Optional[int]:
    """Integer value of an id when it is numeric-looking, else None."""
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return None


# =============================================================================
# ERROR STATES (Explicit, never silent)
# =============================================================================

class ErrorCode(Enum):
    """
    Explicit error codes for deterministic error handling.
    """
    # Not-found
    CHART_NOT_FOUND = auto()
    NODE_NOT_FOUND = auto()

    # Persistence
    PERSISTENCE_FAILURE = auto()

    # Validation rejection
    ROOT_HAS_CHILDREN = auto()
    REPARENT_ONTO_SELF = auto()
    REPARENT_ONTO_DESCENDANT = auto()
    REPARENT_ONTO_CURRENT_PARENT = auto()
    NO_DROP_TARGET = auto()
    EMPTY_IMPORT = auto()
    IMPORT_NOT_CONFIRMED = auto()
    NO_ROOT = auto()


@dataclass(frozen=True)
class Error:
    """
    Immutable error representation with full context.
    """
    code: ErrorCode
    message: str
    timestamp: datetime = field(default_factory=utc_now)
    context: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    def with_context(self, key: str, value: Any) -> Error:
        """Return new Error with additional context (immutable)."""
        return Error(
            code=self.code,
            message=self.message,
            timestamp=self.timestamp,
            context=self.context + ((key, str(value)),)
        )

    @property
    def is_validation(self) -> bool:
        return self.code in _VALIDATION_CODES

    @property
    def is_not_found(self) -> bool:
        return self.code in (ErrorCode.CHART_NOT_FOUND, ErrorCode.NODE_NOT_FOUND)


_VALIDATION_CODES = frozenset({
    ErrorCode.ROOT_HAS_CHILDREN,
    ErrorCode.REPARENT_ONTO_SELF,
    ErrorCode.REPARENT_ONTO_DESCENDANT,
    ErrorCode.REPARENT_ONTO_CURRENT_PARENT,
    ErrorCode.NO_DROP_TARGET,
    ErrorCode.EMPTY_IMPORT,
    ErrorCode.IMPORT_NOT_CONFIRMED,
    ErrorCode.NO_ROOT,
})


@dataclass(frozen=True)
class OperationResult:
    """
    Result of an editor operation.
    Either contains a value OR an error, never both.

    ``message`` is a human-readable summary suitable for a toast.
    """
    value: Any = None
    error: Optional[Error] = None
    message: str = ""

    @property
    def is_success(self) -> bool:
        return self.error is None

    @property
    def is_failure(self) -> bool:
        return self.error is not None

    @staticmethod
    def success(value: Any = None, message: str = "") -> OperationResult:
        return OperationResult(value=value, error=None, message=message)

    @staticmethod
    def failure(error: Error) -> OperationResult:
        return OperationResult(value=None, error=error, message=error.message)

    @staticmethod
    def reject(code: ErrorCode, message: str, **context: Any) -> OperationResult:
        error = Error(code=code, message=message)
        for key, value in context.items():
            error = error.with_context(key, value)
        return OperationResult.failure(error)
