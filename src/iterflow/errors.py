"""
Error taxonomy for iterflow operations.

Every failure raised by the library is an ``IterFlowError`` tagged with an
``ErrorKind``. The operation name and a small context payload (offending
index, value, parameter) travel with the error for diagnostics.
"""

import json
from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(Enum):
    """Kinds of failure."""
    VALIDATION = "validation"
    EMPTY_SEQUENCE = "empty_sequence"
    INDEX_OUT_OF_BOUNDS = "index_out_of_bounds"
    TYPE_CONVERSION = "type_conversion"
    OPERATION = "operation"


class IterFlowError(Exception):
    """Base error for all iterflow failures."""

    def __init__(self,
                 kind: ErrorKind,
                 message: str,
                 operation: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None,
                 cause: Optional[BaseException] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.operation = operation
        self.context = context or {}
        self.cause = cause

    def __repr__(self) -> str:
        return (f"IterFlowError(kind={self.kind.name}, message={self.message!r}, "
                f"operation={self.operation!r})")

    def to_detailed_string(self) -> str:
        """Render the error with its operation, context and cause."""
        lines = [f"{self.kind.name}: {self.message}"]

        if self.operation:
            lines.append(f"  Operation: {self.operation}")

        if self.context:
            lines.append("  Context:")
            for key, value in self.context.items():
                lines.append(f"    {key}: {_render(value)}")

        if self.cause is not None:
            lines.append(f"  Caused by: {type(self.cause).__name__}: {self.cause}")

        return "\n".join(lines)


def _render(value: Any) -> str:
    try:
        return json.dumps(value)
    except (TypeError, ValueError):
        return repr(value)


def validation_error(message: str,
                     operation: Optional[str] = None,
                     **context: Any) -> IterFlowError:
    return IterFlowError(ErrorKind.VALIDATION, message, operation, context)


def empty_sequence_error(operation: str) -> IterFlowError:
    return IterFlowError(
        ErrorKind.EMPTY_SEQUENCE,
        f"Operation '{operation}' requires a non-empty sequence",
        operation,
    )


def index_out_of_bounds(index: int,
                        size: Optional[int] = None,
                        operation: Optional[str] = None) -> IterFlowError:
    size_info = f" (size: {size})" if size is not None else ""
    return IterFlowError(
        ErrorKind.INDEX_OUT_OF_BOUNDS,
        f"Index {index} is out of bounds{size_info}",
        operation,
        {"index": index, "size": size},
    )


def type_conversion_error(value: Any,
                          expected_type: str,
                          operation: Optional[str] = None) -> IterFlowError:
    return IterFlowError(
        ErrorKind.TYPE_CONVERSION,
        f"Cannot convert value {value!r} to type {expected_type}",
        operation,
        {"value": value, "expected_type": expected_type},
    )


def operation_error(operation: str,
                    cause: BaseException,
                    **context: Any) -> IterFlowError:
    return IterFlowError(
        ErrorKind.OPERATION,
        f"Operation '{operation}' failed: {cause}",
        operation,
        context,
        cause,
    )
