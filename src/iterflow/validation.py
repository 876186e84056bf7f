"""
Eager argument validation.

All checks run when a stage is constructed, before anything is pulled.
"""

import math
import numbers
from typing import Any

from iterflow.errors import type_conversion_error, validation_error


def _is_integer(value: Any) -> bool:
    return isinstance(value, numbers.Integral) and not isinstance(value, bool)


def _is_real(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def validate_positive_integer(value: Any, param_name: str, operation: str) -> None:
    if not _is_integer(value):
        raise validation_error(
            f"{param_name} must be an integer, got {value!r}",
            operation, param_name=param_name, value=value,
        )
    if value < 1:
        raise validation_error(
            f"{param_name} must be at least 1, got {value}",
            operation, param_name=param_name, value=value,
        )


def validate_non_negative_integer(value: Any, param_name: str, operation: str) -> None:
    if not _is_integer(value):
        raise validation_error(
            f"{param_name} must be an integer, got {value!r}",
            operation, param_name=param_name, value=value,
        )
    if value < 0:
        raise validation_error(
            f"{param_name} must be non-negative, got {value}",
            operation, param_name=param_name, value=value,
        )


def validate_finite_number(value: Any, param_name: str, operation: str) -> None:
    if not _is_real(value) or not math.isfinite(value):
        raise validation_error(
            f"{param_name} must be a finite number, got {value!r}",
            operation, param_name=param_name, value=value,
        )


def validate_range(value: Any, low: float, high: float,
                   param_name: str, operation: str) -> None:
    """Check ``low <= value <= high``; NaN is rejected."""
    validate_finite_number(value, param_name, operation)
    if value < low or value > high:
        raise validation_error(
            f"{param_name} must be between {low} and {high}, got {value}",
            operation, param_name=param_name, value=value, min=low, max=high,
        )


def validate_non_zero(value: Any, param_name: str, operation: str) -> None:
    validate_finite_number(value, param_name, operation)
    if value == 0:
        raise validation_error(
            f"{param_name} cannot be zero", operation,
            param_name=param_name, value=value,
        )


def validate_smoothing_factor(alpha: Any, operation: str = "ewma") -> None:
    """Alpha must be finite and in (0, 1]."""
    validate_finite_number(alpha, "alpha", operation)
    if not 0 < alpha <= 1:
        raise validation_error(
            f"alpha must be in range (0, 1], got {alpha}",
            operation, param_name="alpha", value=alpha,
        )


def validate_callable(value: Any, param_name: str, operation: str) -> None:
    if not callable(value):
        raise validation_error(
            f"{param_name} must be callable, got {type(value).__name__}",
            operation, param_name=param_name, type=type(value).__name__,
        )


def validate_window_size(size: Any, max_size: int, operation: str) -> None:
    validate_positive_integer(size, "size", operation)
    if size > max_size:
        raise validation_error(
            f"Window size {size} exceeds maximum allowed size {max_size}. "
            f"Consider using smaller windows or streaming operations.",
            operation, size=size, max_size=max_size,
        )


def to_number(value: Any, operation: str) -> float:
    """Coerce a value for numeric folding.

    Ints and floats pass through untouched so integer sums stay exact.
    """
    if _is_real(value) or isinstance(value, bool):
        return value
    try:
        return float(value)
    except (TypeError, ValueError):
        raise type_conversion_error(value, "number", operation) from None
