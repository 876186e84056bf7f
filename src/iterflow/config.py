"""
Configuration management for iterflow operations.
"""

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Optional

import psutil

from iterflow.errors import validation_error


class EmptyPolicy(Enum):
    """What statistical terminals do with an empty sequence."""
    RAISE = "raise"
    RETURN_NONE = "return_none"


class NanPolicy(Enum):
    """How order statistics treat NaN values."""
    OMIT = "omit"
    PROPAGATE = "propagate"


@dataclass
class IterFlowConfig:
    """Global configuration for iterflow operations."""

    # Statistics
    empty_policy: EmptyPolicy = EmptyPolicy.RAISE
    nan_policy: NanPolicy = NanPolicy.OMIT

    # Parallel execution
    default_concurrency: int = 10
    cancel_abandoned_tasks: bool = True

    # Buffering
    max_window_size: int = 1_000_000
    max_buffer_size: Optional[int] = None  # elements; None means unbounded
    memory_limit: int = field(default_factory=lambda: int(psutil.virtual_memory().total * 0.8))
    memory_check_interval: int = 10_000  # elements between pressure checks

    _instance = None

    @classmethod
    def get_instance(cls) -> 'IterFlowConfig':
        """Get singleton instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def set_defaults(cls, **kwargs: Any) -> None:
        """Set default configuration values on the shared instance."""
        instance = cls.get_instance()
        known = {f.name: f for f in fields(instance)}
        for key, value in kwargs.items():
            if key not in known:
                raise validation_error(
                    f"Unknown configuration option '{key}'",
                    "set_defaults", option=key,
                )
            setattr(instance, key, _coerce(key, value))

    @classmethod
    def reset(cls) -> None:
        """Restore every option to its default value."""
        fresh = cls()
        instance = cls.get_instance()
        for f in fields(fresh):
            setattr(instance, f.name, getattr(fresh, f.name))


def _coerce(key: str, value: Any) -> Any:
    if key == "empty_policy" and not isinstance(value, EmptyPolicy):
        return _enum_value(EmptyPolicy, key, value)
    if key == "nan_policy" and not isinstance(value, NanPolicy):
        return _enum_value(NanPolicy, key, value)
    return value


def _enum_value(enum_cls, key: str, value: Any, operation: str = "set_defaults") -> Enum:
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        choices = [member.value for member in enum_cls]
        raise validation_error(
            f"{key} must be one of {choices}, got {value!r}",
            operation, option=key, value=value,
        ) from None


def resolve_empty_policy(on_empty: Any, operation: str) -> EmptyPolicy:
    """Per-call empty policy, falling back to the configured default."""
    if on_empty is None:
        return config.empty_policy
    if isinstance(on_empty, EmptyPolicy):
        return on_empty
    return _enum_value(EmptyPolicy, "on_empty", on_empty, operation)


def resolve_nan_policy(nan_policy: Any, operation: str) -> NanPolicy:
    """Per-call NaN policy, falling back to the configured default."""
    if nan_policy is None:
        return config.nan_policy
    if isinstance(nan_policy, NanPolicy):
        return nan_policy
    return _enum_value(NanPolicy, "nan_policy", nan_policy, operation)


# Global configuration instance
config = IterFlowConfig.get_instance()
