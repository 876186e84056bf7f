"""Merge and selection algorithms."""

from iterflow.algorithms.merge import merge
from iterflow.algorithms.selection import (
    quickselect,
    median_of,
    percentile_of,
    quartiles_of,
)

__all__ = [
    "merge",
    "quickselect",
    "median_of",
    "percentile_of",
    "quartiles_of",
]
