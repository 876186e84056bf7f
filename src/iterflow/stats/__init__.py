"""Numerically stable statistics, terminal and streaming."""

from iterflow.stats.accumulators import RunningStats, RunningCovariance
from iterflow.stats.summary import (
    sum,
    mean,
    min,
    max,
    span,
    product,
    variance,
    std_dev,
    median,
    percentile,
    quartiles,
    mode,
    covariance,
    correlation,
)
from iterflow.stats.streaming import (
    EwmaOperator,
    StreamingMeanOperator,
    StreamingVarianceOperator,
    StreamingCovarianceOperator,
    StreamingCorrelationOperator,
    StreamingZScoreOperator,
    WindowedExtremumOperator,
)

__all__ = [
    "RunningStats",
    "RunningCovariance",
    "sum",
    "mean",
    "min",
    "max",
    "span",
    "product",
    "variance",
    "std_dev",
    "median",
    "percentile",
    "quartiles",
    "mode",
    "covariance",
    "correlation",
    "EwmaOperator",
    "StreamingMeanOperator",
    "StreamingVarianceOperator",
    "StreamingCovarianceOperator",
    "StreamingCorrelationOperator",
    "StreamingZScoreOperator",
    "WindowedExtremumOperator",
]
