"""
Online accumulators for numerically stable statistics.
"""

import math
from dataclasses import dataclass
from typing import Optional


@dataclass
class RunningStats:
    """
    Welford's online mean and variance.

    ``m2`` is the running sum of squared deviations from the mean. It is
    updated from the deviation before and after the mean moves, which
    keeps it non-negative and avoids the cancellation a sum-of-squares
    formula suffers on large-magnitude inputs.
    """
    count: int = 0
    mean: float = 0.0
    m2: float = 0.0

    def update(self, x: float) -> None:
        self.count += 1
        delta = x - self.mean
        self.mean += delta / self.count
        delta2 = x - self.mean
        self.m2 += delta * delta2

    @property
    def variance(self) -> Optional[float]:
        """Population variance, or None before the first update."""
        if self.count == 0:
            return None
        return self.m2 / self.count

    @property
    def std_dev(self) -> Optional[float]:
        variance = self.variance
        return None if variance is None else math.sqrt(variance)


@dataclass
class RunningCovariance:
    """Welford-style co-moments of paired values (x, y)."""
    count: int = 0
    mean_x: float = 0.0
    mean_y: float = 0.0
    c_xy: float = 0.0
    m2_x: float = 0.0
    m2_y: float = 0.0

    def update(self, x: float, y: float) -> None:
        self.count += 1
        dx = x - self.mean_x
        dy = y - self.mean_y
        self.mean_x += dx / self.count
        self.mean_y += dy / self.count
        self.c_xy += dx * (y - self.mean_y)
        self.m2_x += dx * (x - self.mean_x)
        self.m2_y += dy * (y - self.mean_y)

    @property
    def covariance(self) -> Optional[float]:
        if self.count == 0:
            return None
        return self.c_xy / self.count

    @property
    def correlation(self) -> Optional[float]:
        """Pearson correlation; None when either side has zero variance."""
        if self.count == 0 or self.m2_x <= 0 or self.m2_y <= 0:
            return None
        r = self.c_xy / math.sqrt(self.m2_x * self.m2_y)
        # Rounding can push |r| a hair past 1
        return max(-1.0, min(1.0, r))
