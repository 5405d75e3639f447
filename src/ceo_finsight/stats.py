# CEO FinSight - Financial computation core for executive dashboards
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Descriptive statistics and simple regression helpers.

These are plain numeric functions with no financial knowledge. They accept
any sequence of numbers and always return floats (or lists of floats).
Empty inputs never raise: they yield 0.0 (or an empty list), which is the
convention the indicator and growth layers rely on.

Dispersion measures (variance, std_dev, coefficient_of_variation) are
population measures. Use sample_std_dev when an n-1 estimator is needed.
"""

import math
from collections.abc import Sequence
from dataclasses import dataclass


@dataclass(frozen=True)
class Quartiles:
    """First, second (median) and third quartiles."""

    q1: float
    q2: float
    q3: float


@dataclass(frozen=True)
class Outliers:
    """
    Values falling outside the 1.5 x IQR fences.

    Attributes:
        lower: Values below Q1 - 1.5 * IQR, in input order.
        upper: Values above Q3 + 1.5 * IQR, in input order.
        indices: (index, value, side) triples, side being "lower" or "upper".
    """

    lower: tuple[float, ...]
    upper: tuple[float, ...]
    indices: tuple[tuple[int, float, str], ...]


@dataclass(frozen=True)
class LinearFit:
    """
    Ordinary least-squares fit y = intercept + slope * x.

    Attributes:
        intercept: Value of the fitted line at x = 0.
        slope: Change in y per unit of x.
        r_squared: Coefficient of determination (square of Pearson's r).
    """

    intercept: float
    slope: float
    r_squared: float

    def predict(self, x: float) -> float:
        """Extrapolate the fitted line at x."""
        return self.intercept + self.slope * x


def _floats(values: Sequence[float]) -> list[float]:
    return [float(v) for v in values]


# ---------------------------------------------------------------------------
# Central tendency
# ---------------------------------------------------------------------------


def total(values: Sequence[float]) -> float:
    # math.fsum keeps the result independent of summation order artifacts.
    return math.fsum(_floats(values))


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean, 0.0 for an empty sequence."""
    data = _floats(values)
    if not data:
        return 0.0
    return math.fsum(data) / len(data)


def median(values: Sequence[float]) -> float:
    """Median, averaging the two middle values for even lengths."""
    data = sorted(_floats(values))
    if not data:
        return 0.0
    middle = len(data) // 2
    if len(data) % 2 == 0:
        return (data[middle - 1] + data[middle]) / 2
    return data[middle]


def mode(values: Sequence[float]) -> float:
    """
    Most frequent value.

    Ties are resolved in favour of the value seen first, so the result is
    stable for a given input order.
    """
    data = _floats(values)
    if not data:
        return 0.0

    counts: dict[float, int] = {}
    for v in data:
        counts[v] = counts.get(v, 0) + 1

    best_value = data[0]
    best_count = 0
    for v, count in counts.items():
        if count > best_count:
            best_value, best_count = v, count
    return best_value


def minimum(values: Sequence[float]) -> float:
    data = _floats(values)
    return min(data) if data else 0.0


def maximum(values: Sequence[float]) -> float:
    data = _floats(values)
    return max(data) if data else 0.0


def value_range(values: Sequence[float]) -> float:
    """Amplitude (max - min)."""
    data = _floats(values)
    if not data:
        return 0.0
    return max(data) - min(data)


# ---------------------------------------------------------------------------
# Dispersion
# ---------------------------------------------------------------------------


def variance(values: Sequence[float]) -> float:
    """Population variance."""
    data = _floats(values)
    if not data:
        return 0.0
    m = mean(data)
    return math.fsum((v - m) ** 2 for v in data) / len(data)


def std_dev(values: Sequence[float]) -> float:
    """Population standard deviation."""
    return math.sqrt(variance(values))


def sample_std_dev(values: Sequence[float]) -> float:
    """Sample standard deviation (n - 1 denominator), 0.0 below two values."""
    data = _floats(values)
    if len(data) <= 1:
        return 0.0
    m = mean(data)
    return math.sqrt(math.fsum((v - m) ** 2 for v in data) / (len(data) - 1))


def coefficient_of_variation(values: Sequence[float]) -> float:
    """
    Coefficient of variation in percent: std_dev / mean * 100.

    Returns 0.0 for an empty sequence or a zero mean, since a relative
    dispersion around zero has no meaning.
    """
    data = _floats(values)
    if not data:
        return 0.0
    m = mean(data)
    if m == 0:
        return 0.0
    return std_dev(data) / m * 100


# ---------------------------------------------------------------------------
# Quantiles and outliers
# ---------------------------------------------------------------------------


def percentile(values: Sequence[float], p: float) -> float:
    """
    Percentile using linear interpolation between closest ranks.

    Args:
        values: Input numbers, in any order.
        p: Percentile in [0, 100]. Out-of-range percentiles return 0.0.
    """
    data = sorted(_floats(values))
    if not data or p < 0 or p > 100:
        return 0.0

    position = p / 100 * (len(data) - 1)
    lower = math.floor(position)
    upper = math.ceil(position)
    if lower == upper:
        return data[lower]
    weight = position - lower
    return data[lower] * (1 - weight) + data[upper] * weight


def quartiles(values: Sequence[float]) -> Quartiles:
    return Quartiles(
        q1=percentile(values, 25),
        q2=percentile(values, 50),
        q3=percentile(values, 75),
    )


def iqr(values: Sequence[float]) -> float:
    """Interquartile range (Q3 - Q1)."""
    q = quartiles(values)
    return q.q3 - q.q1


def find_outliers(values: Sequence[float]) -> Outliers:
    """Identify outliers with the 1.5 x IQR rule."""
    data = _floats(values)
    if not data:
        return Outliers(lower=(), upper=(), indices=())

    q = quartiles(data)
    spread = q.q3 - q.q1
    low_fence = q.q1 - 1.5 * spread
    high_fence = q.q3 + 1.5 * spread

    lower: list[float] = []
    upper: list[float] = []
    indices: list[tuple[int, float, str]] = []
    for i, v in enumerate(data):
        if v < low_fence:
            lower.append(v)
            indices.append((i, v, "lower"))
        elif v > high_fence:
            upper.append(v)
            indices.append((i, v, "upper"))

    return Outliers(lower=tuple(lower), upper=tuple(upper), indices=tuple(indices))


def z_scores(values: Sequence[float]) -> list[float]:
    data = _floats(values)
    if not data:
        return []
    m = mean(data)
    sd = std_dev(data)
    if sd == 0:
        return [0.0 for _ in data]
    return [(v - m) / sd for v in data]


# ---------------------------------------------------------------------------
# Correlation and regression
# ---------------------------------------------------------------------------


def correlation(x: Sequence[float], y: Sequence[float]) -> float:
    """Pearson correlation coefficient, 0.0 when undefined."""
    xs = _floats(x)
    ys = _floats(y)
    if len(xs) != len(ys) or not xs:
        return 0.0

    mx = mean(xs)
    my = mean(ys)
    num = math.fsum((a - mx) * (b - my) for a, b in zip(xs, ys))
    den_x = math.fsum((a - mx) ** 2 for a in xs)
    den_y = math.fsum((b - my) ** 2 for b in ys)
    den = math.sqrt(den_x * den_y)
    if den == 0:
        return 0.0
    return num / den


def linear_regression(x: Sequence[float], y: Sequence[float]) -> LinearFit:
    """
    Fit y = intercept + slope * x by ordinary least squares.

    A mismatched or empty input yields a zero fit. When all x values are
    identical the slope is 0 and the intercept is the mean of y.
    """
    xs = _floats(x)
    ys = _floats(y)
    if len(xs) != len(ys) or not xs:
        return LinearFit(intercept=0.0, slope=0.0, r_squared=0.0)

    mx = mean(xs)
    my = mean(ys)
    num = math.fsum((a - mx) * (b - my) for a, b in zip(xs, ys))
    den = math.fsum((a - mx) ** 2 for a in xs)

    slope = 0.0 if den == 0 else num / den
    intercept = my - slope * mx
    r = correlation(xs, ys)
    return LinearFit(intercept=intercept, slope=slope, r_squared=r * r)


# ---------------------------------------------------------------------------
# Growth and smoothing
# ---------------------------------------------------------------------------


def growth_rate(initial: float, final: float) -> float:
    """Percentage change from initial to final, 0.0 when initial is 0."""
    if initial == 0:
        return 0.0
    return (final - initial) / initial * 100


def average_growth_rate(values: Sequence[float]) -> float:
    """Mean of the step-by-step growth rates."""
    data = _floats(values)
    if len(data) < 2:
        return 0.0
    rates = [growth_rate(prev, cur) for prev, cur in zip(data, data[1:])]
    return mean(rates)


def simple_moving_average(values: Sequence[float], window: int) -> list[float]:
    data = _floats(values)
    if window <= 0 or len(data) < window:
        return []
    return [mean(data[i - window + 1 : i + 1]) for i in range(window - 1, len(data))]
