"""
Statistical utility functions for timing analysis.

Gaussian likelihood ratios for the sequential test, plus summary statistics
used when reporting how well the timing channel separates valid from invalid
padding.
"""

from dataclasses import dataclass
from typing import Iterable, List, Tuple

import numpy as np
from scipy import stats


@dataclass(frozen=True)
class LatencySummary:
    """Summary statistics for a set of latency samples (seconds)."""
    count: int
    mean: float
    median: float
    std_dev: float


def gaussian_log_likelihood_ratio(
    sample: float,
    mean_valid: float,
    mean_invalid: float,
    sigma: float
) -> float:
    """
    Log-odds that a latency came from the valid-padding distribution.

    Both hypotheses are normal with a shared standard deviation, so this
    equals ((t - mu_w)^2 - (t - mu_r)^2) / (2 sigma^2).

    Args:
        sample: Observed latency
        mean_valid: Mean latency when padding is valid (mu_r)
        mean_invalid: Mean latency when padding is invalid (mu_w)
        sigma: Shared standard deviation

    Returns:
        ln(P(sample | valid) / P(sample | invalid))

    Example:
        >>> round(gaussian_log_likelihood_ratio(2.0, 2.0, 0.0, 1.0), 6)
        2.0
    """
    return float(
        stats.norm.logpdf(sample, loc=mean_valid, scale=sigma)
        - stats.norm.logpdf(sample, loc=mean_invalid, scale=sigma)
    )


def sequential_log_likelihood(
    samples: Iterable[float],
    mean_valid: float,
    mean_invalid: float,
    sigma: float
) -> float:
    """Accumulated log-likelihood ratio over a sequence of latencies."""
    return sum(
        gaussian_log_likelihood_ratio(t, mean_valid, mean_invalid, sigma)
        for t in samples
    )


def summarize_latencies(data: List[float]) -> LatencySummary:
    """
    Calculate count, mean, median and sample standard deviation.

    Args:
        data: Latency samples in seconds

    Returns:
        LatencySummary (all zeros for an empty list)
    """
    if not data:
        return LatencySummary(0, 0.0, 0.0, 0.0)

    values = np.asarray(data, dtype=float)
    std_dev = float(np.std(values, ddof=1)) if len(values) > 1 else 0.0

    return LatencySummary(
        count=len(values),
        mean=float(np.mean(values)),
        median=float(np.median(values)),
        std_dev=std_dev
    )


def calculate_confidence_interval(
    data: List[float],
    confidence: float = 0.95
) -> Tuple[float, float]:
    """
    Calculate confidence interval for the mean.

    Uses t-distribution for small sample sizes.

    Args:
        data: List of numerical values
        confidence: Confidence level (0-1)

    Returns:
        Tuple of (lower_bound, upper_bound)
    """
    if len(data) < 2:
        return (0.0, 0.0)

    n = len(data)
    mean = float(np.mean(data))
    std_err = float(stats.sem(data))

    t_value = stats.t.ppf((1 + confidence) / 2, n - 1)
    margin_of_error = t_value * std_err

    return (mean - margin_of_error, mean + margin_of_error)


def is_significantly_different(
    data1: List[float],
    data2: List[float],
    alpha: float = 0.05
) -> Tuple[bool, float]:
    """
    Test if two datasets are significantly different using t-test.

    Args:
        data1: First dataset
        data2: Second dataset
        alpha: Significance level (typically 0.05)

    Returns:
        Tuple of (is_different, p_value)

    Example:
        >>> fast = [0.1, 0.11, 0.09, 0.1]
        >>> slow = [0.2, 0.21, 0.19, 0.2]
        >>> is_different, p = is_significantly_different(fast, slow)
        >>> is_different
        True
    """
    if len(data1) < 2 or len(data2) < 2:
        return False, 1.0

    # Zero spread in both groups leaves the t statistic undefined
    if np.var(data1) == 0 and np.var(data2) == 0:
        return False, 1.0

    # Welch's t-test (doesn't assume equal variances)
    statistic, p_value = stats.ttest_ind(data1, data2, equal_var=False)

    if np.isnan(p_value):
        return False, 1.0

    return bool(p_value < alpha), float(p_value)
