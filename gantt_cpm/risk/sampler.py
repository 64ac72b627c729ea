"""
Duration sampling for Monte Carlo iterations.

Every draw maps one uniform variate u ~ U(0, 1) through the inverse CDF of
the configured distribution, which keeps runs reproducible from a seed and
lets correlated impacts share a single draw.

BetaPERT uses the conventional PERT weighting (mode counted four times):
    alpha = 1 + 4 (mode - min) / (max - min)
    beta  = 1 + 4 (max - mode) / (max - min)
"""

import logging
from functools import lru_cache
from typing import Optional

import numpy as np
from scipy.special import betaincinv

from gantt_cpm.cpm.models import round_half_up
from gantt_cpm.cpm.network import ActivityNetwork
from schemas.risk import DurationDistribution

logger = logging.getLogger(__name__)


@lru_cache(maxsize=4096)
def corrected_bounds(kind: str, low: Optional[float], mode: Optional[float],
                     high: Optional[float]) -> tuple[float, float, float]:
    """
    Fill in and repair the (min, mode, max) of a distribution.

    Missing values fall back to their neighbours, inverted bounds are
    swapped and the mode is clamped into range. Repairs are logged once
    per distinct distribution.
    """
    if low is None:
        low = mode if mode is not None else (high if high is not None else 0.0)
    if mode is None:
        mode = low if kind != 'uniform' else (low + (high if high is not None else low)) / 2
    if high is None:
        high = mode

    a, c, b = float(low), float(mode), float(high)
    repaired = False
    if b < a:
        a, b = b, a
        repaired = True
    if not a <= c <= b:
        c = min(max(c, a), b)
        repaired = True

    if repaired:
        logger.warning(
            f"Corrected malformed {kind} distribution ({low}, {mode}, {high}) -> ({a}, {c}, {b})"
        )
    return a, c, b


def bounds_of(dist: DurationDistribution) -> tuple[float, float, float]:
    return corrected_bounds(dist.type, dist.min, dist.most_likely, dist.max)


def ppf(dist: DurationDistribution, u: float) -> Optional[float]:
    """
    Map a uniform variate through a distribution's inverse CDF.

    Returns None for deterministic distributions. Results are clamped to >= 0.
    """
    if dist.is_deterministic():
        return None

    a, c, b = bounds_of(dist)
    if b <= a:
        return max(0.0, c)

    if dist.type == 'uniform':
        value = a + u * (b - a)

    elif dist.type == 'triangular':
        split = (c - a) / (b - a)
        if u < split:
            value = a + np.sqrt(u * (b - a) * (c - a))
        else:
            value = b - np.sqrt((1 - u) * (b - a) * (b - c))

    elif dist.type == 'betaPERT':
        alpha = 1 + 4 * (c - a) / (b - a)
        beta = 1 + 4 * (b - c) / (b - a)
        value = a + float(betaincinv(alpha, beta, u)) * (b - a)

    else:
        raise ValueError(f"Unknown distribution type {dist.type!r}")

    return max(0.0, float(value))


class DurationSampler:
    """Draws samples from one numpy Generator."""

    def __init__(self, rng: np.random.Generator):
        self.rng = rng

    @classmethod
    def from_seed(cls, seed) -> 'DurationSampler':
        """Seed may be an int, a SeedSequence or None (fresh entropy)."""
        return cls(np.random.default_rng(seed))

    def uniform(self) -> float:
        return float(self.rng.random())

    def sample(self, dist: DurationDistribution) -> Optional[float]:
        """One continuous sample, or None for a deterministic distribution."""
        if dist.is_deterministic():
            return None
        return ppf(dist, self.uniform())

    def sample_days(self, dist: DurationDistribution, fallback: int) -> int:
        """Sample rounded half-up to whole working days, never negative."""
        value = self.sample(dist)
        if value is None:
            return fallback
        return max(0, round_half_up(value))


def apply_duration_samples(
    network: ActivityNetwork,
    distributions: dict[str, DurationDistribution],
    sampler: DurationSampler,
) -> dict[str, int]:
    """
    Replace activity durations in a network copy with sampled ones.

    Completed activities, milestones and summaries keep their duration.
    In-progress activities vary only their remaining portion.

    Returns:
        Dict mapping every non-summary activity ID to its duration after sampling
    """
    sampled = {}
    for activity in network.activities.values():
        if activity.is_summary():
            continue

        dist = distributions.get(activity.activity_id)
        if (dist is None or dist.is_deterministic() or activity.is_completed()
                or activity.kind == 'milestone'):
            sampled[activity.activity_id] = activity.duration
            continue

        new_duration = sampler.sample_days(dist, activity.duration)
        if activity.is_in_progress():
            done = activity.percent_complete / 100
            activity.remaining_duration = max(0, round_half_up(new_duration * (1 - done)))
        activity.duration = new_duration
        sampled[activity.activity_id] = new_duration

    return sampled
