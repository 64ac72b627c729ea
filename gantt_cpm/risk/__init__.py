"""Monte Carlo schedule risk analysis."""

from .events import RiskEventApplier
from .monte_carlo import MonteCarloEngine, SimulationJob
from .sampler import DurationSampler, apply_duration_samples, ppf
from .statistics import IterationRecord, compute_statistics, nearest_rank_index

__all__ = [
    'DurationSampler',
    'IterationRecord',
    'MonteCarloEngine',
    'RiskEventApplier',
    'SimulationJob',
    'apply_duration_samples',
    'compute_statistics',
    'nearest_rank_index',
    'ppf',
]
