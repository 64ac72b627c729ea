"""
Aggregate statistics over Monte Carlo iterations.

Percentiles use the nearest-rank method: for P in 0..100 over N sorted
values the reported value is the one at rank ceil(P/100 * N), with P0
mapping to the smallest value.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Optional

import numpy as np
from scipy import stats

from schemas.risk import HistogramBin


@dataclass
class IterationRecord:
    """Outcome of one completed iteration."""

    index: int
    finish_date: date
    project_duration: int
    critical_ids: frozenset
    sampled_durations: dict[str, int]
    risk_cost: float = 0.0


@dataclass
class SimulationStatistics:
    duration_percentiles: dict[int, int] = field(default_factory=dict)
    date_percentiles: dict[int, date] = field(default_factory=dict)
    mean_duration: float = 0.0
    std_dev_duration: float = 0.0
    min_duration: Optional[int] = None
    max_duration: Optional[int] = None
    criticality_index: dict[str, float] = field(default_factory=dict)
    sensitivity_index: dict[str, float] = field(default_factory=dict)
    histogram: list[HistogramBin] = field(default_factory=list)
    cost_percentiles: dict[int, float] = field(default_factory=dict)
    mean_cost: float = 0.0


def nearest_rank_index(level: int, count: int) -> int:
    """Zero-based index of percentile `level` among `count` sorted values."""
    if count <= 0:
        raise ValueError("Cannot take a percentile of an empty sample")
    rank = -(-level * count // 100)
    return min(max(rank, 1), count) - 1


def percentiles(records: list[IterationRecord],
                levels: list[int]) -> tuple[dict[int, int], dict[int, date]]:
    """
    Duration and finish-date percentiles.

    The finish date reported for a level comes from the same iteration as
    the duration.
    """
    if not records:
        return {}, {}
    ordered = sorted(records, key=lambda r: r.project_duration)
    durations, dates = {}, {}
    for level in levels:
        record = ordered[nearest_rank_index(level, len(ordered))]
        durations[level] = record.project_duration
        dates[level] = record.finish_date
    return durations, dates


def histogram(durations: list[int], bins: int = 20) -> list[HistogramBin]:
    """Fixed-count histogram over [min, max] with cumulative percentages."""
    if not durations:
        return []
    values = np.asarray(durations, dtype=float)
    low, high = float(values.min()), float(values.max())
    if low == high:
        return [HistogramBin(bin_start=low, bin_end=high + 1, count=len(values), cum_pct=100.0)]

    counts, edges = np.histogram(values, bins=bins, range=(low, high))
    cumulative = np.cumsum(counts)
    return [
        HistogramBin(
            bin_start=round(float(edges[i]), 1),
            bin_end=round(float(edges[i + 1]), 1),
            count=int(counts[i]),
            cum_pct=round(float(cumulative[i]) / len(values) * 100, 1),
        )
        for i in range(len(counts))
    ]


def criticality_index(records: list[IterationRecord], activity_ids: list[str]) -> dict[str, float]:
    """Percentage of iterations in which each activity was critical."""
    total = len(records)
    if total == 0:
        return {aid: 0.0 for aid in activity_ids}
    counts = dict.fromkeys(activity_ids, 0)
    for record in records:
        for aid in record.critical_ids:
            if aid in counts:
                counts[aid] += 1
    return {aid: round(count / total * 100, 1) for aid, count in counts.items()}


def sensitivity_index(records: list[IterationRecord]) -> dict[str, float]:
    """
    Spearman rank correlation of each activity's sampled duration with the
    project duration.

    Activities whose duration never varied are omitted, as is everything
    when fewer than three iterations completed or the project duration is
    constant.
    """
    if len(records) < 3:
        return {}
    project = np.array([r.project_duration for r in records], dtype=float)
    if np.ptp(project) == 0:
        return {}

    activity_ids = []
    for record in records:
        for aid in record.sampled_durations:
            if aid not in activity_ids:
                activity_ids.append(aid)

    result = {}
    for aid in activity_ids:
        values = np.array([r.sampled_durations.get(aid, 0) for r in records], dtype=float)
        if np.ptp(values) == 0:
            continue
        rho, _ = stats.spearmanr(values, project)
        if not np.isnan(rho):
            result[aid] = round(float(rho), 3)
    return result


def compute_statistics(records: list[IterationRecord], levels: list[int],
                       activity_ids: list[str], bins: int = 20) -> SimulationStatistics:
    """Every aggregate reported on a SimulationResult."""
    result = SimulationStatistics()
    result.criticality_index = criticality_index(records, activity_ids)
    if not records:
        return result

    durations = np.array([r.project_duration for r in records], dtype=float)
    result.duration_percentiles, result.date_percentiles = percentiles(records, levels)
    result.mean_duration = round(float(durations.mean()), 2)
    result.std_dev_duration = round(float(durations.std()), 2)
    result.min_duration = int(durations.min())
    result.max_duration = int(durations.max())
    result.sensitivity_index = sensitivity_index(records)
    result.histogram = histogram([r.project_duration for r in records], bins)

    costs = sorted(r.risk_cost for r in records)
    result.mean_cost = round(float(np.mean(costs)), 2)
    result.cost_percentiles = {
        level: round(costs[nearest_rank_index(level, len(costs))], 2) for level in levels
    }
    return result
