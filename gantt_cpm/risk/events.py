"""
Risk event application.

Each iteration runs one Bernoulli trial per risk event and applies the
impacts of the events that occurred on top of the sampled durations.
"""

import logging
from typing import Optional

from gantt_cpm.cpm.models import Activity, round_half_up
from gantt_cpm.cpm.network import ActivityNetwork
from schemas.risk import DurationDistribution, RiskEvent, RiskTaskImpact

from .sampler import DurationSampler, bounds_of, ppf

logger = logging.getLogger(__name__)


def _extend(activity: Activity, days: int) -> None:
    """Add working days to an activity, keeping remaining work in step."""
    if activity.is_in_progress():
        activity.remaining_duration = activity.get_remaining_duration() + days
    activity.duration += days


def _impactable(activity: Optional[Activity]) -> bool:
    return (activity is not None and not activity.is_summary()
            and not activity.is_completed() and activity.kind != 'milestone')


class RiskEventApplier:
    """
    Applies a risk register to one iteration's network copy.

    Args:
        risk_events: The risk register
        use_mitigated: Use post-mitigation probability and impact for
            mitigated events
    """

    def __init__(self, risk_events: list[RiskEvent], use_mitigated: bool = False):
        self.risk_events = list(risk_events)
        self.use_mitigated = use_mitigated

    def apply(self, network: ActivityNetwork, sampler: DurationSampler,
              sampled: dict[str, int]) -> float:
        """
        Apply every risk event to the network.

        Args:
            network: Iteration network copy (durations already sampled)
            sampler: The iteration's sampler
            sampled: Sampled durations, updated with post-risk durations

        Returns:
            Total risk cost sampled in this iteration
        """
        cost = 0.0
        for risk in self.risk_events:
            probability = risk.effective_probability(self.use_mitigated)
            occurred = sampler.uniform() * 100 < probability

            if risk.has_task_impacts():
                for impact in risk.task_impacts:
                    if not occurred and impact.event_existence:
                        continue
                    cost += self._apply_task_impact(network, impact, sampler, sampled)
            elif occurred:
                self._apply_legacy(network, risk, sampled)

        return cost

    def _apply_task_impact(self, network: ActivityNetwork, impact: RiskTaskImpact,
                           sampler: DurationSampler, sampled: dict[str, int]) -> float:
        activity = network.get_activity(impact.task_id)
        if not _impactable(activity):
            return 0.0

        shared = sampler.uniform() if impact.correlate else None
        days = self._impact_value(impact.schedule_distribution(), impact.impact_ranges,
                                  sampler, shared)
        if days is not None and days > 0:
            _extend(activity, max(0, round_half_up(days)))
            sampled[activity.activity_id] = activity.duration

        cost = self._impact_value(impact.cost_distribution(), impact.impact_ranges,
                                  sampler, shared)
        return cost or 0.0

    @staticmethod
    def _impact_value(dist: DurationDistribution, impact_ranges: bool,
                      sampler: DurationSampler, shared: Optional[float]) -> Optional[float]:
        if dist.is_deterministic():
            return None
        if not impact_ranges:
            return bounds_of(dist)[1]
        u = shared if shared is not None else sampler.uniform()
        return ppf(dist, u)

    def _apply_legacy(self, network: ActivityNetwork, risk: RiskEvent,
                      sampled: dict[str, int]) -> None:
        value = risk.effective_impact_value(self.use_mitigated)
        for activity_id in risk.affected_activity_ids:
            activity = network.get_activity(activity_id)
            if not _impactable(activity):
                continue

            if risk.impact_type == 'addDays':
                _extend(activity, max(0, round_half_up(value)))
            else:
                factor = max(0.1, value)
                if activity.is_in_progress():
                    activity.remaining_duration = max(
                        1, round_half_up(activity.get_remaining_duration() * factor)
                    )
                activity.duration = max(1, round_half_up(activity.duration * factor))
            sampled[activity_id] = activity.duration
