"""
Unit tests for risk event application.
"""

import pytest

from gantt_cpm.cpm.models import Activity, Link
from gantt_cpm.cpm.network import ActivityNetwork
from gantt_cpm.risk.events import RiskEventApplier
from gantt_cpm.risk.sampler import DurationSampler
from schemas.risk import RiskEvent, RiskTaskImpact


@pytest.fixture
def network() -> ActivityNetwork:
    return ActivityNetwork([
        Activity('A', duration=5),
        Activity('B', duration=3, predecessors=[Link('A')]),
        Activity('P', duration=10, percent_complete=50),
        Activity('DONE', duration=4, percent_complete=100),
        Activity('M', kind='milestone', predecessors=[Link('B')]),
    ])


def apply(network, events, seed=0, use_mitigated=False):
    sampled = {a.activity_id: a.duration for a in network if not a.is_summary()}
    cost = RiskEventApplier(events, use_mitigated).apply(
        network, DurationSampler.from_seed(seed), sampled
    )
    return cost, sampled


class TestLegacyEvents:
    """addDays / multiply events on affected activity lists."""

    def test_certain_event_adds_days(self, network):
        event = RiskEvent(id='R1', probability=100, affected_activity_ids=['B'], impact_value=2)
        _, sampled = apply(network, [event])
        assert network.get_required('B').duration == 5
        assert sampled['B'] == 5

    def test_impossible_event_does_nothing(self, network):
        event = RiskEvent(id='R1', probability=0, affected_activity_ids=['B'], impact_value=2)
        apply(network, [event])
        assert network.get_required('B').duration == 3

    @pytest.mark.parametrize("factor,expected", [(1.5, 5), (2.0, 6), (0.01, 1)])
    def test_multiply(self, network, factor, expected):
        event = RiskEvent(id='R1', probability=100, affected_activity_ids=['B'],
                          impact_type='multiply', impact_value=factor)
        apply(network, [event])
        assert network.get_required('B').duration == expected

    def test_in_progress_extends_remaining(self, network):
        event = RiskEvent(id='R1', probability=100, affected_activity_ids=['P'], impact_value=4)
        apply(network, [event])
        activity = network.get_required('P')
        assert activity.duration == 14
        assert activity.remaining_duration == 9

    @pytest.mark.parametrize("target", ['DONE', 'M', 'missing'])
    def test_untouchable_targets(self, network, target):
        event = RiskEvent(id='R1', probability=100, affected_activity_ids=[target], impact_value=4)
        apply(network, [event])
        if target in network:
            assert network.get_required(target).duration == {'DONE': 4, 'M': 0}[target]

    def test_mitigated_probability(self, network):
        event = RiskEvent(id='R1', probability=100, affected_activity_ids=['B'], impact_value=2,
                          mitigated=True, mitigated_probability=0)
        apply(network, [event], use_mitigated=True)
        assert network.get_required('B').duration == 3

    def test_mitigated_impact(self, network):
        event = RiskEvent(id='R1', probability=100, affected_activity_ids=['B'], impact_value=5,
                          mitigated=True, mitigated_impact_value=1)
        apply(network, [event], use_mitigated=True)
        assert network.get_required('B').duration == 4


class TestQuantifiedEvents:
    """Per-task schedule and cost impacts."""

    def test_most_likely_when_ranges_off(self, network):
        impact = RiskTaskImpact(task_id='A', schedule_shape='triangular', schedule_min=1,
                                schedule_likely=3, schedule_max=8, cost_shape='triangular',
                                cost_min=100, cost_likely=250, cost_max=900, impact_ranges=False)
        event = RiskEvent(id='R1', probability=100, quantified=True, task_impacts=[impact])
        cost, sampled = apply(network, [event])
        assert network.get_required('A').duration == 8
        assert sampled['A'] == 8
        assert cost == 250

    def test_event_existence_off_is_unconditional(self, network):
        impact = RiskTaskImpact(task_id='A', schedule_shape='triangular', schedule_min=2,
                                schedule_likely=2, schedule_max=2, event_existence=False)
        event = RiskEvent(id='R1', probability=0, quantified=True, task_impacts=[impact])
        apply(network, [event])
        assert network.get_required('A').duration == 7

    def test_not_occurring_event_skips_impacts(self, network):
        impact = RiskTaskImpact(task_id='A', schedule_shape='uniform', schedule_min=2,
                                schedule_max=4, cost_shape='uniform', cost_min=10, cost_max=20)
        event = RiskEvent(id='R1', probability=0, quantified=True, task_impacts=[impact])
        cost, _ = apply(network, [event])
        assert cost == 0
        assert network.get_required('A').duration == 5

    def test_correlated_impacts_share_a_draw(self, network):
        impact = RiskTaskImpact(task_id='A', schedule_shape='uniform', schedule_min=0,
                                schedule_max=10, cost_shape='uniform', cost_min=0, cost_max=1000,
                                correlate=True)
        event = RiskEvent(id='R1', probability=100, quantified=True, task_impacts=[impact])
        for seed in range(10):
            net = network.clone()
            cost, _ = apply(net, [event], seed=seed)
            added = net.get_required('A').duration - 5
            assert added == int(cost / 100 + 0.5)

    def test_cost_only_impact(self, network):
        impact = RiskTaskImpact(task_id='B', cost_shape='uniform', cost_min=50, cost_max=50)
        event = RiskEvent(id='R1', probability=100, quantified=True, task_impacts=[impact])
        cost, _ = apply(network, [event])
        assert cost == 50
        assert network.get_required('B').duration == 3

    def test_quantified_without_impacts_uses_legacy(self, network):
        event = RiskEvent(id='R1', probability=100, quantified=True,
                          affected_activity_ids=['B'], impact_value=1)
        apply(network, [event])
        assert network.get_required('B').duration == 4
