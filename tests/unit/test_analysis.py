"""
Unit tests for critical path and what-if analysis.
"""

from datetime import date

from gantt_cpm.analysis.critical_path import (
    analyze_critical_path,
    format_critical_path_report,
    identify_risk_tasks,
)
from gantt_cpm.analysis.what_if import (
    analyze_task_impact,
    analyze_task_sensitivity,
    compare_scenario,
    scenario_impact_summary,
)
from gantt_cpm.cpm.engine import schedule


class TestCriticalPathAnalysis:
    """Critical and near-critical activities on the WBS network."""

    def test_critical_and_near_critical(self, wbs_network, calendars, project):
        result = analyze_critical_path(wbs_network, calendars, project)
        assert [a.activity_id for a in result.critical_path] == ['A', 'B', 'M']
        assert [a.activity_id for a in result.near_critical_tasks] == ['D']
        assert result.total_tasks == 4
        assert result.project_finish == date(2025, 3, 13)

    def test_float_distribution(self, wbs_network, calendars, project):
        result = analyze_critical_path(wbs_network, calendars, project)
        assert result.float_distribution == {'0 (critical)': 3, '1-5 days': 1}

    def test_grouped_by_parent(self, wbs_network, calendars, project):
        result = analyze_critical_path(wbs_network, calendars, project)
        assert result.by_parent == {'S1': ['A', 'B'], 'S2': ['M']}

    def test_threshold_excludes(self, wbs_network, calendars, project):
        result = analyze_critical_path(wbs_network, calendars, project, near_critical_threshold=0)
        assert result.near_critical_tasks == []

    def test_risk_tasks(self, wbs_network, calendars, project):
        scheduled = schedule(wbs_network, calendars, project)
        assert [a.activity_id for a in identify_risk_tasks(scheduled, min_duration=2)] == ['D']
        assert identify_risk_tasks(scheduled) == []

    def test_report_text(self, wbs_network, calendars, project):
        report = format_critical_path_report(analyze_critical_path(wbs_network, calendars, project))
        assert 'CRITICAL PATH ANALYSIS REPORT' in report
        assert 'Critical Tasks: 3' in report
        assert 'Drainage' in report


class TestTaskImpact:
    """Single-activity duration changes."""

    def test_critical_activity_slips_project(self, chain_network, calendars, project):
        impact = analyze_task_impact(chain_network, calendars, project, 'B', 2)
        assert impact.slip_days == 2
        assert impact.new_finish == date(2025, 3, 19)
        assert impact.affected_activity_ids == ['B', 'C']
        assert not impact.critical_path_changed

    def test_float_absorbs_change(self, wbs_network, calendars, project):
        impact = analyze_task_impact(wbs_network, calendars, project, 'D', 1)
        assert impact.slip_days == 0
        assert impact.affected_activity_ids == ['D']
        assert impact.critical_path_changed

    def test_network_not_modified(self, chain_network, calendars, project):
        analyze_task_impact(chain_network, calendars, project, 'B', 10)
        assert chain_network.get_required('B').duration == 3

    def test_sensitivity_sweep(self, wbs_network, calendars, project):
        results = analyze_task_sensitivity(wbs_network, calendars, project, duration_delta=5)
        assert [r.activity_id for r in results] == ['A', 'B', 'D']
        assert [r.slip_days for r in results] == [5, 5, 4]


class TestScenarioComparison:
    """Scenario schedules against the master schedule."""

    def test_deltas(self, wbs_network, calendars, project):
        master = schedule(wbs_network, calendars, project)
        scenario_network = wbs_network.clone()
        scenario_network.modify_duration('D', 3)
        scenario = schedule(scenario_network, calendars, project)

        deltas = compare_scenario(master, scenario)
        assert [d.activity_id for d in deltas] == ['D']
        assert deltas[0].finish_delta == 1
        assert deltas[0].float_delta == -1
        assert deltas[0].became_critical

        summary = scenario_impact_summary(master, scenario)
        assert summary.project_end_delta == 0
        assert summary.new_critical == ['D']
        assert summary.avg_float_change == -1.0
        assert summary.total_affected == 1

    def test_identical_schedules(self, chain_network, calendars, project):
        master = schedule(chain_network, calendars, project)
        assert compare_scenario(master, schedule(chain_network, calendars, project)) == []
