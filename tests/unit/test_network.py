"""
Unit tests for the activity network: indexing, ordering, cycles and outline.
"""

import pytest

from gantt_cpm.cpm.models import Activity, Link
from gantt_cpm.cpm.network import ActivityNetwork, GraphCycleError


class TestNetworkConstruction:
    """Links are indexed from the successors' predecessor lists."""

    def test_successors_and_predecessors(self, chain_network):
        assert [d.succ_id for d in chain_network.get_successors('A')] == ['B']
        assert [d.pred_id for d in chain_network.get_predecessors('C')] == ['B']

    def test_start_and_end_activities(self, chain_network):
        assert chain_network.get_start_activities() == ['A']
        assert chain_network.get_end_activities() == ['C']

    def test_duplicate_activity_rejected(self, chain_network):
        with pytest.raises(ValueError):
            chain_network.add_activity(Activity('A'))

    @pytest.mark.parametrize("link", [Link('missing'), Link('B')])
    def test_unusable_links_are_skipped(self, link):
        network = ActivityNetwork([Activity('B', duration=1, predecessors=[link])])
        assert network.dependencies == []
        assert len(network.skipped_links) == 1
        assert network.validate()

    def test_summary_links_are_skipped(self, wbs_network):
        wbs_network.get_required('B').predecessors.append(Link('S2'))
        wbs_network.rebuild_index()
        assert ('S2', 'B') in wbs_network.skipped_links

    def test_add_link_rejects_summary(self, wbs_network):
        with pytest.raises(ValueError):
            wbs_network.add_link('B', Link('S1'))

    def test_add_and_remove_link(self, chain_network):
        chain_network.add_link('C', Link('A', 'SS', 2))
        assert {d.pred_id for d in chain_network.get_predecessors('C')} == {'A', 'B'}
        assert chain_network.remove_link('C', 'A')
        assert not chain_network.remove_link('C', 'A')

    def test_remove_activity_drops_links(self, chain_network):
        chain_network.remove_activity('B')
        assert chain_network.get_required('C').predecessors == []
        assert 'B' not in chain_network

    def test_unknown_activity(self, chain_network):
        assert chain_network.get_activity('Z') is None
        with pytest.raises(ValueError):
            chain_network.get_required('Z')


class TestOrdering:
    """Topological order and cycle isolation."""

    def test_topological_sort(self, chain_network):
        assert chain_network.topological_sort() == ['A', 'B', 'C']
        assert chain_network.reverse_topological_sort() == ['C', 'B', 'A']

    def test_summaries_excluded_from_order(self, wbs_network):
        order = wbs_network.topological_sort()
        assert 'S1' not in order and 'S2' not in order
        assert order.index('A') < order.index('B') < order.index('M')

    def test_cycle_raises(self):
        network = ActivityNetwork([
            Activity('A', duration=1, predecessors=[Link('B')]),
            Activity('B', duration=1, predecessors=[Link('A')]),
        ])
        with pytest.raises(GraphCycleError) as exc_info:
            network.topological_sort()
        assert set(exc_info.value.cycle_ids) == {'A', 'B'}
        assert 'Circular dependency' in str(exc_info.value)

    def test_partition_keeps_acyclic_components(self):
        network = ActivityNetwork([
            Activity('A', duration=1, predecessors=[Link('B')]),
            Activity('B', duration=1, predecessors=[Link('A')]),
            Activity('X', duration=1, predecessors=[Link('A')]),
            Activity('P', duration=2),
            Activity('Q', duration=2, predecessors=[Link('P')]),
        ])
        order, error = network.partition_cycles()
        assert order == ['P', 'Q']
        assert set(error.component_ids) == {'A', 'B', 'X'}

    def test_weak_components(self, chain_network):
        chain_network.add_activity(Activity('Z', duration=1))
        components = chain_network.weak_components()
        assert {'A', 'B', 'C'} in components
        assert {'Z'} in components


class TestTraversal:
    """Transitive closures and chain tracing."""

    def test_all_predecessors(self, chain_network):
        assert chain_network.get_all_predecessors('C') == {'A', 'B'}
        assert chain_network.get_all_predecessors('C', include_self=True) == {'A', 'B', 'C'}

    def test_all_successors(self, chain_network):
        assert chain_network.get_all_successors('A') == {'B', 'C'}

    @pytest.mark.parametrize("direction,expected", [
        ('fwd', {'B', 'C'}),
        ('bwd', {'A', 'B'}),
        ('both', {'A', 'B', 'C'}),
    ])
    def test_trace_chain(self, chain_network, direction, expected):
        assert chain_network.trace_chain('B', direction) == expected

    def test_trace_chain_bad_direction(self, chain_network):
        with pytest.raises(ValueError):
            chain_network.trace_chain('B', 'sideways')


class TestOutline:
    """WBS children and parents follow row order and level."""

    def test_children(self, wbs_network):
        assert wbs_network.get_children('S1') == ['A', 'B']
        assert wbs_network.get_children('S2') == ['D', 'M']

    def test_parent(self, wbs_network):
        assert wbs_network.get_parent('D') == 'S2'
        assert wbs_network.get_parent('S1') is None


class TestClone:
    """Clones are independent of the source network."""

    def test_clone_isolates_edits(self, chain_network):
        copy = chain_network.clone()
        copy.modify_duration('A', 20)
        copy.get_required('B').predecessors.append(Link('C'))
        assert chain_network.get_required('A').duration == 5
        assert len(chain_network.get_required('B').predecessors) == 1

    def test_statistics(self, wbs_network):
        stats = wbs_network.get_statistics()
        assert stats['total_activities'] == 6
