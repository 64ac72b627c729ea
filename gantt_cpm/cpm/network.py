"""
Activity Network for CPM calculations.

Manages activities and their typed precedence links with support for
topological sorting, cycle isolation and network traversal.

Links are owned by the successor activity (its ``predecessors`` list); the
network keeps predecessor/successor indexes over them. WBS summaries take
part in the outline only and are never nodes of the precedence graph.
"""

import logging
from collections import defaultdict, deque
from copy import copy
from dataclasses import dataclass
from typing import Iterator, Optional

from .models import Activity, Link

logger = logging.getLogger(__name__)


class SchedulingError(ValueError):
    """Raised when a network cannot be scheduled."""


class GraphCycleError(SchedulingError):
    """Raised when the precedence graph contains a cycle.

    Attributes:
        cycle_ids: Activities on or downstream of a cycle
        component_ids: Every activity of the weakly connected components
            that contain a cycle
    """

    def __init__(self, cycle_ids: list[str], component_ids: Optional[list[str]] = None):
        self.cycle_ids = list(cycle_ids)
        self.component_ids = list(component_ids or cycle_ids)
        shown = ', '.join(self.cycle_ids[:5])
        more = '...' if len(self.cycle_ids) > 5 else ''
        super().__init__(
            f"Circular dependency detected involving {len(self.cycle_ids)} activities: "
            f"[{shown}{more}]"
        )


@dataclass(frozen=True)
class Dependency:
    """A resolved precedence edge between two activities in the network."""

    pred_id: str
    succ_id: str
    link: Link

    @property
    def link_type(self) -> str:
        return self.link.link_type

    @property
    def lag(self) -> int:
        return self.link.lag


class ActivityNetwork:
    """
    Activity dependency network for CPM calculations.

    Activities keep their insertion order, which is also the outline
    (WBS) order used for summary roll-ups.
    """

    def __init__(self, activities: Optional[list[Activity]] = None):
        self.activities: dict[str, Activity] = {}
        self.dependencies: list[Dependency] = []
        self._successors: dict[str, list[Dependency]] = defaultdict(list)
        self._predecessors: dict[str, list[Dependency]] = defaultdict(list)
        self.skipped_links: list[tuple[str, str]] = []

        for activity in activities or []:
            self.add_activity(activity, reindex=False)
        self.rebuild_index()

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def add_activity(self, activity: Activity, reindex: bool = True) -> None:
        """Add an activity to the network (appended to the outline)."""
        if activity.activity_id in self.activities:
            raise ValueError(f"Activity {activity.activity_id} already in network")
        self.activities[activity.activity_id] = activity
        if reindex:
            self.rebuild_index()

    def remove_activity(self, activity_id: str) -> Activity:
        """Remove an activity and every link that references it."""
        activity = self.get_required(activity_id)
        del self.activities[activity_id]
        for other in self.activities.values():
            other.predecessors = [
                link for link in other.predecessors if link.predecessor_id != activity_id
            ]
        self.rebuild_index()
        return activity

    def add_link(self, succ_id: str, link: Link) -> None:
        """
        Add a predecessor link to an activity.

        Both activities must exist in the network and neither may be a summary.
        """
        succ = self.get_required(succ_id)
        pred = self.get_required(link.predecessor_id)
        if succ.is_summary() or pred.is_summary():
            raise ValueError("Summary activities cannot take part in precedence links")
        if succ_id == link.predecessor_id:
            raise ValueError(f"Activity {succ_id} cannot precede itself")
        succ.predecessors.append(link)
        self.rebuild_index()

    def remove_link(self, succ_id: str, pred_id: str) -> bool:
        """Remove the links from pred_id to succ_id. Returns True if any were removed."""
        succ = self.get_required(succ_id)
        before = len(succ.predecessors)
        succ.predecessors = [l for l in succ.predecessors if l.predecessor_id != pred_id]
        self.rebuild_index()
        return len(succ.predecessors) != before

    def rebuild_index(self) -> None:
        """
        Rebuild dependency indexes from the activities' predecessor lists.

        Links to unknown activities, to or from summaries, and self links
        are skipped and remembered in ``skipped_links``.
        """
        self.dependencies = []
        self._successors = defaultdict(list)
        self._predecessors = defaultdict(list)
        self.skipped_links = []

        for succ in self.activities.values():
            for link in succ.predecessors:
                pred = self.activities.get(link.predecessor_id)
                if (pred is None or pred.is_summary() or succ.is_summary()
                        or pred.activity_id == succ.activity_id):
                    self.skipped_links.append((link.predecessor_id, succ.activity_id))
                    continue
                dep = Dependency(link.predecessor_id, succ.activity_id, link)
                self.dependencies.append(dep)
                self._successors[dep.pred_id].append(dep)
                self._predecessors[dep.succ_id].append(dep)

        if self.skipped_links:
            logger.debug(f"Skipped {len(self.skipped_links)} unusable links")

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_activity(self, activity_id: str) -> Optional[Activity]:
        """Get an activity by ID."""
        return self.activities.get(activity_id)

    def get_required(self, activity_id: str) -> Activity:
        if activity_id not in self.activities:
            raise ValueError(f"Activity {activity_id} not in network")
        return self.activities[activity_id]

    def get_successors(self, activity_id: str) -> list[Dependency]:
        """Get dependencies where activity_id is the predecessor."""
        return self._successors.get(activity_id, [])

    def get_predecessors(self, activity_id: str) -> list[Dependency]:
        """Get dependencies where activity_id is the successor."""
        return self._predecessors.get(activity_id, [])

    def schedulable_ids(self) -> list[str]:
        """Non-summary activity IDs in outline order."""
        return [aid for aid, a in self.activities.items() if not a.is_summary()]

    def summary_ids(self) -> list[str]:
        return [aid for aid, a in self.activities.items() if a.is_summary()]

    def get_start_activities(self) -> list[str]:
        """Get activity IDs with no predecessors."""
        return [aid for aid in self.schedulable_ids() if not self._predecessors.get(aid)]

    def get_end_activities(self) -> list[str]:
        """Get activity IDs with no successors."""
        return [aid for aid in self.schedulable_ids() if not self._successors.get(aid)]

    def get_children(self, summary_id: str) -> list[str]:
        """
        Outline children of a summary: the following rows with a deeper
        level, up to the next row at the same or a shallower level.
        """
        ids = list(self.activities)
        index = ids.index(summary_id)
        level = self.activities[summary_id].level
        children = []
        for aid in ids[index + 1:]:
            if self.activities[aid].level <= level:
                break
            children.append(aid)
        return children

    def get_direct_children(self, summary_id: str) -> list[str]:
        """Children exactly one outline level below the summary."""
        level = self.activities[summary_id].level
        return [aid for aid in self.get_children(summary_id)
                if self.activities[aid].level == level + 1]

    def get_parent(self, activity_id: str) -> Optional[str]:
        """Nearest preceding row with a shallower outline level."""
        ids = list(self.activities)
        index = ids.index(activity_id)
        level = self.activities[activity_id].level
        for aid in reversed(ids[:index]):
            if self.activities[aid].level < level:
                return aid
        return None

    # ------------------------------------------------------------------
    # Ordering
    # ------------------------------------------------------------------

    def _kahn(self, ids: list[str]) -> list[str]:
        members = set(ids)
        in_degree = {aid: 0 for aid in ids}
        for dep in self.dependencies:
            if dep.pred_id in members and dep.succ_id in members:
                in_degree[dep.succ_id] += 1

        # Start with activities that have no predecessors
        queue = deque(aid for aid in ids if in_degree[aid] == 0)
        result = []

        while queue:
            activity_id = queue.popleft()
            result.append(activity_id)

            # Reduce in-degree for all successors
            for dep in self._successors.get(activity_id, []):
                if dep.succ_id not in members:
                    continue
                in_degree[dep.succ_id] -= 1
                if in_degree[dep.succ_id] == 0:
                    queue.append(dep.succ_id)

        return result

    def topological_sort(self) -> list[str]:
        """
        Return activity IDs in topological order (predecessors before successors).

        Uses Kahn's algorithm. Raises GraphCycleError if a circular
        dependency is detected.
        """
        order, error = self.partition_cycles()
        if error is not None:
            raise error
        return order

    def reverse_topological_sort(self) -> list[str]:
        """Return activity IDs in reverse topological order (successors before predecessors)."""
        return list(reversed(self.topological_sort()))

    def partition_cycles(self) -> tuple[list[str], Optional[GraphCycleError]]:
        """
        Split the graph into schedulable and cyclic parts.

        Returns:
            Tuple of (topological order of every activity outside a cyclic
            component, GraphCycleError describing the cyclic components or None)
        """
        ids = self.schedulable_ids()
        order = self._kahn(ids)
        if len(order) == len(ids):
            return order, None

        ordered = set(order)
        stuck = [aid for aid in ids if aid not in ordered]
        affected = set()
        for component in self.weak_components():
            if component & set(stuck):
                affected |= component

        error = GraphCycleError(stuck, [aid for aid in ids if aid in affected])
        return [aid for aid in order if aid not in affected], error

    def weak_components(self) -> list[set[str]]:
        """Weakly connected components of the precedence graph."""
        seen = set()
        components = []
        for start in self.schedulable_ids():
            if start in seen:
                continue
            component = set()
            queue = deque([start])
            while queue:
                current = queue.popleft()
                if current in component:
                    continue
                component.add(current)
                for dep in self._successors.get(current, []):
                    queue.append(dep.succ_id)
                for dep in self._predecessors.get(current, []):
                    queue.append(dep.pred_id)
            seen |= component
            components.append(component)
        return components

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def get_all_predecessors(self, activity_id: str, include_self: bool = False) -> set[str]:
        """Get all predecessor activity IDs (transitive closure)."""
        return self._closure(activity_id, self._predecessors, 'pred_id', include_self)

    def get_all_successors(self, activity_id: str, include_self: bool = False) -> set[str]:
        """Get all successor activity IDs (transitive closure)."""
        return self._closure(activity_id, self._successors, 'succ_id', include_self)

    def _closure(self, activity_id, index, attr, include_self) -> set[str]:
        result = set()
        if include_self:
            result.add(activity_id)

        visited = set()
        queue = deque([activity_id])

        while queue:
            current = queue.popleft()
            if current in visited:
                continue
            visited.add(current)

            for dep in index.get(current, []):
                result.add(getattr(dep, attr))
                queue.append(getattr(dep, attr))

        if not include_self:
            result.discard(activity_id)
        return result

    def trace_chain(self, activity_id: str, direction: str = 'both') -> set[str]:
        """
        Trace the logic chain of an activity.

        Args:
            activity_id: Activity to start from
            direction: 'fwd' (successors), 'bwd' (predecessors) or 'both'

        Returns:
            Set of activity IDs in the chain, including the start activity
        """
        self.get_required(activity_id)
        if direction not in ('fwd', 'bwd', 'both'):
            raise ValueError(f"Unknown trace direction {direction!r}")
        chain = {activity_id}
        if direction in ('fwd', 'both'):
            chain |= self.get_all_successors(activity_id)
        if direction in ('bwd', 'both'):
            chain |= self.get_all_predecessors(activity_id)
        return chain

    # ------------------------------------------------------------------
    # Copies and edits
    # ------------------------------------------------------------------

    def clone(self) -> 'ActivityNetwork':
        """
        Create a copy of the network for scheduling or what-if analysis.

        Activities are shallow-copied with fresh link and resource lists so
        edits to the copy never reach the original.
        """
        new_network = ActivityNetwork()

        for aid, activity in self.activities.items():
            cloned = copy(activity)
            cloned.predecessors = list(activity.predecessors)
            cloned.resources = list(activity.resources)
            cloned.baselines = list(activity.baselines)
            new_network.activities[aid] = cloned

        # Dependencies are immutable records, only the containers are copied
        new_network.dependencies = list(self.dependencies)
        for key, deps in self._successors.items():
            new_network._successors[key] = list(deps)
        for key, deps in self._predecessors.items():
            new_network._predecessors[key] = list(deps)
        new_network.skipped_links = list(self.skipped_links)

        return new_network

    def modify_duration(self, activity_id: str, new_duration: int) -> None:
        """Modify an activity's duration for what-if analysis."""
        activity = self.get_required(activity_id)
        if activity.is_summary():
            raise ValueError(f"Activity {activity_id} is a summary; its duration is rolled up")
        activity.duration = max(0, int(new_duration))

    def get_statistics(self) -> dict:
        """Get network statistics."""
        kinds = defaultdict(int)
        link_types = defaultdict(int)

        for activity in self.activities.values():
            kinds[activity.kind] += 1
        for dep in self.dependencies:
            link_types[dep.link_type] += 1

        return {
            'total_activities': len(self.activities),
            'total_dependencies': len(self.dependencies),
            'skipped_links': len(self.skipped_links),
            'start_activities': len(self.get_start_activities()),
            'end_activities': len(self.get_end_activities()),
            'kinds': dict(kinds),
            'link_types': dict(link_types),
        }

    def validate(self) -> list[str]:
        """
        Validate network integrity.

        Returns list of issues found (empty if valid).
        """
        issues = []

        for pred_id, succ_id in self.skipped_links:
            if pred_id not in self.activities:
                issues.append(f"Link references missing predecessor: {pred_id} -> {succ_id}")
            elif pred_id == succ_id:
                issues.append(f"Activity links to itself: {succ_id}")
            else:
                issues.append(f"Link involves a summary activity: {pred_id} -> {succ_id}")

        _, error = self.partition_cycles()
        if error is not None:
            issues.append(str(error))

        for activity in self.activities.values():
            if activity.duration < 0:
                issues.append(f"Activity {activity.activity_id} has negative duration")

        return issues

    def __iter__(self) -> Iterator[Activity]:
        return iter(self.activities.values())

    def __len__(self) -> int:
        return len(self.activities)

    def __contains__(self, activity_id: str) -> bool:
        return activity_id in self.activities

    def __repr__(self) -> str:
        return (f"ActivityNetwork({len(self.activities)} activities, "
                f"{len(self.dependencies)} dependencies)")
