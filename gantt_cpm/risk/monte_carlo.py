"""
Monte Carlo schedule risk engine.

Each iteration samples durations, applies risk events, schedules a private
copy of the network and records the outcome. Iterations draw from their own
random substream spawned from the run seed, so a run is reproducible whether
iterations execute sequentially or across worker processes.
"""

import logging
import threading
import uuid
from copy import deepcopy
from concurrent.futures import ProcessPoolExecutor
from dataclasses import replace
from datetime import datetime
from typing import Callable, Optional

import numpy as np

from gantt_cpm.cpm.calendar import WorkCalendar
from gantt_cpm.cpm.engine import CPMEngine, schedule
from gantt_cpm.cpm.models import Project, ScheduleResult
from gantt_cpm.cpm.network import ActivityNetwork, SchedulingError
from schemas.risk import (
    DurationDistribution,
    RiskAnalysisConfig,
    RiskEvent,
    SimulationParams,
    SimulationResult,
)

from .events import RiskEventApplier
from .sampler import DurationSampler, apply_duration_samples
from .statistics import IterationRecord, compute_statistics

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class MonteCarloEngine:
    """
    Runs Monte Carlo simulations over an activity network.

    The engine takes a private snapshot of the network, project settings and
    risk configuration when it is built, so later edits to the caller's
    objects never reach a run. Every iteration works on its own clone of
    that snapshot.
    """

    def __init__(
        self,
        network: ActivityNetwork,
        calendars: dict[str, WorkCalendar],
        project: Project,
        distributions: Optional[dict[str, DurationDistribution]] = None,
        risk_events: Optional[list[RiskEvent]] = None,
    ):
        self.network = network.clone()
        self.calendars = deepcopy(calendars)
        self.project = replace(project)
        self.distributions = {
            aid: dist.model_copy(deep=True) for aid, dist in (distributions or {}).items()
        }
        self.risk_events = [event.model_copy(deep=True) for event in (risk_events or [])]
        # iteration records of the latest run
        self.records: list[IterationRecord] = []

    @classmethod
    def from_config(cls, network: ActivityNetwork, calendars: dict[str, WorkCalendar],
                    project: Project, config: RiskAnalysisConfig) -> 'MonteCarloEngine':
        return cls(network, calendars, project, config.distributions, config.risk_events)

    def deterministic(self) -> ScheduleResult:
        """Zero-variance reference schedule."""
        return schedule(self.network, self.calendars, self.project, strict=True)

    def activity_ids(self) -> list[str]:
        return self.network.schedulable_ids()

    def run_iteration(self, index: int, seed_seq: np.random.SeedSequence,
                      use_mitigated: bool = False) -> Optional[IterationRecord]:
        """
        Run one iteration.

        Returns:
            IterationRecord, or None when the sampled network cannot be scheduled
        """
        sampler = DurationSampler.from_seed(seed_seq)
        network = self.network.clone()

        sampled = apply_duration_samples(network, self.distributions, sampler)
        cost = RiskEventApplier(self.risk_events, use_mitigated).apply(network, sampler, sampled)

        try:
            result = CPMEngine(network, self.calendars, self.project).run(strict=True)
        except SchedulingError as e:
            logger.warning(f"Skipping iteration {index}: {e}")
            return None

        return IterationRecord(
            index=index,
            finish_date=result.project_finish or self.project.start,
            project_duration=result.project_duration,
            critical_ids=frozenset(result.critical_path),
            sampled_durations=sampled,
            risk_cost=cost,
        )

    def run(
        self,
        params: Optional[SimulationParams] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
        name: Optional[str] = None,
    ) -> SimulationResult:
        """
        Execute a full simulation.

        Args:
            params: Iterations, seed, mitigation flag, confidence levels, ...
            on_progress: Called with (iterations done, iterations requested)
                after every batch
            cancel_event: Checked between iterations; once set the run stops
                and returns a result over the iterations completed so far
            name: Label for the run

        Returns:
            SimulationResult
        """
        params = params or SimulationParams()
        seed = params.seed
        if seed is None:
            seed = int(np.random.SeedSequence().entropy)
            params = params.model_copy(update={'seed': seed})

        self.records = []
        reference = self.deterministic()
        if reference.project_finish is None:
            raise SchedulingError("Network has no schedulable activities")

        total = params.iterations
        streams = np.random.SeedSequence(seed).spawn(total)
        logger.info(f"Starting Monte Carlo run: {total} iterations, seed {seed}, "
                    f"{params.workers} worker(s)")

        if params.workers > 1:
            records, attempted = self._run_parallel(params, streams, on_progress, cancel_event)
        else:
            records, attempted = self._run_sequential(params, streams, on_progress, cancel_event)

        cancelled = attempted < total
        skipped = attempted - len(records)
        if cancelled:
            logger.info(f"Simulation cancelled after {attempted}/{total} iterations")
        if skipped:
            logger.warning(f"{skipped} iterations skipped")

        self.records = records
        statistics = compute_statistics(records, params.confidence_levels,
                                        self.activity_ids(), params.histogram_bins)
        run_at = datetime.now()

        return SimulationResult(
            id=f"run_{uuid.uuid4().hex[:12]}",
            name=name or f"Simulation {run_at:%Y-%m-%d %H:%M}",
            run_at=run_at,
            params=params,
            requested_iterations=total,
            completed_iterations=len(records),
            skipped_iterations=skipped,
            cancelled=cancelled,
            duration_percentiles=statistics.duration_percentiles,
            date_percentiles=statistics.date_percentiles,
            deterministic_duration=reference.project_duration,
            deterministic_finish=reference.project_finish,
            mean_duration=statistics.mean_duration,
            std_dev_duration=statistics.std_dev_duration,
            min_duration=statistics.min_duration,
            max_duration=statistics.max_duration,
            criticality_index=statistics.criticality_index,
            sensitivity_index=statistics.sensitivity_index,
            histogram=statistics.histogram,
            cost_percentiles=statistics.cost_percentiles,
            mean_cost=statistics.mean_cost,
            distributions_snapshot={
                aid: dist.model_copy(deep=True) for aid, dist in self.distributions.items()
            },
            risk_events_snapshot=[event.model_copy(deep=True) for event in self.risk_events],
        )

    def _run_sequential(self, params, streams, on_progress, cancel_event):
        records = []
        total = len(streams)
        attempted = 0

        for index, stream in enumerate(streams):
            if cancel_event is not None and cancel_event.is_set():
                break
            record = self.run_iteration(index, stream, params.use_mitigated)
            attempted += 1
            if record is not None:
                records.append(record)
            if on_progress and (attempted % params.batch_size == 0 or attempted == total):
                on_progress(attempted, total)

        return records, attempted

    def _run_parallel(self, params, streams, on_progress, cancel_event):
        """Batches run in worker processes; results are collected in iteration order."""
        records = []
        total = len(streams)
        attempted = 0
        batches = [
            list(range(start, min(start + params.batch_size, total)))
            for start in range(0, total, params.batch_size)
        ]

        with ProcessPoolExecutor(
            max_workers=params.workers,
            initializer=_init_worker,
            initargs=(self,),
        ) as executor:
            for offset in range(0, len(batches), params.workers):
                if cancel_event is not None and cancel_event.is_set():
                    break
                window = batches[offset:offset + params.workers]
                futures = [
                    executor.submit(_run_batch, [(i, streams[i]) for i in batch],
                                    params.use_mitigated)
                    for batch in window
                ]
                for batch, future in zip(window, futures):
                    records.extend(r for r in future.result() if r is not None)
                    attempted += len(batch)
                    if on_progress:
                        on_progress(attempted, total)

        return records, attempted


_worker_engine: Optional[MonteCarloEngine] = None


def _init_worker(engine: MonteCarloEngine) -> None:
    global _worker_engine
    _worker_engine = engine


def _run_batch(items: list, use_mitigated: bool) -> list[Optional[IterationRecord]]:
    return [_worker_engine.run_iteration(index, stream, use_mitigated) for index, stream in items]


class SimulationJob:
    """
    Runs a simulation on a background thread.

    Usage:
        job = SimulationJob(engine, params, on_progress=print).start()
        ...
        job.cancel()
        result = job.wait()
    """

    def __init__(self, engine: MonteCarloEngine, params: Optional[SimulationParams] = None,
                 on_progress: Optional[ProgressCallback] = None, name: Optional[str] = None):
        self.engine = engine
        self.params = params or SimulationParams()
        self.name = name
        self.result: Optional[SimulationResult] = None
        self.error: Optional[BaseException] = None
        self.progress = (0, self.params.iterations)
        self._on_progress = on_progress
        self._cancel = threading.Event()
        self._thread = threading.Thread(target=self._run, name='monte-carlo', daemon=True)

    def _report(self, done: int, total: int) -> None:
        self.progress = (done, total)
        if self._on_progress:
            self._on_progress(done, total)

    def _run(self) -> None:
        try:
            self.result = self.engine.run(self.params, self._report, self._cancel, self.name)
        except Exception as e:
            logger.error(f"Simulation failed: {e}")
            self.error = e

    def start(self) -> 'SimulationJob':
        self._thread.start()
        return self

    def cancel(self) -> None:
        """Request cooperative cancellation; the job still produces a result."""
        self._cancel.set()

    @property
    def running(self) -> bool:
        return self._thread.is_alive()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def wait(self, timeout: Optional[float] = None) -> Optional[SimulationResult]:
        """
        Block until the job finishes.

        Returns None if the timeout expires first. Re-raises a failure of the run.
        """
        self._thread.join(timeout)
        if self._thread.is_alive():
            return None
        if self.error is not None:
            raise self.error
        return self.result
