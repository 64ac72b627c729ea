"""
Risk analysis schemas.

Duration distributions, the risk event register, simulation parameters
and the immutable SimulationResult produced by a Monte Carlo run.
"""

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from .project import settings_default


DistributionType = Literal['none', 'triangular', 'betaPERT', 'uniform']


class DurationDistribution(BaseModel):
    """Three-point duration distribution in working days."""
    model_config = {'populate_by_name': True}

    type: DistributionType = Field(default='none', description="Distribution shape")
    min: Optional[float] = Field(default=None, description="Optimistic value")
    most_likely: Optional[float] = Field(default=None, alias='mostLikely', description="Most likely value")
    max: Optional[float] = Field(default=None, description="Pessimistic value")

    def is_deterministic(self) -> bool:
        return self.type == 'none'


class RiskTaskImpact(BaseModel):
    """Schedule and cost impact of a risk event on one activity."""
    model_config = {'populate_by_name': True}

    task_id: str = Field(alias='taskId', description="Impacted activity ID")
    schedule_shape: DistributionType = Field(default='none', alias='scheduleShape')
    schedule_min: Optional[float] = Field(default=None, alias='scheduleMin')
    schedule_likely: Optional[float] = Field(default=None, alias='scheduleLikely')
    schedule_max: Optional[float] = Field(default=None, alias='scheduleMax')
    cost_shape: DistributionType = Field(default='none', alias='costShape')
    cost_min: Optional[float] = Field(default=None, alias='costMin')
    cost_likely: Optional[float] = Field(default=None, alias='costLikely')
    cost_max: Optional[float] = Field(default=None, alias='costMax')
    correlate: bool = Field(default=False, description="Schedule and cost share one uniform draw")
    impact_ranges: bool = Field(default=True, alias='impactRanges',
                                description="Sample the range; False uses the most likely value")
    event_existence: bool = Field(default=True, alias='eventExistence',
                                  description="Impact only when the event occurs; False is unconditional")

    def schedule_distribution(self) -> DurationDistribution:
        return DurationDistribution(type=self.schedule_shape, min=self.schedule_min,
                                    most_likely=self.schedule_likely, max=self.schedule_max)

    def cost_distribution(self) -> DurationDistribution:
        return DurationDistribution(type=self.cost_shape, min=self.cost_min,
                                    most_likely=self.cost_likely, max=self.cost_max)


class RiskEvent(BaseModel):
    """A discrete risk event of the register."""
    model_config = {'populate_by_name': True}

    id: str = Field(description="Risk ID")
    name: str = Field(default='', description="Risk title")
    description: str = Field(default='')
    probability: float = Field(default=0.0, ge=0, le=100, description="Probability of occurrence (%)")
    category: str = Field(default='Other', description="Risk category")
    owner: str = Field(default='')
    affected_activity_ids: list[str] = Field(default_factory=list, alias='affectedActivityIds')
    impact_type: Literal['addDays', 'multiply'] = Field(default='addDays', alias='impactType')
    impact_value: float = Field(default=0.0, alias='impactValue')
    mitigated: bool = Field(default=False)
    mitigated_probability: Optional[float] = Field(default=None, ge=0, le=100, alias='mitigatedProbability')
    mitigated_impact_value: Optional[float] = Field(default=None, alias='mitigatedImpactValue')
    quantified: bool = Field(default=False, description="Uses per-task impacts")
    task_impacts: list[RiskTaskImpact] = Field(default_factory=list, alias='taskImpacts')
    notes: str = Field(default='')

    def effective_probability(self, use_mitigated: bool) -> float:
        if use_mitigated and self.mitigated and self.mitigated_probability is not None:
            return self.mitigated_probability
        return self.probability

    def effective_impact_value(self, use_mitigated: bool) -> float:
        if use_mitigated and self.mitigated and self.mitigated_impact_value is not None:
            return self.mitigated_impact_value
        return self.impact_value

    def has_task_impacts(self) -> bool:
        return self.quantified and bool(self.task_impacts)


class SimulationParams(BaseModel):
    """Monte Carlo run parameters."""
    model_config = {'populate_by_name': True}

    iterations: int = Field(default_factory=settings_default('DEFAULT_ITERATIONS'), ge=1,
                            description="Number of iterations")
    seed: Optional[int] = Field(default=None, ge=0, description="Random seed; None draws fresh entropy")
    use_mitigated: bool = Field(default=False, alias='useMitigated')
    confidence_levels: list[int] = Field(default_factory=settings_default('DEFAULT_CONFIDENCE_LEVELS'),
                                         alias='confidenceLevels')
    histogram_bins: int = Field(default_factory=settings_default('HISTOGRAM_BINS'), ge=1,
                                alias='histogramBins')
    workers: int = Field(default_factory=settings_default('MAX_WORKERS'), ge=1,
                         description="Worker processes")
    batch_size: int = Field(default_factory=settings_default('PROGRESS_BATCH_SIZE'), ge=1,
                            alias='batchSize',
                            description="Iterations between progress reports")


class RiskAnalysisConfig(BaseModel):
    """
    Risk analysis configuration for a project.

    File: risk configuration JSON
    """
    model_config = {'populate_by_name': True}

    distributions: dict[str, DurationDistribution] = Field(default_factory=dict)
    risk_events: list[RiskEvent] = Field(default_factory=list, alias='riskEvents')
    params: SimulationParams = Field(default_factory=SimulationParams)


class HistogramBin(BaseModel):
    """One bin of the project-duration histogram."""
    model_config = {'populate_by_name': True, 'frozen': True}

    bin_start: float = Field(alias='binStart')
    bin_end: float = Field(alias='binEnd')
    count: int
    cum_pct: float = Field(alias='cumPct', description="Cumulative percentage 0-100")


class SimulationResult(BaseModel):
    """
    Immutable record of one Monte Carlo run.

    File: simulation result JSON
    """
    model_config = {'populate_by_name': True, 'frozen': True}

    id: str
    name: str
    run_at: datetime = Field(alias='runAt')
    params: SimulationParams
    requested_iterations: int = Field(alias='requestedIterations')
    completed_iterations: int = Field(alias='completedIterations')
    skipped_iterations: int = Field(default=0, alias='skippedIterations')
    cancelled: bool = False

    duration_percentiles: dict[int, int] = Field(alias='durationPercentiles')
    date_percentiles: dict[int, date] = Field(alias='datePercentiles')
    deterministic_duration: int = Field(alias='deterministicDuration')
    deterministic_finish: date = Field(alias='deterministicFinish')
    mean_duration: float = Field(alias='meanDuration')
    std_dev_duration: float = Field(alias='stdDevDuration')
    min_duration: Optional[int] = Field(default=None, alias='minDuration')
    max_duration: Optional[int] = Field(default=None, alias='maxDuration')

    criticality_index: dict[str, float] = Field(alias='criticalityIndex')
    sensitivity_index: dict[str, float] = Field(alias='sensitivityIndex')
    histogram: list[HistogramBin]

    cost_percentiles: dict[int, float] = Field(default_factory=dict, alias='costPercentiles')
    mean_cost: float = Field(default=0.0, alias='meanCost')

    distributions_snapshot: dict[str, DurationDistribution] = Field(alias='distributionsSnapshot')
    risk_events_snapshot: list[RiskEvent] = Field(alias='riskEventsSnapshot')

    def p(self, level: int) -> Optional[int]:
        """Duration at a reported confidence level."""
        return self.duration_percentiles.get(level)
