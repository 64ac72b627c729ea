"""
Command line interface for the CPM scheduler and risk engine.

Usage:
    python -m gantt_cpm schedule project.json
    python -m gantt_cpm schedule activities.csv --start 2025-03-03 --output out/
    python -m gantt_cpm simulate project.json --risk risk.json --iterations 5000 --seed 42
    python -m gantt_cpm critical-path project.json --threshold 10
    python -m gantt_cpm progress project.json --date 2025-04-15 --baseline 0
"""

import argparse
import logging
import sys
from datetime import date
from pathlib import Path

from pydantic import ValidationError
from tqdm import tqdm

from schemas.risk import RiskAnalysisConfig
from schemas.validator import SchemaValidationError, validated_df_to_csv

from .analysis.critical_path import analyze_critical_path, format_critical_path_report
from .baseline import progress_snapshot
from .config.settings import settings
from .cpm.engine import schedule
from .cpm.network import SchedulingError
from .data_loader import (
    activity_risk_to_dataframe,
    iterations_to_dataframe,
    load_project,
    load_risk_config,
    schedule_to_dataframe,
)
from .risk.monte_carlo import MonteCarloEngine, SimulationJob
from .utils.logger import configure_logging

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    configure_logging('gantt_cpm', level='DEBUG' if verbose else None)


def _load(args):
    project_kwargs = {}
    if args.calendar:
        project_kwargs['default_calendar'] = args.calendar
    if args.status_date is not None:
        project_kwargs['status_date'] = args.status_date
    return load_project(Path(args.input), start=args.start, **project_kwargs)


def _output_dir(args) -> Path:
    output = Path(args.output) if args.output else settings.OUTPUT_DIR
    output.mkdir(parents=True, exist_ok=True)
    return output


def cmd_schedule(args) -> int:
    """Run CPM and write schedule.csv."""
    network, calendars, project = _load(args)
    result = schedule(network, calendars, project, strict=args.strict)

    output = _output_dir(args) / 'schedule.csv'
    validated_df_to_csv(schedule_to_dataframe(result, project.default_calendar_id), output, index=False)

    print(f"\nProject: {project.name}")
    print(f"  Start:     {result.project_start}")
    print(f"  Finish:    {result.project_finish}")
    print(f"  Duration:  {result.project_duration} working days")
    print(f"  Critical:  {len(result.critical_path)} activities")
    violations = result.get_constraint_violations()
    if violations:
        print(f"  Constraint violations: {', '.join(a.activity_id for a in violations)}")
    for error in result.errors:
        print(f"  [WARN] {error}")
    print(f"\nWrote {output}")
    return 0


def cmd_simulate(args) -> int:
    """Run a Monte Carlo simulation and write its result files."""
    network, calendars, project = _load(args)
    config = load_risk_config(Path(args.risk)) if args.risk else RiskAnalysisConfig()

    updates = {}
    if args.iterations is not None:
        updates['iterations'] = args.iterations
    if args.seed is not None:
        updates['seed'] = args.seed
    if args.workers is not None:
        updates['workers'] = args.workers
    if args.mitigated:
        updates['use_mitigated'] = True
    params = config.params.model_copy(update=updates)

    engine = MonteCarloEngine.from_config(network, calendars, project, config)
    with tqdm(total=params.iterations, desc='Simulating', unit='it') as bar:
        job = SimulationJob(engine, params, on_progress=lambda done, total: bar.update(done - bar.n),
                            name=args.name)
        job.start()
        try:
            while job.running:
                job.wait(0.2)
        except KeyboardInterrupt:
            print("\nCancelling; keeping completed iterations...", file=sys.stderr)
            job.cancel()
        result = job.wait()

    output = _output_dir(args)
    (output / 'simulation.json').write_text(
        result.model_dump_json(by_alias=True, indent=2), encoding='utf-8'
    )
    validated_df_to_csv(activity_risk_to_dataframe(result, network), output / 'activity_risk.csv', index=False)
    validated_df_to_csv(iterations_to_dataframe(engine.records), output / 'iterations.csv', index=False)

    print(f"\nIterations: {result.completed_iterations}/{result.requested_iterations}"
          f"{' (cancelled)' if result.cancelled else ''}")
    print(f"Deterministic: {result.deterministic_duration} days, finish {result.deterministic_finish}")
    print(f"Mean: {result.mean_duration} days (std {result.std_dev_duration})")
    for level in sorted(result.duration_percentiles):
        print(f"  P{level:<3} {result.duration_percentiles[level]:>6} days   "
              f"{result.date_percentiles[level]}")
    print(f"\nWrote results to {output}")
    return 0


def cmd_critical_path(args) -> int:
    """Print the critical path report."""
    network, calendars, project = _load(args)
    result = analyze_critical_path(network, calendars, project,
                                   near_critical_threshold=args.threshold)
    print(format_critical_path_report(result))
    return 0


def cmd_progress(args) -> int:
    """Print planned vs actual percent complete."""
    network, calendars, project = _load(args)
    scheduled = schedule(network, calendars, project, strict=False)
    report = progress_snapshot(scheduled.network, calendars, project,
                               target=args.date, baseline_index=args.baseline)

    print(f"\nProgress at {report.target} (BL{report.baseline_index})")
    print(f"{'ID':<15} {'Name':<40} {'Planned':>8} {'Actual':>8} {'Var':>8}")
    print("-" * 83)
    for row in report.rows:
        indent = '  ' * max(0, row.level - 1)
        print(f"{row.activity_id:<15} {(indent + row.name)[:40]:<40} "
              f"{row.planned_percent:>7.1f}% {row.actual_percent:>7.1f}% {row.variance:>+7.1f}")
    print("-" * 83)
    print(f"{'Project':<56} {report.project_planned:>7.1f}% {report.project_actual:>7.1f}% "
          f"{report.project_variance:>+7.1f}")
    return 0


def _add_project_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument('input', help='Project JSON or activity CSV')
    parser.add_argument('--start', type=date.fromisoformat, default=None,
                        help='Project start date (required for CSV input, overrides a JSON project)')
    parser.add_argument('--status-date', type=date.fromisoformat, default=None,
                        help='Status (data) date override')
    parser.add_argument('--calendar', default=None,
                        help=f'Default calendar (CSV default: {settings.DEFAULT_CALENDAR}; overrides a JSON project)')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='gantt_cpm',
        description='CPM scheduling and Monte Carlo schedule risk analysis',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    subparsers = parser.add_subparsers(dest='command', required=True)

    schedule_parser = subparsers.add_parser('schedule', help='Compute the CPM schedule')
    _add_project_args(schedule_parser)
    schedule_parser.add_argument('--output', '-o', default=None, help='Output directory')
    schedule_parser.add_argument('--strict', action='store_true',
                                 help='Fail on circular dependencies instead of skipping them')
    schedule_parser.set_defaults(func=cmd_schedule)

    simulate_parser = subparsers.add_parser('simulate', help='Run a Monte Carlo risk simulation')
    _add_project_args(simulate_parser)
    simulate_parser.add_argument('--risk', '-r', default=None,
                                 help='Risk configuration JSON (distributions, risk events, params)')
    simulate_parser.add_argument('--iterations', '-n', type=int, default=None,
                                 help='Number of iterations (overrides the risk file)')
    simulate_parser.add_argument('--seed', type=int, default=None, help='Random seed')
    simulate_parser.add_argument('--workers', '-w', type=int, default=None,
                                 help='Worker processes')
    simulate_parser.add_argument('--mitigated', action='store_true',
                                 help='Use post-mitigation probabilities and impacts')
    simulate_parser.add_argument('--name', default=None, help='Label for the run')
    simulate_parser.add_argument('--output', '-o', default=None, help='Output directory')
    simulate_parser.set_defaults(func=cmd_simulate)

    cp_parser = subparsers.add_parser('critical-path', help='Critical path report')
    _add_project_args(cp_parser)
    cp_parser.add_argument('--threshold', type=int, default=5,
                           help='Near-critical float threshold in working days (default: 5)')
    cp_parser.set_defaults(func=cmd_critical_path)

    progress_parser = subparsers.add_parser('progress', help='Planned vs actual progress')
    _add_project_args(progress_parser)
    progress_parser.add_argument('--date', type=date.fromisoformat, default=None,
                                 help='Target date (default: status date or today)')
    progress_parser.add_argument('--baseline', type=int, default=None,
                                 help='Baseline index (default: project active baseline)')
    progress_parser.set_defaults(func=cmd_progress)

    return parser


def main(argv=None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    try:
        return args.func(args)
    except (ValidationError, SchedulingError, SchemaValidationError, FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
