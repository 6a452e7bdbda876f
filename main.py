"""Main entry point for the IA Deadline Planner engine."""

import argparse
import json
import logging
import sys
from dataclasses import asdict
from datetime import date, datetime
from pathlib import Path

import yaml

from iaplanner.engine.blockers import blocker_statistics, blockers_needing_attention, process_auto_escalation
from iaplanner.engine.deepwork import analyze_full_schedule, improvement_suggestions, summarize
from iaplanner.engine.energy import analyze_weekly_energy, energy_optimization_summary
from iaplanner.engine.feasibility import check_feasibility
from iaplanner.engine.learning import adjusted_estimates, compute_multipliers, multiplier_explanation
from iaplanner.engine.reschedule import reschedule_after_completion
from iaplanner.engine.warnings import analyze_schedule_warnings, generate_optimization_scenarios
from iaplanner.evaluation.generator import StateGenerator
from iaplanner.models.state import AppState
from iaplanner.utils.config import (
    blocker_settings_from_config,
    deep_work_settings_from_config,
    energy_settings_from_config,
    get_default_config,
    load_config,
    merge_config,
)
from iaplanner.utils.datetime_utils import format_long_date, parse_date

logger = logging.getLogger(__name__)


def build_config(config_path: str) -> dict:
    """Defaults overlaid with the config file, when one exists."""
    config = get_default_config()
    if config_path and Path(config_path).exists():
        config = merge_config(config, load_config(config_path))
    return config


def load_state(state_path: str, config: dict, today: date, seed: int = 42) -> AppState:
    """Load a snapshot from JSON/YAML, or generate a sample one when no path is given."""
    if not state_path:
        logger.info("No state file given, generating a sample snapshot (seed=%d)", seed)
        data = StateGenerator(seed=seed, config=config).generate_snapshot(today)
        data = json.loads(json.dumps(data, default=str))
    else:
        path = Path(state_path)
        if not path.exists():
            raise FileNotFoundError(f"State file not found: {state_path}")
        with open(path, 'r') as f:
            if path.suffix.lower() in ['.yaml', '.yml']:
                data = yaml.safe_load(f) or {}
            else:
                data = json.load(f)

    planner = config.get('planner', {})
    data.setdefault('master_deadline', planner.get('master_deadline'))
    data.setdefault('weekly_hours_budget', planner.get('weekly_hours_budget', 6))

    return AppState.from_dict(
        data,
        deep_work_settings=deep_work_settings_from_config(config),
        energy_settings=energy_settings_from_config(config),
        blocker_settings=blocker_settings_from_config(config),
    )


def save_report(report: dict, output_dir: str, name: str) -> Path:
    results_dir = Path(output_dir)
    results_dir.mkdir(parents=True, exist_ok=True)
    report_path = results_dir / f"{name}.json"
    with open(report_path, 'w') as f:
        json.dump(report, f, indent=2, default=str)
    return report_path


def run_analyze(state: AppState) -> dict:
    """Deep-work analysis of the whole schedule."""
    analysis = analyze_full_schedule(state)
    summary = summarize(analysis)

    print(f"\nDeep-work analysis: {len(analysis.daily_analyses)} days")
    print(f"Overall productivity score: {analysis.overall_productivity_score}/100")
    print(f"Context switches: {analysis.total_context_switches} "
          f"({analysis.total_penalty_hours:.1f}h lost)")
    for violation in analysis.violations[:10]:
        print(f"  [{violation.severity}] {violation.message}")
    if len(analysis.violations) > 10:
        print(f"  ... and {len(analysis.violations) - 10} more")
    for suggestion in improvement_suggestions(analysis.violations):
        print(f"  Suggestion: {suggestion['title']} ({suggestion['impact']})")

    return {'summary': summary, 'analysis': analysis.to_dict()}


def run_warnings(state: AppState, today: date) -> dict:
    """Schedule warnings with fixes, plus optimization scenarios."""
    warnings = analyze_schedule_warnings(state, today)
    scenarios = generate_optimization_scenarios(state, warnings, today)

    print(f"\n{len(warnings)} warning(s)")
    for warning in warnings:
        print(f"  [{warning.severity.value.upper()}] {warning.title} - {warning.impact}")
        for fix in warning.fixes:
            marker = "*" if fix.recommended else "-"
            print(f"      {marker} {fix.label} ({fix.risk.value} risk)")
    if scenarios:
        print("\nScenarios:")
        for scenario in scenarios:
            marker = " (recommended)" if scenario.recommended else ""
            print(f"  {scenario.name}{marker}: {scenario.description}")
            for tradeoff in scenario.tradeoffs:
                print(f"      - {tradeoff}")

    return {
        'warnings': [w.to_dict() for w in warnings],
        'scenarios': [s.to_dict() for s in scenarios],
    }


def run_learn(state: AppState) -> dict:
    """Learned multipliers and adjusted estimates."""
    multipliers = compute_multipliers(state.projects)
    estimates = adjusted_estimates(state.projects)

    overall = multipliers.overall
    print(f"\nOverall multiplier: {overall.multiplier:.2f} ({overall.sample_count} samples)")
    print(f"  {multiplier_explanation(overall.multiplier)}")
    for phase, bucket in multipliers.phases.items():
        if bucket.sample_count:
            print(f"  {phase.value}: {bucket.multiplier:.2f} ({bucket.sample_count} samples)")
    for row in estimates:
        print(f"  {row['milestone_name']} [{row['project_id']}]: "
              f"{row['original_hours']:.1f}h -> {row['adjusted_hours']:.1f}h ({row['source']})")

    return {'multipliers': multipliers.to_dict(), 'adjusted_estimates': estimates}


def run_feasibility(state: AppState, today: date, config: dict) -> dict:
    planner = config.get('planner', {})
    feasibility = check_feasibility(
        state.projects,
        state.master_deadline,
        state.weekly_hours_budget,
        today,
        buffer_multiplier=planner.get('feasibility_buffer', 1.2),
        max_weekly_hours=planner.get('max_suggested_weekly_hours', 20),
    )

    print(f"\n{feasibility.message}")
    if not feasibility.is_feasible:
        print(f"  Earliest feasible deadline: {format_long_date(feasibility.minimum_deadline)}")
        if feasibility.suggested_weekly_hours is not None:
            print(f"  Or work {feasibility.suggested_weekly_hours}h/week")

    return feasibility.to_dict()


def run_energy(state: AppState, today: date) -> dict:
    weekly = analyze_weekly_energy(state, today)
    summary = energy_optimization_summary(state)

    print(f"\nEnergy alignment for week of {format_long_date(weekly.week_start)}: "
          f"{weekly.overall_energy_score}/100")
    print(f"  Well matched: {weekly.well_matched_sessions}, mismatched: {weekly.mismatched_sessions}")
    print(f"  Hard work at low energy: {weekly.high_load_in_low_energy}, "
          f"light work in peak hours: {weekly.low_load_in_high_energy}")

    return {'weekly': weekly.to_dict(), 'summary': summary}


def run_reschedule(state: AppState, milestone_id: str, today: date) -> dict:
    """Reschedule the owning project as if the milestone were completed today."""
    project = next((p for p in state.projects if p.find_milestone(milestone_id)), None)
    if project is None:
        print(f"\nMilestone not found: {milestone_id}")
        return {'message': "Milestone not found"}

    result = reschedule_after_completion(project, milestone_id, state.master_deadline, today)
    print(f"\n{result.message}")
    if result.deadline_at_risk:
        print(f"  Warning: {project.name} now finishes {format_long_date(result.new_completion_date)}, "
              f"after the deadline")

    return result.to_dict()


def run_blockers(state: AppState, now: datetime) -> dict:
    processed = process_auto_escalation(state.blockers, state.blocker_settings, now)
    attention = blockers_needing_attention(processed, state.blocker_settings, now)
    stats = blocker_statistics(processed)

    print(f"\n{stats['total_blockers']} blocker(s), {stats['resolved_blockers']} resolved")
    for blocker in attention:
        print(f"  Needs attention: {blocker.title} ({blocker.severity.value}, {blocker.status.value})")
    for pattern in stats['patterns']:
        print(f"  Pattern: {pattern}")

    return {
        'blockers': [asdict(b) for b in processed],
        'needing_attention': [b.id for b in attention],
        'statistics': stats,
    }


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="IA Deadline Planner engine"
    )
    parser.add_argument(
        'command',
        choices=['analyze', 'warnings', 'learn', 'feasibility', 'energy', 'reschedule',
                 'blockers', 'generate-state'],
        help='Command to run'
    )
    parser.add_argument(
        '--state',
        type=str,
        default=None,
        help='Path to a JSON or YAML state snapshot (default: generated sample)'
    )
    parser.add_argument(
        '--config',
        type=str,
        default='config.yaml',
        help='Path to configuration file (default: config.yaml)'
    )
    parser.add_argument(
        '--today',
        type=str,
        default=None,
        help='Date to treat as today, YYYY-MM-DD (default: system date)'
    )
    parser.add_argument(
        '--milestone',
        type=str,
        default=None,
        help='Milestone id for the reschedule command'
    )
    parser.add_argument(
        '--seed',
        type=int,
        default=42,
        help='Random seed for generated snapshots (default: 42)'
    )
    parser.add_argument(
        '--output-dir',
        type=str,
        default=None,
        help='Directory for JSON reports (default: results)'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable debug logging'
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s %(name)s %(levelname)s: %(message)s',
    )

    config = build_config(args.config)
    output_dir = args.output_dir or config.get('output', {}).get('results_dir', 'results')
    today = parse_date(args.today) if args.today else date.today()

    if args.command == 'generate-state':
        generator = StateGenerator(seed=args.seed, config=config)
        snapshot = generator.generate_snapshot(today)
        report_path = save_report(snapshot, output_dir, 'generated_state')
        milestones = sum(len(p['milestones']) for p in snapshot['projects'])
        print(f"Generated {len(snapshot['projects'])} projects with {milestones} milestones")
        print(f"State saved to: {report_path}")
        return

    try:
        state = load_state(args.state, config, today, args.seed)
    except (FileNotFoundError, KeyError, ValueError) as e:
        print(f"Error loading state: {e}", file=sys.stderr)
        sys.exit(1)

    if args.command == 'analyze':
        report = run_analyze(state)
    elif args.command == 'warnings':
        report = run_warnings(state, today)
    elif args.command == 'learn':
        report = run_learn(state)
    elif args.command == 'feasibility':
        report = run_feasibility(state, today, config)
    elif args.command == 'energy':
        report = run_energy(state, today)
    elif args.command == 'reschedule':
        if not args.milestone:
            parser.error("reschedule requires --milestone")
        report = run_reschedule(state, args.milestone, today)
    else:
        report = run_blockers(state, datetime.combine(today, datetime.now().time()))

    report_path = save_report(report, output_dir, args.command)
    print(f"\nReport saved to: {report_path}")


if __name__ == "__main__":
    main()
