#!/usr/bin/env python3
"""Command-line interface for exam analytics, grade export and batch auto-grading."""

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path

import yaml

from gradedesk.errors import GradingError
from gradedesk.grading import export
from gradedesk.grading.aggregator import display
from gradedesk.grading.analytics import AnalyticsEngine
from gradedesk.grading.auto_grade import AutoGradeAdapter, BackendOracle
from gradedesk.grading.repository import SubmissionRepository
from gradedesk.libs.backend import BackendClient
from gradedesk.libs.config_loader import ConfigType, get_config, load_all_configs
from .batch_autograder import BatchAutoGrader

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
LOG = logging.getLogger(__name__)


def build_oracle(configs: ConfigType, client: BackendClient, repository: SubmissionRepository,
                 kind: str = None):
    """Create the scoring oracle named by ``kind`` or ``oracle.backend``."""
    kind = kind or get_config("oracle.backend", configs, default="remote")
    if kind == "remote":
        return BackendOracle(client)
    if kind == "agent":
        from gradedesk.grading.agent_oracle import AgentOracle
        return AgentOracle(configs, repository, model=get_config("oracle.model", configs, default=None))
    raise ValueError(f"Unknown oracle backend {kind!r}")


async def list_exams(repository: SubmissionRepository, args) -> int:
    exams = await repository.list_exams()
    if not exams:
        print("No exams found")
        return 0
    print(f"{'ID':>5}  {'Exam':<30} {'Course':<25} {'Questions':>9} {'Submissions':>11}")
    for exam in exams:
        print(f"{exam.id:>5}  {exam.name[:30]:<30} {exam.course_name[:25]:<25} "
              f"{exam.question_count:>9} {exam.submission_count:>11}")
    return 0


async def show_analytics(repository: SubmissionRepository, args) -> int:
    snapshot = await repository.get_submissions(args.exam_id)
    engine = AnalyticsEngine(snapshot.exam, snapshot.submissions)
    if not engine.has_data:
        print(f"No graded submissions for {snapshot.exam.name} yet")
        return 0

    report = engine.report()
    summary = report.summary

    print(f"\n{'='*60}")
    print(f"Analytics: {report.exam_name}")
    print(f"{'='*60}")
    print(f"Graded submissions: {summary.graded_count}")
    print(f"Average score: {display(summary.average):.2f}/{display(summary.overall_score):.2f} "
          f"({display(summary.average_percentage):.2f}%)")
    print(f"Highest: {display(summary.maximum):.2f}  Lowest: {display(summary.minimum):.2f}")

    print(f"\nScore Distribution:")
    for bucket in report.distribution:
        print(f"  {bucket.label:>8}: {bucket.count}")

    print(f"\nRanking:")
    for entry in report.ranking:
        print(f"  {entry.rank:>3}. {entry.student_name}: {display(entry.total):.2f} "
              f"({display(entry.percentage):.2f}%)")

    print(f"\nQuestion Difficulty (hardest first):")
    for q in report.difficulty:
        print(f"  Q{q.question_id} [{q.level.value}] {display(q.average_percentage):.2f}% "
              f"- {q.text[:60]}")

    if args.output:
        with open(args.output, 'w') as f:
            yaml.dump(report.to_yaml_dict(), f, default_flow_style=False, sort_keys=False)
        print(f"\nAnalytics saved to: {args.output}")
    return 0


async def export_grades(repository: SubmissionRepository, args) -> int:
    snapshot = await repository.get_submissions(args.exam_id)
    exam = snapshot.exam
    output = args.output or Path(export.export_filename(exam.name))
    path = export.write_csv(output, exam.name, exam.course_name, exam.overall_score, snapshot.submissions)
    print(f"Exported {len(snapshot.submitted)} submissions to {path}")
    return 0


async def auto_grade(repository: SubmissionRepository, args, configs: ConfigType,
                     client: BackendClient) -> int:
    oracle = build_oracle(configs, client, repository, kind=args.oracle)
    grader = BatchAutoGrader(
        configs=configs,
        repository=repository,
        adapter=AutoGradeAdapter(oracle),
        max_concurrent=args.max_concurrent,
    )
    results = await grader.grade_exam_async(args.exam_id, save=not args.no_save, regrade=args.regrade)
    if not results:
        print("No submissions needed auto-grading")
        return 0

    summary_path = args.summary
    if summary_path is None:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        summary_path = Path(f"autograde_summary_{args.exam_id}_{timestamp}.yaml")
    grader.save_summary(results, summary_path)

    successful = [r for r in results if r.success]
    failed = [r for r in results if not r.success]
    incomplete = [r for r in successful if r.missing]

    print(f"\n{'='*60}")
    print(f"Auto-grading Complete")
    print(f"{'='*60}")
    print(f"Total submissions: {len(results)}")
    print(f"Auto-graded: {len(successful)}")
    print(f"Saved: {sum(1 for r in successful if r.saved)}")
    print(f"Failed: {len(failed)}")

    if incomplete:
        print(f"\nNeed manual scores:")
        for result in incomplete:
            print(f"  {result.student_name}: questions {', '.join(map(str, result.missing))}")

    if failed:
        print(f"\nFailed submissions:")
        for result in failed:
            print(f"  {result.student_name}: {result.error_message}")

    print(f"\nSummary saved to: {summary_path}")
    return 1 if failed else 0


async def run(args, configs: ConfigType) -> int:
    async with BackendClient.from_config(configs) as client:
        if args.username:
            await client.login(args.username, args.password or "")
        repository = SubmissionRepository(client)
        try:
            if args.command == "list-exams":
                return await list_exams(repository, args)
            if args.command == "analytics":
                return await show_analytics(repository, args)
            if args.command == "export":
                return await export_grades(repository, args)
            if args.command == "auto-grade":
                return await auto_grade(repository, args, configs, client)
        finally:
            client.logout()
    raise ValueError(f"Unknown command {args.command!r}")


def main():
    """Main entry point for grade-report command."""
    parser = argparse.ArgumentParser(
        description='Exam analytics, CSV grade export and batch auto-grading',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # List exams with question and submission counts
  grade-report list-exams

  # Show class analytics and save them as YAML
  grade-report analytics --exam-id 7 --output analytics.yaml

  # Export a CSV grade report
  grade-report export --exam-id 7 --output reports/

  # Auto-grade every ungraded submission and save complete results
  grade-report auto-grade --exam-id 7 --max-concurrent 8

  # Use the local LLM oracle and keep results unsaved for review
  grade-report auto-grade --exam-id 7 --oracle agent --no-save
        """
    )

    parser.add_argument('--config', '-c', type=Path, action='append', default=[],
                        help='Extra YAML config file merged over config/*.yaml (repeatable)')
    parser.add_argument('--username', '-u', help='Log in with this username before running')
    parser.add_argument('--password', '-p', help='Password for --username')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable verbose logging')

    subparsers = parser.add_subparsers(dest='command', required=True)

    subparsers.add_parser('list-exams', help='List exams')

    analytics_parser = subparsers.add_parser('analytics', help='Show analytics for an exam')
    analytics_parser.add_argument('--exam-id', '-e', type=int, required=True)
    analytics_parser.add_argument('--output', '-o', type=Path, help='Save analytics to this YAML file')

    export_parser = subparsers.add_parser('export', help='Export a CSV grade report')
    export_parser.add_argument('--exam-id', '-e', type=int, required=True)
    export_parser.add_argument('--output', '-o', type=Path,
                               help='CSV file or directory (default: <exam>_grades.csv)')

    grade_parser = subparsers.add_parser('auto-grade', help='Auto-grade pending submissions')
    grade_parser.add_argument('--exam-id', '-e', type=int, required=True)
    grade_parser.add_argument('--oracle', choices=['remote', 'agent'], default=None,
                              help='Scoring oracle (overrides oracle.backend)')
    grade_parser.add_argument('--max-concurrent', '-t', type=int, default=None,
                              help='Maximum number of concurrent grading tasks (overrides config value)')
    grade_parser.add_argument('--no-save', action='store_true',
                              help='Do not send auto-graded scores to the backend')
    grade_parser.add_argument('--regrade', action='store_true',
                              help='Also re-grade submissions that are already graded')
    grade_parser.add_argument('--summary', '-o', type=Path, default=None,
                              help='Path to save summary YAML file')

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        configs = load_all_configs(*[str(p) for p in args.config])
    except Exception as e:
        LOG.error(f"Failed to load configuration: {e}")
        sys.exit(1)

    try:
        exit_code = asyncio.run(run(args, configs))
    except GradingError as e:
        LOG.error(f"{args.command} failed: {e}", exc_info=args.verbose)
        sys.exit(1)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
