"""
HazelPilot - deterministic browser execution of loosely structured UI test steps.
Main entry point for the application.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.table import Table

from hazelpilot import __version__
from hazelpilot.config.settings import get_settings
from hazelpilot.core.types import RunReport, RunState
from hazelpilot.error_handling import LaunchError, StepSourceError
from hazelpilot.executor.runner import new_run_id, run_web_tests
from hazelpilot.monitoring.logger import get_logger, setup_logging
from hazelpilot.normalizer.step_normalizer import StepNormalizer
from hazelpilot.normalizer.step_source import load_step_source
from hazelpilot.recorder.artifact_recorder import ArtifactRecorder

console = Console()
logger = get_logger("main")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_ERROR = 2


def create_parser() -> argparse.ArgumentParser:
    """Create command line argument parser."""
    parser = argparse.ArgumentParser(
        prog="hazelpilot",
        description=f"HazelPilot - UI test step engine v{__version__}",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run a step file against a site
  hazelpilot run steps.json --base-url https://staging.example.com

  # Keep going after failures, watch the browser
  hazelpilot run plan.json --continue-on-failure --headed

  # Show the canonical steps a file normalizes to
  hazelpilot normalize steps.json
        """,
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Show version information",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode with verbose logging",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose structured logging output (JSON)",
    )

    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Execute a step file in a browser")
    run_parser.add_argument("steps_file", type=Path, help="JSON steps, plan document or text file")
    run_parser.add_argument("-u", "--base-url", help="Base URL for relative goto targets")
    run_parser.add_argument("--run-id", help="Artifact directory name (default: generated)")
    run_parser.add_argument(
        "--max-run-ms",
        type=int,
        help="Wall-clock budget for the whole run in milliseconds",
    )
    run_parser.add_argument(
        "--continue-on-failure",
        action="store_true",
        help="Attempt every step even after a failure",
    )
    run_parser.add_argument(
        "--headed",
        action="store_true",
        help="Show the browser window",
    )
    run_parser.add_argument(
        "--tie-breaker",
        action="store_true",
        help="Let a language model arbitrate ambiguous targets (needs OPENAI_API_KEY)",
    )

    normalize_parser = subparsers.add_parser(
        "normalize", help="Print the canonical steps of a step file as JSON"
    )
    normalize_parser.add_argument("steps_file", type=Path, help="JSON steps, plan document or text file")

    return parser


def show_version() -> int:
    """Show version information."""
    console.print("\n[bold cyan]HazelPilot - UI test step engine[/bold cyan]")
    console.print(f"Version: [green]{__version__}[/green]")
    console.print("Python: [dim]3.10+[/dim]")
    return EXIT_OK


def render_report(report: RunReport) -> None:
    """Print the per-step results and the summary."""
    table = Table(title=f"Run {report.run_id}", show_lines=False)
    table.add_column("#", style="cyan", width=4)
    table.add_column("Action", style="green")
    table.add_column("Status")
    table.add_column("Strategy", style="dim")
    table.add_column("Error", style="red")

    for result in report.results:
        status = "[green]ok[/green]" if result.ok else "[red]error[/red]"
        table.add_row(
            str(result.index),
            result.action,
            status,
            result.strategy or "-",
            result.error or "",
        )
    console.print(table)

    summary = report.summary
    color = "green" if summary.failed == 0 and report.state == RunState.COMPLETED else "red"
    console.print(
        f"[{color}]{report.state.value}[/{color}]: "
        f"{summary.passed}/{summary.total} passed, {summary.failed} failed"
    )
    if report.artifacts.video:
        console.print(f"Video: [cyan]{report.artifacts.video}[/cyan]")
    if report.artifacts.log:
        console.print(f"Log: [cyan]{report.artifacts.log}[/cyan]")


async def run_command(args: argparse.Namespace) -> int:
    """Execute a step file and persist its report."""
    settings = get_settings()
    if args.tie_breaker:
        settings.tie_breaker_enabled = True

    try:
        source = load_step_source(args.steps_file, base_url=args.base_url)
    except StepSourceError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        return EXIT_ERROR

    run_id = args.run_id or new_run_id()
    console.print(f"\n[cyan]Running[/cyan] {args.steps_file} [dim](run {run_id})[/dim]")

    try:
        report = await run_web_tests(
            source.steps,
            base_url=source.base_url,
            run_id=run_id,
            settings=settings,
            stop_on_failure=False if args.continue_on_failure else None,
            max_run_ms=args.max_run_ms,
            headless=False if args.headed else None,
        )
    except LaunchError as e:
        console.print(f"[red]Browser could not be started: {e.message}[/red]")
        logger.error("Launch failed", extra={"error": e.to_dict()})
        return EXIT_ERROR

    render_report(report)
    report_path = ArtifactRecorder(run_id, settings).write_report_json(report)
    console.print(f"[green]Report saved to:[/green] {report_path}")

    all_passed = report.summary.failed == 0 and report.state == RunState.COMPLETED
    return EXIT_OK if all_passed else EXIT_FAILED


def normalize_command(args: argparse.Namespace) -> int:
    """Print the canonical IR of a step file."""
    settings = get_settings()
    try:
        source = load_step_source(args.steps_file)
    except StepSourceError as e:
        console.print(f"[red]Error: {e.message}[/red]", highlight=False)
        return EXIT_ERROR

    steps = StepNormalizer(strict_actions=settings.strict_actions).normalize_all(source.steps)
    document = {
        "baseUrl": source.base_url,
        "steps": [step.to_json_dict() for step in steps],
        "dropped": len(source.steps) - len(steps),
    }
    print(json.dumps(document, indent=2, ensure_ascii=False))
    return EXIT_OK


async def async_main(args: Optional[list[str]] = None) -> int:
    """Async main entry point."""
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if parsed_args.version:
        return show_version()

    settings = get_settings()
    if parsed_args.debug:
        settings.log_level = "DEBUG"
    if parsed_args.verbose:
        settings.log_format = "json"

    setup_logging(
        log_level=settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file,
        sanitize_logs=settings.sanitize_logs,
    )

    if parsed_args.command == "run":
        return await run_command(parsed_args)
    if parsed_args.command == "normalize":
        return normalize_command(parsed_args)

    parser.print_help()
    return EXIT_ERROR


def main(args: Optional[list[str]] = None) -> int:
    """
    Main entry point for HazelPilot.

    Args:
        args: Command line arguments

    Returns:
        Exit code (0 when every attempted step passed, 1 when a step failed,
        2 on input or launch errors)
    """
    try:
        return asyncio.run(async_main(args))
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        return 130
    except Exception as e:
        console.print(f"[red]Fatal error: {e}[/red]")
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
