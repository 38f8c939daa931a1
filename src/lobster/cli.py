"""Command-line interface for Lobster.

``lobster`` with no subcommand serves the REST API. ``lobster encounter TYPE``
and ``lobster live`` drive the engine in-process against the same data dir.
"""

import argparse
import os
import sys

import uvicorn

from lobster import __version__
from lobster.config import get_settings
from lobster.engine.encounter import EncounterType
from lobster.logging_config import configure_logging
from lobster.model.genome import pct
from lobster.runtime import build_runtime
from lobster.store.genome_store import GenomeStoreError


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lobster",
        description="Lobster - autonomous subject simulation engine",
    )
    parser.add_argument("--host", default="127.0.0.1", help="Host to bind to (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind to (default: 8000)")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload for development")
    parser.add_argument("--data-dir", help="Directory holding genome.json and exocortex/")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
        help="Override LOBSTER_LOG_LEVEL",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    commands = parser.add_subparsers(dest="command", metavar="COMMAND")
    encounter = commands.add_parser("encounter", help="Run one encounter and exit")
    encounter.add_argument("type", choices=[str(t) for t in EncounterType])
    live = commands.add_parser("live", help="Run autonomous decision cycles and exit")
    live.add_argument("--cycles", type=int, default=1, help="Number of cycles (default: 1)")
    return parser


def _apply_overrides(parsed: argparse.Namespace) -> None:
    """Export CLI overrides as LOBSTER_ variables so reload workers inherit them."""
    if parsed.data_dir:
        os.environ["LOBSTER_DATA_DIR"] = parsed.data_dir
    if parsed.log_level:
        os.environ["LOBSTER_LOG_LEVEL"] = parsed.log_level
    get_settings.cache_clear()


def _run_encounter(encounter_type: str) -> int:
    runtime = build_runtime(get_settings())
    result = runtime.encounters.run(encounter_type)
    print(result.history_event)
    for mutation in result.mutations:
        print(f"  {mutation.trait}: {pct(mutation.from_)} -> {pct(mutation.to)}")
    for report in result.thresholds:
        if report.triggered:
            print(f"  threshold: {report.name}")
    return 0


def _run_live(cycles: int) -> int:
    runtime = build_runtime(get_settings())
    for result in runtime.live.run_cycles(cycles):
        decision = result.decision
        outcome = "ok" if result.success else "failed"
        print(f"[{decision.action}] {decision.reason} ({outcome})")
    return 0


def main(args: list[str] | None = None) -> int:
    """Run the Lobster server or a one-shot engine command.

    Args:
        args: Command-line arguments. If None, uses sys.argv[1:].

    Returns:
        Exit code (0 for success, 1 when the genome cannot be loaded or saved).
    """
    parser = _build_parser()
    parsed = parser.parse_args(args)
    _apply_overrides(parsed)

    if parsed.command is not None:
        configure_logging()
        if parsed.command == "live" and parsed.cycles < 1:
            parser.error("--cycles must be at least 1")
        try:
            if parsed.command == "encounter":
                return _run_encounter(parsed.type)
            return _run_live(parsed.cycles)
        except GenomeStoreError as e:
            print(f"lobster: {e}", file=sys.stderr)
            return 1

    print(f"Starting Lobster server at http://{parsed.host}:{parsed.port}")
    print(f"Genome: {get_settings().genome_path}")
    print("Press Ctrl+C to stop")

    uvicorn.run(
        "lobster.server.app:app",
        host=parsed.host,
        port=parsed.port,
        reload=parsed.reload,
    )

    return 0


if __name__ == "__main__":
    sys.exit(main())
