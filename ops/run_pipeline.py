#!/usr/bin/env python3
"""
Precinct Results Pipeline with Click CLI

Runs every configured (election, target area) unit and writes one results
JSON plus one keyed boundary GeoJSON per unit. Configuration values can be
overridden from the command line without editing config.yaml.

Usage:
    python -m ops.run_pipeline [OPTIONS] [COMMAND]

    # Override targets for a quick run:
    python -m ops.run_pipeline --targets "554821:545911,582786"

    # Only one election from the config:
    python -m ops.run_pipeline --election psp2025

    # See how a new release's columns resolve:
    python -m ops.run_pipeline inspect data/pst4p.csv

    # Verbose logging:
    python -m ops.run_pipeline --verbose
"""

import os
import sys
import time
from pathlib import Path
from typing import Any, Dict, List, Tuple

import click
from loguru import logger

from ops.config_loader import Config
from precincts.field_registry import FieldRegistry
from precincts.loaders import (
    inspect_columns,
    load_election,
    write_boundaries,
    write_result_set,
)
from precincts.models import TargetArea
from precincts.pipeline import UnitOutcome, UnitState, ZeroMatchPolicy, run_all


class ConfigContext:
    """Click context object holding the loaded config and CLI overrides."""

    def __init__(self, config_file=None):
        self.config_file = config_file
        self.overrides: Dict[str, Any] = {}
        self.kwargs: Dict[str, Any] = {}

    def add_override(self, key: str, value: Any):
        """Add config override using dot notation."""
        self.overrides[key] = value
        logger.debug(f"Added override: {key} = {value}")

    def get_config(self) -> Config:
        """Load config and apply overrides."""
        config = Config(self.config_file)
        for key, value in self.overrides.items():
            config.set(key, value)
        return config


# Custom Click types for better validation
class ConfigOverride(click.ParamType):
    """Custom parameter type for config overrides."""

    name = "config_override"

    def convert(self, value, param, ctx) -> Tuple[str, Any]:
        if "=" not in value:
            self.fail(f"Invalid format: {value}. Use KEY=VALUE", param, ctx)

        key, val = value.split("=", 1)

        # Auto-parse value type
        if val.lower() in ("true", "false"):
            parsed_val: Any = val.lower() == "true"
        elif val.isdigit():
            parsed_val = int(val)
        elif "." in val and val.replace(".", "", 1).isdigit():
            parsed_val = float(val)
        else:
            parsed_val = val

        return key, parsed_val


class TargetList(click.ParamType):
    """Comma separated AREA[:SUBAREA] list."""

    name = "targets"

    def convert(self, value, param, ctx) -> List[TargetArea]:
        if isinstance(value, list):
            return value
        try:
            targets = TargetArea.parse_many(value)
        except ValueError as e:
            self.fail(str(e), param, ctx)
        if not targets:
            self.fail("No target areas given", param, ctx)
        return targets


# Main CLI group
@click.group(invoke_without_command=True)
@click.option(
    "--config-file",
    type=click.Path(exists=True, dir_okay=False),
    help="Config file (default: PIPELINE_CONFIG_PATH, ./config.yaml, ops/config.yaml)",
)
@click.option("--targets", type=TargetList(), help='Target areas, e.g. "554821:545911,582786"')
@click.option(
    "--election", "elections", multiple=True, metavar="TAG", help="Only run this election tag"
)
@click.option("--output-dir", type=click.Path(file_okay=False), help="Override output directory")
@click.option(
    "--zero-match-policy",
    type=click.Choice([p.value for p in ZeroMatchPolicy]),
    help="What to do when a target matches no boundary feature",
)
@click.option(
    "--set",
    "config_overrides",
    multiple=True,
    type=ConfigOverride(),
    help="Set config values using dot notation (e.g., pipeline.write_boundaries=false)",
)
@click.option("--dry-run", is_flag=True, help="Show what would be run without executing")
@click.option("-v", "--verbose", is_flag=True, help="Enable DEBUG level logging")
@click.option(
    "--trace", is_flag=True, help="Enable TRACE level logging for deep debugging (maximum detail)"
)
@click.option("--log-file", type=str, help="Also log to specified file")
@click.pass_context
def cli(ctx, **kwargs):
    """
    Precinct Results Pipeline

    Resolves drifting column names, joins tabular results to precinct
    boundaries and writes canonical per-precinct results for every
    configured election and target area.

    \b
    Examples:
      python -m ops.run_pipeline                                   # All elections, configured targets
      python -m ops.run_pipeline --targets 554821:545911           # One district
      python -m ops.run_pipeline --election psp2025 --election kz2024
      python -m ops.run_pipeline --zero-match-policy skip          # Fail units with no boundaries
      python -m ops.run_pipeline --set output_dir=build/results    # Any config value
      python -m ops.run_pipeline --dry-run                         # Show plan only
      python -m ops.run_pipeline inspect data/pst4p.csv            # Column resolution report
    """
    # Set up logging first, before anything else
    setup_logging(verbose=kwargs.get("verbose", False), enable_trace=kwargs.get("trace", False))

    if kwargs.get("log_file"):
        log_file = kwargs["log_file"]
        log_level = (
            "TRACE" if kwargs.get("trace") else ("DEBUG" if kwargs.get("verbose") else "INFO")
        )
        logger.add(
            log_file,
            level=log_level,
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}",
            rotation="10 MB",  # Rotate when file gets large
            retention="7 days",  # Keep logs for a week
        )
        logger.info(f"📄 Also logging to file: {log_file}")

    logger.debug(f"🔧 CLI arguments received: {kwargs}")

    config_ctx = ConfigContext(kwargs.get("config_file"))
    config_ctx.kwargs = kwargs
    ctx.obj = config_ctx

    for key, value in kwargs["config_overrides"]:
        config_ctx.add_override(key, value)
    if kwargs["output_dir"]:
        config_ctx.add_override("output_dir", kwargs["output_dir"])
    if kwargs["zero_match_policy"]:
        config_ctx.add_override("pipeline.zero_match_policy", kwargs["zero_match_policy"])

    if ctx.invoked_subcommand is None:
        ctx.invoke(run)


@cli.command()
@click.pass_context
def run(ctx):
    """Run every (election, target) unit and write the outputs."""
    config_ctx: ConfigContext = ctx.obj
    kwargs = config_ctx.kwargs

    try:
        config = config_ctx.get_config()
        targets = kwargs.get("targets") or config.get_targets()
        elections = config.get_elections(only=list(kwargs.get("elections") or []))
        policy = ZeroMatchPolicy(config.get_zero_match_policy())
    except (FileNotFoundError, ValueError) as e:
        logger.critical(f"Configuration error: {e}")
        logger.info("💡 Make sure config.yaml exists and is valid")
        ctx.exit(1)

    if not elections:
        logger.critical("No elections configured")
        logger.info("💡 Add entries under 'elections' in config.yaml")
        ctx.exit(1)

    if kwargs.get("dry_run"):
        show_dry_run_info(config, elections, targets, policy)
        return

    total_start = time.time()
    logger.info("🗺️ Precinct Results Pipeline")
    logger.info("=" * 60)

    outcomes = run_elections(config, elections, targets, policy)

    done = [o for o in outcomes if o.state is UnitState.DONE]
    failed = [o for o in outcomes if o.state is UnitState.FAILED]
    total_elapsed = time.time() - total_start

    logger.info("=" * 60)
    logger.success(f"✅ Completed {len(done)}/{len(outcomes)} units")
    for outcome in failed:
        logger.error(f"   ❌ {outcome.label}: {outcome.error}")
    logger.info(f"⏱️ Total time: {total_elapsed:.1f}s")
    logger.info(f"   📁 Output: {config.get_output_dir()}/")

    if outcomes and not done:
        logger.critical("Every unit failed")
        ctx.exit(1)


def run_elections(
    config: Config, elections: List[Dict[str, Any]], targets: List[TargetArea], policy
) -> List[UnitOutcome]:
    """Load each election, run its units and write outputs as units finish."""
    registry = config.build_registry()
    output_dir = config.get_output_dir()
    with_boundaries = bool(config.get("pipeline.write_boundaries", True))
    outcomes: List[UnitOutcome] = []

    def write_outputs(outcome: UnitOutcome) -> None:
        if outcome.state is not UnitState.DONE:
            return
        write_result_set(outcome.result_set, output_dir)
        if with_boundaries:
            write_boundaries(outcome.boundaries, outcome.election_tag, outcome.target, output_dir)

    for entry in elections:
        try:
            dataset = load_election(entry, config.project_root, registry)
        except Exception as e:
            handle_critical_error(e, f"Loading inputs for {entry['tag']}")
            for target in targets:
                outcome = UnitOutcome(election_tag=entry["tag"], target=target)
                outcome.start()
                outcome.fail(e)
                outcomes.append(outcome)
            continue

        outcomes.extend(
            run_all(
                [dataset],
                targets,
                registry=registry,
                zero_match_policy=policy,
                on_outcome=write_outputs,
            )
        )

    return outcomes


@cli.command()
@click.argument("file_path", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def inspect(ctx, file_path):
    """Show how each semantic field resolves against a CSV or boundary file."""
    config_ctx: ConfigContext = ctx.obj
    try:
        registry = config_ctx.get_config().build_registry()
    except FileNotFoundError:
        logger.debug("No config found, using built-in aliases")
        registry = FieldRegistry()

    try:
        columns = list(inspect_columns(file_path))
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Error reading file: {e}")
        ctx.exit(1)

    logger.info(f"🔍 {Path(file_path).name}: {len(columns)} columns")
    click.echo(f"Columns: {', '.join(str(c) for c in columns)}")

    for table in registry.tables():
        found = registry.explain(table, columns)
        missing_required = [
            f.name for f in registry.fields(table) if f.required and found[f.name] is None
        ]
        status = "complete" if not missing_required else f"missing {missing_required}"
        click.echo(f"\n[{table}] {status}")
        for name, column in found.items():
            click.echo(f"  {name:<15} -> {column if column is not None else '-'}")


def show_dry_run_info(
    config: Config, elections: List[Dict[str, Any]], targets: List[TargetArea], policy
):
    """Show dry run information."""
    logger.info("🔍 DRY RUN MODE - Nothing will be written")
    logger.info("=" * 60)
    logger.info(f"  📁 Output: {config.get_output_dir()}")
    logger.info(f"  🎯 Targets: {', '.join(t.label for t in targets)}")
    logger.info(f"  🧭 Zero-match policy: {policy.value}")

    for entry in elections:
        logger.info(f"  🗳️ {entry['tag']}")
        for key in ("turnout_csv", "party_csv", "catalog_csv", "boundaries"):
            value = entry.get(key)
            if not value:
                continue
            for item in value if isinstance(value, list) else [value]:
                path = config.resolve_path(item)
                logger.info(f"     📄 {key}: {path} {'✅' if path.exists() else '❌'}")

    click.echo(f"{len(elections) * len(targets)} units would run")


def setup_logging(verbose: bool = False, enable_trace: bool = False) -> None:
    """
    Configure loguru logging with appropriate levels.

    Args:
        verbose: If True, set log level to DEBUG
        enable_trace: If True, enable TRACE level logging for deep debugging
    """
    logger.remove()

    if enable_trace:
        log_level = "TRACE"
        log_format = "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | <level>{message}</level>"
    elif verbose:
        log_level = "DEBUG"
        log_format = "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | <level>{message}</level>"
    else:
        log_level = "INFO"
        log_format = (
            "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>"
        )

    logger.add(
        sys.stderr,
        format=log_format,
        level=log_level,
        colorize=True,
        backtrace=enable_trace,
        diagnose=enable_trace,
    )

    os.environ["LOGURU_LEVEL"] = log_level

    if verbose:
        logger.debug("🔧 Verbose logging enabled (DEBUG level)")
    if enable_trace:
        logger.trace("🔍 Trace logging enabled - maximum detail mode")


def handle_critical_error(error: Exception, context: str = "") -> None:
    """
    Log an error with its context, plus the traceback in TRACE mode.

    Args:
        error: The exception that occurred
        context: Additional context about where the error occurred
    """
    enable_trace = os.environ.get("LOGURU_LEVEL", "INFO") == "TRACE"

    if enable_trace:
        import traceback

        logger.trace(f"Error context: {context}")
        logger.trace(f"Error type: {type(error).__name__}")
        logger.trace(f"Error args: {error.args}")
        logger.trace("Full traceback:")
        logger.trace(traceback.format_exc())

    logger.error(f"💥 {context}")
    logger.error(f"Exception: {type(error).__name__}: {error}")

    if not enable_trace:
        logger.info("💡 For detailed debugging, run with --trace flag")


if __name__ == "__main__":
    cli()
