#!/usr/bin/env python3
"""
rewardledger CLI

Replays YAML scenarios against a fresh reward ledger and reports the
resulting state, observations and pending rewards.
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import click
import yaml
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from rewardledger.core import config as ledger_config
from rewardledger.core.config import LedgerConfig
from rewardledger.core.exceptions import LedgerError
from rewardledger.core.logging_config import setup_logging
from rewardledger.core.replay import ScenarioRun, load_scenario, replay

logger = logging.getLogger(__name__)

console = Console()


def _cli_fail(exc: Exception, exit_code: int = 1) -> None:
    """Centralized CLI error handler for consistent messaging."""
    logger.error("CLI error: %s", exc, exc_info=True)
    console.print(f"[bold red]Error:[/] {escape(str(exc))}")
    sys.exit(exit_code)


def _run_scenario(path: Path, strict: bool) -> ScenarioRun:
    try:
        return replay(load_scenario(path), strict=strict)
    except LedgerError as exc:
        raise click.ClickException(f"{type(exc).__name__}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Invalid scenario YAML: {exc}") from exc


def _emit(payload: Dict[str, Any], output_format: str) -> bool:
    """Print ``payload`` as JSON or YAML; returns False when a table is wanted instead."""
    if output_format == "json":
        click.echo(json.dumps(payload, indent=2))
        return True
    if output_format == "yaml":
        click.echo(yaml.safe_dump(payload, sort_keys=False))
        return True
    return False


def _print_run(run: ScenarioRun) -> None:
    steps = Table(title="Operations", box=box.SIMPLE)
    steps.add_column("#", justify="right")
    steps.add_column("Tick", justify="right")
    steps.add_column("Op", style="cyan")
    steps.add_column("Result")
    for step in run.steps:
        if not step.ok:
            outcome = f"[red]{step.error['error_type']}[/]: {escape(step.error['error_message'])}"
        elif isinstance(step.result, dict):
            outcome = f"reward={step.result['reward']} total={step.result['total']}"
        else:
            outcome = str(step.result)
        steps.add_row(str(step.index), str(step.tick), step.op, outcome)
    console.print(steps)

    distributor = run.distributor
    pools = Table(title="Pools", box=box.SIMPLE)
    pools.add_column("Pool", style="cyan")
    pools.add_column("Asset")
    pools.add_column("Share", justify="right")
    pools.add_column("Staked", justify="right", style="green")
    pools.add_column("Acc/share", justify="right")
    for pool in distributor.registry.all_pools():
        info = distributor.pool_info(pool.pool_id)
        pools.add_row(
            str(pool.ref),
            pool.staked_asset[:10],
            info["emission_share"],
            str(pool.total_staked),
            str(pool.acc_reward_per_share),
        )
    console.print(pools)
    console.print(
        f"Final tick [bold]{run.clock.now()}[/], "
        f"{len(distributor.events)} events, "
        f"{len(run.failures)} failed operations"
    )


@click.group()
@click.option(
    "--log-level",
    default=ledger_config.LOG_LEVEL,
    show_default=True,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    help="Structured log level (logs go to stderr).",
)
@click.option("--log-file", type=click.Path(dir_okay=False), help="Also write JSON logs to this file.")
@click.option("--json-output", is_flag=True, help="Output raw JSON")
@click.pass_context
def cli(ctx: click.Context, log_level: str, log_file: Optional[str], json_output: bool):
    """
    rewardledger - reward distribution ledger tools

    Replay deterministic deposit / withdraw / claim scenarios against a
    fresh ledger and inspect the outcome.
    """
    ctx.ensure_object(dict)
    setup_logging(name="rewardledger", log_file=log_file, level=log_level, environment="cli")
    ctx.obj["json_output"] = json_output


@cli.command("replay")
@click.argument("scenario", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json", "yaml"]),
    default="table",
    show_default=True,
)
@click.option("--strict", is_flag=True, help="Abort on the first failing operation.")
@click.pass_context
def replay_command(ctx: click.Context, scenario: Path, output_format: str, strict: bool):
    """Replay SCENARIO and print the final ledger state."""
    if ctx.obj.get("json_output"):
        output_format = "json"
    run = _run_scenario(scenario, strict)
    if not _emit(run.to_dict(), output_format):
        _print_run(run)


@cli.command("pending")
@click.argument("scenario", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("participant")
@click.option("--pool-id", type=click.IntRange(min=0), default=None, help="Explicit pool id (base pool if omitted).")
@click.pass_context
def pending_command(ctx: click.Context, scenario: Path, participant: str, pool_id: Optional[int]):
    """Replay SCENARIO, then print PARTICIPANT's pending reward."""
    run = _run_scenario(scenario, strict=False)
    try:
        amount = run.distributor.pending_reward(participant, pool_id)
    except LedgerError as exc:
        raise click.ClickException(f"{type(exc).__name__}: {exc}") from exc

    if ctx.obj.get("json_output"):
        click.echo(json.dumps({
            "participant": participant.lower(),
            "pool_id": pool_id,
            "tick": run.clock.now(),
            "pending": amount,
        }, indent=2))
    else:
        click.echo(str(amount))


@cli.command("config")
@click.pass_context
def config_command(ctx: click.Context):
    """Show the ledger configuration resolved from the environment."""
    try:
        config = LedgerConfig.from_env()
    except LedgerError as exc:
        raise click.ClickException(str(exc)) from exc

    payload = config.to_dict()
    if ctx.obj.get("json_output"):
        click.echo(json.dumps(payload, indent=2))
        return

    table = Table(title="Ledger configuration", box=box.SIMPLE)
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="green")
    for key, value in payload.items():
        table.add_row(key, str(value))
    console.print(table)


def main():
    """Main CLI entry point"""
    try:
        cli(obj={})
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/]")
        sys.exit(130)
    except (ValueError, KeyError, TypeError) as exc:
        _cli_fail(exc)


if __name__ == "__main__":
    main()
