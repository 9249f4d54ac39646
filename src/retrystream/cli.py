"""CLI interface for retrystream"""

import logging
from pathlib import Path
from typing import Optional

import click

from retrystream.application.builder import build_policy
from retrystream.domain.config.retry import BACKOFF_MODES
from retrystream.domain.errors import ConfigurationError
from retrystream.domain.policy import RetryPolicy
from retrystream.infrastructure.config.config_manager import ConfigManager

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Setup logging configuration"""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )
    logging.getLogger().setLevel(level)


def _die(message: str, verbose: bool = False, exc: Optional[Exception] = None) -> None:
    """Exit with a user-friendly error message"""
    if exc is not None:
        logger.error(message, exc_info=verbose)
    else:
        logger.error(message)
    raise click.ClickException(message)


def format_delay(seconds: float) -> str:
    if seconds < 1:
        return f"{seconds * 1000:g}ms"
    return f"{seconds:g}s"


def _echo_schedule(policy: RetryPolicy) -> None:
    """Print when each retry happens and which failure ends the sequence"""
    total = 0.0
    for attempt, delay in enumerate(policy.schedule(), start=1):
        total += delay
        click.echo(
            f"  failure {attempt}: retry in {format_delay(delay)} "
            f"(waited {format_delay(total)} in total)"
        )
    click.echo(f"  failure {policy.attempts + 1}: give up, original failure is raised")


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option(
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to .retrystream.yml config file",
)
@click.pass_context
def cli(ctx, verbose: bool, config: Path):
    """retrystream - retry policies for async failure streams"""
    ctx.ensure_object(dict)
    setup_logging(verbose)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose


@cli.command()
@click.argument("mode", type=click.Choice(BACKOFF_MODES, case_sensitive=False))
@click.option("--attempts", type=int, help="Failures tolerated before giving up (default 3)")
@click.option("--delay", type=int, help="Delay in ms for fixed/linear backoff (default 1000)")
@click.option("--seed", type=float, help="Seed in seconds for exponential backoff (default 1.0)")
@click.pass_context
def plan(ctx, mode: str, attempts: Optional[int], delay: Optional[int], seed: Optional[float]):
    """Show the delays a policy would produce.

    MODE: fixed, linear or exponential
    """
    verbose = ctx.obj.get("verbose", False)
    options = {"attempts": attempts, "delay": delay, "seed": seed}
    config = {key: value for key, value in options.items() if value is not None}

    try:
        policy = build_policy(mode, config)
    except ConfigurationError as e:
        _die(str(e), verbose=verbose, exc=e)

    click.echo(f"{mode.lower()} backoff, {policy.attempts} attempts:")
    _echo_schedule(policy)


@cli.command()
@click.argument("name", required=False)
@click.pass_context
def policies(ctx, name: Optional[str]):
    """List configured policies and their schedules.

    NAME: Only show this policy
    """
    verbose = ctx.obj.get("verbose", False)

    try:
        config_manager = ConfigManager(config_path=ctx.obj.get("config_path"))
        names = [name] if name else config_manager.policy_names()
        if not names:
            click.echo("No retry policies configured")
            return
        for policy_name in names:
            policy = config_manager.get_policy(policy_name)
            policy_config = config_manager.get_policy_config(policy_name)
            click.echo(f"\n{policy_name} ({policy.mode})")
            if policy_config.retry_on:
                click.echo(f"  retry on: {', '.join(policy_config.retry_on)}")
            if policy_config.exclude:
                click.echo(f"  never retry: {', '.join(policy_config.exclude)}")
            _echo_schedule(policy)
    except ConfigurationError as e:
        _die(str(e), verbose=verbose, exc=e)


def main():
    """Main entry point"""
    cli(obj={})


if __name__ == "__main__":
    main()
