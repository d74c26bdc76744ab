"""Command-line interface for sctl."""

import asyncio
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import click

from sctl import __version__
from sctl.config import (
    CONFIG_FILENAME,
    ResolvedConfig,
    check_config,
    global_config_path,
    is_override,
    resolve_config,
)
from sctl.exceptions import SctlError
from sctl.executor import TaskExecutor
from sctl.logging import (
    configure_logging,
    get_level_from_name,
    get_level_from_verbosity,
    get_logger,
)
from sctl.progress import (
    PREFIX_DONE,
    PREFIX_ERROR,
    PREFIX_HOST,
    PREFIX_OK,
    PREFIX_OVERRIDE,
    PREFIX_TASK,
    PREFIX_WARNING,
    create_progress_reporter,
)
from sctl.templates import write_sample_config

logger = get_logger("sctl.cli")


@dataclass
class CliOptions:
    """Global options shared by every subcommand."""

    config_path: str | None = None
    local_path: str | None = None

    def load(self) -> ResolvedConfig:
        """Resolve the configuration, turning errors into CLI failures."""
        try:
            return resolve_config(self.config_path, self.local_path)
        except SctlError as e:
            raise click.ClickException(str(e))


def _source_label(source: str) -> str:
    if is_override(source):
        return f"{PREFIX_OVERRIDE} {source}"
    return f"[{source}]"


def format_hosts_json(config: ResolvedConfig) -> str:
    """Format the host listing as JSON. Passwords are never included."""
    hosts: dict[str, Any] = {}
    for name, host in config.hosts.items():
        hosts[name] = {
            "address": host.address,
            "port": host.port,
            "user": host.user,
            "key_file": host.key_file or None,
            "source": config.host_sources[name],
        }
    return json.dumps({"hosts": hosts}, indent=2)


def format_tasks_json(config: ResolvedConfig) -> str:
    """Format the task listing as JSON."""
    tasks: dict[str, Any] = {}
    for name, task in config.tasks.items():
        tasks[name] = {
            "hosts": task.target_hosts(),
            "workdir": task.workdir or None,
            "steps": list(task.steps),
            "before": list(task.before),
            "after": list(task.after),
            "source": config.task_sources[name],
        }
    return json.dumps({"tasks": tasks}, indent=2)


def format_task_info(config: ResolvedConfig, name: str) -> str:
    """One-line summary of a task for the text listing."""
    task = config.tasks[name]
    info = f"hosts: {', '.join(task.target_hosts())}, steps: {len(task.steps)}"
    if task.before:
        info += f", before: {', '.join(task.before)}"
    if task.after:
        info += f", after: {', '.join(task.after)}"
    return info


# Main CLI group
@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, help="Show version and exit")
@click.option("--config", "-c", "config_path", type=click.Path(dir_okay=False), default=None,
              help="Load only this file, skip global + local merging")
@click.option("--file", "-f", "local_path", type=click.Path(dir_okay=False), default=None,
              help=f"Use instead of ./{CONFIG_FILENAME} (global config still loaded)")
@click.option("--log-file", type=click.Path(), default=None,
              help="Write logs to file (in addition to console)")
@click.option("--log-level", type=click.Choice(["trace", "debug", "info", "warning", "error"]),
              default=None, help="Set log level explicitly (overrides -v)")
@click.option("-v", "--verbose", count=True,
              help="Increase verbosity: -v=info, -vv=debug, -vvv=trace")
@click.pass_context
def cli(
    ctx: click.Context,
    version: bool,
    config_path: str | None,
    local_path: str | None,
    log_file: str | None,
    log_level: str | None,
    verbose: int,
) -> None:
    """sctl - remote service control over SSH."""
    if version:
        click.echo(f"sctl {__version__}")
        ctx.exit(0)

    level = get_level_from_name(log_level) if log_level else get_level_from_verbosity(verbose)
    configure_logging(
        level=level,
        log_file=log_file,
        file_level=level if log_file else None,
        debug=(level <= logging.DEBUG),
    )

    ctx.obj = CliOptions(config_path=config_path, local_path=local_path)

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command("exec")
@click.option("--host", "-H", "host_name", required=True, help="Target host")
@click.argument("command", nargs=-1)
@click.pass_obj
def exec_command(options: CliOptions, host_name: str, command: tuple[str, ...]) -> None:
    """Execute a command on a remote host.

    Examples:
        sctl exec -H web01 uptime

        sctl exec -H web01 "systemctl status nginx"
    """
    config = options.load()
    executor = TaskExecutor(config)
    try:
        asyncio.run(executor.exec_command(host_name, " ".join(command)))
    except SctlError as e:
        raise click.ClickException(str(e))


@cli.command("run")
@click.argument("task_name", required=False)
@click.option("--host", "-H", "hosts", multiple=True,
              help="Target host (can be specified multiple times, overrides the task's hosts)")
@click.option("--format", "output_format", type=click.Choice(["text", "json"]),
              default="text", help="Progress format (default: text)")
@click.pass_obj
def run_task(options: CliOptions, task_name: str | None, hosts: tuple[str, ...], output_format: str) -> None:
    """Run a predefined task.

    Runs the task's before tasks, then its steps on each target host in
    order, then its after tasks. Stops at the first failing step.

    Examples:
        sctl run deploy

        sctl run deploy -H web01 -H web02

        sctl --config staging.toml run migrate
    """
    config = options.load()
    if not task_name:
        raise click.ClickException("no task name provided")

    reporter = create_progress_reporter(enabled=True, json_format=(output_format == "json"))
    executor = TaskExecutor(config, reporter=reporter)
    try:
        asyncio.run(executor.run_task(task_name, list(hosts)))
    except SctlError as e:
        raise click.ClickException(str(e))


@cli.command("hosts")
@click.option("--format", "output_format", type=click.Choice(["text", "json"]),
              default="text", help="Output format (default: text)")
@click.pass_obj
def list_hosts(options: CliOptions, output_format: str) -> None:
    """List configured hosts and where they were defined."""
    config = options.load()

    if output_format == "json":
        click.echo(format_hosts_json(config))
        return

    for name, host in config.hosts.items():
        source = _source_label(config.host_sources[name])
        click.echo(f"  {PREFIX_HOST} {name} -> {host.target}  {source}")


@cli.command("tasks")
@click.option("--format", "output_format", type=click.Choice(["text", "json"]),
              default="text", help="Output format (default: text)")
@click.pass_obj
def list_tasks(options: CliOptions, output_format: str) -> None:
    """List configured tasks and where they were defined."""
    config = options.load()

    if output_format == "json":
        click.echo(format_tasks_json(config))
        return

    for name in config.tasks:
        source = _source_label(config.task_sources[name])
        click.echo(f"  {PREFIX_TASK} {name} ({format_task_info(config, name)})  {source}")


@cli.command("check-config")
@click.pass_obj
def check_config_command(options: CliOptions) -> None:
    """Validate hosts, tasks and task references.

    Unlike ``run``, reports every problem instead of stopping at the first.
    """
    config = options.load()
    report = check_config(config)

    click.echo(f"{PREFIX_TASK} Hosts:")
    for name, issues in report.host_issues.items():
        if issues:
            click.echo(f"  {PREFIX_ERROR} {name}:")
            for issue in issues:
                click.echo(f"      -> {issue}")
        else:
            click.echo(f"  {PREFIX_OK} {name} ({config.hosts[name].target})")

    click.echo()
    click.echo(f"{PREFIX_TASK} Tasks:")
    for name, issues in report.task_issues.items():
        if issues:
            click.echo(f"  {PREFIX_ERROR} {name}:")
            for issue in issues:
                click.echo(f"      -> {issue}")
        else:
            task = config.tasks[name]
            hosts = ", ".join(task.target_hosts())
            click.echo(f"  {PREFIX_OK} {name} (hosts: {hosts}, steps: {len(task.steps)})")

    click.echo()
    if report.has_errors:
        click.echo(f"{PREFIX_WARNING} Configuration has errors")
        raise click.ClickException("configuration validation failed")

    click.echo(f"{PREFIX_DONE} Configuration OK")


@cli.command("init")
@click.option("--local", is_flag=True, help=f"Create ./{CONFIG_FILENAME} instead of global config")
@click.option("--force", is_flag=True, help="Overwrite existing file")
def init_config(local: bool, force: bool) -> None:
    """Create a sample configuration file."""
    path = Path(CONFIG_FILENAME) if local else global_config_path()
    existed = path.exists()

    try:
        written = write_sample_config(path, local=local, force=force)
    except OSError as e:
        raise click.ClickException(f"could not write config file: {e}")

    if not written:
        click.echo(f"{PREFIX_WARNING} File already exists: {path}")
        click.echo("Use --force to overwrite")
        return

    if existed:
        click.echo(f"{PREFIX_WARNING} Overwrote existing file: {path}")
    logger.debug("Wrote sample config", path=path, local=local)
    click.echo(f"{PREFIX_DONE} Created {path}")


def main() -> None:
    """Entry point for the sctl console script."""
    cli()
