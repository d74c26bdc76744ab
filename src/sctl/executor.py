"""Task execution for sctl.

Runs a task in strict order: its before tasks, then its own steps on
every target host, then its after tasks. Hosts are visited one at a
time and the first failure anywhere ends the run; nothing is retried
and completed steps are not rolled back.

Chaining is one level deep. A before/after task runs on its own target
hosts with its own steps, but its own before/after lists are ignored.
"""

import logging
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field
from typing import Callable

from .config import ResolvedConfig
from .exceptions import (
    ConfigError,
    HostCommandError,
    RemoteCommandError,
    SctlError,
    StepFailedError,
    TaskValidationError,
    TransportError,
)
from .logging import get_logger, log_performance
from .progress import NullProgressReporter, ProgressReporter
from .ssh import RemoteSession, open_session
from .types import HostConfig, TaskConfig

logger = get_logger(__name__)

SessionFactory = Callable[[HostConfig], AbstractAsyncContextManager[RemoteSession]]


@dataclass
class RunSummary:
    """Outcome of a successful task run.

    Attributes:
        task: Name of the task that was run
        hosts: Hosts the main task ran on, in order
        before: Before tasks that ran
        after: After tasks that ran
    """

    task: str
    hosts: list[str] = field(default_factory=list)
    before: list[str] = field(default_factory=list)
    after: list[str] = field(default_factory=list)

    @property
    def host_count(self) -> int:
        """Number of hosts the main task ran on."""
        return len(self.hosts)


class TaskExecutor:
    """Runs tasks and ad-hoc commands from a resolved configuration.

    Attributes:
        config: Resolved configuration, never modified
        session_factory: Opens a session for a host as an async context
            manager (default: ``open_session``)
        reporter: Receives progress events

    Example:
        >>> executor = TaskExecutor(resolve_config())
        >>> summary = await executor.run_task("deploy", host_override=["web02"])
        >>> summary.host_count
        1
    """

    def __init__(
        self,
        config: ResolvedConfig,
        session_factory: SessionFactory | None = None,
        reporter: ProgressReporter | None = None,
    ) -> None:
        self.config = config
        self.session_factory = session_factory or open_session
        self.reporter = reporter or NullProgressReporter()

    def get_task(self, name: str) -> TaskConfig:
        """Look up a task and validate it and its references.

        The task's before/after tasks are validated too, so a bad chain
        is reported before any host is contacted.

        Raises:
            ConfigError: If the task is unknown
            TaskValidationError: If the task or a chained task is invalid
        """
        task = self.config.tasks.get(name)
        if task is None:
            raise ConfigError(f"task {name!r} not found in config")

        task.validate(name)
        task.validate_refs(name, self.config.tasks)
        for ref in task.before + task.after:
            self.config.tasks[ref].validate(ref)
        return task

    def get_host(self, name: str) -> HostConfig:
        """Look up a host by name.

        Raises:
            ConfigError: If the host is unknown
        """
        host = self.config.hosts.get(name)
        if host is None:
            raise ConfigError(f"host {name!r} not found in config")
        return host

    def resolve_targets(self, task: TaskConfig, host_override: list[str] | None = None) -> list[str]:
        """Pick the hosts a task runs on.

        A non-empty ``host_override`` replaces the task's own targets.

        Raises:
            TaskValidationError: If no host is selected either way
        """
        hosts = list(host_override) if host_override else task.target_hosts()
        if not hosts:
            raise TaskValidationError(f"task {task.name!r}: no target hosts", task.name)
        return hosts

    async def run_task(self, name: str, host_override: list[str] | None = None) -> RunSummary:
        """Run a task with its before and after chains.

        Args:
            name: Task to run
            host_override: Hosts to use instead of the task's own targets.
                Chained tasks always use their own targets.

        Returns:
            RunSummary of the completed run

        Raises:
            SctlError: On the first failure; later steps, hosts and chained
                tasks are not attempted
        """
        log = logger.bind(task=name)
        try:
            task = self.get_task(name)
            hosts = self.resolve_targets(task, host_override)
            log.info(f"Running on {len(hosts)} host(s)", hosts=",".join(hosts))

            for ref in task.before:
                await self._run_chained(ref, hosts, "before")

            self.reporter.on_task_start(name, hosts, "main")
            await self._run_on_hosts(task, hosts)

            for ref in task.after:
                await self._run_chained(ref, hosts, "after")
        except SctlError as e:
            log.error(f"Run failed: {e}")
            self.reporter.on_run_failed(name, str(e))
            raise

        self.reporter.on_run_complete(name, len(hosts))
        return RunSummary(task=name, hosts=hosts, before=list(task.before), after=list(task.after))

    async def exec_command(self, host_name: str, command: str) -> None:
        """Run a single ad-hoc command on one host.

        Raises:
            ConfigError: If the host is unknown or the command is empty
            HostCommandError: If the command exits non-zero or the session breaks
        """
        host = self.get_host(host_name)
        if not command.strip():
            raise ConfigError("no command provided")

        async with self.session_factory(host) as session:
            try:
                await session.run(command)
            except (RemoteCommandError, TransportError) as e:
                raise HostCommandError(host.name, e) from e

    async def _run_chained(self, name: str, parent_hosts: list[str], role: str) -> None:
        task = self.config.tasks[name]
        hosts = self.resolve_targets(task)

        if not set(hosts) & set(parent_hosts):
            logger.warning(f"Chained task {name} runs on different hosts", hosts=",".join(hosts))
            self.reporter.on_host_mismatch(name, hosts)

        self.reporter.on_task_start(name, hosts, role)
        await self._run_on_hosts(task, hosts)

    async def _run_on_hosts(self, task: TaskConfig, hosts: list[str]) -> None:
        multi_host = len(hosts) > 1
        for host_name in hosts:
            host = self.get_host(host_name)
            self.reporter.on_host_start(task.name, host_name, multi_host)
            with log_performance(logger.logger, f"Task {task.name} on {host_name}", logging.DEBUG):
                await self._run_steps(task, host, multi_host)
            self.reporter.on_host_complete(task.name, host_name, multi_host)

    async def _run_steps(self, task: TaskConfig, host: HostConfig, multi_host: bool) -> None:
        total = len(task.steps)
        async with self.session_factory(host) as session:
            for index, step in enumerate(task.steps, start=1):
                self.reporter.on_step_start(task.name, host.name, index, total, step, multi_host)
                try:
                    await session.run(task.command_for(step))
                except (RemoteCommandError, TransportError) as e:
                    raise StepFailedError(task.name, index, host.name, e) from e
