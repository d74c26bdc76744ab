"""Type definitions for sctl.

This module defines the host and task records produced by the config
store and consumed by the executor. Both are frozen dataclasses: once a
configuration has been resolved nothing mutates it for the rest of the
run.
"""

from dataclasses import dataclass, field
from getpass import getuser

from .exceptions import TaskValidationError

DEFAULT_PORT = 22


@dataclass(frozen=True)
class HostConfig:
    """Connection details for a named remote host.

    Attributes:
        name: Unique host name (the key in the ``hosts`` table)
        address: Hostname or IP address to dial
        port: SSH port (default: 22)
        user: Login user (default: current process user)
        key_file: Optional private key path, ``~`` is expanded at use
        password: Optional inline password, used as a last resort

    Example:
        >>> host = HostConfig(name="web01", address="192.168.1.10")
        >>> host.port
        22
    """

    name: str
    address: str = ""
    port: int = DEFAULT_PORT
    user: str = field(default_factory=getuser)
    key_file: str = ""
    password: str = field(default="", repr=False)

    @property
    def is_usable(self) -> bool:
        """Check if the host has an address to connect to."""
        return bool(self.address)

    @property
    def target(self) -> str:
        """Format as ``user@address:port`` for display."""
        return f"{self.user}@{self.address}:{self.port}"


@dataclass(frozen=True)
class TaskConfig:
    """A named, ordered sequence of shell steps bound to target hosts.

    Exactly one of ``host`` and ``hosts`` selects where the task runs.
    ``before`` and ``after`` name other tasks that run around this one;
    chaining is a single level, so those tasks' own lists are ignored.

    Attributes:
        name: Unique task name (the key in the ``tasks`` table)
        host: Single target host name
        hosts: Multiple target host names
        workdir: Directory every step is run from
        steps: Shell commands, run in order
        before: Tasks to run before this one
        after: Tasks to run after this one
    """

    name: str
    host: str = ""
    hosts: list[str] = field(default_factory=list)
    workdir: str = ""
    steps: list[str] = field(default_factory=list)
    before: list[str] = field(default_factory=list)
    after: list[str] = field(default_factory=list)

    def target_hosts(self) -> list[str]:
        """Return the host names this task targets.

        ``hosts`` wins whenever it is non-empty, otherwise ``host`` is
        wrapped in a one-element list. Returns an empty list when
        neither is set.
        """
        if self.hosts:
            return list(self.hosts)
        if self.host:
            return [self.host]
        return []

    def command_for(self, step: str) -> str:
        """Build the remote command line for a step."""
        if self.workdir:
            return f"cd {self.workdir} && {step}"
        return step

    def validate(self, name: str | None = None) -> None:
        """Check the task's own fields.

        Args:
            name: Name to report in errors (defaults to ``self.name``)

        Raises:
            TaskValidationError: If both or neither of host/hosts are set,
                or the task has no steps
        """
        name = name or self.name
        if self.host and self.hosts:
            raise TaskValidationError(
                f"task {name!r}: cannot specify both 'host' and 'hosts'", name
            )
        if not self.host and not self.hosts:
            raise TaskValidationError(
                f"task {name!r}: must specify 'host' or 'hosts'", name
            )
        if not self.steps:
            raise TaskValidationError(f"task {name!r}: has no steps", name)

    def validate_refs(self, name: str | None, tasks: dict[str, "TaskConfig"]) -> None:
        """Check that every before/after reference names a known task.

        Only this task's lists are checked; referenced tasks' own chains
        are not followed.

        Raises:
            TaskValidationError: On the first unknown reference
        """
        name = name or self.name
        for ref in self.before:
            if ref not in tasks:
                raise TaskValidationError(
                    f"task {name!r}: before task {ref!r} not found", name
                )
        for ref in self.after:
            if ref not in tasks:
                raise TaskValidationError(
                    f"task {name!r}: after task {ref!r} not found", name
                )
