"""Exception types for sctl.

Every error raised by the config store, session factory and executor
derives from SctlError so the CLI can turn it into a single failure
message at the invocation boundary.
"""


class SctlError(Exception):
    """Base class for all sctl errors."""


class ConfigError(SctlError):
    """Raised when configuration is missing, unreadable or malformed."""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class TaskValidationError(ConfigError):
    """Raised when a task definition or one of its references is invalid.

    Attributes:
        task: Name of the offending task
    """

    def __init__(self, message: str, task: str):
        super().__init__(message)
        self.task = task


class AuthenticationError(SctlError):
    """Raised when no usable credential could be constructed for a host."""


class KnownHostsError(SctlError):
    """Raised when the known_hosts trust store cannot be loaded."""


class TransportError(SctlError):
    """Raised when dialing a host or opening a channel fails.

    Attributes:
        host: Host name the failure is attributed to
    """

    def __init__(self, message: str, host: str | None = None):
        super().__init__(message)
        self.host = host


class RemoteCommandError(SctlError):
    """Raised when a remote command exits with a non-zero status.

    Attributes:
        command: The command line that was run
        exit_status: Remote exit status (None when killed by a signal)
        exit_signal: Signal name when the command was killed
    """

    def __init__(
        self,
        command: str,
        exit_status: int | None,
        exit_signal: str | None = None,
    ):
        if exit_signal:
            message = f"command killed by signal {exit_signal}"
        else:
            message = f"command exited with status {exit_status}"
        super().__init__(message)
        self.command = command
        self.exit_status = exit_status
        self.exit_signal = exit_signal


class StepFailedError(SctlError):
    """Raised when a task step fails on a host.

    Attributes:
        task: Task the step belongs to
        step_index: 1-based index of the failing step
        host: Host name the step ran on
        cause: Underlying RemoteCommandError or TransportError
    """

    def __init__(self, task: str, step_index: int, host: str, cause: SctlError):
        super().__init__(f"step {step_index} on {host} failed: {cause}")
        self.task = task
        self.step_index = step_index
        self.host = host
        self.cause = cause


class HostCommandError(SctlError):
    """Raised when an ad-hoc command fails on a host.

    Attributes:
        host: Host name the command ran on
        cause: Underlying RemoteCommandError or TransportError
    """

    def __init__(self, host: str, cause: SctlError):
        super().__init__(f"command on {host} failed: {cause}")
        self.host = host
        self.cause = cause
