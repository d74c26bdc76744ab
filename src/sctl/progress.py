"""Progress reporting for sctl.

The executor reports what it is doing through a ProgressReporter:
which task is starting, which host and step are running, and how the
run ended. Text output uses Rich with short ASCII prefixes; JSON output
emits one event per line (NDJSON) for machine consumers.
"""

import json
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from rich.console import Console
from rich.text import Text

PREFIX_HOST = "[H]"
PREFIX_TASK = "[T]"
PREFIX_STEP = ">"
PREFIX_OK = "[ok]"
PREFIX_DONE = "[OK]"
PREFIX_ERROR = "[error]"
PREFIX_WARNING = "[!]"
PREFIX_OVERRIDE = "*"


@dataclass
class ProgressEvent:
    """A progress event during a run.

    Attributes:
        event_type: Type of event (task_start, step_start, ...)
        task: Task name the event belongs to
        timestamp: When the event occurred
        details: Additional event-specific details
    """

    event_type: str
    task: str
    timestamp: str
    details: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = {
            "event": self.event_type,
            "task": self.task,
            "timestamp": self.timestamp,
        }
        result.update(self.details)
        return result

    def to_json(self) -> str:
        """Convert to JSON string (NDJSON format)."""
        return json.dumps(self.to_dict())


class ProgressReporter(ABC):
    """Base class for progress reporters."""

    @abstractmethod
    def on_task_start(self, task: str, hosts: list[str], role: str) -> None:
        """Called when a task starts. ``role`` is before, main or after."""

    @abstractmethod
    def on_host_mismatch(self, task: str, hosts: list[str]) -> None:
        """Called when a chained task runs on hosts disjoint from its parent's."""

    @abstractmethod
    def on_host_start(self, task: str, host: str, multi_host: bool) -> None:
        """Called before connecting to a host."""

    @abstractmethod
    def on_step_start(
        self, task: str, host: str, index: int, total: int, step: str, multi_host: bool
    ) -> None:
        """Called before a step runs. ``index`` is 1-based."""

    @abstractmethod
    def on_host_complete(self, task: str, host: str, multi_host: bool) -> None:
        """Called when every step succeeded on a host."""

    @abstractmethod
    def on_run_complete(self, task: str, host_count: int) -> None:
        """Called when the whole run, chains included, succeeded."""

    @abstractmethod
    def on_run_failed(self, task: str, error: str) -> None:
        """Called when the run stopped on an error."""


class JsonProgressReporter(ProgressReporter):
    """Reports progress as NDJSON (newline-delimited JSON) events."""

    def __init__(self, output: Any = None) -> None:
        """Initialize JSON progress reporter.

        Args:
            output: Output stream (defaults to sys.stderr to not pollute stdout)
        """
        self.output = output or sys.stderr

    def _emit(self, event_type: str, task: str, **details: Any) -> None:
        event = ProgressEvent(
            event_type=event_type,
            task=task,
            timestamp=datetime.now(timezone.utc).isoformat(),
            details=details,
        )
        print(event.to_json(), file=self.output, flush=True)

    def on_task_start(self, task: str, hosts: list[str], role: str) -> None:
        self._emit("task_start", task, hosts=hosts, role=role)

    def on_host_mismatch(self, task: str, hosts: list[str]) -> None:
        self._emit("host_mismatch", task, hosts=hosts)

    def on_host_start(self, task: str, host: str, multi_host: bool) -> None:
        self._emit("host_start", task, host=host)

    def on_step_start(
        self, task: str, host: str, index: int, total: int, step: str, multi_host: bool
    ) -> None:
        self._emit("step_start", task, host=host, step=index, total=total, command=step)

    def on_host_complete(self, task: str, host: str, multi_host: bool) -> None:
        self._emit("host_complete", task, host=host)

    def on_run_complete(self, task: str, host_count: int) -> None:
        self._emit("run_complete", task, hosts=host_count, success=True)

    def on_run_failed(self, task: str, error: str) -> None:
        self._emit("run_failed", task, success=False, error=error)


class TextProgressReporter(ProgressReporter):
    """Reports progress as human-readable text through a Rich console."""

    def __init__(self, output: Any = None, console: Console | None = None) -> None:
        """Initialize text progress reporter.

        Args:
            output: Output stream (defaults to sys.stdout, so progress lines
                interleave with streamed remote output)
            console: Rich Console to use instead of one built on ``output``
        """
        self.console = console or Console(file=output, highlight=False, soft_wrap=True)

    def _emit(self, *parts: str | tuple[str, str]) -> None:
        self.console.print(Text.assemble(*parts))

    def on_task_start(self, task: str, hosts: list[str], role: str) -> None:
        self._emit((PREFIX_TASK, "bold cyan"), f" Running {task}...")

    def on_host_mismatch(self, task: str, hosts: list[str]) -> None:
        self._emit(
            (PREFIX_WARNING, "bold yellow"),
            f" Note: {task} runs on different host(s): {', '.join(hosts)}",
        )

    def on_host_start(self, task: str, host: str, multi_host: bool) -> None:
        if multi_host:
            self._emit("  ", (PREFIX_HOST, "bold magenta"), f" {host}")

    def on_step_start(
        self, task: str, host: str, index: int, total: int, step: str, multi_host: bool
    ) -> None:
        indent = "    " if multi_host else "  "
        self._emit(indent, (PREFIX_STEP, "bold"), f" [{index}/{total}] {step}")

    def on_host_complete(self, task: str, host: str, multi_host: bool) -> None:
        if multi_host:
            self._emit("    ", (PREFIX_OK, "green"), f" {host} done")

    def on_run_complete(self, task: str, host_count: int) -> None:
        if host_count > 1:
            self._emit((PREFIX_DONE, "bold green"), f" Task completed on {host_count} hosts")
        else:
            self._emit((PREFIX_DONE, "bold green"), " Task completed")

    def on_run_failed(self, task: str, error: str) -> None:
        # The CLI prints the error itself on stderr.
        pass


class NullProgressReporter(ProgressReporter):
    """No-op progress reporter that discards all events."""

    def on_task_start(self, task: str, hosts: list[str], role: str) -> None:
        pass

    def on_host_mismatch(self, task: str, hosts: list[str]) -> None:
        pass

    def on_host_start(self, task: str, host: str, multi_host: bool) -> None:
        pass

    def on_step_start(
        self, task: str, host: str, index: int, total: int, step: str, multi_host: bool
    ) -> None:
        pass

    def on_host_complete(self, task: str, host: str, multi_host: bool) -> None:
        pass

    def on_run_complete(self, task: str, host_count: int) -> None:
        pass

    def on_run_failed(self, task: str, error: str) -> None:
        pass


def create_progress_reporter(
    enabled: bool,
    json_format: bool = False,
    output: Any = None,
) -> ProgressReporter:
    """Create a progress reporter.

    Args:
        enabled: Whether progress reporting is enabled
        json_format: Use NDJSON instead of text
        output: Output stream (text: stdout, JSON: stderr by default)

    Returns:
        ProgressReporter instance
    """
    if not enabled:
        return NullProgressReporter()

    if json_format:
        return JsonProgressReporter(output)
    return TextProgressReporter(output)
