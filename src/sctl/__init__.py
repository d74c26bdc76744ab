"""sctl - remote service control over SSH.

Runs named hosts and multi-step tasks defined in layered TOML/YAML
configuration against remote machines, one host at a time.

Quick Start:
    from sctl import resolve_config, TaskExecutor

    config = resolve_config()
    await TaskExecutor(config).run_task("deploy")
"""

__version__ = "0.1.0"

from sctl.config import ResolvedConfig, resolve_config
from sctl.executor import TaskExecutor

__all__ = ["__version__", "ResolvedConfig", "TaskExecutor", "resolve_config"]
