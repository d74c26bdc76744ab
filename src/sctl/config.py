"""Layered configuration loading for sctl.

Hosts and tasks are read from up to two layered sources, a global file
under the user's config directory and a local file in the working
directory, or from a single explicit file that bypasses layering. Each
entry remembers which source it came from.

Supported formats:
- TOML (default, parsed with tomllib)
- YAML (``.yml``/``.yaml`` suffix, parsed with PyYAML)

Example document:

    [hosts.web01]
    address = "web01.example.com"
    user = "deploy"

    [tasks.deploy]
    host = "web01"
    workdir = "/srv/app"
    before = ["backup"]
    steps = ["git pull", "systemctl restart app"]
"""

import logging
import tomllib
from dataclasses import dataclass, field
from getpass import getuser
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigError, TaskValidationError
from .types import DEFAULT_PORT, HostConfig, TaskConfig

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "sctl.toml"
GLOBAL_LABEL = "global"
LOCAL_LABEL = "local"
MAX_PORT = 65535

HOST_FIELDS = {"address", "port", "user", "key_file", "password"}
TASK_FIELDS = {"host", "hosts", "workdir", "steps", "before", "after"}


def global_config_path() -> Path:
    """Location of the global (user-scope) config file."""
    return Path.home() / ".config" / "sctl" / CONFIG_FILENAME


@dataclass
class ResolvedConfig:
    """Hosts and tasks merged from all loaded sources.

    Attributes:
        hosts: Host name to HostConfig
        tasks: Task name to TaskConfig
        host_sources: Host name to provenance label
        task_sources: Task name to provenance label
    """

    hosts: dict[str, HostConfig] = field(default_factory=dict)
    tasks: dict[str, TaskConfig] = field(default_factory=dict)
    host_sources: dict[str, str] = field(default_factory=dict)
    task_sources: dict[str, str] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        """Check if no hosts and no tasks were loaded."""
        return not self.hosts and not self.tasks


def is_override(source: str) -> bool:
    """Check if a provenance label marks an entry shadowing another layer."""
    return "(overrides " in source


def merge_config(base: ResolvedConfig, overlay: ResolvedConfig) -> ResolvedConfig:
    """Merge overlay entries over base entries.

    Whole entries are replaced, fields are never merged individually.
    Entries only present in base are kept. An overlay entry that shadows
    a base entry is labelled ``"<overlay> (overrides <base>)"``.

    Neither input is modified.
    """
    merged = ResolvedConfig(
        hosts=dict(base.hosts),
        tasks=dict(base.tasks),
        host_sources=dict(base.host_sources),
        task_sources=dict(base.task_sources),
    )

    for name, host in overlay.hosts.items():
        source = overlay.host_sources[name]
        if name in base.hosts:
            source = f"{source} (overrides {base.host_sources[name]})"
            logger.debug(f"Host {name} {source}")
        merged.hosts[name] = host
        merged.host_sources[name] = source

    for name, task in overlay.tasks.items():
        source = overlay.task_sources[name]
        if name in base.tasks:
            source = f"{source} (overrides {base.task_sources[name]})"
            logger.debug(f"Task {name} {source}")
        merged.tasks[name] = task
        merged.task_sources[name] = source

    return merged


def load_config_file(path: str | Path, source: str | None = None) -> ResolvedConfig:
    """Load a single config file.

    Defaults (port 22, current user) are applied here, once per file, so
    the merged result never gets them applied a second time.

    Args:
        path: File to read
        source: Provenance label for every entry (defaults to the path)

    Returns:
        ResolvedConfig holding only this file's entries

    Raises:
        ConfigError: If the file is missing, unreadable or malformed
    """
    path = Path(path)
    label = source or str(path)

    try:
        content = path.read_text()
    except FileNotFoundError:
        raise ConfigError(f"config file not found: {path}", path=str(path))
    except OSError as e:
        raise ConfigError(f"failed to read {path}: {e}", path=str(path))

    data = _parse_document(path, content)

    config = ResolvedConfig()
    for name, host_data in _table(data, "hosts", path).items():
        config.hosts[name] = _host_from_dict(name, host_data, path)
        config.host_sources[name] = label
    for name, task_data in _table(data, "tasks", path).items():
        config.tasks[name] = _task_from_dict(name, task_data, path)
        config.task_sources[name] = label

    logger.info(
        f"Loaded {len(config.hosts)} host(s) and {len(config.tasks)} task(s) from {path}"
    )
    return config


def resolve_config(
    config_path: str | Path | None = None,
    local_path: str | Path | None = None,
    *,
    global_path: str | Path | None = None,
    default_local_path: str | Path = CONFIG_FILENAME,
) -> ResolvedConfig:
    """Resolve the configuration for one invocation.

    With ``config_path`` only that file is loaded and every entry is
    attributed to it. Otherwise the global file is loaded if present,
    then the local file (``local_path`` or ``./sctl.toml``) is merged
    over it.

    Args:
        config_path: Explicit file, bypasses layering
        local_path: Replacement for the default local file, must exist
        global_path: Override for the global file location
        default_local_path: Local file used when ``local_path`` is not given

    Returns:
        The merged ResolvedConfig

    Raises:
        ConfigError: If a requested file is missing, any present file fails
            to parse, or layering produced no hosts and no tasks
    """
    if config_path:
        logger.debug(f"Loading explicit config {config_path}, layering skipped")
        return load_config_file(config_path)

    config = ResolvedConfig()

    global_file = Path(global_path) if global_path else global_config_path()
    if global_file.exists():
        config = merge_config(config, load_config_file(global_file, GLOBAL_LABEL))
    else:
        logger.debug(f"No global config at {global_file}")

    if local_path:
        local_file = Path(local_path)
        config = merge_config(config, load_config_file(local_file, LOCAL_LABEL))
    else:
        local_file = Path(default_local_path)
        if local_file.exists():
            config = merge_config(config, load_config_file(local_file, LOCAL_LABEL))
        else:
            logger.debug(f"No local config at {local_file}")

    if config.is_empty:
        raise ConfigError(
            f"no config found (checked {_display_path(local_file)} and "
            f"{_display_path(global_file)})"
        )

    return config


@dataclass
class ConfigReport:
    """Issues found by check_config, keyed by host/task name.

    Every host and task appears in the report; an empty list means the
    entry is valid.
    """

    host_issues: dict[str, list[str]] = field(default_factory=dict)
    task_issues: dict[str, list[str]] = field(default_factory=dict)

    @property
    def has_errors(self) -> bool:
        """Check if any host or task has at least one issue."""
        return any(self.host_issues.values()) or any(self.task_issues.values())


def check_config(config: ResolvedConfig) -> ConfigReport:
    """Collect every problem in a resolved configuration.

    Unlike the executor, which stops at the first error, this gathers all
    issues so they can be reported together.
    """
    report = ConfigReport()

    for name, host in config.hosts.items():
        issues = []
        if not host.is_usable:
            issues.append("missing address")
        report.host_issues[name] = issues

    for name, task in config.tasks.items():
        issues = []
        try:
            task.validate(name)
        except TaskValidationError as e:
            issues.append(str(e))
        try:
            task.validate_refs(name, config.tasks)
        except TaskValidationError as e:
            issues.append(str(e))
        for host_name in task.target_hosts():
            if host_name not in config.hosts:
                issues.append(f"host {host_name!r} not found")
        report.task_issues[name] = issues

    return report


def _display_path(path: Path) -> str:
    """Shorten a path under the home directory to ``~/...``."""
    try:
        return "~/" + str(path.relative_to(Path.home()))
    except ValueError:
        return f"./{path}" if not path.is_absolute() else str(path)


def _parse_document(path: Path, content: str) -> dict[str, Any]:
    """Decode a TOML or YAML document into a mapping."""
    try:
        if path.suffix in (".yml", ".yaml"):
            data = yaml.safe_load(content)
        else:
            data = tomllib.loads(content)
    except (tomllib.TOMLDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"failed to parse {path}: {e}", path=str(path))

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"failed to parse {path}: top level must be a mapping", path=str(path)
        )
    return data


def _table(data: dict[str, Any], key: str, path: Path) -> dict[str, Any]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"failed to parse {path}: '{key}' must be a table", path=str(path))
    return value


def _host_from_dict(name: str, data: Any, path: Path) -> HostConfig:
    """Build a HostConfig from a decoded table, applying defaults."""
    if not isinstance(data, dict):
        raise ConfigError(f"failed to parse {path}: host {name!r} must be a table", path=str(path))
    _warn_unknown(data, HOST_FIELDS, f"host {name!r}", path)

    port = data.get("port") or DEFAULT_PORT
    if isinstance(port, bool) or not isinstance(port, int):
        raise ConfigError(
            f"failed to parse {path}: host {name!r} port must be an integer",
            path=str(path),
        )
    if not 0 < port <= MAX_PORT:
        raise ConfigError(
            f"failed to parse {path}: host {name!r} port {port} out of range (1-{MAX_PORT})",
            path=str(path),
        )

    return HostConfig(
        name=name,
        address=_string(data, "address", f"host {name!r}", path),
        port=port,
        user=_string(data, "user", f"host {name!r}", path) or getuser(),
        key_file=_string(data, "key_file", f"host {name!r}", path),
        password=_string(data, "password", f"host {name!r}", path),
    )


def _task_from_dict(name: str, data: Any, path: Path) -> TaskConfig:
    """Build a TaskConfig from a decoded table."""
    if not isinstance(data, dict):
        raise ConfigError(f"failed to parse {path}: task {name!r} must be a table", path=str(path))
    where = f"task {name!r}"
    _warn_unknown(data, TASK_FIELDS, where, path)

    return TaskConfig(
        name=name,
        host=_string(data, "host", where, path),
        hosts=_string_list(data, "hosts", where, path),
        workdir=_string(data, "workdir", where, path),
        steps=_string_list(data, "steps", where, path),
        before=_string_list(data, "before", where, path),
        after=_string_list(data, "after", where, path),
    )


def _string(data: dict[str, Any], key: str, where: str, path: Path) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ConfigError(
            f"failed to parse {path}: {where} '{key}' must be a string", path=str(path)
        )
    return value


def _string_list(data: dict[str, Any], key: str, where: str, path: Path) -> list[str]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(
            f"failed to parse {path}: {where} '{key}' must be a list of strings",
            path=str(path),
        )
    return list(value)


def _warn_unknown(data: dict[str, Any], known: set[str], where: str, path: Path) -> None:
    for key in data:
        if key not in known:
            logger.warning(f"Ignoring unknown key '{key}' in {where} ({path})")
