"""SSH credential discovery for sctl.

Authentication is planned as an ordered list of methods that is offered
to the server in full:

1. keys held by a running ssh-agent (``SSH_AUTH_SOCK``)
2. the host's configured ``key_file``
3. the conventional default keys under ``~/.ssh``
4. the host's inline password

``build_auth_methods`` is pure: agent keys and key loading are passed
in, so the I/O probes (``probe_agent``, ``load_private_key``) can be
swapped out in tests.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping

import asyncssh

logger = logging.getLogger(__name__)

DEFAULT_KEY_NAMES = ("id_ed25519", "id_rsa", "id_ecdsa")


def default_key_paths() -> list[Path]:
    """Conventional private key locations, in the order they are tried."""
    ssh_dir = Path.home() / ".ssh"
    return [ssh_dir / name for name in DEFAULT_KEY_NAMES]


@dataclass
class AuthMethod:
    """One way of authenticating to a host.

    Attributes:
        kind: "agent", "key" or "password"
        source: Where the credential came from (socket, key path, "config")
        keys: Key pairs to offer (agent and key methods)
        password: Password to offer (password method)
    """

    kind: str
    source: str
    keys: list[Any] = field(default_factory=list)
    password: str = field(default="", repr=False)


@dataclass
class AgentConnection:
    """An open ssh-agent client and the keys it holds."""

    client: Any
    path: str
    keys: list[Any] = field(default_factory=list)

    async def close(self) -> None:
        """Close the agent connection."""
        self.client.close()
        await self.client.wait_closed()


def load_private_key(path: str | Path) -> Any | None:
    """Load an unencrypted private key.

    Returns None when the file is missing, unreadable or needs a
    passphrase. No passphrase prompt is attempted.
    """
    key_path = Path(path).expanduser()
    try:
        return asyncssh.read_private_key(str(key_path))
    except FileNotFoundError:
        return None
    except (OSError, asyncssh.KeyImportError) as e:
        logger.debug(f"Skipping key {key_path}: {e}")
        return None


async def probe_agent(env: Mapping[str, str] | None = None) -> AgentConnection | None:
    """Connect to the ssh-agent named by ``SSH_AUTH_SOCK``.

    An unset variable or an unreachable agent is not an error, the agent
    method is simply skipped.
    """
    env = os.environ if env is None else env
    path = env.get("SSH_AUTH_SOCK", "")
    if not path:
        return None

    client = None
    try:
        client = await asyncssh.connect_agent(path)
        keys = list(await client.get_keys())
    except (OSError, asyncssh.Error) as e:
        logger.debug(f"ssh-agent at {path} not usable: {e}")
        if client is not None:
            client.close()
            await client.wait_closed()
        return None

    logger.debug(f"ssh-agent at {path} holds {len(keys)} key(s)")
    return AgentConnection(client=client, path=path, keys=keys)


def build_auth_methods(
    host: Any,
    agent: AgentConnection | None = None,
    *,
    key_loader: Callable[[str | Path], Any | None] = load_private_key,
    default_keys: list[Path] | None = None,
) -> list[AuthMethod]:
    """Plan the authentication methods for a host.

    Args:
        host: HostConfig providing ``key_file`` and ``password``
        agent: Reachable agent, or None
        key_loader: Returns a key for a path or None if unusable
        default_keys: Default key paths (defaults to ``~/.ssh/id_*``)

    Returns:
        Ordered list of AuthMethod, possibly empty
    """
    methods: list[AuthMethod] = []

    if agent is not None:
        methods.append(AuthMethod(kind="agent", source=agent.path, keys=list(agent.keys)))

    if host.key_file:
        key = key_loader(host.key_file)
        if key is not None:
            methods.append(AuthMethod(kind="key", source=host.key_file, keys=[key]))

    if default_keys is None:
        default_keys = default_key_paths()
    for key_path in default_keys:
        key = key_loader(key_path)
        if key is not None:
            methods.append(AuthMethod(kind="key", source=str(key_path), keys=[key]))

    if host.password:
        methods.append(AuthMethod(kind="password", source="config", password=host.password))

    return methods


def to_connect_options(methods: list[AuthMethod]) -> dict[str, Any]:
    """Convert planned methods to asyncssh.connect() kwargs.

    Every key from every method is offered, in plan order. The agent is
    never consulted implicitly by asyncssh since its keys are already in
    the list.
    """
    client_keys = [key for method in methods for key in method.keys]
    options: dict[str, Any] = {
        "agent_path": None,
        "client_keys": client_keys or None,
    }
    passwords = [m.password for m in methods if m.kind == "password"]
    if passwords:
        options["password"] = passwords[0]
    return options
