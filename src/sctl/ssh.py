"""SSH sessions for sctl.

Provides an authenticated connection to one host, used to run the steps
of one task on that host. The session owns both the SSH connection and
any ssh-agent connection opened while planning authentication, and
releases them together.

Example:
    async with open_session(host) as session:
        await session.run("uptime")
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Mapping, TextIO

import asyncssh

from .auth import AgentConnection, build_auth_methods, probe_agent, to_connect_options
from .exceptions import (
    AuthenticationError,
    ConfigError,
    KnownHostsError,
    RemoteCommandError,
    TransportError,
)
from .logging import TRACE
from .types import HostConfig

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT = 10.0


def known_hosts_path() -> Path:
    """Location of the user's known_hosts trust store."""
    return Path.home() / ".ssh" / "known_hosts"


def load_known_hosts(address: str, path: str | Path | None = None) -> Any:
    """Read the known_hosts trust store.

    Raises:
        KnownHostsError: If the file cannot be read or parsed. The message
            tells the user how to add the host's key.
    """
    path = Path(path) if path else known_hosts_path()
    try:
        return asyncssh.read_known_hosts(str(path))
    except (OSError, ValueError) as e:
        raise KnownHostsError(
            f"failed to load known_hosts: {e} "
            f"(add host with: ssh-keyscan -H {address} >> ~/.ssh/known_hosts)"
        )


async def copy_output(reader: Any, writer: TextIO) -> None:
    """Copy raw remote output to a local stream.

    Bytes go straight to the underlying binary buffer when the stream has
    one. Otherwise they are decoded as UTF-8, replacing invalid sequences.
    """
    buffer = getattr(writer, "buffer", None)
    async for chunk in reader:
        if buffer is not None:
            writer.flush()
            buffer.write(chunk)
            buffer.flush()
        else:
            writer.write(chunk.decode("utf-8", errors="replace"))
            writer.flush()


class RemoteSession:
    """An authenticated SSH connection to a single host.

    Attributes:
        name: Host name from the configuration
        stdout: Stream remote stdout is copied to
        stderr: Stream remote stderr is copied to
    """

    def __init__(
        self,
        name: str,
        conn: asyncssh.SSHClientConnection,
        agent: AgentConnection | None = None,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
    ) -> None:
        self.name = name
        self._conn = conn
        self._agent = agent
        self.stdout = stdout or sys.stdout
        self.stderr = stderr or sys.stderr

    async def run(self, command: str) -> None:
        """Run a command on its own channel, streaming its output.

        Raises:
            RemoteCommandError: If the command exits non-zero
            TransportError: If the channel cannot be opened or breaks
        """
        logger.log(TRACE, f"Running on {self.name}: {command}")

        try:
            async with self._conn.create_process(command, encoding=None) as process:
                process.stdin.write_eof()
                await asyncio.gather(
                    copy_output(process.stdout, self.stdout),
                    copy_output(process.stderr, self.stderr),
                )
                result = await process.wait()
        except (OSError, asyncssh.Error, asyncssh.ChannelOpenError) as e:
            raise TransportError(f"session on {self.name} failed: {e}", host=self.name)

        if result.exit_status != 0:
            logger.debug(
                f"Command on {self.name} failed: status={result.exit_status}, "
                f"signal={result.exit_signal}"
            )
            signal = result.exit_signal[0] if result.exit_signal else None
            raise RemoteCommandError(command, result.exit_status, signal)

    async def close(self) -> None:
        """Close the SSH connection and the agent connection.

        The agent connection is closed even if closing the SSH
        connection fails.
        """
        try:
            self._conn.close()
            await self._conn.wait_closed()
            logger.debug(f"Disconnected from {self.name}")
        finally:
            if self._agent is not None:
                await self._agent.close()
                self._agent = None


async def connect(
    host: HostConfig,
    *,
    env: Mapping[str, str] | None = None,
    known_hosts: str | Path | None = None,
    connect_timeout: float = CONNECT_TIMEOUT,
    stdout: TextIO | None = None,
    stderr: TextIO | None = None,
) -> RemoteSession:
    """Open an authenticated session to a host.

    Args:
        host: Host to connect to
        env: Environment to discover the agent from (default: os.environ)
        known_hosts: Trust store path (default: ~/.ssh/known_hosts)
        connect_timeout: Dial timeout in seconds
        stdout: Stream for remote stdout
        stderr: Stream for remote stderr

    Returns:
        Connected RemoteSession

    Raises:
        AuthenticationError: If no authentication method could be built
        KnownHostsError: If the trust store cannot be loaded
        TransportError: If the connection or negotiation fails
    """
    if not host.is_usable:
        raise ConfigError(f"host {host.name!r}: missing address")

    agent = await probe_agent(env)
    try:
        methods = build_auth_methods(host, agent)
        if not methods:
            raise AuthenticationError(
                f"ssh connection to {host.name} failed: no authentication methods available"
            )
        logger.debug(
            f"Auth methods for {host.name}: "
            + ", ".join(f"{m.kind}({m.source})" for m in methods)
        )

        trust_store = load_known_hosts(host.address, known_hosts)

        logger.debug(f"Connecting to {host.target}")
        try:
            conn = await asyncssh.connect(
                host.address,
                port=host.port,
                username=host.user,
                known_hosts=trust_store,
                connect_timeout=connect_timeout,
                **to_connect_options(methods),
            )
        except (OSError, asyncssh.Error, asyncio.TimeoutError) as e:
            raise TransportError(
                f"ssh connection to {host.name} failed: {str(e) or e.__class__.__name__}",
                host=host.name,
            )
    except BaseException:
        if agent is not None:
            await agent.close()
        raise

    logger.info(f"Connected to {host.name} ({host.target})")
    return RemoteSession(host.name, conn, agent, stdout=stdout, stderr=stderr)


@asynccontextmanager
async def open_session(host: HostConfig, **kwargs: Any) -> AsyncIterator[RemoteSession]:
    """Connect to a host and close the session on every exit path.

    Accepts the same keyword arguments as ``connect``.
    """
    session = await connect(host, **kwargs)
    try:
        yield session
    finally:
        await session.close()
