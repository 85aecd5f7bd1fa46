"""
One-Shot Transfer Listener

Binds the port equal to a share code, accepts exactly one connection,
closes the listening socket and hands the connection to a worker.

A share can only ever be claimed once: after the first accept the port is
released, so later connection attempts are refused by the OS.
"""

import asyncio
import logging
import socket
from typing import Optional

from ..registry import ShareEntry, ShareRegistry
from .protocol import handle_connection, DEFAULT_CHUNK_SIZE
from .workers import Spawner, TaskSpawner

logger = logging.getLogger(__name__)


class OneShotServer:
    """A bound listening socket waiting for its single client."""

    def __init__(self, sock: socket.socket, entry: ShareEntry):
        self.sock = sock
        self.entry = entry
        self._closed = False

    @property
    def code(self) -> int:
        return self.entry.code

    async def accept(self, timeout: Optional[float] = None) -> Optional[socket.socket]:
        """
        Wait for one client, then stop listening.

        Returns:
            The accepted socket, or None on timeout/error
        """
        loop = asyncio.get_running_loop()
        try:
            conn, addr = await asyncio.wait_for(loop.sock_accept(self.sock), timeout)
            logger.info(f"Client connected on code {self.code}: {addr}")
            return conn
        except asyncio.TimeoutError:
            logger.warning(f"No client claimed code {self.code} within {timeout}s")
            return None
        except OSError as e:
            logger.error(f"Error accepting on code {self.code}: {e}")
            return None
        finally:
            self.close()

    def close(self):
        if not self._closed:
            self._closed = True
            self.sock.close()


class TransferListener:
    """
    Serves registry entries over one-shot listeners.

    serve(code) never raises: lookup, file and bind problems are logged
    and reported as False so callers can fire and forget.
    """

    def __init__(self, registry: ShareRegistry, host: str = '0.0.0.0',
                 spawner: Optional[Spawner] = None,
                 accept_timeout: Optional[float] = None,
                 chunk_size: int = DEFAULT_CHUNK_SIZE,
                 evict: bool = True):
        self.registry = registry
        self.host = host
        self.spawner = spawner or TaskSpawner()
        self.accept_timeout = accept_timeout
        self.chunk_size = chunk_size
        self.evict = evict

        # Statistics
        self.sessions_started = 0
        self.failed_binds = 0

    def _release(self, code: int):
        if self.evict:
            self.registry.discard(code)

    def listen(self, code: int) -> Optional[OneShotServer]:
        """
        Bind the listener for a code without waiting for a client.

        Returns:
            OneShotServer, or None if the code is unknown, the file is
            gone, or the port could not be bound
        """
        entry = self.registry.lookup(code)
        if entry is None:
            logger.warning(f"No file associated with code: {code}")
            return None

        if not entry.file_path.is_file():
            logger.warning(f"File does not exist: {entry.file_path}")
            self._release(code)
            return None

        try:
            sock = socket.create_server((self.host, code), backlog=1)
        except OSError as e:
            self.failed_binds += 1
            logger.error(f"Error starting file server on port {code}: {e}")
            self._release(code)
            return None

        sock.setblocking(False)
        logger.info(f"Serving file '{entry.filename}' on port {code}")
        return OneShotServer(sock, entry)

    async def run(self, server: OneShotServer) -> bool:
        """
        Accept the single client of a bound server and start its session.

        Returns:
            True if a client was accepted and handed to a worker
        """
        try:
            conn = await server.accept(self.accept_timeout)
        finally:
            self._release(server.code)

        if conn is None:
            return False

        self.sessions_started += 1
        self.spawner.spawn(
            handle_connection(conn, server.entry, self.chunk_size),
            name=f"transfer-{server.code}",
        )
        return True

    async def serve(self, code: int) -> bool:
        """
        Serve one share: bind, accept one client, hand off, stop listening.

        Blocks until the client connects (or accept_timeout expires).
        """
        server = self.listen(code)
        if server is None:
            return False
        return await self.run(server)

    def get_stats(self) -> dict:
        """Get listener statistics."""
        return {
            'sessions_started': self.sessions_started,
            'failed_binds': self.failed_binds,
            'accept_timeout': self.accept_timeout,
        }
