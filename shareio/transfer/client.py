"""
Transfer Client

Receiver side of the transfer protocol: connect to a share code's port,
answer the password challenge if asked, read the filename header and then
everything until the sender closes.

Failures raise TransferError subclasses. Nothing is retried.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

import aiofiles
import aiofiles.os

from .protocol import (
    AUTHORIZED, UNAUTHORIZED, PASSWORD_REQUIRED, FILENAME_PREFIX,
    DEFAULT_CHUNK_SIZE, TransferError, PasswordRequiredError,
    UnauthorizedError, ProtocolError, encode_line, strip_line,
)

logger = logging.getLogger(__name__)

DEFAULT_FILENAME = 'downloaded-file'


@dataclass
class FetchResult:
    """A file received from a share."""
    filename: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


async def _read_line(reader: asyncio.StreamReader) -> bytes:
    line = await reader.readline()
    if not line:
        raise ProtocolError("Connection closed before header was received")
    return strip_line(line)


async def _open(host: str, port: int, timeout: Optional[float]
                ) -> Tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    try:
        return await asyncio.wait_for(asyncio.open_connection(host, port), timeout)
    except asyncio.TimeoutError:
        raise TransferError(f"Timed out connecting to {host}:{port}")
    except OSError as e:
        raise TransferError(f"Failed to connect to {host}:{port}: {e}") from e


async def _handshake(reader: asyncio.StreamReader, writer: asyncio.StreamWriter,
                     password: Optional[str]) -> str:
    """Run the control exchange and return the announced filename."""
    line = await _read_line(reader)

    if line == PASSWORD_REQUIRED:
        if password is None:
            raise PasswordRequiredError("This share is password protected")

        writer.write(encode_line(password))
        await writer.drain()

        reply = await _read_line(reader)
        if reply == UNAUTHORIZED:
            raise UnauthorizedError("Invalid password")
        if reply != AUTHORIZED:
            raise ProtocolError(f"Unexpected reply to password: {reply[:64]!r}")

        line = await _read_line(reader)

    if not line.startswith(FILENAME_PREFIX):
        raise ProtocolError(f"Expected filename header, got: {line[:64]!r}")

    filename = line[len(FILENAME_PREFIX):].decode('utf-8', errors='replace').strip()
    # Never trust a path from the peer
    filename = Path(filename).name
    return filename or DEFAULT_FILENAME


async def _close(writer: asyncio.StreamWriter):
    writer.close()
    try:
        await writer.wait_closed()
    except (ConnectionError, OSError):
        pass


async def fetch_share(host: str, port: int, password: Optional[str] = None,
                      timeout: Optional[float] = None) -> FetchResult:
    """
    Download a share into memory.

    Args:
        host: Sender address
        port: Share code
        password: Password to answer the challenge with, if any
        timeout: Applies to the whole exchange (None = no limit)

    Raises:
        TransferError: on any connection or protocol failure
    """
    reader, writer = await _open(host, port, timeout)
    try:
        async def exchange() -> FetchResult:
            filename = await _handshake(reader, writer, password)
            content = await reader.read()
            return FetchResult(filename=filename, content=content)

        result = await asyncio.wait_for(exchange(), timeout)
        logger.info(f"Received '{result.filename}' from {host}:{port} ({result.size:,} bytes)")
        return result

    except asyncio.TimeoutError:
        raise TransferError(f"Transfer from {host}:{port} timed out")
    except (ConnectionError, OSError) as e:
        raise TransferError(f"Transfer from {host}:{port} failed: {e}") from e
    finally:
        await _close(writer)


def unique_path(directory: Path, filename: str) -> Path:
    """
    Pick a free path for filename inside directory.

    report.pdf -> report.pdf, report (1).pdf, report (2).pdf, ...
    """
    candidate = directory / filename
    stem, suffix = candidate.stem, candidate.suffix
    counter = 1
    while candidate.exists():
        candidate = directory / f"{stem} ({counter}){suffix}"
        counter += 1
    return candidate


async def fetch_share_to(host: str, port: int, dest_dir: Path,
                         password: Optional[str] = None,
                         timeout: Optional[float] = None,
                         chunk_size: int = DEFAULT_CHUNK_SIZE) -> Path:
    """
    Download a share straight to disk.

    The file lands in dest_dir under the sender's filename (made unique).
    A partially written file is left in place if the transfer breaks.

    Returns:
        Path of the written file
    """
    dest_dir = Path(dest_dir)
    await aiofiles.os.makedirs(dest_dir, exist_ok=True)

    reader, writer = await _open(host, port, timeout)
    try:
        filename = await asyncio.wait_for(_handshake(reader, writer, password), timeout)
        path = unique_path(dest_dir, filename)

        received = 0
        async with aiofiles.open(path, 'wb') as f:
            while True:
                chunk = await asyncio.wait_for(reader.read(chunk_size), timeout)
                if not chunk:
                    break
                await f.write(chunk)
                received += len(chunk)

        logger.info(f"Saved '{filename}' from {host}:{port} to {path} ({received:,} bytes)")
        return path

    except asyncio.TimeoutError:
        raise TransferError(f"Transfer from {host}:{port} timed out")
    except (ConnectionError, OSError) as e:
        raise TransferError(f"Transfer from {host}:{port} failed: {e}") from e
    finally:
        await _close(writer)
