"""
File Transfer Protocol

Design Decision: Wire Format
============================

Options Considered:
1. HTTP from the listener itself
   - Standard, but a whole server for one response
2. Length-prefixed JSON header + binary body
   - Self-describing, but every client needs the framing code
3. Newline-terminated control lines + raw bytes until close
   - Readable with nc/telnet
   - No length field needed; the sender closes when done

Decision: Line-oriented control, raw payload
- Control lines are ASCII (filename UTF-8), terminated by a single LF
- Payload is the file content, ended by connection close

Exchange:
```
[if password set]
  S->C: "PASSWORD_REQUIRED\\n"
  C->S: "<password>\\n"
  S->C: "UNAUTHORIZED\\n" (and close)   on mismatch
     or "AUTHORIZED\\n"                 on match
S->C: "Filename: <basename>\\n"
S->C: <raw file bytes> ... <close>
```
"""

import asyncio
import hmac
import logging
import socket
from dataclasses import dataclass
from typing import Optional

import aiofiles

from ..registry import ShareEntry

logger = logging.getLogger(__name__)

PASSWORD_REQUIRED = b'PASSWORD_REQUIRED'
AUTHORIZED = b'AUTHORIZED'
UNAUTHORIZED = b'UNAUTHORIZED'
FILENAME_PREFIX = b'Filename: '
LINE_END = b'\n'

DEFAULT_CHUNK_SIZE = 64 * 1024


class TransferError(Exception):
    """A download over the transfer protocol failed."""


class PasswordRequiredError(TransferError):
    """The share is protected and no password was supplied."""


class UnauthorizedError(TransferError):
    """The sender rejected the supplied password."""


class ProtocolError(TransferError):
    """The peer sent something the protocol does not allow."""


def encode_line(text: str) -> bytes:
    """Encode one control line, terminator included."""
    return text.encode('utf-8') + LINE_END


def strip_line(line: bytes) -> bytes:
    """Drop the line terminator (LF or CRLF) and nothing else."""
    if line.endswith(b'\r\n'):
        return line[:-2]
    if line.endswith(LINE_END):
        return line[:-1]
    return line


def passwords_match(expected: str, candidate: Optional[str]) -> bool:
    """Exact, constant-time password comparison."""
    if candidate is None:
        return False
    return hmac.compare_digest(expected.encode('utf-8'), candidate.encode('utf-8'))


@dataclass
class TransferSession:
    """
    State of one accepted connection.

    Created on accept, dropped when the connection closes.
    """
    entry: ShareEntry
    reader: asyncio.StreamReader
    writer: asyncio.StreamWriter
    authenticated: bool = False
    bytes_sent: int = 0

    @property
    def peer(self):
        return self.writer.get_extra_info('peername')

    async def send_line(self, line: bytes):
        self.writer.write(line + LINE_END)
        await self.writer.drain()

    async def read_line(self) -> Optional[bytes]:
        """Read one line, or None if the peer closed first."""
        try:
            line = await self.reader.readline()
        except ValueError:
            # Line longer than the stream limit
            return None
        if not line:
            return None
        return strip_line(line)

    async def authenticate(self) -> bool:
        """
        Run the password challenge if the entry has a password.

        Returns:
            True if the transfer may proceed
        """
        if not self.entry.requires_password:
            self.authenticated = True
            return True

        await self.send_line(PASSWORD_REQUIRED)

        raw = await self.read_line()
        candidate = raw.decode('utf-8', errors='replace') if raw is not None else None

        if not passwords_match(self.entry.password, candidate):
            await self.send_line(UNAUTHORIZED)
            logger.warning(f"Unauthorized access attempt on code {self.entry.code} from {self.peer}")
            return False

        await self.send_line(AUTHORIZED)
        self.authenticated = True
        return True

    async def send_file(self, chunk_size: int = DEFAULT_CHUNK_SIZE):
        """Send the filename header followed by the raw file bytes."""
        self.writer.write(FILENAME_PREFIX + encode_line(self.entry.filename))

        async with aiofiles.open(self.entry.file_path, 'rb') as f:
            while True:
                chunk = await f.read(chunk_size)
                if not chunk:
                    break
                self.writer.write(chunk)
                await self.writer.drain()
                self.bytes_sent += len(chunk)

        await self.writer.drain()

    async def close(self):
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except (ConnectionError, OSError):
            pass


async def handle_connection(sock: socket.socket, entry: ShareEntry,
                            chunk_size: int = DEFAULT_CHUNK_SIZE) -> bool:
    """
    Run the sender side of the protocol over an accepted socket.

    The socket is always closed on return. Errors are logged, never raised.

    Returns:
        True if the whole file was sent
    """
    try:
        reader, writer = await asyncio.open_connection(sock=sock)
    except OSError as e:
        logger.error(f"Could not attach to connection for code {entry.code}: {e}")
        sock.close()
        return False

    session = TransferSession(entry=entry, reader=reader, writer=writer)
    peer = session.peer

    try:
        if not await session.authenticate():
            return False

        await session.send_file(chunk_size)
        logger.info(f"File '{entry.filename}' sent to {peer} "
                    f"({session.bytes_sent:,} bytes)")
        return True

    except (ConnectionError, OSError) as e:
        logger.error(f"Error sending file to {peer}: {e}")
        return False
    finally:
        await session.close()
