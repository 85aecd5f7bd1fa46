"""
Share Service - Main Controller

Ties the pieces together for the HTTP layer:
- Upload directory for received files
- Share registry (code allocation)
- One-shot transfer listeners
- Receiving client for downloads by code
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import aiofiles
import aiofiles.os

from .config import Config
from .registry import ShareRegistry, ShareEntry, RegistryFullError
from .transfer import (
    TransferListener, FetchResult, Spawner, TaskSpawner, fetch_share,
)

logger = logging.getLogger(__name__)

UNNAMED_FILE = 'unnamed-file'


class ShareUnavailableError(RuntimeError):
    """The share code could not be opened for listening."""


@dataclass
class OfferResult:
    """Outcome of offering an uploaded file."""
    code: int
    file_path: Path
    password_protected: bool


class ShareService:
    """
    Offers uploaded files and retrieves shares by code.

    - offer_upload(): store bytes, allocate a code, start its listener
    - download(): fetch a share over the transfer protocol
    """

    def __init__(self, config: Config = None,
                 registry: Optional[ShareRegistry] = None,
                 spawner: Optional[Spawner] = None):
        self.config = config or Config()

        self.upload_dir = Path(self.config.upload_dir)
        self.upload_dir.mkdir(parents=True, exist_ok=True)

        if registry is None:
            registry = ShareRegistry(
                code_min=self.config.code_min,
                code_max=self.config.code_max,
            )
        self.registry = registry

        self.listener = TransferListener(
            registry=self.registry,
            host=self.config.host,
            spawner=spawner or TaskSpawner(),
            accept_timeout=self.config.accept_timeout,
            chunk_size=self.config.chunk_size,
            evict=self.config.evict_after_serve,
        )

        # Listeners waiting for their client
        self._waiting: set = set()

    def stored_path(self, filename: Optional[str]) -> Path:
        """Unique on-disk location for an uploaded file."""
        name = Path(filename or '').name.strip() or UNNAMED_FILE
        return self.upload_dir / f"{uuid.uuid4()}_{name}"

    async def offer_upload(self, filename: Optional[str], content: bytes,
                           password: Optional[str] = None) -> OfferResult:
        """
        Persist an uploaded file and start serving it.

        The listener is bound before this returns, so the code is
        connectable as soon as the caller hands it out.

        Raises:
            ShareUnavailableError: if the listener could not be bound
            RegistryFullError: if no share code is free
        """
        file_path = self.stored_path(filename)
        async with aiofiles.open(file_path, 'wb') as f:
            await f.write(content)

        password = (password or '').strip() or None
        if password:
            logger.info(f"Password field received (length: {len(password)})")
        else:
            logger.info("No password provided")

        try:
            code = self.registry.offer(file_path, password)
        except RegistryFullError:
            await aiofiles.os.remove(file_path)
            raise

        server = self.listener.listen(code)
        if server is None:
            await aiofiles.os.remove(file_path)
            raise ShareUnavailableError(f"Could not open share port {code}")

        task = asyncio.get_running_loop().create_task(
            self.listener.run(server), name=f"listen-{code}"
        )
        self._waiting.add(task)
        task.add_done_callback(self._waiting.discard)

        return OfferResult(
            code=code,
            file_path=file_path,
            password_protected=password is not None,
        )

    def lookup(self, code: int) -> Optional[ShareEntry]:
        return self.registry.lookup(code)

    def password(self, code: int) -> Optional[str]:
        return self.registry.password(code)

    async def download(self, code: int, password: Optional[str] = None) -> FetchResult:
        """
        Fetch a share by code over the transfer protocol.

        Raises:
            TransferError: on connection, password or protocol failure
        """
        return await fetch_share(
            self.config.transfer_host,
            code,
            password=password,
            timeout=self.config.transfer_timeout,
        )

    async def close(self):
        """Stop listeners still waiting for a client and wait for transfers."""
        for task in list(self._waiting):
            task.cancel()
        if self._waiting:
            await asyncio.gather(*self._waiting, return_exceptions=True)
        await self.listener.spawner.join()

    def get_stats(self) -> dict:
        """Get service statistics."""
        return {
            'registry': self.registry.get_stats(),
            'listener': self.listener.get_stats(),
            'waiting_listeners': len(self._waiting),
            'upload_dir': str(self.upload_dir),
        }
