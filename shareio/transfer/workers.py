"""
Session Workers

Each accepted connection runs on its own worker so a slow receiver never
blocks other shares. How that worker is scheduled is pluggable:

- TaskSpawner: an asyncio task on the listener's event loop (default)
- ThreadSpawner: a dedicated thread with its own event loop

Sessions are plain coroutines that open their streams from a raw socket,
so they run the same way under either spawner.
"""

import asyncio
import logging
import threading
from typing import Coroutine, List, Optional, Protocol, Set

logger = logging.getLogger(__name__)


class Spawner(Protocol):
    """Schedules a session coroutine on some worker."""

    def spawn(self, coro: Coroutine, name: Optional[str] = None) -> None:
        ...

    async def join(self) -> None:
        ...


class TaskSpawner:
    """Run each session as a task on the running event loop."""

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    def spawn(self, coro: Coroutine, name: Optional[str] = None) -> None:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        # Keep a reference until done so the task is not collected mid-transfer
        self._tasks.add(task)
        task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Transfer worker {task.get_name()} failed: {task.exception()!r}")

    @property
    def active(self) -> int:
        return len(self._tasks)

    async def join(self) -> None:
        """Wait for every running session to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class ThreadSpawner:
    """Run each session in its own thread with a private event loop."""

    def __init__(self, daemon: bool = True):
        self.daemon = daemon
        self._threads: List[threading.Thread] = []
        self._lock = threading.Lock()

    def spawn(self, coro: Coroutine, name: Optional[str] = None) -> None:
        thread = threading.Thread(
            target=self._run, args=(coro,), name=name, daemon=self.daemon
        )
        with self._lock:
            self._threads = [t for t in self._threads if t.is_alive()]
            self._threads.append(thread)
        thread.start()

    @staticmethod
    def _run(coro: Coroutine):
        try:
            asyncio.run(coro)
        except Exception as e:
            logger.error(f"Transfer thread {threading.current_thread().name} failed: {e!r}")

    @property
    def active(self) -> int:
        with self._lock:
            return sum(1 for t in self._threads if t.is_alive())

    async def join(self) -> None:
        """Wait for every running session thread to finish."""
        with self._lock:
            threads = list(self._threads)
        loop = asyncio.get_running_loop()
        for thread in threads:
            await loop.run_in_executor(None, thread.join)
