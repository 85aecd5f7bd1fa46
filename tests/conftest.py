import asyncio
import socket
from pathlib import Path

import pytest

from shareio.registry import ShareRegistry
from shareio.transfer import TransferListener


@pytest.fixture
def free_port() -> int:
    """A localhost port that was free a moment ago."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


@pytest.fixture
def registry(free_port) -> ShareRegistry:
    """Registry whose only code is a known-free port."""
    return ShareRegistry(code_min=free_port, code_max=free_port)


@pytest.fixture
def listener(registry) -> TransferListener:
    return TransferListener(registry, host='127.0.0.1')


@pytest.fixture
def sample_file(tmp_path) -> Path:
    path = tmp_path / 'report.bin'
    path.write_bytes(b'\x00\x01binary\r\n\r\npayload\xff' * 1000)
    return path


async def start_serving(listener: TransferListener, code: int) -> asyncio.Task:
    """Run listener.serve(code) in the background, bound once this returns."""
    task = asyncio.create_task(listener.serve(code))
    await asyncio.sleep(0)
    return task
