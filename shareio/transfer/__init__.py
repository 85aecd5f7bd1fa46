"""
Transfer Module - One-Shot File Delivery

Handles the TCP listener, wire protocol and receiving client.
"""

from .protocol import (
    TransferSession,
    TransferError,
    PasswordRequiredError,
    UnauthorizedError,
    ProtocolError,
    handle_connection,
)
from .listener import TransferListener, OneShotServer
from .workers import Spawner, TaskSpawner, ThreadSpawner
from .client import FetchResult, fetch_share, fetch_share_to, unique_path

__all__ = [
    'TransferSession',
    'TransferError',
    'PasswordRequiredError',
    'UnauthorizedError',
    'ProtocolError',
    'handle_connection',
    'TransferListener',
    'OneShotServer',
    'Spawner',
    'TaskSpawner',
    'ThreadSpawner',
    'FetchResult',
    'fetch_share',
    'fetch_share_to',
    'unique_path',
]
