"""
ShareIO - One-Time File Sharing

Offer a local file under a numeric share code; the receiver connects to
that code (a TCP port) once, optionally proving a password, and gets the
file.
"""

from .registry import ShareEntry, ShareRegistry
from .multipart import FormPart, parse_multipart
from .transfer import TransferListener, fetch_share
from .service import ShareService

__version__ = '1.0.0'

__all__ = [
    'ShareEntry',
    'ShareRegistry',
    'FormPart',
    'parse_multipart',
    'TransferListener',
    'fetch_share',
    'ShareService',
]
