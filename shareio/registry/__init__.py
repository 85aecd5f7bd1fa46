"""
Registry Module - Share Code Allocation

Maps share codes (listening ports) to offered files.
"""

from .shares import (
    ShareEntry,
    ShareRegistry,
    RegistryFullError,
    DEFAULT_CODE_MIN,
    DEFAULT_CODE_MAX,
)

__all__ = [
    'ShareEntry',
    'ShareRegistry',
    'RegistryFullError',
    'DEFAULT_CODE_MIN',
    'DEFAULT_CODE_MAX',
]
