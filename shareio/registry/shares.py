"""
Share Registry

Design Decision: Share Codes
============================

Options Considered:
1. Sequential ports (10000, 10001, ...)
   - Trivial, but codes are guessable
2. Random 6-digit codes mapped to a separate port
   - Friendlier codes, but needs a second lookup table
3. Random port from the dynamic range used directly as the code
   - One number to share, no translation
   - Space of ~16k codes is plenty for concurrently offered files

Decision: Random code from the dynamic/private port range (49152-65535)
- The code IS the TCP port the one-shot listener binds
- Collisions are resolved by drawing again
- The range is configurable (see Config.code_min / code_max)

Thread-safety: all access goes through a single lock, so offers from the
API thread and lookups from transfer workers never interleave.
"""

import logging
import random
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Union

logger = logging.getLogger(__name__)

# Dynamic/private port range (RFC 6335)
DEFAULT_CODE_MIN = 49152
DEFAULT_CODE_MAX = 65535


class RegistryFullError(RuntimeError):
    """Every code in the configured range is already in use."""


@dataclass(frozen=True)
class ShareEntry:
    """A file offered for one-time retrieval."""
    code: int
    file_path: Path
    password: Optional[str] = None

    @property
    def filename(self) -> str:
        """Base name sent to the receiver."""
        return self.file_path.name

    @property
    def requires_password(self) -> bool:
        return bool(self.password)


class ShareRegistry:
    """
    In-memory mapping of share code -> ShareEntry.

    Codes are unique for as long as their entry is registered. Entries
    live until discard() is called or the process exits.
    """

    def __init__(self, code_min: int = DEFAULT_CODE_MIN,
                 code_max: int = DEFAULT_CODE_MAX,
                 rng: Optional[random.Random] = None):
        if not 1 <= code_min <= code_max <= 65535:
            raise ValueError(f"Invalid code range: {code_min}-{code_max}")

        self.code_min = code_min
        self.code_max = code_max
        self._rng = rng or random.SystemRandom()
        self._entries: Dict[int, ShareEntry] = {}
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        """Number of distinct codes in the range."""
        return self.code_max - self.code_min + 1

    def _generate_code(self) -> int:
        return self._rng.randint(self.code_min, self.code_max)

    def offer(self, file_path: Union[str, Path], password: Optional[str] = None) -> int:
        """
        Register a file and return its share code.

        The file is not checked here; the listener checks it at serve time.
        An empty password is stored as no password.

        Raises:
            RegistryFullError: if no free code is left in the range
        """
        file_path = Path(file_path)

        with self._lock:
            if len(self._entries) >= self.capacity:
                raise RegistryFullError(
                    f"All {self.capacity} share codes are in use"
                )

            while True:
                code = self._generate_code()
                if code not in self._entries:
                    break

            self._entries[code] = ShareEntry(
                code=code,
                file_path=file_path,
                password=password or None,
            )

        logger.info(f"Offered {file_path.name} as code {code} "
                    f"({'password protected' if password else 'no password'})")
        return code

    def lookup(self, code: int) -> Optional[ShareEntry]:
        """Get the entry for a code, or None if unknown."""
        with self._lock:
            return self._entries.get(code)

    def password(self, code: int) -> Optional[str]:
        """Get the password for a code (None if unknown or unprotected)."""
        entry = self.lookup(code)
        return entry.password if entry else None

    def discard(self, code: int) -> Optional[ShareEntry]:
        """Remove a code. Returns the removed entry, if any."""
        with self._lock:
            entry = self._entries.pop(code, None)

        if entry:
            logger.debug(f"Released share code {code}")
        return entry

    def __contains__(self, code: object) -> bool:
        with self._lock:
            return code in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_stats(self) -> dict:
        """Get registry statistics."""
        with self._lock:
            protected = sum(1 for e in self._entries.values() if e.requires_password)
            return {
                'active_shares': len(self._entries),
                'password_protected': protected,
                'code_range': [self.code_min, self.code_max],
            }
