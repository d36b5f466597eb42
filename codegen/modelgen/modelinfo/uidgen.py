"""
Unique uid generation.

Uids are drawn from an injected UidSource so that tests can supply a
deterministic sequence; production code seeds one RandomUidSource at startup.

Invariants:
    - 0 is never returned (it means "unset")
    - A returned uid is never reported as used by the caller's predicate
    - The attempt budget is bounded; exhaustion is an internal error
"""

from __future__ import annotations

import logging
import random
from typing import Callable, Iterable, Iterator, Optional, Protocol

from .errors import UidGenerationError

logger = logging.getLogger(__name__)

DEFAULT_MAX_UID_ATTEMPTS = 1000
UID_MAX = (1 << 64) - 1


class UidSource(Protocol):
    """Capability producing candidate uids."""

    def next_uid(self) -> int:
        ...


class RandomUidSource:
    """Random 64-bit candidates from a private random.Random instance."""

    def __init__(self, seed: Optional[int] = None) -> None:
        self._random = random.Random(seed)

    def next_uid(self) -> int:
        return self._random.getrandbits(64)


class SequenceUidSource:
    """Scripted candidates, for tests. Running out of values raises StopIteration."""

    def __init__(self, values: Iterable[int]) -> None:
        self._values: Iterator[int] = iter(values)

    def next_uid(self) -> int:
        return next(self._values)


class UidGenerator:
    """Draws uids not yet used within a caller-defined scope.

    Example:
        >>> generator = UidGenerator(RandomUidSource(seed=1))
        >>> uid = generator.generate(lambda candidate: candidate in used)
    """

    def __init__(
        self,
        source: Optional[UidSource] = None,
        max_attempts: int = DEFAULT_MAX_UID_ATTEMPTS,
    ) -> None:
        if max_attempts <= 0:
            raise ValueError(f"max_attempts must be positive, got {max_attempts}")
        self.source = source or RandomUidSource()
        self.max_attempts = max_attempts

    def generate(self, is_used: Callable[[int], bool]) -> int:
        """Return a fresh uid.

        Args:
            is_used: Predicate telling whether a candidate already exists

        Raises:
            UidGenerationError: If no unused candidate was found
        """
        for _ in range(self.max_attempts):
            candidate = self.source.next_uid()
            if candidate <= 0 or candidate > UID_MAX:
                continue
            if not is_used(candidate):
                return candidate
        logger.error(f"Uid generation exhausted {self.max_attempts} attempts")
        raise UidGenerationError(self.max_attempts)
