"""Keyed store of session contexts plus aspect-ratio resolution."""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

from ..config import VALID_ASPECT_RATIOS
from ..errors import InvalidArgument, MissingConfiguration
from .memory import SessionContext

logger = logging.getLogger(__name__)


def validate_ratio(ratio: str) -> str:
    if ratio not in VALID_ASPECT_RATIOS:
        raise InvalidArgument(
            f"Invalid aspect ratio: {ratio!r}. Valid values: {', '.join(VALID_ASPECT_RATIOS)}"
        )
    return ratio


def resolve_ratio(explicit: Optional[str], session_default: Optional[str]) -> str:
    """Pick the effective ratio: explicit override, then session default.

    There is deliberately no built-in fallback ratio.
    """
    if explicit is not None:
        return validate_ratio(explicit)
    if session_default is not None:
        return session_default
    raise MissingConfiguration(
        "Aspect ratio is required. Pass aspect_ratio with this call or configure "
        "the session first with set_aspect_ratio."
    )


class SessionRegistry:
    """Holds every live session context for this process.

    Contexts are created on first use and removed only by ``clear``. Use
    ``session()`` around any multi-step operation so calls on the same key do
    not interleave.
    """

    def __init__(self, max_transcript_turns: Optional[int] = None):
        self._contexts: Dict[str, SessionContext] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        # holders plus waiters per key
        self._lock_users: Dict[str, int] = {}
        self._max_transcript_turns = max_transcript_turns

    def __contains__(self, key: str) -> bool:
        return key in self._contexts

    def __len__(self) -> int:
        return len(self._contexts)

    def get(self, key: str) -> Optional[SessionContext]:
        return self._contexts.get(key)

    def get_or_create(self, key: str) -> SessionContext:
        context = self._contexts.get(key)
        if context is None:
            context = SessionContext(
                session_id=key, max_transcript_turns=self._max_transcript_turns
            )
            self._contexts[key] = context
            logger.debug("Created session context %r", key)
        return context

    def clear(self, key: str) -> None:
        """Drop the whole context. Missing keys are ignored."""
        if self._contexts.pop(key, None) is not None:
            logger.debug("Cleared session context %r", key)

    def set_default_ratio(self, key: str, ratio: str) -> SessionContext:
        validate_ratio(ratio)
        context = self.get_or_create(key)
        context.default_ratio = ratio
        return context

    @asynccontextmanager
    async def lock(self, key: str) -> AsyncIterator[None]:
        """Hold the key's lock. It is discarded once no task holds or awaits it."""
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if not self._lock_users[key]:
                del self._lock_users[key]
                del self._locks[key]

    @asynccontextmanager
    async def session(self, key: str) -> AsyncIterator[SessionContext]:
        """Exclusive access to one session's context for a whole operation."""
        async with self.lock(key):
            yield self.get_or_create(key)
