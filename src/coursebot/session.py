"""Per-chat navigation sessions: the core state hub.

Each chat that talks to the bot owns one Session holding:
  - navigation_stack: catalog segments selected from the root to the current menu.
  - action_cache: short token key -> absolute catalog path, for callback data.
  - message_history: ids of UI messages the bot sent (capped, oldest dropped).
  - delivery_in_flight: set while the delivery pipeline sends files to the chat.
  - cancel_event: signalled by reset so a running delivery stops early.

Sessions live in process memory only. The store evicts sessions idle beyond
a TTL and keeps the total under a size bound; a session with a delivery in
flight is kept until that delivery ends or times out.

Key class: SessionStore.
"""

import asyncio
import logging
import string
import time
from dataclasses import dataclass, field
from pathlib import Path

from .errors import SessionExpired

logger = logging.getLogger(__name__)

_KEY_ALPHABET = string.digits + string.ascii_lowercase


def encode_key(n: int) -> str:
    """Base-36 representation of a non-negative counter value."""
    if n < 0:
        raise ValueError("key counter must be non-negative")
    if n == 0:
        return "0"
    chars = []
    while n:
        n, rem = divmod(n, 36)
        chars.append(_KEY_ALPHABET[rem])
    return "".join(reversed(chars))


@dataclass
class Session:
    """Mutable state for one chat.

    Token keys come from a counter that is never rewound, not even by a
    reset, so a key can only ever name one path.
    """

    chat_id: int
    navigation_stack: list[str] = field(default_factory=list)
    action_cache: dict[str, Path] = field(default_factory=dict)
    message_history: list[int] = field(default_factory=list)
    delivery_in_flight: bool = False
    delivery_started: float = 0.0
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    last_active: float = field(default_factory=time.monotonic)

    # Reverse index path -> key so a re-rendered menu reuses its tokens
    _path_keys: dict[Path, str] = field(default_factory=dict, repr=False)
    _next_key: int = field(default=0, repr=False)
    # cancel_event captured by the delivery currently holding the flag
    _delivery_event: asyncio.Event | None = field(default=None, repr=False)

    def touch(self, now: float | None = None) -> None:
        self.last_active = time.monotonic() if now is None else now

    def drain_history(self) -> list[int]:
        """Return and forget the tracked message ids."""
        ids = list(self.message_history)
        self.message_history.clear()
        return ids


@dataclass
class SessionStore:
    """Owns every Session; all access goes through these methods.

    Map operations never await, so they are atomic on the event loop.
    Read-modify-write sequences that do await must hold lock(chat_id).
    """

    ttl: float = 3600.0
    max_sessions: int = 1000
    history_cap: int = 20
    cache_size: int = 512
    delivery_timeout: float = 900.0

    _sessions: dict[int, Session] = field(default_factory=dict, repr=False)
    _locks: dict[int, asyncio.Lock] = field(default_factory=dict, repr=False)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, chat_id: object) -> bool:
        return chat_id in self._sessions

    def get(self, chat_id: int) -> Session | None:
        return self._sessions.get(chat_id)

    def get_or_create(self, chat_id: int) -> Session:
        session = self._sessions.get(chat_id)
        if session is None:
            if len(self._sessions) >= self.max_sessions:
                self._enforce_size_bound()
            session = Session(chat_id=chat_id)
            self._sessions[chat_id] = session
            logger.debug("Session created for chat %d", chat_id)
        session.touch()
        return session

    def lock(self, chat_id: int) -> asyncio.Lock:
        """Per-chat mutual exclusion for session read-modify-write."""
        lock = self._locks.get(chat_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[chat_id] = lock
        return lock

    def reset(self, chat_id: int) -> list[int]:
        """Clear navigation state and cancel any running delivery.

        Returns the message ids that were tracked before the reset so the
        caller can remove them from the chat. The delivery flag stays with
        the running pipeline, which clears it when it notices the cancel.
        """
        session = self.get_or_create(chat_id)
        session.navigation_stack.clear()
        session.action_cache.clear()
        session._path_keys.clear()
        session.cancel_event.set()
        session.cancel_event = asyncio.Event()
        if session.delivery_in_flight:
            logger.info("Chat %d reset during delivery, cancelling", chat_id)
        return session.drain_history()

    # --- Message history ---

    def record_message(self, chat_id: int, message_id: int) -> None:
        history = self.get_or_create(chat_id).message_history
        history.append(message_id)
        overflow = len(history) - self.history_cap
        if overflow > 0:
            del history[:overflow]

    def forget_message(self, chat_id: int, message_id: int) -> None:
        """Stop tracking a message that was already deleted."""
        session = self._sessions.get(chat_id)
        if session is not None and message_id in session.message_history:
            session.message_history.remove(message_id)

    # --- Action token cache ---

    def cache_path(self, chat_id: int, path: Path) -> str:
        """Return the token key for path, issuing a new one if needed."""
        session = self.get_or_create(chat_id)
        path = Path(path)
        key = session._path_keys.get(path)
        if key is not None:
            return key
        key = encode_key(session._next_key)
        session._next_key += 1
        session.action_cache[key] = path
        session._path_keys[path] = key
        while len(session.action_cache) > self.cache_size:
            oldest = next(iter(session.action_cache))
            session._path_keys.pop(session.action_cache.pop(oldest), None)
        return key

    def resolve(self, chat_id: int, key: str) -> Path:
        """Path for a token key. Raises SessionExpired on a cache miss."""
        session = self._sessions.get(chat_id)
        if session is None or key not in session.action_cache:
            raise SessionExpired()
        return session.action_cache[key]

    # --- Delivery flag ---

    def try_begin_delivery(
        self, chat_id: int, now: float | None = None
    ) -> asyncio.Event | None:
        """Claim the chat for a delivery.

        Returns the cancellation event the delivery must watch, or None when
        another delivery still holds the chat. A flag older than
        delivery_timeout is considered stuck and taken over.
        """
        now = time.monotonic() if now is None else now
        session = self.get_or_create(chat_id)
        if session.delivery_in_flight:
            if now - session.delivery_started < self.delivery_timeout:
                return None
            logger.warning(
                "Delivery for chat %d stuck for %.0fs, taking over",
                chat_id,
                now - session.delivery_started,
            )
            if session._delivery_event is not None:
                session._delivery_event.set()
            if session._delivery_event is session.cancel_event:
                session.cancel_event = asyncio.Event()
        session.delivery_in_flight = True
        session.delivery_started = now
        session._delivery_event = session.cancel_event
        return session.cancel_event

    def end_delivery(self, chat_id: int, cancel_event: asyncio.Event) -> None:
        """Release the flag taken by try_begin_delivery with this event."""
        session = self._sessions.get(chat_id)
        if session is None or session._delivery_event is not cancel_event:
            return
        session.delivery_in_flight = False
        session._delivery_event = None
        session.touch()

    def _delivery_active(self, session: Session, now: float) -> bool:
        return (
            session.delivery_in_flight
            and now - session.delivery_started < self.delivery_timeout
        )

    def delivery_active(self, chat_id: int, now: float | None = None) -> bool:
        """Whether a delivery that has not timed out holds the chat."""
        session = self._sessions.get(chat_id)
        if session is None:
            return False
        return self._delivery_active(
            session, time.monotonic() if now is None else now
        )

    def delivery_stopping(self, chat_id: int, now: float | None = None) -> bool:
        """Whether a cancelled delivery still holds the chat."""
        session = self._sessions.get(chat_id)
        if session is None or session._delivery_event is None:
            return False
        now = time.monotonic() if now is None else now
        return (
            self._delivery_active(session, now) and session._delivery_event.is_set()
        )

    # --- Eviction ---

    def _evictable(self, chat_id: int, session: Session, now: float) -> bool:
        if self._delivery_active(session, now):
            return False
        lock = self._locks.get(chat_id)
        return lock is None or not lock.locked()

    def _drop(self, chat_id: int) -> None:
        session = self._sessions.pop(chat_id, None)
        self._locks.pop(chat_id, None)
        if session is not None:
            session.cancel_event.set()

    def evict_idle(self, now: float | None = None) -> int:
        """Drop sessions idle longer than the TTL. Returns how many went."""
        now = time.monotonic() if now is None else now
        expired = [
            chat_id
            for chat_id, session in self._sessions.items()
            if now - session.last_active > self.ttl
            and self._evictable(chat_id, session, now)
        ]
        for chat_id in expired:
            self._drop(chat_id)
        if expired:
            logger.info("Evicted %d idle session(s)", len(expired))
        return len(expired)

    def _enforce_size_bound(self) -> None:
        now = time.monotonic()
        self.evict_idle(now)
        if len(self._sessions) < self.max_sessions:
            return
        by_age = sorted(self._sessions.items(), key=lambda item: item[1].last_active)
        for chat_id, session in by_age:
            if len(self._sessions) < self.max_sessions:
                break
            if self._evictable(chat_id, session, now):
                self._drop(chat_id)
                logger.debug("Evicted session %d (size bound)", chat_id)
        if len(self._sessions) >= self.max_sessions:
            logger.warning(
                "Session store over bound (%d), all sessions busy",
                len(self._sessions),
            )
