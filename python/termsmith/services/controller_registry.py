"""In-flight generation registry keyed by chat id.

One ControllerRegistry is created per application by the lifespan and shared
by the chat relay (register/discard) and the cancel endpoint
(lookup/revoke_and_remove).

Invariants:
- At most one handle per chat id. Registering a new handle cancels the
  previous one before replacing it, but only when both belong to the same
  user. A chat id in flight for another user is refused and left running.
- A finishing request removes only its own handle (discard compares identity),
  never a newer request's.
- The registry is process-local. A cancel that reaches a different worker
  process than the one streaming finds nothing and is reported as not found.
"""

import asyncio
import threading
import time
from uuid import UUID

from termsmith.logging import get_logger

logger = get_logger(__name__)


class CancellationHandle:
    """Cooperative cancellation signal for one generation.

    Must be cancelled from the event loop thread that owns the stream.
    """

    def __init__(self, owner_user_id: UUID):
        self.owner_user_id = owner_user_id
        self.created_at = time.monotonic()
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Signal cancellation. Idempotent."""
        self._event.set()

    async def wait(self) -> None:
        """Block until cancellation is signalled."""
        await self._event.wait()


class ControllerRegistry:
    """Map of chat id to the cancellation handle of its in-flight generation."""

    def __init__(self) -> None:
        self._handles: dict[str, CancellationHandle] = {}
        self._lock = threading.Lock()

    def register(self, chat_id: str, handle: CancellationHandle) -> bool:
        """Store handle for chat_id, cancelling any handle it replaces.

        Returns:
            False, with nothing stored or cancelled, when chat_id is in flight
            under a different user. True otherwise.
        """
        with self._lock:
            previous = self._handles.get(chat_id)
            if previous is not None and previous.owner_user_id != handle.owner_user_id:
                return False
            self._handles[chat_id] = handle

        if previous is not None and previous is not handle:
            previous.cancel()
            logger.info("chat.controller.superseded", chat_id=chat_id)
        return True

    def lookup(self, chat_id: str) -> CancellationHandle | None:
        with self._lock:
            return self._handles.get(chat_id)

    def revoke_and_remove(self, chat_id: str, *, owner_user_id: UUID | None = None) -> bool:
        """Cancel and remove the handle for chat_id.

        Args:
            chat_id: Conversation whose generation should stop.
            owner_user_id: When given, only a handle registered by this user
                is revoked; another user's handle is treated as absent.

        Returns:
            True if a handle was revoked, False otherwise.
        """
        with self._lock:
            handle = self._handles.get(chat_id)
            if handle is None:
                return False
            if owner_user_id is not None and handle.owner_user_id != owner_user_id:
                return False
            del self._handles[chat_id]

        handle.cancel()
        return True

    def discard(self, chat_id: str, handle: CancellationHandle) -> None:
        """Remove the mapping only if it still points at this exact handle."""
        with self._lock:
            if self._handles.get(chat_id) is handle:
                del self._handles[chat_id]

    def __len__(self) -> int:
        with self._lock:
            return len(self._handles)
