"""
Authorization request state storage.

A login flow saves an AuthorizationRequestState keyed by its opaque state
value; the callback consumes it exactly once. The in-memory store is the
default collaborator; deployments with several workers supply their own
StateStore implementation.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional
import logging
import threading
import time


logger = logging.getLogger(__name__)


@dataclass
class AuthorizationRequestState:
    """
    State of an authorization request between sign-in and callback.

    Attributes:
        provider_id: Provider the flow was started with
        state: Opaque CSRF state value
        redirect_uri: Callback URI sent to the provider
        scopes: Requested scopes, defaults first, duplicates kept
        callback_url: Where the user lands after a successful sign-in
        error_callback_url: Where the user lands on failure (defaults to callback_url)
        code_verifier: PKCE verifier, when the provider supports PKCE
        created_at: Creation time (epoch seconds)
    """

    provider_id: str
    state: str
    redirect_uri: str
    scopes: List[str] = field(default_factory=list)
    callback_url: str = '/'
    error_callback_url: Optional[str] = None
    code_verifier: Optional[str] = None
    created_at: float = field(default_factory=time.time)

    def is_expired(self, ttl: int, now: Optional[float] = None) -> bool:
        return ((now or time.time()) - self.created_at) > ttl


class StateStore(ABC):
    """Storage for pending authorization requests."""

    @abstractmethod
    def save(self, request_state: AuthorizationRequestState) -> None:
        """Store a pending authorization request."""

    @abstractmethod
    def consume(self, state: str) -> Optional[AuthorizationRequestState]:
        """Remove and return the request for ``state``; None if unknown or expired."""


class MemoryStateStore(StateStore):
    """
    In-memory, lock-guarded state store.

    Entries expire after ``ttl`` seconds. When ``max_entries`` is reached,
    expired entries are cleaned up first and then the oldest are evicted.
    """

    def __init__(self, ttl: int = 600, max_entries: int = 1000):
        self.ttl = ttl
        self.max_entries = max_entries
        self._states: Dict[str, AuthorizationRequestState] = {}
        self._lock = threading.Lock()

    def save(self, request_state: AuthorizationRequestState) -> None:
        if not request_state.state:
            raise ValueError("Authorization request state must have a state value")

        with self._lock:
            if len(self._states) >= self.max_entries:
                logger.warning("State storage limit reached, cleaning up expired entries")
                self._cleanup_expired_locked()

                if len(self._states) >= self.max_entries:
                    oldest = sorted(self._states.values(), key=lambda s: s.created_at)
                    evict = oldest[:max(1, self.max_entries // 10)]
                    for entry in evict:
                        del self._states[entry.state]
                    logger.warning(f"Evicted {len(evict)} oldest authorization requests due to storage limit")

            self._states[request_state.state] = request_state

        logger.debug(f"Stored authorization request for provider '{request_state.provider_id}'")

    def consume(self, state: str) -> Optional[AuthorizationRequestState]:
        with self._lock:
            request_state = self._states.pop(state, None)

        if request_state is None:
            logger.warning("Authorization request state not found")
            return None

        if request_state.is_expired(self.ttl):
            logger.warning(f"Authorization request for provider '{request_state.provider_id}' expired")
            return None

        return request_state

    def cleanup_expired(self) -> int:
        """
        Remove expired entries.

        Returns:
            Number of entries removed
        """
        with self._lock:
            return self._cleanup_expired_locked()

    def _cleanup_expired_locked(self) -> int:
        now = time.time()
        expired = [key for key, entry in self._states.items() if entry.is_expired(self.ttl, now)]
        for key in expired:
            del self._states[key]
        if expired:
            logger.info(f"Cleaned up {len(expired)} expired authorization requests")
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)
