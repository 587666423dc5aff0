"""
Wizard Session Store - Redis-backed storage for claim wizard sessions with in-memory fallback.

Sessions are stored as the JSON dump of WizardSession and expire after
SESSION_TTL_HOURS of inactivity. An expired session cannot be resumed.
"""
import json
from typing import Dict, Any, Optional
from datetime import datetime, timedelta
from abc import ABC, abstractmethod

import redis

from claimportal.core.config import settings
from claimportal.core.exceptions import SessionNotFoundError
from claimportal.core.logging import logger
from claimportal.orchestration.claim_wizard.state import WizardSession


class SessionStore(ABC):
    """Abstract base class for session storage."""

    @abstractmethod
    def get(self, session_id: str) -> Optional[Dict[str, Any]]:
        """Get a session by ID."""
        pass

    @abstractmethod
    def set(self, session_id: str, data: Dict[str, Any], ttl_hours: int = 24) -> None:
        """Set a session with TTL."""
        pass

    @abstractmethod
    def delete(self, session_id: str) -> bool:
        """Delete a session."""
        pass

    def load(self, session_id: str) -> WizardSession:
        """
        Load a wizard session.

        Raises:
            SessionNotFoundError: expired or unknown session
        """
        data = self.get(session_id)
        if data is None:
            raise SessionNotFoundError(f"Claim session {session_id} not found or expired")
        return WizardSession.from_store(data)

    def save(self, session: WizardSession) -> WizardSession:
        self.set(session.session_id, session.to_store(), ttl_hours=settings.SESSION_TTL_HOURS)
        return session


class InMemorySessionStore(SessionStore):
    """In-memory session store for development and tests."""

    def __init__(self):
        self._sessions: Dict[str, Dict[str, Any]] = {}
        self._expiry: Dict[str, datetime] = {}

    def _cleanup_expired(self):
        """Remove expired sessions."""
        now = datetime.utcnow()
        expired = [k for k, v in self._expiry.items() if v < now]
        for key in expired:
            self._sessions.pop(key, None)
            self._expiry.pop(key, None)

    def get(self, session_id: str) -> Optional[Dict[str, Any]]:
        self._cleanup_expired()
        return self._sessions.get(session_id)

    def set(self, session_id: str, data: Dict[str, Any], ttl_hours: int = 24) -> None:
        self._sessions[session_id] = data
        self._expiry[session_id] = datetime.utcnow() + timedelta(hours=ttl_hours)

    def delete(self, session_id: str) -> bool:
        if session_id in self._sessions:
            del self._sessions[session_id]
            self._expiry.pop(session_id, None)
            return True
        return False


class RedisSessionStore(SessionStore):
    """Redis-backed session store for production."""

    def __init__(self, redis_url: str):
        self._redis = redis.from_url(redis_url, decode_responses=True)
        self._prefix = "claimportal:wizard:"

    def _key(self, session_id: str) -> str:
        return f"{self._prefix}{session_id}"

    def ping(self) -> bool:
        return bool(self._redis.ping())

    def get(self, session_id: str) -> Optional[Dict[str, Any]]:
        data = self._redis.get(self._key(session_id))
        if data:
            return json.loads(data)
        return None

    def set(self, session_id: str, data: Dict[str, Any], ttl_hours: int = 24) -> None:
        self._redis.setex(
            self._key(session_id),
            timedelta(hours=ttl_hours),
            json.dumps(data, default=str)
        )

    def delete(self, session_id: str) -> bool:
        return self._redis.delete(self._key(session_id)) > 0


# Singleton session store instance
_session_store: Optional[SessionStore] = None


def get_session_store() -> SessionStore:
    """Get the session store instance (creates if needed)."""
    global _session_store

    if _session_store is not None:
        return _session_store

    # Try Redis first, fall back to in-memory
    if settings.REDIS_URL and settings.APP_ENV != "development":
        try:
            store = RedisSessionStore(settings.REDIS_URL)
            store.ping()
            _session_store = store
            logger.info("Using Redis session store")
        except redis.RedisError as e:
            logger.warning(f"Failed to connect to Redis, using in-memory store: {e}")
            _session_store = InMemorySessionStore()
    else:
        logger.info("Using in-memory session store (development mode)")
        _session_store = InMemorySessionStore()

    return _session_store
