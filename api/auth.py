import secrets
import threading
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID, uuid4

from core.clock import Clock, utc_now
from core.errors import AuthenticationRequired
from core.logging_config import get_module_logger
from core.storage import InMemoryStorage

from .schemas import User

logger = get_module_logger(__name__)


class SessionStore:
    """Bearer tokens mapped to user ids, with a fixed time to live."""

    def __init__(self, ttl: timedelta, clock: Clock = utc_now):
        self.ttl = ttl
        self.clock = clock
        self._sessions: dict[str, tuple[UUID, datetime]] = {}
        self._lock = threading.Lock()

    def create(self, user_id: UUID) -> str:
        token = secrets.token_urlsafe(32)
        with self._lock:
            self._sessions[token] = (user_id, self.clock() + self.ttl)
        return token

    def lookup(self, token: str) -> Optional[UUID]:
        with self._lock:
            session = self._sessions.get(token)
            if session is None:
                return None
            user_id, expires_at = session
            if self.clock() >= expires_at:
                del self._sessions[token]
                return None
            return user_id

    def invalidate(self, token: str) -> bool:
        with self._lock:
            return self._sessions.pop(token, None) is not None


class AuthService:
    """Guest sign-in and token to user resolution."""

    def __init__(self, storage: InMemoryStorage, sessions: SessionStore, clock: Clock = utc_now):
        self.storage = storage
        self.sessions = sessions
        self.clock = clock

    def guest_login(self, device_id: Optional[str] = None) -> tuple[User, str]:
        now = self.clock()
        stamp = int(now.timestamp() * 1000)
        user_data = {
            "id": uuid4(),
            "email": f"guest_{stamp}@stepcredit.com",
            "name": f"Guest {stamp}",
            "is_guest": True,
            "created_at": now,
        }
        self.storage.users[user_data["id"]] = user_data
        token = self.sessions.create(user_data["id"])
        logger.info("Guest user %s signed in (device %s)", user_data["id"], device_id or "unknown")
        return User(**user_data), token

    def current_user(self, token: Optional[str]) -> User:
        user_id = self.sessions.lookup(token) if token else None
        user_data = self.storage.users.get(user_id) if user_id else None
        if not user_data:
            raise AuthenticationRequired("Authentication required")
        return User(**user_data)

    def logout(self, token: str) -> bool:
        return self.sessions.invalidate(token)
