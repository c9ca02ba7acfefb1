"""
OAuth CSRF State Store

A state token is issued when the browser is sent to Google and consumed
exactly once when Google redirects back. It binds the login attempt to the
role the user picked on the login page, so the callback never has to trust
a role supplied by the client after the round-trip.

Two backends:
- InMemoryOAuthStateStore: single-process deployments and tests. Entries are
  guarded by an asyncio.Lock and a background task sweeps expired ones on a
  fixed interval, independent of traffic.
- RedisOAuthStateStore: shared across instances. Redis expires keys itself;
  consumption uses GETDEL so two instances can never redeem the same token.

Usage:
    store = create_state_store()
    await store.start()

    token = await store.issue("faculty")
    result = await store.consume(token)
    if result.valid:
        role = result.role
"""

import asyncio
import json
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from fastapi import Request

from studyshala.core.config import settings
from studyshala.core.logging_config import logger
from studyshala.core.security import generate_state_token
from studyshala.models.user import UserRole


REASON_UNKNOWN = "unknown_or_missing"
REASON_EXPIRED = "expired"

# Redis keeps expired entries this long so they can be reported as "expired"
REDIS_EXPIRED_GRACE_SECONDS = 300


@dataclass
class StateEntry:
    role: UserRole
    expires_at: float


@dataclass
class StateResult:
    """Outcome of consuming a state token"""
    valid: bool
    role: Optional[UserRole] = None
    reason: Optional[str] = None

    @classmethod
    def ok(cls, role: UserRole) -> "StateResult":
        return cls(valid=True, role=role)

    @classmethod
    def rejected(cls, reason: str) -> "StateResult":
        return cls(valid=False, reason=reason)


def normalize_role(requested_role: Optional[str]) -> UserRole:
    """Anything outside the known roles becomes student"""
    if not requested_role:
        return UserRole.STUDENT
    return UserRole.parse(requested_role, default=UserRole.STUDENT)


class OAuthStateStore:
    """Base class for OAuth state backends"""

    def __init__(self, ttl_seconds: int = None, clock: Callable[[], float] = time.time):
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.OAUTH_STATE_TTL_SECONDS
        self._clock = clock

    async def issue(self, requested_role: Optional[str]) -> str:
        raise NotImplementedError

    async def consume(self, token: Optional[str]) -> StateResult:
        raise NotImplementedError

    async def sweep(self) -> int:
        return 0

    async def start(self):
        pass

    async def stop(self):
        pass


class InMemoryOAuthStateStore(OAuthStateStore):
    """Process-local state store with a periodic sweeper"""

    def __init__(
        self,
        ttl_seconds: int = None,
        sweep_interval_seconds: int = None,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(ttl_seconds=ttl_seconds, clock=clock)
        self.sweep_interval_seconds = (
            sweep_interval_seconds
            if sweep_interval_seconds is not None
            else settings.OAUTH_STATE_SWEEP_INTERVAL_SECONDS
        )
        self._entries: Dict[str, StateEntry] = {}
        self._lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None
        self.running = False

    def __len__(self) -> int:
        return len(self._entries)

    async def issue(self, requested_role: Optional[str]) -> str:
        role = normalize_role(requested_role)
        token = generate_state_token()
        async with self._lock:
            self._entries[token] = StateEntry(role=role, expires_at=self._clock() + self.ttl_seconds)
        logger.debug(f"[OAuthState] Issued state for role={role.value}")
        return token

    async def consume(self, token: Optional[str]) -> StateResult:
        if not token:
            return StateResult.rejected(REASON_UNKNOWN)

        async with self._lock:
            entry = self._entries.pop(token, None)

        if entry is None:
            return StateResult.rejected(REASON_UNKNOWN)
        if self._clock() > entry.expires_at:
            return StateResult.rejected(REASON_EXPIRED)
        return StateResult.ok(entry.role)

    async def sweep(self) -> int:
        """Drop expired entries, returning how many were removed"""
        now = self._clock()
        async with self._lock:
            expired = [token for token, entry in self._entries.items() if now > entry.expires_at]
            for token in expired:
                del self._entries[token]
        if expired:
            logger.debug(f"[OAuthState] Swept {len(expired)} expired state tokens")
        return len(expired)

    async def start(self):
        """Start the background sweeper"""
        if self.running:
            return
        self.running = True
        self._task = asyncio.create_task(self._sweep_loop())
        logger.info(f"[OAuthState] Sweeper started - TTL: {self.ttl_seconds}s, Interval: {self.sweep_interval_seconds}s")

    async def stop(self):
        """Stop the background sweeper"""
        self.running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("[OAuthState] Sweeper stopped")

    async def _sweep_loop(self):
        while self.running:
            await asyncio.sleep(self.sweep_interval_seconds)
            try:
                await self.sweep()
            except Exception as e:
                logger.error(f"[OAuthState] Error in sweep loop: {e}", exc_info=True)


class RedisOAuthStateStore(OAuthStateStore):
    """State store shared across instances through Redis"""

    def __init__(self, redis_client, ttl_seconds: int = None, prefix: str = None,
                 clock: Callable[[], float] = time.time):
        super().__init__(ttl_seconds=ttl_seconds, clock=clock)
        self.redis_client = redis_client
        self.prefix = prefix or settings.OAUTH_STATE_REDIS_PREFIX

    def _key(self, token: str) -> str:
        return f"{self.prefix}{token}"

    async def issue(self, requested_role: Optional[str]) -> str:
        role = normalize_role(requested_role)
        token = generate_state_token()
        value = json.dumps({"role": role.value, "expires_at": self._clock() + self.ttl_seconds})
        await self.redis_client.set(
            self._key(token), value, expire=self.ttl_seconds + REDIS_EXPIRED_GRACE_SECONDS
        )
        return token

    async def consume(self, token: Optional[str]) -> StateResult:
        if not token:
            return StateResult.rejected(REASON_UNKNOWN)

        try:
            raw = await self.redis_client.getdel(self._key(token))
        except Exception as e:
            # Fail closed: an unreadable store never yields a role
            logger.error(f"[OAuthState] Redis consume failed: {e}")
            return StateResult.rejected(REASON_UNKNOWN)

        if raw is None:
            return StateResult.rejected(REASON_UNKNOWN)

        try:
            data = json.loads(raw)
            role = UserRole(data["role"])
            expires_at = float(data["expires_at"])
        except (ValueError, KeyError, TypeError):
            logger.warning("[OAuthState] Discarded malformed state entry")
            return StateResult.rejected(REASON_UNKNOWN)

        if self._clock() > expires_at:
            return StateResult.rejected(REASON_EXPIRED)
        return StateResult.ok(role)

    async def start(self):
        await self.redis_client.connect()

    async def stop(self):
        await self.redis_client.disconnect()


def create_state_store() -> OAuthStateStore:
    """Build the configured backend"""
    backend = settings.OAUTH_STATE_BACKEND.lower()
    if backend == "redis":
        from studyshala.core.redis_client import redis_client
        return RedisOAuthStateStore(redis_client)
    return InMemoryOAuthStateStore()


def get_oauth_state_store(request: Request) -> OAuthStateStore:
    """Dependency returning the store created in the application lifespan"""
    return request.app.state.oauth_state_store
