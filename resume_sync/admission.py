"""Per-caller token-bucket admission control for AI-invoking operations.

Each named limiter owns an independent bucket space. A bucket refills
continuously at ``limit / window`` tokens per second and every admitted check
consumes one token, so there is no burst at window boundaries and no
background timer. Idle buckets are swept lazily from within ``check``.

Buckets live in a process-local ``BucketStore``; deployments running several
workers need a shared store implementing the same protocol.
"""

from __future__ import annotations

import hashlib
import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, Mapping, Optional

from typing_extensions import Protocol

from .config import RateLimitSettings

logger = logging.getLogger("resume_sync.admission")

DEFAULT_SWEEP_INTERVAL_SECONDS = 5 * 60


@dataclass
class RateLimitEntry:
    identifier: str
    tokens: float
    last_refill: float


@dataclass(frozen=True)
class AdmissionDecision:
    admitted: bool
    remaining: int
    reset_at: float
    limit: int
    retry_after: int = 0

    def headers(self) -> Dict[str, str]:
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(max(0, self.remaining)),
            "X-RateLimit-Reset": str(int(math.ceil(self.reset_at))),
        }
        if not self.admitted:
            headers["Retry-After"] = str(self.retry_after)
        return headers


class BucketStore(Protocol):
    """Storage for bucket entries, keyed by caller identifier."""

    def get(self, identifier: str) -> Optional[RateLimitEntry]: ...

    def set(self, entry: RateLimitEntry) -> None: ...

    def sweep(self, older_than: float) -> int: ...

    def __len__(self) -> int: ...


class InMemoryBucketStore:
    """Dict-backed bucket store for a single process."""

    def __init__(self) -> None:
        self._entries: Dict[str, RateLimitEntry] = {}

    def get(self, identifier: str) -> Optional[RateLimitEntry]:
        return self._entries.get(identifier)

    def set(self, entry: RateLimitEntry) -> None:
        self._entries[entry.identifier] = entry

    def sweep(self, older_than: float) -> int:
        stale = [key for key, entry in self._entries.items() if entry.last_refill < older_than]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[RateLimitEntry]:
        return iter(list(self._entries.values()))


class TokenBucketLimiter:
    """Continuous-refill token bucket over a ``BucketStore``."""

    def __init__(
        self,
        limit: int,
        window_seconds: float,
        *,
        name: str = "ai",
        store: Optional[BucketStore] = None,
        sweep_interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if limit <= 0 or window_seconds <= 0:
            raise ValueError("limit and window_seconds must be positive")
        self.name = name
        self.limit = limit
        self.window_seconds = float(window_seconds)
        self.store: BucketStore = store if store is not None else InMemoryBucketStore()
        self.sweep_interval_seconds = sweep_interval_seconds
        self._clock = clock
        self._last_sweep = clock()

    def check(self, identifier: str) -> AdmissionDecision:
        now = self._clock()
        self._maybe_sweep(now)

        entry = self.store.get(identifier)
        if entry is None:
            entry = RateLimitEntry(identifier=identifier, tokens=float(self.limit), last_refill=now)
        else:
            elapsed = max(0.0, now - entry.last_refill)
            entry.tokens = min(float(self.limit), entry.tokens + elapsed / self.window_seconds * self.limit)
            entry.last_refill = now

        if entry.tokens >= 1:
            entry.tokens -= 1
            self.store.set(entry)
            return AdmissionDecision(
                admitted=True,
                remaining=int(math.floor(entry.tokens)),
                reset_at=self._time_until_one_token(entry),
                limit=self.limit,
            )

        self.store.set(entry)
        reset_at = self._time_until_one_token(entry)
        retry_after = max(1, int(math.ceil(reset_at - now)))
        logger.info(
            "admission_denied limiter=%s identifier=%s retry_after=%s",
            self.name,
            identifier,
            retry_after,
        )
        return AdmissionDecision(
            admitted=False,
            remaining=0,
            reset_at=reset_at,
            limit=self.limit,
            retry_after=retry_after,
        )

    def _time_until_one_token(self, entry: RateLimitEntry) -> float:
        missing = max(0.0, 1.0 - entry.tokens)
        return entry.last_refill + self.window_seconds * missing / self.limit

    def _maybe_sweep(self, now: float) -> None:
        if now - self._last_sweep < self.sweep_interval_seconds:
            return
        self._last_sweep = now
        removed = self.store.sweep(now - 2 * self.window_seconds)
        if removed:
            logger.debug("admission_sweep limiter=%s removed=%d", self.name, removed)


class AdmissionController:
    """Registry of independently configured named limiters."""

    def __init__(self, limiters: Mapping[str, TokenBucketLimiter]) -> None:
        self._limiters = dict(limiters)

    @classmethod
    def from_settings(
        cls,
        rate_limits: Mapping[str, RateLimitSettings],
        *,
        sweep_interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> "AdmissionController":
        return cls(
            {
                name: TokenBucketLimiter(
                    limit=item.limit,
                    window_seconds=item.window_seconds,
                    name=name,
                    sweep_interval_seconds=sweep_interval_seconds,
                    clock=clock,
                )
                for name, item in rate_limits.items()
            }
        )

    def limiter(self, name: str) -> TokenBucketLimiter:
        try:
            return self._limiters[name]
        except KeyError:
            raise KeyError(f"Unknown rate limiter: {name}") from None

    def check(self, name: str, identifier: str) -> AdmissionDecision:
        return self.limiter(name).check(identifier)

    def names(self) -> list:
        return sorted(self._limiters)


def hash_credential(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()[:16]


def derive_identifier(headers: Mapping[str, str], client_host: Optional[str] = None) -> str:
    """Caller identity for bucketing: bearer credential hash, else client IP.

    ``headers`` must be a case-insensitive mapping (Starlette ``Headers``) or
    use lowercase keys.
    """
    auth_header = (headers.get("authorization") or "").strip()
    if auth_header.startswith("Bearer "):
        token = auth_header[len("Bearer "):].strip()
        if token:
            return f"token:{hash_credential(token)}"

    forwarded = (headers.get("x-forwarded-for") or "").split(",")[0].strip()
    ip = forwarded or (headers.get("x-real-ip") or "").strip() or (client_host or "") or "unknown"
    return f"ip:{ip}"
