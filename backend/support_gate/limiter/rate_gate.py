"""
Server-side admission gate.

Keys a single shared SlidingWindowLimiter by "<route>:<client address>"
and turns its state into a uniform decision. Request handlers go through
RateGate; nothing else touches limiter state.

Version: 1.0.0
"""
import logging
import math
from dataclasses import dataclass
from typing import Iterable, Optional

from starlette.requests import Request

from .policy import LimiterPolicy
from .sliding_window import SlidingWindowLimiter, current_time_ms
from .storage import BoundedLimiterStorage

logger = logging.getLogger(__name__)

ANONYMOUS_CLIENT = "anonymous"


@dataclass(frozen=True)
class RateDecision:
    """Admission decision for one request."""
    success: bool
    remaining: int
    reset_in_ms: int
    limit: int

    @property
    def reset_in_seconds(self) -> int:
        """Reset hint rounded up to whole seconds."""
        return int(math.ceil(self.reset_in_ms / 1000))

    def headers(self) -> dict:
        """Rate-limit response headers."""
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
        }
        if not self.success:
            headers["X-RateLimit-Reset"] = str(self.reset_in_seconds)
            headers["Retry-After"] = str(self.reset_in_seconds)
        return headers


class RateGate:
    """
    Route-and-address keyed limiter front.

    The gate owns exactly one SlidingWindowLimiter; each call supplies the
    policy for its route.
    """

    def __init__(
        self,
        default_policy: LimiterPolicy,
        limiter: Optional[SlidingWindowLimiter] = None,
        max_keys: int = 100_000
    ):
        """
        Initialize rate gate.

        Args:
            default_policy: Policy used when check() gets none
            limiter: Pre-built limiter (a bounded in-memory one is created otherwise)
            max_keys: Capacity of the default limiter storage
        """
        self.default_policy = default_policy
        self.limiter = limiter or SlidingWindowLimiter(
            default_policy,
            storage=BoundedLimiterStorage(max_keys=max_keys)
        )
        self._longest_window_ms = default_policy.window_ms

    @staticmethod
    def make_key(route_name: str, client_address: str) -> str:
        return f"{route_name}:{client_address}"

    def check(
        self,
        route_name: str,
        client_address: str,
        policy: Optional[LimiterPolicy] = None,
        now: Optional[int] = None
    ) -> RateDecision:
        """
        Admit or reject one request.

        Args:
            route_name: Logical route name (e.g. "chatEscalate")
            client_address: Caller address
            policy: Route policy (defaults to the gate's default policy)
            now: Current time in ms

        Returns:
            RateDecision
        """
        policy = policy or self.default_policy
        now = current_time_ms() if now is None else now
        key = self.make_key(route_name, client_address)

        if policy.window_ms > self._longest_window_ms:
            self._longest_window_ms = policy.window_ms

        result = self.limiter.attempt(key, now, policy)

        remaining = max(0, policy.max_attempts - result.attempt_count)

        if result.locked and result.locked_until is not None:
            reset_in_ms = max(0, result.locked_until - now)
        elif result.window_started_at is not None:
            reset_in_ms = max(0, result.window_started_at + policy.window_ms - now)
        else:
            reset_in_ms = 0

        if not result.allowed:
            logger.warning(
                f"Rate limit exceeded for {key} (reset in {reset_in_ms}ms)"
            )

        return RateDecision(
            success=result.allowed,
            remaining=remaining,
            reset_in_ms=reset_in_ms,
            limit=policy.max_attempts
        )

    def reset(self, route_name: str, client_address: str) -> None:
        """Forgive a client on one route (e.g. after a verified success)."""
        self.limiter.reset(self.make_key(route_name, client_address))

    def purge_expired(self, now: Optional[int] = None) -> int:
        """Drop stale records, judged by the longest window seen so far."""
        return self.limiter.purge_expired(now, window_ms=self._longest_window_ms)

    def __len__(self) -> int:
        return len(self.limiter)


def client_address(request: Request, trusted_proxies: Iterable[str] = ()) -> str:
    """
    Resolve the caller address.

    Proxy headers (X-Forwarded-For first hop, CF-Connecting-IP, X-Real-IP)
    are honoured only when the socket peer is a trusted proxy; any other
    caller is keyed by its socket peer.
    """
    peer = request.client.host if request.client and request.client.host else None

    if peer is not None and peer in trusted_proxies:
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            first_hop = forwarded_for.split(",")[0].strip()
            if first_hop:
                return first_hop

        cf_connecting_ip = request.headers.get("cf-connecting-ip")
        if cf_connecting_ip:
            return cf_connecting_ip.strip()

        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip.strip()

    return peer or ANONYMOUS_CLIENT


__all__ = ['RateGate', 'RateDecision', 'client_address', 'ANONYMOUS_CLIENT']
