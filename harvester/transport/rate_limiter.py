"""
Per-domain token bucket rate limiting.

Requests are grouped by simplified domain (the last two DNS labels of the
host), so www.utsa.edu and asap.utsa.edu share one budget.
"""

import re
import threading
import time
from typing import Callable, Dict, Optional, Tuple

from harvester.logging import StructuredLogger


DEFAULT_RATE = 1.0
DEFAULT_BURST = 3

# Matches the last two labels of a host name; the first group is all that matters
DOMAIN_PATTERN = re.compile(r'(?:[\w-]+\.)*([\w-]+\.[\w-]+)$')
IPV4_PATTERN = re.compile(r'^\d{1,3}(?:\.\d{1,3}){3}$')

logger = StructuredLogger("rate_limiter")


def simplify_domain(host: str) -> str:
    """
    Reduce a host name to its last two DNS labels.

    Examples:
        "www.utsa.edu" => "utsa.edu"
        "www2.thescla.org:8080" => "thescla.org"
        "localhost" => "localhost"
    """
    host = (host or '').strip().lower().rstrip('.')
    if host.startswith('[') or host.count(':') > 1:
        return host
    host = host.split(':', 1)[0]
    if IPV4_PATTERN.match(host):
        return host
    match = DOMAIN_PATTERN.search(host)
    if not match:
        return host
    return match.group(1)


class TokenBucket:
    """
    Token bucket with reservation semantics.

    Tokens refill continuously at `rate` per second up to `burst`. Every
    reservation takes one token immediately, letting the balance go negative;
    the caller then waits until its token would have been available. A single
    blocking wait per call, no queue.
    """

    def __init__(
        self,
        rate: float,
        burst: int,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep
    ):
        if rate <= 0:
            raise ValueError("rate must be positive")
        if burst < 1:
            raise ValueError("burst must be at least 1")
        self.rate = float(rate)
        self.burst = int(burst)
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(burst)
        self._last = clock()
        self._lock = threading.Lock()

    def _advance(self, now: float) -> None:
        elapsed = max(0.0, now - self._last)
        self._tokens = min(float(self.burst), self._tokens + elapsed * self.rate)
        self._last = now

    def reserve(self) -> float:
        """Take one token and return the delay (seconds) before it may be used."""
        with self._lock:
            self._advance(self._clock())
            self._tokens -= 1.0
            if self._tokens >= 0:
                return 0.0
            return -self._tokens / self.rate

    def wait(self) -> float:
        """Block until a token is available. Returns the time slept."""
        delay = self.reserve()
        if delay > 0:
            self._sleep(delay)
        return delay

    @property
    def tokens(self) -> float:
        with self._lock:
            self._advance(self._clock())
            return self._tokens


class LimiterRegistry:
    """Thread-safe map of simplified domain to TokenBucket."""

    def __init__(
        self,
        limits: Optional[Dict[str, Tuple[float, int]]] = None,
        default_rate: float = DEFAULT_RATE,
        default_burst: int = DEFAULT_BURST,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.default_rate = default_rate
        self.default_burst = default_burst
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._limiters: Dict[str, TokenBucket] = {}
        for domain, (rate, burst) in (limits or {}).items():
            self.register(domain, rate, burst)

    def _new_bucket(self, rate: float, burst: int) -> TokenBucket:
        return TokenBucket(rate, burst, clock=self._clock, sleep=self._sleep)

    def register(self, domain: str, rate: float, burst: int) -> TokenBucket:
        """Register (or replace) the limiter for a domain."""
        bucket = self._new_bucket(rate, burst)
        with self._lock:
            self._limiters[simplify_domain(domain)] = bucket
        return bucket

    def get(self, host: str) -> TokenBucket:
        """Get the limiter for a host, creating a default one on first use."""
        domain = simplify_domain(host)
        if domain != host:
            logger.debug("Domain simplified", {"domain": host, "simplified": domain})

        with self._lock:
            bucket = self._limiters.get(domain)
            if bucket is None:
                bucket = self._new_bucket(self.default_rate, self.default_burst)
                self._limiters[domain] = bucket
                logger.debug("New limiter created", {
                    "domain": domain, "rate": self.default_rate, "burst": self.default_burst
                })
        return bucket

    def wait(self, host: str) -> float:
        """Wait for a token for the host's domain. Returns the time slept."""
        bucket = self.get(host)
        delay = bucket.reserve()
        if delay > 0:
            logger.debug("Waiting for rate limiter", {
                "domain": simplify_domain(host), "delay_seconds": round(delay, 3)
            })
            self._sleep(delay)
        return delay

    def domains(self):
        with self._lock:
            return sorted(self._limiters)
