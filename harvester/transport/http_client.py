"""
Rate-limited HTTP transport.

Every outbound request in the harvester goes through RateLimitedTransport:
- waits on the per-domain token bucket before sending
- never follows redirects, so callers can inspect 3xx Location headers
- logs method, host, path, status, content type, size and duration
- raises TransportError for network failures without retrying
"""

import time
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import requests

from harvester.exceptions import TransportError
from harvester.logging import StructuredLogger
from .rate_limiter import LimiterRegistry


BROWSER_USER_AGENT = 'Mozilla/5.0 (X11; Linux x86_64; rv:122.0) Gecko/20100101 Firefox/122.0'


class RateLimitedTransport:
    """Shared HTTP client owning the live cookie jar."""

    def __init__(
        self,
        limiters: LimiterRegistry,
        timeout: int = 30,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize transport.

        Args:
            limiters: Registry of per-domain rate limiters
            timeout: Request timeout in seconds
            session: requests session to send through (a new one by default)
        """
        self.limiters = limiters
        self.timeout = timeout
        self.session = session or requests.Session()
        self.logger = StructuredLogger("transport")

    @property
    def cookies(self):
        """The live cookie jar."""
        return self.session.cookies

    def send(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> requests.Response:
        """
        Send a request and return the response with its body read.

        Raises:
            TransportError: DNS, connection, timeout or other network failure
        """
        parsed = urlparse(url)
        host = parsed.netloc

        self.limiters.wait(host)

        self.logger.debug("Request", {"method": method, "host": host, "path": parsed.path})

        start = time.monotonic()
        try:
            response = self.session.request(
                method,
                url,
                params=params,
                data=data,
                headers=headers,
                timeout=self.timeout,
                allow_redirects=False
            )
        except requests.exceptions.RequestException as e:
            duration = time.monotonic() - start
            self.logger.error("Request error", {
                "method": method,
                "host": host,
                "path": parsed.path,
                "duration_seconds": round(duration, 3),
                "error": str(e)
            })
            raise TransportError(f"{type(e).__name__}: {e}", method=method, url=url) from e
        duration = time.monotonic() - start

        self.logger.debug("Response", {
            "method": method,
            "host": host,
            "path": parsed.path,
            "code": response.status_code,
            "content_type": response.headers.get('Content-Type', ''),
            "size": len(response.content or b''),
            "duration_seconds": round(duration, 3)
        })
        return response

    def get(self, url: str, **kwargs) -> requests.Response:
        return self.send('GET', url, **kwargs)

    def post(self, url: str, **kwargs) -> requests.Response:
        return self.send('POST', url, **kwargs)

    def close(self):
        self.session.close()
