"""
Persist and restore the authenticated cookie jar through the KV store.

The session is always read and written as one JSON blob; there is no
partial update path.
"""

import json
from typing import Any, Dict, List
from urllib.parse import urlparse

from requests.cookies import RequestsCookieJar, create_cookie

from harvester.database import KeyValueStore
from harvester.exceptions import CacheError
from harvester.logging import StructuredLogger
from .constants import AUTH_COOKIE_NAME, SESSION_KEY, SITE_ORIGIN


def cookie_matches_host(cookie_domain: str, host: str) -> bool:
    """Whether a cookie set for `cookie_domain` is sent to `host`."""
    domain = (cookie_domain or '').lstrip('.').lower()
    host = host.lower()
    if not domain:
        return True
    return host == domain or host.endswith('.' + domain)


def cookie_to_dict(cookie) -> Dict[str, Any]:
    return {
        'name': cookie.name,
        'value': cookie.value,
        'domain': cookie.domain,
        'path': cookie.path,
        'expires': cookie.expires,
        'secure': bool(cookie.secure),
        'http_only': bool(cookie.has_nonstandard_attr('HttpOnly')),
    }


def cookie_from_dict(data: Dict[str, Any]):
    rest = {'HttpOnly': None} if data.get('http_only') else {}
    return create_cookie(
        data['name'],
        data['value'],
        domain=data.get('domain', ''),
        path=data.get('path', '/'),
        expires=data.get('expires'),
        secure=bool(data.get('secure', False)),
        rest=rest,
    )


class SessionStore:
    """Cookie jar persistence for one origin."""

    def __init__(self, kv_store: KeyValueStore, cookie_jar: RequestsCookieJar, origin: str = SITE_ORIGIN):
        self.kv_store = kv_store
        self.cookie_jar = cookie_jar
        self.host = urlparse(origin).hostname or origin
        self.logger = StructuredLogger("session_store")

    def _origin_cookies(self) -> List:
        return [cookie for cookie in self.cookie_jar if cookie_matches_host(cookie.domain, self.host)]

    def load(self) -> List:
        """
        Read persisted cookies.

        Returns an empty list if nothing was persisted or the blob cannot be
        decoded; the failure is logged, never raised.
        """
        try:
            blob = self.kv_store.get(SESSION_KEY)
        except CacheError as e:
            self.logger.error("Failed to read session", {"error": str(e)})
            return []

        if blob is None:
            self.logger.debug("No persisted session", {"key": SESSION_KEY})
            return []

        try:
            records = json.loads(blob.decode('utf-8'))
            cookies = [cookie_from_dict(record) for record in records]
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            self.logger.error("Failed to decode persisted session", {"error": str(e)})
            return []

        self.logger.debug("Session loaded", {"count": len(cookies)})
        return cookies

    def restore(self) -> int:
        """Load persisted cookies into the live jar. Returns how many were restored."""
        cookies = self.load()
        for cookie in cookies:
            self.cookie_jar.set_cookie(cookie)
        return len(cookies)

    def save(self) -> bool:
        """
        Persist the live jar's cookies for the origin as one blob.

        Returns:
            True if written, False if the write failed (logged)
        """
        records = [cookie_to_dict(cookie) for cookie in self._origin_cookies()]
        try:
            self.kv_store.set(SESSION_KEY, json.dumps(records))
        except CacheError as e:
            self.logger.error("Failed to save session", {"error": str(e)})
            return False
        self.logger.debug("Session saved", {"count": len(records)})
        return True

    def clear(self) -> None:
        """Forget the session both in the live jar and in the store."""
        for cookie in self._origin_cookies():
            self.cookie_jar.clear(cookie.domain, cookie.path, cookie.name)
        self.kv_store.delete(SESSION_KEY)

    def has_auth_cookie(self) -> bool:
        """Whether the live jar holds the auth cookie for the origin."""
        found = any(cookie.name == AUTH_COOKIE_NAME for cookie in self._origin_cookies())
        if not found:
            self.logger.debug("Auth cookie not found", {"count": len(self._origin_cookies())})
        return found
