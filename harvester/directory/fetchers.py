"""
Cache-aside fetchers for directory pages and full profiles.

Both fetchers read through the KV store and write back after a live
scrape. Cache failures are logged and never fail the fetch: a bad or missing
entry always degrades to a live request.
"""

import json
from typing import Any, Callable, List, Optional

from harvester.database import KeyValueStore
from harvester.exceptions import CacheError, ProtocolShapeError
from harvester.logging import StructuredLogger
from harvester.transport import RateLimitedTransport
from .constants import (
    SEARCH_BY_LAST_NAME_URL, SEARCH_LETTER_PARAM, PROFILE_DETAIL_URL, PROFILE_ID_PARAM,
    DIRECTORY_CACHE_PREFIX, PROFILE_CACHE_PREFIX, DIRECTORY_HEADERS, LETTERS
)
from .parsers import parse_directory_page, parse_profile_page
from .types import DirectoryEntry, FullProfile


def directory_cache_key(letter: str) -> str:
    return f"{DIRECTORY_CACHE_PREFIX}{letter}"


def profile_cache_key(profile_id: str) -> str:
    return f"{PROFILE_CACHE_PREFIX}{profile_id}"


def normalize_letter(letter: str) -> str:
    letter = (letter or '').strip().upper()
    if len(letter) != 1 or letter not in LETTERS:
        raise ValueError(f"Partition key must be a single letter A-Z, got {letter!r}")
    return letter


class _CacheAsideFetcher:
    """Shared read-through/write-back plumbing."""

    component = 'fetcher'

    def __init__(self, transport: RateLimitedTransport, kv_store: KeyValueStore):
        self.transport = transport
        self.kv_store = kv_store
        self.logger = StructuredLogger(self.component)

    def _read_cache(self, key: str, decode: Callable[[Any], Any]) -> Optional[Any]:
        try:
            blob = self.kv_store.get(key)
        except CacheError as e:
            self.logger.error("Failed to load from cache", {"key": key, "error": str(e)})
            return None

        if blob is None:
            self.logger.debug("Cache miss", {"key": key})
            return None

        try:
            value = decode(json.loads(blob.decode('utf-8')))
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            self.logger.warning("Failed to decode cache entry, refetching", {"key": key, "error": str(e)})
            return None

        self.logger.debug("Cache hit", {"key": key})
        return value

    def _write_cache(self, key: str, payload: Any) -> bool:
        try:
            self.kv_store.set(key, json.dumps(payload))
        except (CacheError, TypeError, ValueError) as e:
            self.logger.error("Failed to save to cache", {"key": key, "error": str(e)})
            return False
        self.logger.debug("Saved to cache", {"key": key})
        return True

    def _get_page(self, url: str, params: dict, stage: str) -> str:
        response = self.transport.get(url, params=params, headers=DIRECTORY_HEADERS)
        if response.status_code != 200:
            # A 302 here almost always means the session expired mid-run
            raise ProtocolShapeError(
                "Unexpected status code",
                stage=stage,
                details={"status_code": response.status_code, **params}
            )
        return response.text


class DirectoryFetcher(_CacheAsideFetcher):
    """Letter -> list of DirectoryEntry."""

    component = 'directory_fetcher'

    def is_cached(self, letter: str) -> bool:
        return self.kv_store.exists(directory_cache_key(normalize_letter(letter)))

    def get(self, letter: str) -> List[DirectoryEntry]:
        """Return cached entries for a letter, scraping and caching on a miss."""
        letter = normalize_letter(letter)
        key = directory_cache_key(letter)

        entries = self._read_cache(key, lambda rows: [DirectoryEntry.from_dict(row) for row in rows])
        if entries is not None:
            return entries

        entries = self.fetch_live(letter)
        self._write_cache(key, [entry.to_dict() for entry in entries])
        return entries

    def fetch_live(self, letter: str) -> List[DirectoryEntry]:
        """Scrape the search page for a letter, bypassing the cache."""
        html = self._get_page(SEARCH_BY_LAST_NAME_URL, {SEARCH_LETTER_PARAM: letter}, stage="directory")
        entries = parse_directory_page(html, letter=letter)
        self.logger.info("Directory page scraped", {"letter": letter, "entries": len(entries)})
        return entries

    def get_all(self, letters: Optional[List[str]] = None) -> List[DirectoryEntry]:
        """Walk every letter sequentially and concatenate the entries."""
        entries: List[DirectoryEntry] = []
        for letter in letters or LETTERS:
            entries.extend(self.get(letter))
        return entries


class DetailFetcher(_CacheAsideFetcher):
    """Opaque profile id -> FullProfile."""

    component = 'detail_fetcher'

    def is_cached(self, profile_id: str) -> bool:
        return self.kv_store.exists(profile_cache_key(profile_id))

    def get(self, profile_id: str) -> FullProfile:
        """Return the cached profile, scraping and caching on a miss."""
        if not profile_id:
            raise ValueError("Profile id is required")
        key = profile_cache_key(profile_id)

        profile = self._read_cache(key, FullProfile.from_dict)
        if profile is not None:
            return profile

        profile = self.fetch_live(profile_id)
        self._write_cache(key, profile.to_dict())
        return profile

    def fetch_live(self, profile_id: str) -> FullProfile:
        """Scrape a profile detail page, bypassing the cache."""
        html = self._get_page(PROFILE_DETAIL_URL, {PROFILE_ID_PARAM: profile_id}, stage="profile")
        return parse_profile_page(html, profile_id=profile_id)
