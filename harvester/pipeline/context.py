"""
Application context.

One object owns the long-lived collaborators of a harvester process: the
database, the KV store, the limiter registry and the shared transport. Every
component is built from it, so nothing relies on module-level singletons for
network or storage state.
"""

import threading
from typing import Iterable, Optional

import requests

from harvester.config import Config, LoginCredentials
from harvester.database import DatabaseManager, KeyValueStore
from harvester.directory import DetailFetcher, DirectoryFetcher, LoginStateMachine, SessionStore
from harvester.logging import StructuredLogger
from harvester.transport import LimiterRegistry, RateLimitedTransport
from harvester.unsubscribe import UnsubscribeDispatcher
from .coordinator import PipelineCoordinator


class AppContext:
    """Builds and owns every harvester component for one process."""

    def __init__(
        self,
        config=Config,
        database_url: Optional[str] = None,
        credentials: Optional[LoginCredentials] = None,
        cover_traffic: Optional[bool] = None,
        dry_run: bool = False,
        http_session: Optional[requests.Session] = None
    ):
        """
        Initialize context.

        Args:
            config: Settings source (the Config class by default)
            database_url: Overrides config.get_database_path()
            credentials: Directory login credentials, if a login may be needed
            cover_traffic: Overrides config.COVER_TRAFFIC
            dry_run: Build vendor forms without submitting them
            http_session: requests session for the transport (tests)
        """
        self.config = config
        self.logger = StructuredLogger("context")

        self.db_manager = DatabaseManager(database_url or config.get_database_path())
        self.db_manager.initialize_database()
        self.kv_store = KeyValueStore(self.db_manager.get_session)

        self.limiters = LimiterRegistry(
            config.get_domain_limits(),
            default_rate=config.DEFAULT_RATE,
            default_burst=config.DEFAULT_BURST
        )
        self.transport = RateLimitedTransport(self.limiters, timeout=config.REQUEST_TIMEOUT, session=http_session)

        self.session_store = SessionStore(self.kv_store, self.transport.cookies)
        self.login = LoginStateMachine(self.transport, self.session_store, credentials)
        self.directory_fetcher = DirectoryFetcher(self.transport, self.kv_store)
        self.detail_fetcher = DetailFetcher(self.transport, self.kv_store)
        self.dispatcher = UnsubscribeDispatcher(
            self.transport,
            self.kv_store,
            cover_traffic=config.COVER_TRAFFIC if cover_traffic is None else cover_traffic,
            cover_probability=config.COVER_TRAFFIC_PROBABILITY,
            dry_run=dry_run
        )
        self._closed = False

    def restore_session(self) -> int:
        """Load the persisted cookies into the live jar."""
        restored = self.session_store.restore()
        self.logger.debug("Session restored", {"cookies": restored})
        return restored

    def coordinator(
        self,
        letters: Optional[Iterable[str]] = None,
        scrape_workers: Optional[int] = None,
        queue_size: Optional[int] = None,
        stop_event: Optional[threading.Event] = None
    ) -> PipelineCoordinator:
        """Build a pipeline coordinator over this context's components."""
        return PipelineCoordinator(
            self.directory_fetcher,
            self.detail_fetcher,
            self.dispatcher,
            letters=letters,
            scrape_workers=scrape_workers or self.config.SCRAPE_WORKERS,
            queue_size=queue_size or self.config.QUEUE_SIZE,
            stop_event=stop_event
        )

    def close(self, save_session: bool = True) -> None:
        """Flush the session and release network and database resources."""
        if self._closed:
            return
        self._closed = True
        if save_session:
            self.session_store.save()
        self.transport.close()
        self.db_manager.dispose()

    def __enter__(self) -> 'AppContext':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
