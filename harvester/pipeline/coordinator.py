"""
Fetch-cache-dispatch pipeline.

Three stages connected by bounded queues:
- scrape: a worker pool runs one task per letter and pushes DirectoryEntry
  records onto the entries queue
- detail: one thread resolves each entry to a FullProfile and pushes the
  non-empty emails onto the emails queue
- dispatch: one thread hands each email to the unsubscribe dispatcher

A full queue blocks its producer. Each stage forwards an end-of-stream
sentinel once its producers are done, and keeps draining its input until
it sees one, so a stopped or failed run never leaves a producer blocked.
"""

import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, asdict
from typing import Dict, Iterable, List, Optional

from harvester.directory import DetailFetcher, DirectoryEntry, DirectoryFetcher
from harvester.directory.constants import LETTERS
from harvester.exceptions import HarvesterError
from harvester.logging import StructuredLogger
from harvester.unsubscribe import (
    UnsubscribeDispatcher, REASON_ALREADY_PROCESSED, REASON_DRY_RUN, REASON_IN_FLIGHT
)


_END_OF_STREAM = object()


@dataclass
class PipelineStats:
    """Counters for one pipeline run."""

    letters: int = 0
    entries: int = 0
    profiles: int = 0
    dropped: int = 0
    submitted: int = 0
    already_processed: int = 0
    dry_run: int = 0
    claimed_elsewhere: int = 0
    skipped: int = 0
    failed: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


class PipelineCoordinator:
    """Run the letters through the scrape, detail and dispatch stages."""

    def __init__(
        self,
        directory_fetcher: DirectoryFetcher,
        detail_fetcher: DetailFetcher,
        dispatcher: UnsubscribeDispatcher,
        letters: Optional[Iterable[str]] = None,
        scrape_workers: int = 4,
        queue_size: int = 100,
        stop_event: Optional[threading.Event] = None
    ):
        """
        Initialize coordinator.

        Args:
            directory_fetcher: Letter -> entries
            detail_fetcher: Entry id -> profile
            dispatcher: Email -> unsubscribe submission
            letters: Partition keys to walk (A-Z by default)
            scrape_workers: Size of the scrape worker pool
            queue_size: Capacity of each inter-stage queue
            stop_event: Event that requests a graceful stop when set
        """
        if scrape_workers < 1:
            raise ValueError("scrape_workers must be at least 1")
        if queue_size < 1:
            raise ValueError("queue_size must be at least 1")

        self.directory_fetcher = directory_fetcher
        self.detail_fetcher = detail_fetcher
        self.dispatcher = dispatcher
        self.letters: List[str] = list(letters) if letters is not None else list(LETTERS)
        self.scrape_workers = scrape_workers
        self.queue_size = queue_size
        self.stop_event = stop_event or threading.Event()
        self.logger = StructuredLogger("pipeline")

        self.stats = PipelineStats()
        self._stats_lock = threading.Lock()
        self._errors: List[Exception] = []

    def stop(self) -> None:
        """Stop starting new work; in-flight calls finish."""
        if not self.stop_event.is_set():
            self.logger.info("Stop requested", {})
        self.stop_event.set()

    @property
    def stopped(self) -> bool:
        return self.stop_event.is_set()

    def run(self) -> PipelineStats:
        """
        Run every stage to completion.

        Returns:
            PipelineStats for the run

        Raises:
            ProtocolShapeError, TransportError: The first fatal error raised
            by the scrape or detail stage, after all stages have drained
        """
        self.stats = PipelineStats()
        self._errors = []

        entries: queue.Queue = queue.Queue(maxsize=self.queue_size)
        emails: queue.Queue = queue.Queue(maxsize=self.queue_size)

        detail_thread = threading.Thread(
            target=self._detail_stage, args=(entries, emails), name="pipeline-detail", daemon=True
        )
        dispatch_thread = threading.Thread(
            target=self._dispatch_stage, args=(emails,), name="pipeline-dispatch", daemon=True
        )

        with self.logger.time_operation("pipeline_run"):
            detail_thread.start()
            dispatch_thread.start()

            with ThreadPoolExecutor(max_workers=self.scrape_workers, thread_name_prefix="pipeline-scrape") as pool:
                for letter in self.letters:
                    pool.submit(self._scrape_letter, letter, entries)

            entries.put(_END_OF_STREAM)
            detail_thread.join()
            dispatch_thread.join()

        self.logger.info("Pipeline finished", self.stats.to_dict())

        if self._errors:
            raise self._errors[0]
        return self.stats

    def _count(self, field: str, amount: int = 1) -> None:
        with self._stats_lock:
            setattr(self.stats, field, getattr(self.stats, field) + amount)

    def _fatal(self, error: Exception, stage: str, extra: Dict) -> None:
        self.logger.log_exception(error, {"stage": stage, **extra})
        with self._stats_lock:
            self._errors.append(error)
        self.stop_event.set()

    def _scrape_letter(self, letter: str, out: queue.Queue) -> None:
        if self.stopped:
            self.logger.debug("Letter not started", {"letter": letter})
            return

        try:
            found: List[DirectoryEntry] = self.directory_fetcher.get(letter)
        except Exception as e:
            self._fatal(e, "scrape", {"letter": letter})
            return

        self._count('letters')
        self._count('entries', len(found))
        self.logger.debug("Letter scraped", {"letter": letter, "entries": len(found)})

        for index, entry in enumerate(found):
            if self.stopped:
                self._count('skipped', len(found) - index)
                return
            out.put(entry)

    def _detail_stage(self, inbox: queue.Queue, out: queue.Queue) -> None:
        try:
            while True:
                entry = inbox.get()
                if entry is _END_OF_STREAM:
                    return
                if self.stopped:
                    self._count('skipped')
                    continue

                try:
                    profile = self.detail_fetcher.get(entry.id)
                except Exception as e:
                    self._fatal(e, "detail", {"id": entry.id, "name": entry.name})
                    self._count('skipped')
                    continue

                self._count('profiles')
                email = (profile.email or '').strip()
                if not email:
                    self.logger.warning("Profile has no email, dropping", {"id": entry.id, "name": entry.name})
                    self._count('dropped')
                    continue
                out.put(email)
        finally:
            out.put(_END_OF_STREAM)

    def _dispatch_stage(self, inbox: queue.Queue) -> None:
        while True:
            email = inbox.get()
            if email is _END_OF_STREAM:
                return
            if self.stopped:
                self._count('skipped')
                continue

            try:
                result = self.dispatcher.try_unsubscribe(email)
            except HarvesterError as e:
                self.logger.log_exception(e, {"stage": "dispatch", "email": email})
                self._count('failed')
                continue
            except Exception as e:
                self._fatal(e, "dispatch", {"email": email})
                self._count('failed')
                continue

            if result.submitted:
                self._count('submitted')
            elif result.reason == REASON_ALREADY_PROCESSED:
                self._count('already_processed')
            elif result.reason == REASON_DRY_RUN:
                self._count('dry_run')
            elif result.reason == REASON_IN_FLIGHT:
                self._count('claimed_elsewhere')
            else:
                self._count('skipped')
