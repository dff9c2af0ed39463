"""
Tests for the concurrent fetch-cache-dispatch pipeline.
"""

import json
import threading

import pytest
from unittest.mock import Mock

from harvester.directory import DetailFetcher, DirectoryEntry, DirectoryFetcher, FullProfile
from harvester.exceptions import ProtocolShapeError, VendorRejectedError
from harvester.pipeline import PipelineCoordinator, PipelineStats
from harvester.transport import RateLimitedTransport
from harvester.unsubscribe import (
    UnsubscribeDispatcher, UnsubscribeResult, REASON_ALREADY_PROCESSED, REASON_UNSUBSCRIBED
)
from harvester.unsubscribe.constants import PENDING_PREFIX
from harvester.unsubscribe.dispatcher import dedup_key
from conftest import directory_page_html, profile_page_html


def entries_for(letter, count):
    return [DirectoryEntry(id=f"{letter.lower()}{n}", name=f"{letter} Person {n}") for n in range(count)]


@pytest.fixture
def directory_fetcher():
    return Mock(spec=DirectoryFetcher)


@pytest.fixture
def detail_fetcher():
    fetcher = Mock(spec=DetailFetcher)
    fetcher.get.side_effect = lambda profile_id: FullProfile(name=profile_id, email=f"{profile_id}@utsa.edu")
    return fetcher


@pytest.fixture
def dispatcher():
    dispatcher = Mock(spec=UnsubscribeDispatcher)
    dispatcher.try_unsubscribe.side_effect = lambda email: UnsubscribeResult(email=email, submitted=True)
    return dispatcher


class TestPipelineCoordinator:
    """Letters flow through scrape, detail and dispatch."""

    def test_every_email_is_dispatched(self, directory_fetcher, detail_fetcher, dispatcher):
        directory_fetcher.get.side_effect = lambda letter: entries_for(letter, 3)
        coordinator = PipelineCoordinator(
            directory_fetcher, detail_fetcher, dispatcher, letters=["A", "B", "C"], scrape_workers=2, queue_size=2
        )

        stats = coordinator.run()

        dispatched = sorted(call.args[0] for call in dispatcher.try_unsubscribe.call_args_list)
        expected = sorted(f"{letter}{n}@utsa.edu" for letter in "abc" for n in range(3))
        assert dispatched == expected
        assert stats == PipelineStats(letters=3, entries=9, profiles=9, submitted=9)

    def test_profile_without_email_is_dropped(self, directory_fetcher, detail_fetcher, dispatcher):
        directory_fetcher.get.return_value = entries_for("Z", 25)
        detail_fetcher.get.side_effect = lambda profile_id: FullProfile(
            name=profile_id, email='' if profile_id == 'z7' else f"{profile_id}@utsa.edu"
        )
        coordinator = PipelineCoordinator(directory_fetcher, detail_fetcher, dispatcher, letters=["Z"])

        stats = coordinator.run()

        assert dispatcher.try_unsubscribe.call_count == 24
        assert 'z7@utsa.edu' not in [call.args[0] for call in dispatcher.try_unsubscribe.call_args_list]
        assert stats.dropped == 1
        assert stats.submitted == 24

    def test_vendor_errors_are_counted_not_fatal(self, directory_fetcher, detail_fetcher, dispatcher):
        directory_fetcher.get.return_value = entries_for("A", 4)

        def unsubscribe(email):
            if email == 'a1@utsa.edu':
                raise VendorRejectedError('Rejected', 602)
            if email == 'a2@utsa.edu':
                return UnsubscribeResult(email=email, submitted=False, reason=REASON_ALREADY_PROCESSED)
            return UnsubscribeResult(email=email, submitted=True, reason=REASON_UNSUBSCRIBED)
        dispatcher.try_unsubscribe.side_effect = unsubscribe

        stats = PipelineCoordinator(directory_fetcher, detail_fetcher, dispatcher, letters=["A"]).run()

        assert stats.failed == 1
        assert stats.already_processed == 1
        assert stats.submitted == 2

    def test_shape_error_is_reraised_after_drain(self, directory_fetcher, detail_fetcher, dispatcher):
        def get(letter):
            if letter == "B":
                raise ProtocolShapeError("No directory rows found", stage="directory")
            return entries_for(letter, 2)
        directory_fetcher.get.side_effect = get
        coordinator = PipelineCoordinator(
            directory_fetcher, detail_fetcher, dispatcher, letters=["A", "B"], scrape_workers=1
        )

        with pytest.raises(ProtocolShapeError):
            coordinator.run()

        assert coordinator.stopped
        assert coordinator.stats.letters == 1

    def test_stop_before_run_starts_nothing(self, directory_fetcher, detail_fetcher, dispatcher):
        stop_event = threading.Event()
        stop_event.set()
        coordinator = PipelineCoordinator(
            directory_fetcher, detail_fetcher, dispatcher, letters=["A", "B"], stop_event=stop_event
        )

        stats = coordinator.run()

        directory_fetcher.get.assert_not_called()
        dispatcher.try_unsubscribe.assert_not_called()
        assert stats == PipelineStats()

    def test_stop_mid_run_discards_queued_work(self, directory_fetcher, detail_fetcher, dispatcher):
        directory_fetcher.get.return_value = entries_for("A", 10)
        coordinator = PipelineCoordinator(directory_fetcher, detail_fetcher, dispatcher, letters=["A"], queue_size=1)

        def stop_after_first(email):
            coordinator.stop()
            return UnsubscribeResult(email=email, submitted=True)
        dispatcher.try_unsubscribe.side_effect = stop_after_first

        stats = coordinator.run()

        assert dispatcher.try_unsubscribe.call_count == 1
        assert stats.submitted == 1
        assert stats.entries == 10
        assert stats.submitted + stats.skipped == 10

    def test_invalid_sizes(self, directory_fetcher, detail_fetcher, dispatcher):
        with pytest.raises(ValueError):
            PipelineCoordinator(directory_fetcher, detail_fetcher, dispatcher, scrape_workers=0)
        with pytest.raises(ValueError):
            PipelineCoordinator(directory_fetcher, detail_fetcher, dispatcher, queue_size=0)


class TestEndToEnd:
    """Real fetchers and dispatcher over an in-memory store."""

    def test_z_letter_scenario(self, kv_store, make_response):
        people = [(f"z{n}", f"Z-Person {n}", "Staff", "Library") for n in range(25)]
        confirmation = json.dumps({'formId': '1', 'followUpUrl': '', 'deliveryType': '', 'aliId': ''})

        def get(url, params=None, headers=None):
            if 'SearchByLastName' in url:
                return make_response(200, directory_page_html(people))
            profile_id = params['id']
            email = '' if profile_id == 'z3' else f"{profile_id}@utsa.edu"
            return make_response(200, profile_page_html(profile_id, [("Email", email), ("Title", "Staff")]))

        transport = Mock(spec=RateLimitedTransport)
        transport.get.side_effect = get
        transport.post.return_value = make_response(200, confirmation, {'Content-Type': 'application/json'})

        coordinator = PipelineCoordinator(
            DirectoryFetcher(transport, kv_store),
            DetailFetcher(transport, kv_store),
            UnsubscribeDispatcher(transport, kv_store, cover_traffic=False),
            letters=["Z"]
        )

        stats = coordinator.run()

        assert stats.entries == 25
        assert stats.dropped == 1
        assert stats.submitted == 24
        assert transport.post.call_count == 24
        assert kv_store.count('unsubscribed:') == 24
        assert kv_store.count('profile:') == 25
        assert kv_store.exists('directory:Z')

        rerun = coordinator.run()

        assert rerun.submitted == 0
        assert rerun.already_processed == 24
        assert transport.post.call_count == 24
        assert transport.get.call_count == 26

    def _transport(self, make_response, count):
        people = [(f"z{n}", f"Z-Person {n}", "Staff", "Library") for n in range(count)]
        confirmation = json.dumps({'formId': '1', 'followUpUrl': '', 'deliveryType': '', 'aliId': ''})

        def get(url, params=None, headers=None):
            if 'SearchByLastName' in url:
                return make_response(200, directory_page_html(people))
            profile_id = params['id']
            return make_response(200, profile_page_html(profile_id, [("Email", f"{profile_id}@utsa.edu")]))

        transport = Mock(spec=RateLimitedTransport)
        transport.get.side_effect = get
        transport.post.return_value = make_response(200, confirmation, {'Content-Type': 'application/json'})
        return transport

    def test_dry_run_is_not_counted_as_processed(self, kv_store, make_response):
        transport = self._transport(make_response, 3)
        coordinator = PipelineCoordinator(
            DirectoryFetcher(transport, kv_store),
            DetailFetcher(transport, kv_store),
            UnsubscribeDispatcher(transport, kv_store, cover_traffic=False, dry_run=True),
            letters=["Z"]
        )

        stats = coordinator.run()

        transport.post.assert_not_called()
        assert kv_store.count('unsubscribed:') == 0
        assert stats.dry_run == 3
        assert stats.already_processed == 0
        assert stats.submitted == 0

    def test_email_claimed_by_another_run(self, kv_store, make_response):
        transport = self._transport(make_response, 3)
        kv_store.set(dedup_key('z1@utsa.edu'), PENDING_PREFIX + b'1000')
        coordinator = PipelineCoordinator(
            DirectoryFetcher(transport, kv_store),
            DetailFetcher(transport, kv_store),
            UnsubscribeDispatcher(transport, kv_store, cover_traffic=False, clock=lambda: 1000.0),
            letters=["Z"]
        )

        stats = coordinator.run()

        assert stats.submitted == 2
        assert stats.claimed_elsewhere == 1
        assert stats.already_processed == 0
        assert transport.post.call_count == 2
        assert kv_store.get(dedup_key('z1@utsa.edu')) == PENDING_PREFIX + b'1000'
