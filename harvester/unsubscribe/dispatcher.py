"""
Vendor unsubscribe dispatcher.

Submits the vendor's unauthenticated unsubscribe form for an email with:
- Dedup against the persisted unsubscribe records (no network call on a hit)
- An atomic claim on the dedup key so concurrent runs never double-submit
- Checksum signing of the form
- Classification of the vendor's error payloads
- Optional cover traffic for synthetic addresses
- Dry-run mode support
"""

import random
import time
from typing import Callable, Dict, Optional

import requests

from harvester.database import KeyValueStore
from harvester.exceptions import (
    CacheError, HarvesterError, VendorChecksumError, VendorRejectedError, VendorUnknownError
)
from harvester.logging import StructuredLogger
from harvester.transport import RateLimitedTransport
from .checksum import sign_form
from .constants import (
    SUBMIT_URL, VENDOR_HEADERS, FORM_FIELDS, FIXED_FORM_VALUES, EMAIL_FIELD, CHECKSUM_FIELD,
    MESSAGE_CHECKSUM_INVALID, MESSAGE_CHECKSUM_MISSING, MESSAGE_REJECTED,
    UNSUBSCRIBED_PREFIX, PROCESSED_FLAG, PENDING_PREFIX, CLAIM_TTL_SECONDS
)
from .fake import fake_email
from .types import (
    ConfirmationResponse, UnsubscribeResult,
    REASON_ALREADY_PROCESSED, REASON_DRY_RUN, REASON_IN_FLIGHT, REASON_UNSUBSCRIBED
)


def normalize_email(email: str) -> str:
    return (email or '').strip().lower()


def dedup_key(email: str) -> str:
    return f"{UNSUBSCRIBED_PREFIX}{normalize_email(email)}"


def build_form(email: str) -> Dict[str, str]:
    """Vendor form in checksum order with the target email filled in."""
    values = dict(FIXED_FORM_VALUES)
    values[EMAIL_FIELD] = email
    return {name: values[name] for name in FORM_FIELDS}


class UnsubscribeDispatcher:
    """Submit vendor unsubscribe requests at most once per email."""

    def __init__(
        self,
        transport: RateLimitedTransport,
        kv_store: KeyValueStore,
        cover_traffic: bool = True,
        cover_probability: float = 0.5,
        dry_run: bool = False,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize dispatcher.

        Args:
            transport: Shared rate-limited transport
            kv_store: Store holding the dedup records
            cover_traffic: Submit a synthetic address after real submissions
            cover_probability: Chance of a cover submission per real one
            dry_run: If True, build and sign the form without sending it
            rng: Random source for cover traffic
            clock: Wall clock used to age pending claims
        """
        self.transport = transport
        self.kv_store = kv_store
        self.cover_traffic = cover_traffic
        self.cover_probability = cover_probability
        self.dry_run = dry_run
        self.rng = rng or random.Random()
        self.clock = clock
        self.logger = StructuredLogger("dispatcher")

    def is_processed(self, email: str) -> bool:
        """Whether the email already has a processed dedup record."""
        return self.kv_store.get(dedup_key(email)) == PROCESSED_FLAG

    def try_unsubscribe(self, email: str) -> UnsubscribeResult:
        """
        Unsubscribe an email unless it was already processed.

        Returns:
            UnsubscribeResult with submitted=True only when the vendor
            confirmed this call's submission

        Raises:
            VendorChecksumError, VendorRejectedError, VendorUnknownError,
            TransportError: The submission failed; the email stays eligible
            for a later run
        """
        email = (email or '').strip()
        if not email:
            raise ValueError("Email is required")
        key = dedup_key(email)

        if self.kv_store.get(key) == PROCESSED_FLAG:
            self.logger.debug("Email already processed", {"email": email})
            return UnsubscribeResult(email=email, submitted=False, reason=REASON_ALREADY_PROCESSED)

        if self.dry_run:
            signed = sign_form(build_form(email))
            self.logger.info("Dry run, not submitting", {"email": email, "checksum": signed[CHECKSUM_FIELD]})
            return UnsubscribeResult(email=email, submitted=False, reason=REASON_DRY_RUN)

        claim = self._claim(key)
        if claim is None:
            self.logger.info("Email claimed by another worker", {"email": email})
            return UnsubscribeResult(email=email, submitted=False, reason=REASON_IN_FLIGHT)

        try:
            confirmation = self.submit(email)
        except Exception:
            self._release(key, claim)
            raise

        self._mark_processed(key)
        self.logger.info("Unsubscribed", {"email": email, **confirmation.to_dict()})

        self.send_cover_traffic()
        return UnsubscribeResult(email=email, submitted=True, reason=REASON_UNSUBSCRIBED, confirmation=confirmation)

    def submit(self, email: str) -> ConfirmationResponse:
        """Sign and POST the vendor form for an email. No dedup bookkeeping."""
        signed = sign_form(build_form(email))
        response = self.transport.post(SUBMIT_URL, data=signed, headers=VENDOR_HEADERS)
        return self._handle_response(response, signed[CHECKSUM_FIELD])

    def send_cover_traffic(self) -> Optional[str]:
        """
        With probability cover_probability, submit a synthetic address.

        The synthetic address never touches the dedup records and its
        failures are only logged.
        """
        if not self.cover_traffic or self.rng.random() >= self.cover_probability:
            return None

        email = fake_email(self.rng)
        try:
            self.submit(email)
        except HarvesterError as e:
            self.logger.warning("Cover traffic submission failed", {
                "email": email, "kind": e.kind.value, "error": str(e)
            })
            return email
        self.logger.debug("Cover traffic submitted", {"email": email})
        return email

    def _handle_response(self, response: requests.Response, checksum: str) -> ConfirmationResponse:
        if response.status_code == 200:
            try:
                payload = response.json()
            except ValueError:
                raise VendorUnknownError(response.status_code, response.text)
            if not isinstance(payload, dict):
                raise VendorUnknownError(response.status_code, response.text)
            return ConfirmationResponse.from_dict(payload)

        content_type = response.headers.get('Content-Type', '')
        if 'application/json' not in content_type:
            raise VendorUnknownError(response.status_code, response.text)

        try:
            payload = response.json()
        except ValueError as e:
            self.logger.error("Error parsing error response", {"error": str(e)})
            raise VendorUnknownError(response.status_code, response.text)

        message = payload.get('message') if isinstance(payload, dict) else None
        if message == MESSAGE_CHECKSUM_INVALID:
            raise VendorChecksumError(checksum, VendorChecksumError.INVALID)
        if message == MESSAGE_CHECKSUM_MISSING:
            raise VendorChecksumError(checksum, VendorChecksumError.MISSING)
        if message == MESSAGE_REJECTED:
            raise VendorRejectedError(message, payload.get('code'))

        self.logger.error("Unknown vendor error", {
            "status_code": response.status_code,
            "content_type": content_type,
            "body": response.text[:200]
        })
        raise VendorUnknownError(response.status_code, response.text)

    def _pending_value(self) -> bytes:
        return PENDING_PREFIX + str(int(self.clock())).encode('ascii')

    def _claim(self, key: str) -> Optional[bytes]:
        """
        Atomically claim a dedup key for an in-flight submission.

        Returns the pending value written on success, None if the email is
        processed or claimed by a live run. Claims older than
        CLAIM_TTL_SECONDS are taken over.
        """
        pending = self._pending_value()
        if self.kv_store.claim(key, pending):
            return pending

        current = self.kv_store.get(key)
        if current is None:
            return pending if self.kv_store.claim(key, pending) else None
        if not current.startswith(PENDING_PREFIX):
            return None

        try:
            claimed_at = int(current[len(PENDING_PREFIX):].decode('ascii'))
        except ValueError:
            claimed_at = 0
        if self.clock() - claimed_at <= CLAIM_TTL_SECONDS:
            return None

        self.logger.warning("Taking over stale claim", {"key": key, "claimed_at": claimed_at})
        if pending == current:
            pending = pending + b'.'
        return pending if self.kv_store.compare_and_set(key, current, pending) else None

    def _release(self, key: str, claim: bytes) -> None:
        try:
            self.kv_store.compare_and_delete(key, claim)
        except CacheError as e:
            self.logger.error("Failed to release claim", {"key": key, "error": str(e)})

    def _mark_processed(self, key: str) -> None:
        try:
            self.kv_store.set(key, PROCESSED_FLAG)
        except CacheError as e:
            self.logger.error("Failed to record unsubscribe", {"key": key, "error": str(e)})
