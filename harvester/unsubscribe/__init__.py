"""
Vendor unsubscribe module.

Builds and signs the vendor's unsubscribe form, submits it through the
shared transport, and records each processed email so it is never
resubmitted.
"""

from .checksum import checksum_fields, compute_checksum, sign_form
from .dispatcher import UnsubscribeDispatcher, build_form, dedup_key, normalize_email
from .fake import fake_email
from .types import (
    ConfirmationResponse, UnsubscribeResult,
    REASON_ALREADY_PROCESSED, REASON_DRY_RUN, REASON_IN_FLIGHT, REASON_UNSUBSCRIBED
)

__all__ = [
    'checksum_fields', 'compute_checksum', 'sign_form',
    'UnsubscribeDispatcher', 'build_form', 'dedup_key', 'normalize_email',
    'fake_email', 'ConfirmationResponse', 'UnsubscribeResult',
    'REASON_ALREADY_PROCESSED', 'REASON_DRY_RUN', 'REASON_IN_FLIGHT', 'REASON_UNSUBSCRIBED'
]
