"""
Error taxonomy for the directory harvester.

Every failure raised by the harvester is a HarvesterError tagged with an
ErrorKind, so callers can decide whether to retry, alert, or give up without
matching on message strings. Each subclass carries the structured context
needed to debug it.
"""

from enum import Enum
from typing import Dict, Any, Optional


class ErrorKind(str, Enum):
    """Kinds of failure the harvester distinguishes."""

    TRANSPORT = 'transport'
    PROTOCOL_SHAPE = 'protocol_shape'
    CACHE = 'cache'
    VENDOR_CHECKSUM = 'vendor_checksum'
    VENDOR_REJECTED = 'vendor_rejected'
    VENDOR_UNKNOWN = 'vendor_unknown'


class HarvesterError(Exception):
    """Base exception carrying an error kind and structured context."""

    kind: ErrorKind = ErrorKind.PROTOCOL_SHAPE

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}

    def __str__(self) -> str:
        base_message = super().__str__()
        if self.context:
            context_info = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{base_message} (context: {context_info})"
        return base_message


class TransportError(HarvesterError):
    """Network level failure (DNS, connect, timeout). Never retried in-core."""

    kind = ErrorKind.TRANSPORT

    def __init__(self, message: str, method: Optional[str] = None, url: Optional[str] = None):
        context = {}
        if method:
            context['method'] = method
        if url:
            context['url'] = url
        super().__init__(message, context)
        self.method = method
        self.url = url


class ProtocolShapeError(HarvesterError):
    """The remote site's markup or flow no longer matches what we expect."""

    kind = ErrorKind.PROTOCOL_SHAPE

    def __init__(self, message: str, stage: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        context = {}
        if stage:
            context['stage'] = stage
        context.update(details or {})
        super().__init__(message, context)
        self.stage = stage
        self.details = details or {}


class CacheError(HarvesterError):
    """KV store read, decode or write failure."""

    kind = ErrorKind.CACHE

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message, {'key': key} if key else None)
        self.key = key


class VendorChecksumError(HarvesterError):
    """The vendor reported the form checksum as invalid or missing."""

    kind = ErrorKind.VENDOR_CHECKSUM

    INVALID = 'invalid'
    MISSING = 'missing'

    def __init__(self, checksum: str, reason: str = INVALID):
        super().__init__(f"checksum {reason}", {'checksum': checksum})
        self.checksum = checksum
        self.reason = reason


class VendorRejectedError(HarvesterError):
    """The vendor explicitly rejected the submission."""

    kind = ErrorKind.VENDOR_REJECTED

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(f"rejected: {message}", {'code': code} if code is not None else None)
        self.vendor_message = message
        self.code = code


class VendorUnknownError(HarvesterError):
    """Unrecognized vendor error shape; carries the raw status and body."""

    kind = ErrorKind.VENDOR_UNKNOWN

    MAX_BODY_LENGTH = 200

    def __init__(self, status_code: int, body: str):
        truncated = (body or '')[:self.MAX_BODY_LENGTH]
        super().__init__(f"unexpected vendor response: {truncated[:50]}", {'status_code': status_code})
        self.status_code = status_code
        self.body = truncated
