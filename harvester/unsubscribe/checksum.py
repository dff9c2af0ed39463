"""
Vendor form checksum.

The vendor verifies a SHA-256 digest over the '|'-joined values of the
fields listed in `checksumFields`, in that order.
"""

import hashlib
from typing import Dict, List, Optional

from .constants import CHECKSUM_FIELD, CHECKSUM_FIELDS_FIELD


def checksum_fields(form: Dict[str, str]) -> List[str]:
    """Ordered list of fields covered by the checksum."""
    return [name for name in form if name not in (CHECKSUM_FIELD, CHECKSUM_FIELDS_FIELD)]


def compute_checksum(form: Dict[str, str], fields: Optional[List[str]] = None) -> str:
    """Hex SHA-256 of the values of `fields` joined with '|'."""
    if fields is None:
        fields = checksum_fields(form)
    joined = '|'.join(form.get(name, '') for name in fields)
    return hashlib.sha256(joined.encode('utf-8')).hexdigest()


def sign_form(form: Dict[str, str]) -> Dict[str, str]:
    """Return a copy of the form with checksumFields and checksum attached."""
    fields = checksum_fields(form)
    signed = {name: form[name] for name in fields}
    signed[CHECKSUM_FIELDS_FIELD] = ','.join(fields)
    signed[CHECKSUM_FIELD] = compute_checksum(form, fields)
    return signed
