"""
Tests for the vendor form checksum.
"""

import hashlib

from harvester.unsubscribe import build_form, checksum_fields, compute_checksum, sign_form
from harvester.unsubscribe.constants import FORM_FIELDS


class TestChecksum:
    """SHA-256 over the '|'-joined values of the listed fields."""

    def test_known_digest(self):
        form = {'Email': 'a@utsa.edu', 'Unsubscribed': 'Yes', 'cr': ''}

        expected = hashlib.sha256('a@utsa.edu|Yes|'.encode('utf-8')).hexdigest()
        assert compute_checksum(form) == expected

    def test_deterministic(self):
        form = build_form('ana.zamora@utsa.edu')

        assert compute_checksum(form) == compute_checksum(dict(form))

    def test_order_sensitive(self):
        form = {'Email': 'a@utsa.edu', 'Unsubscribed': 'Yes'}

        forward = compute_checksum(form, ['Email', 'Unsubscribed'])
        backward = compute_checksum(form, ['Unsubscribed', 'Email'])

        assert forward != backward

    def test_value_sensitive(self):
        assert compute_checksum(build_form('a@utsa.edu')) != compute_checksum(build_form('b@utsa.edu'))


class TestSignForm:
    """Signed forms carry checksumFields and checksum."""

    def test_signed_form_lists_fields_in_order(self):
        signed = sign_form(build_form('a@utsa.edu'))

        assert signed['checksumFields'] == ','.join(FORM_FIELDS)
        assert list(signed)[:len(FORM_FIELDS)] == FORM_FIELDS
        assert list(signed)[-2:] == ['checksumFields', 'checksum']

    def test_checksum_covers_exactly_the_listed_fields(self):
        signed = sign_form(build_form('a@utsa.edu'))
        fields = signed['checksumFields'].split(',')

        joined = '|'.join(signed[name] for name in fields)
        assert signed['checksum'] == hashlib.sha256(joined.encode('utf-8')).hexdigest()

    def test_resigning_ignores_previous_checksum(self):
        signed = sign_form(build_form('a@utsa.edu'))

        assert checksum_fields(signed) == FORM_FIELDS
        assert sign_form(signed) == signed

    def test_email_is_first_field(self):
        assert build_form('x@utsa.edu')['Email'] == 'x@utsa.edu'
        assert list(build_form('x@utsa.edu'))[0] == 'Email'
