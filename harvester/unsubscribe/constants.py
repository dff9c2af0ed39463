"""
Vendor unsubscribe form constants.

Field names and values mirror the vendor's landing page form; the order of
FORM_FIELDS is the order the checksum is computed over.
"""

from typing import Dict, List
from urllib.parse import urlencode

from harvester.transport import BROWSER_USER_AGENT

VENDOR_ORIGIN = 'http://www2.thescla.org'
UNSUBSCRIBE_PAGE_URL = 'http://www2.thescla.org/UnsubscribePage.html'
SUBMIT_URL = 'http://www2.thescla.org/index.php/leadCapture/save2'

MUNCHKIN_ID = '839-MOL-552'
MKT_TOK = (
    'ODM5LU1PTC01NTIAAAGQRiDbOUWzUhLliVDxTHjxLfZDD1y0MxC47Wf_1C9UTbwEej3Tckhn_'
    'QteZR7p5Mpl3_f0ioPUyQ8XUceJ9a0PiOUJb_O3YIj8PwKNQEm4SseaSw'
)
LANDING_PAGE_URL = (
    f'http://{MUNCHKIN_ID}.mktoweb.com/lp/{MUNCHKIN_ID}/UnsubscribePage.html'
    '?cr={creative}&kw={keyword}'
)
REFERRER_URL = UNSUBSCRIBE_PAGE_URL + '?' + urlencode({'mkt_unsubscribe': '1', 'mkt_tok': MKT_TOK})

EMAIL_FIELD = 'Email'
CHECKSUM_FIELDS_FIELD = 'checksumFields'
CHECKSUM_FIELD = 'checksum'

# Fixed form values; Email is filled in per request
FORM_FIELDS: List[str] = [
    'Email', 'Unsubscribed', 'formid', 'lpId', 'subId', 'munchkinId', 'lpurl',
    'followupLpId', 'cr', 'kw', 'q', '_mkt_trk', 'formVid', 'mkt_tok', '_mktoReferrer',
]
FIXED_FORM_VALUES: Dict[str, str] = {
    'Unsubscribed': 'Yes',
    'formid': '1',
    'lpId': '1',
    'subId': '98',
    'munchkinId': MUNCHKIN_ID,
    'lpurl': LANDING_PAGE_URL,
    'followupLpId': '2',
    'cr': '',
    'kw': '',
    'q': '',
    '_mkt_trk': '',
    'formVid': '1',
    'mkt_tok': MKT_TOK,
    '_mktoReferrer': REFERRER_URL,
}

# Vendor error messages
MESSAGE_CHECKSUM_INVALID = 'checksum invalid'
MESSAGE_CHECKSUM_MISSING = 'checksum missing'
MESSAGE_REJECTED = 'Rejected'

VENDOR_HEADERS: Dict[str, str] = {
    'Origin': VENDOR_ORIGIN,
    'Referer': UNSUBSCRIBE_PAGE_URL + '?mkt_unsubscribe=1',
    'User-Agent': BROWSER_USER_AGENT,
    'Accept': 'application/json, text/javascript, */*; q=0.01',
    'Accept-Language': 'en-US,en;q=0.5',
    'Accept-Encoding': 'gzip, deflate',
    'Content-Type': 'application/x-www-form-urlencoded',
    'X-Requested-With': 'XMLHttpRequest',
}

# Dedup records
UNSUBSCRIBED_PREFIX = 'unsubscribed:'
PROCESSED_FLAG = b'\x01'
PENDING_PREFIX = b'pending:'

# A pending claim older than this is considered abandoned by a crashed run
CLAIM_TTL_SECONDS = 600
