"""
External surface of the directory site: URLs, form fields, CSS selectors
and cache key prefixes.
"""

import string
from typing import Dict, List

from harvester.transport import BROWSER_USER_AGENT

# Site endpoints
SITE_ORIGIN = 'https://www.utsa.edu'
DIRECTORY_INDEX_URL = 'https://www.utsa.edu/directory/Directory?action=Index'
LOGIN_PAGE_URL = 'https://www.utsa.edu/directory/Account/Login'
LOGIN_POST_URL = 'https://www.utsa.edu/directory/'
LOGIN_RETURN_URL = '/directory/AdvancedSearch'
ADVANCED_SEARCH_URL = 'https://www.utsa.edu/directory/AdvancedSearch'
SEARCH_BY_LAST_NAME_URL = 'https://www.utsa.edu/directory/SearchByLastName'
PROFILE_DETAIL_URL = 'https://www.utsa.edu/directory/Person/Detail'

# Query parameters
RETURN_URL_PARAM = 'ReturnUrl'
SEARCH_LETTER_PARAM = 'abc'
PROFILE_ID_PARAM = 'id'

# Login form
AUTH_COOKIE_NAME = '.ADAuthCookie'
TOKEN_FIELD = '__RequestVerificationToken'
USERNAME_FIELD = 'myUTSAID'
PASSWORD_FIELD = 'passphrase'
SUBMIT_FIELD = 'log-me-in'
SUBMIT_VALUE = 'Log+In'

# Selectors
TOKEN_SELECTOR = "input[name='__RequestVerificationToken']"
VALIDATION_ERROR_SELECTOR = 'span.field-validation-error'
LOG_OFF_SELECTOR = 'a.dropdown-item'
LOG_OFF_TEXT = 'Log Off'

DIRECTORY_ROWS_SELECTOR = 'table#peopleTable > tbody > tr'
ENTRY_NAME_SELECTOR = 'a.fullName'
ENTRY_JOB_TITLE_SELECTOR = 'span.jobtitle'
ENTRY_DEPARTMENT_SELECTOR = 'span.dept'
ENTRY_COLLEGE_SELECTOR = 'span.college'
ENTRY_PHONE_SELECTOR = 'span.phone'

PROFILE_ROWS_SELECTOR = 'table#profileTable tr'
PROFILE_NAME_SELECTOR = 'div.profile b'

# A directory page at or below this many rows is suspicious but usable
LOW_ROW_COUNT = 20

# Partition keys
LETTERS: List[str] = list(string.ascii_uppercase)

# Cache keys
DIRECTORY_CACHE_PREFIX = 'directory:'
PROFILE_CACHE_PREFIX = 'profile:'
SESSION_KEY = 'session:cookies'

DIRECTORY_HEADERS: Dict[str, str] = {
    'User-Agent': BROWSER_USER_AGENT,
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8',
    'Accept-Language': 'en-US,en;q=0.5',
    'Accept-Encoding': 'gzip, deflate',
}
