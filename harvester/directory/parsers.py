"""
HTML parsing for the directory site.

Turns rendered search and profile pages into DirectoryEntry and FullProfile
records, and exposes the small page checks the login flow needs.
"""

from typing import List, Optional
from urllib.parse import urlparse, parse_qs

from bs4 import BeautifulSoup

from harvester.exceptions import ProtocolShapeError
from harvester.logging import StructuredLogger
from .constants import (
    TOKEN_SELECTOR, VALIDATION_ERROR_SELECTOR, LOG_OFF_SELECTOR, LOG_OFF_TEXT,
    DIRECTORY_ROWS_SELECTOR, ENTRY_NAME_SELECTOR, ENTRY_JOB_TITLE_SELECTOR,
    ENTRY_DEPARTMENT_SELECTOR, ENTRY_COLLEGE_SELECTOR, ENTRY_PHONE_SELECTOR,
    PROFILE_ROWS_SELECTOR, PROFILE_NAME_SELECTOR, PROFILE_ID_PARAM, LOW_ROW_COUNT
)
from .types import AttributeMap, DirectoryEntry, FullProfile, normalize_title


logger = StructuredLogger("parser")

# Normalized label => FullProfile attribute
KNOWN_PROFILE_FIELDS = {
    'classification': 'classification',
    'college': 'college',
    'major': 'major',
    'email': 'email',
    'e-mail': 'email',
    'title': 'title',
    'department': 'department',
    'mailing-address': 'mailing_address',
    'building': 'building',
    'phone': 'phone',
}


def make_soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or '', 'html.parser')


def _text(element) -> str:
    if element is None:
        return ''
    return element.get_text().strip()


def find_request_token(soup: BeautifulSoup) -> str:
    """Return the anti-forgery token from the login form, or '' if absent."""
    element = soup.select_one(TOKEN_SELECTOR)
    if element is None:
        return ''
    return element.get('value', '') or ''


def find_validation_errors(soup: BeautifulSoup) -> List[str]:
    return [_text(element) for element in soup.select(VALIDATION_ERROR_SELECTOR)]


def has_log_off_link(soup: BeautifulSoup) -> bool:
    """Whether the rendered navigation offers a 'Log Off' item."""
    for index, element in enumerate(soup.select(LOG_OFF_SELECTOR)):
        if LOG_OFF_TEXT in element.get_text():
            logger.debug("Log off element found", {"index": index})
            return True
    return False


def extract_profile_id(href: Optional[str]) -> Optional[str]:
    """
    Decode the opaque profile id from a profile link.

    The id is the unescaped value of the link's `id` query parameter.
    """
    if not href:
        return None
    values = parse_qs(urlparse(href).query).get(PROFILE_ID_PARAM)
    if not values or not values[0].strip():
        return None
    return values[0].strip()


def parse_directory_page(html: str, letter: Optional[str] = None) -> List[DirectoryEntry]:
    """
    Parse a SearchByLastName results page.

    Rows without a decodable profile id are skipped with a warning.

    Raises:
        ProtocolShapeError: If the results table has no rows
    """
    soup = make_soup(html)
    rows = soup.select(DIRECTORY_ROWS_SELECTOR)
    logger.debug("Rows found", {"letter": letter, "count": len(rows)})

    if not rows:
        raise ProtocolShapeError(
            "No directory rows found",
            stage="directory",
            details={"letter": letter}
        )
    if len(rows) <= LOW_ROW_COUNT:
        logger.warning("Low directory row count", {"letter": letter, "count": len(rows)})

    entries = []
    for index, row in enumerate(rows):
        name_element = row.select_one(ENTRY_NAME_SELECTOR)
        href = name_element.get('href') if name_element is not None else None
        profile_id = extract_profile_id(href)
        if not profile_id:
            logger.warning("Skipping row without profile id", {
                "letter": letter, "row": index, "href": href
            })
            continue

        entries.append(DirectoryEntry(
            id=profile_id,
            name=_text(name_element),
            job_title=_text(row.select_one(ENTRY_JOB_TITLE_SELECTOR)),
            department=_text(row.select_one(ENTRY_DEPARTMENT_SELECTOR)),
            college=_text(row.select_one(ENTRY_COLLEGE_SELECTOR)),
            phone=_text(row.select_one(ENTRY_PHONE_SELECTOR)),
        ))

    return entries


def parse_attribute_table(soup: BeautifulSoup) -> AttributeMap:
    """Scan the two-column attribute table into an AttributeMap."""
    attributes = AttributeMap()
    for row in soup.select(PROFILE_ROWS_SELECTOR):
        cells = row.find_all(['th', 'td'], recursive=False)
        if len(cells) < 2:
            continue
        label = cells[0].get_text(' ', strip=True)
        if not normalize_title(label):
            continue
        value = cells[1].get_text(' ', strip=True)
        if label in attributes:
            logger.warning("Duplicate profile attribute ignored", {"label": normalize_title(label)})
            continue
        attributes.set(label, value)
    return attributes


def parse_profile_name(soup: BeautifulSoup) -> str:
    """
    Read the bolded name element.

    Some pages render several bolded names; the longest candidate wins.
    """
    candidates = [_text(element) for element in soup.select(PROFILE_NAME_SELECTOR)]
    candidates = [candidate for candidate in candidates if candidate]
    if not candidates:
        return ''
    if len(candidates) > 1:
        logger.warning("Multiple name candidates", {"candidates": candidates})
    return max(candidates, key=len)


def parse_profile_page(html: str, profile_id: Optional[str] = None) -> FullProfile:
    """
    Parse a person detail page into a FullProfile.

    Known labels fill the typed fields; every other label lands in `other`.

    Raises:
        ProtocolShapeError: If the page has no attribute rows
    """
    soup = make_soup(html)
    attributes = parse_attribute_table(soup)
    if len(attributes) == 0:
        raise ProtocolShapeError(
            "No profile attribute rows found",
            stage="profile",
            details={"id": profile_id}
        )

    profile = FullProfile()
    for label, attribute in KNOWN_PROFILE_FIELDS.items():
        if label in attributes:
            value = attributes.pop(label)
            if not getattr(profile, attribute):
                setattr(profile, attribute, value)

    profile.name = parse_profile_name(soup)
    if not profile.name and 'name' in attributes:
        profile.name = attributes.pop('name')

    profile.other = attributes
    logger.debug("Profile parsed", {
        "id": profile_id, "name": profile.name, "other_labels": attributes.labels()
    })
    return profile
