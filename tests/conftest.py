"""
Shared fixtures for the harvester test suite.
"""

import pytest
import requests

from harvester.database import DatabaseManager, KeyValueStore


class FakeClock:
    """Monotonic clock whose sleep advances time instead of blocking."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def build_response(status_code=200, text='', headers=None, url='https://www.utsa.edu/directory/'):
    """Build a real requests.Response with its body already read."""
    response = requests.Response()
    response.status_code = status_code
    response._content = text.encode('utf-8')
    response.encoding = 'utf-8'
    response.headers.update(headers or {})
    response.url = url
    return response


@pytest.fixture
def make_response():
    return build_response


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def db_manager():
    """In-memory database shared by every thread."""
    manager = DatabaseManager("sqlite:///:memory:")
    manager.initialize_database()
    yield manager
    manager.dispose()


@pytest.fixture
def kv_store(db_manager):
    return KeyValueStore(db_manager.get_session)


def directory_page_html(people):
    """Render a SearchByLastName results page for (id, name, title, dept) tuples."""
    rows = []
    for person_id, name, title, dept in people:
        href = f"/directory/Person/Detail?id={person_id}" if person_id else "/directory/Person/Detail"
        rows.append(
            "<tr><td>"
            f'<a class="fullName" href="{href}">{name}</a>'
            f'<span class="jobtitle">{title}</span>'
            f'<span class="dept">{dept}</span>'
            '<span class="college">College of Sciences</span>'
            '<span class="phone">210-555-0100</span>'
            "</td></tr>"
        )
    return (
        '<html><body><table id="peopleTable"><thead><tr><th>Name</th></tr></thead>'
        f'<tbody>{"".join(rows)}</tbody></table></body></html>'
    )


def profile_page_html(name, attributes):
    """Render a Person/Detail page for a name and (label, value) pairs."""
    rows = "".join(f"<tr><td>{label}</td><td>{value}</td></tr>" for label, value in attributes)
    return (
        f'<html><body><div class="profile"><b>{name}</b></div>'
        f'<table id="profileTable">{rows}</table></body></html>'
    )
