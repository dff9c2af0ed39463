"""
Directory scraping module.

This module provides everything needed to harvest the people directory:
- Session persistence and the login state machine
- HTML parsing of search and profile pages
- Cache-aside fetchers for directory pages and full profiles
"""

from .types import DirectoryEntry, FullProfile, AttributeMap, normalize_title
from .session_store import SessionStore
from .login import LoginStateMachine, LoginState
from .fetchers import DirectoryFetcher, DetailFetcher

__all__ = [
    'DirectoryEntry', 'FullProfile', 'AttributeMap', 'normalize_title',
    'SessionStore', 'LoginStateMachine', 'LoginState',
    'DirectoryFetcher', 'DetailFetcher'
]
