"""
Directory login credentials sourced from the environment.
"""

import os
from dataclasses import dataclass
from typing import Optional


USERNAME_ENV = 'DIRECTORY_USERNAME'
PASSWORD_ENV = 'DIRECTORY_PASSWORD'


@dataclass(frozen=True)
class LoginCredentials:
    """Username/password pair for the directory login form."""

    username: str
    password: str

    def __repr__(self) -> str:
        return f"LoginCredentials(username={self.username!r}, password='***')"


def get_login_credentials() -> Optional[LoginCredentials]:
    """
    Read credentials from the environment.

    Returns:
        LoginCredentials if both values are set, None otherwise
    """
    username = os.getenv(USERNAME_ENV, '').strip()
    password = os.getenv(PASSWORD_ENV, '')
    if not username or not password:
        return None
    return LoginCredentials(username=username, password=password)
