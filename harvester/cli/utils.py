"""
Common utilities for CLI commands.

Shared helper functions used across multiple command modules.
"""

from typing import List

import click

from harvester.config import LoginCredentials, get_login_credentials
from harvester.directory.constants import LETTERS
from harvester.pipeline import AppContext


def get_credentials() -> LoginCredentials:
    """
    Get directory credentials, checking the environment first.

    Returns:
        LoginCredentials (from the environment or prompted)
    """
    credentials = get_login_credentials()
    if credentials:
        click.echo(f"Using credentials for {credentials.username} from environment")
        return credentials

    username = click.prompt("Directory username")
    password = click.prompt("Directory password", hide_input=True)
    return LoginCredentials(username=username, password=password)


def ensure_session(context: AppContext) -> None:
    """Reuse the restored session or log in, prompting for credentials if needed."""
    if context.login.ensure_logged_in(credentials_provider=get_credentials):
        click.secho("✓ Logged in", fg='green')


def parse_letters(letter_string: str) -> List[str]:
    """
    Parse partition letters from various formats.

    Supports:
        - Single letter: "z"
        - Comma-separated: "A,B,C"
        - Ranges: "A-F"
        - Mixed: "A,C-E,Z"

    Returns:
        Ordered list of unique uppercase letters
    """
    letters: List[str] = []
    for part in letter_string.split(','):
        part = part.strip().upper()
        if not part:
            continue
        if '-' in part:
            start, _, end = part.partition('-')
            start, end = start.strip(), end.strip()
            if start not in LETTERS or end not in LETTERS or start > end:
                raise click.BadParameter(f"invalid letter range {part!r}")
            selected = LETTERS[LETTERS.index(start):LETTERS.index(end) + 1]
        else:
            if part not in LETTERS:
                raise click.BadParameter(f"invalid letter {part!r}")
            selected = [part]
        for letter in selected:
            if letter not in letters:
                letters.append(letter)

    if not letters:
        raise click.BadParameter("no letters given")
    return letters
