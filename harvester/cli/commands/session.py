"""
Session commands for the directory harvester.

Handles login, session status and clearing the persisted cookies.
"""

import click

from harvester.cli_session import get_cli_session_manager
from harvester.exceptions import HarvesterError
from ..utils import get_credentials


@click.group()
def session():
    """Manage the directory login session."""
    pass


@session.command('login')
@click.option('--force', is_flag=True, help='Log in even if the saved session is still valid')
def login(force):
    """
    Log in to the directory and persist the session.

    Credentials come from DIRECTORY_USERNAME/DIRECTORY_PASSWORD or are
    prompted for.

    Example:
        python main.py session login
        python main.py session login --force
    """
    credentials = get_credentials()
    session_manager = get_cli_session_manager()

    try:
        with session_manager.open_context(credentials=credentials) as context:
            if not force and context.login.check_logged_in():
                click.secho("✓ Saved session is still valid", fg='green')
                return
            context.login.login()
            click.secho(f"✓ Logged in as {credentials.username}", fg='green')
    except HarvesterError as e:
        click.secho(f"✗ Login failed: {e}", fg='red')
        raise click.Abort()


@session.command('status')
def status():
    """
    Show whether the saved session is still logged in.

    Example:
        python main.py session status
    """
    session_manager = get_cli_session_manager()

    try:
        with session_manager.open_context() as context:
            if not context.session_store.has_auth_cookie():
                click.secho("✗ No saved session", fg='yellow')
                return
            if context.login.check_logged_in():
                click.secho("✓ Logged in", fg='green')
            else:
                click.secho("✗ Session expired", fg='yellow')
    except HarvesterError as e:
        click.secho(f"✗ Error checking session: {e}", fg='red')
        raise click.Abort()


@session.command('clear')
def clear():
    """
    Forget the saved session.

    Example:
        python main.py session clear
    """
    session_manager = get_cli_session_manager()

    try:
        with session_manager.open_context(save_session=False) as context:
            context.session_store.clear()
        click.secho("✓ Session cleared", fg='green')
    except HarvesterError as e:
        click.secho(f"✗ Error clearing session: {e}", fg='red')
        raise click.Abort()
