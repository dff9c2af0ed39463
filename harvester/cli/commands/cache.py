"""
Cache commands for the directory harvester.

Handles inspecting and clearing the key/value store.
"""

import click

from harvester.cli_session import get_cli_session_manager
from harvester.directory.constants import DIRECTORY_CACHE_PREFIX, PROFILE_CACHE_PREFIX, SESSION_KEY
from harvester.exceptions import HarvesterError
from harvester.unsubscribe.constants import UNSUBSCRIBED_PREFIX, PROCESSED_FLAG


CACHE_PREFIXES = {
    'directory': DIRECTORY_CACHE_PREFIX,
    'profile': PROFILE_CACHE_PREFIX,
    'session': SESSION_KEY,
    'unsubscribed': UNSUBSCRIBED_PREFIX,
}


@click.group()
def cache():
    """Inspect and clear the local cache."""
    pass


@cache.command('stats')
def stats():
    """
    Show how many entries each namespace holds.

    Example:
        python main.py cache stats
    """
    session_manager = get_cli_session_manager()

    try:
        with session_manager.open_context(save_session=False) as context:
            kv_store = context.kv_store
            counts = {name: kv_store.count(prefix) for name, prefix in CACHE_PREFIXES.items()}
            processed = sum(1 for _, value in kv_store.iterate(UNSUBSCRIBED_PREFIX) if value == PROCESSED_FLAG)
            total = kv_store.count()
    except HarvesterError as e:
        click.secho(f"✗ Error reading cache: {e}", fg='red')
        raise click.Abort()

    click.echo("\nCache statistics:")
    click.echo(f"  Directory pages: {counts['directory']}")
    click.echo(f"  Profiles: {counts['profile']}")
    click.echo(f"  Saved session: {'yes' if counts['session'] else 'no'}")
    click.echo(f"  Unsubscribed emails: {processed}")
    pending = counts['unsubscribed'] - processed
    if pending:
        click.echo(f"  Pending submissions: {pending}")
    click.echo(f"  Total keys: {total}")


@cache.command('clear')
@click.option(
    '--only', 'namespace',
    type=click.Choice(sorted(CACHE_PREFIXES)),
    default=None,
    help='Clear only one namespace'
)
@click.option('--yes', is_flag=True, help='Skip confirmation prompt')
def clear(namespace, yes):
    """
    Clear cached pages, profiles, the session or unsubscribe records.

    Without --only, directory pages and profiles are cleared; the session and
    the unsubscribe records are kept.

    Example:
        python main.py cache clear
        python main.py cache clear --only unsubscribed --yes
    """
    names = [namespace] if namespace else ['directory', 'profile']

    if not yes:
        click.confirm(f"Clear {', '.join(names)} cache?", abort=True)

    session_manager = get_cli_session_manager()

    try:
        with session_manager.open_context(save_session=False) as context:
            deleted = sum(context.kv_store.clear(CACHE_PREFIXES[name]) for name in names)
    except HarvesterError as e:
        click.secho(f"✗ Error clearing cache: {e}", fg='red')
        raise click.Abort()

    click.secho(f"✓ Cleared {deleted} entries", fg='green')
