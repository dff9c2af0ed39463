"""
Directory commands for the directory harvester.

Handles listing one letter of the directory and showing a full profile.
"""

import json

import click

from harvester.cli_session import get_cli_session_manager
from harvester.directory.fetchers import directory_cache_key, normalize_letter, profile_cache_key
from harvester.exceptions import HarvesterError
from ..utils import ensure_session


@click.command('directory')
@click.argument('letter')
@click.option('--refresh', is_flag=True, help='Ignore the cached page and scrape it again')
@click.option('--json', 'as_json', is_flag=True, help='Print entries as JSON')
def directory(letter, refresh, as_json):
    """
    List directory entries whose last name starts with LETTER.

    Example:
        python main.py directory Z
        python main.py directory z --refresh --json
    """
    try:
        letter = normalize_letter(letter)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint='LETTER')

    session_manager = get_cli_session_manager()

    try:
        with session_manager.open_context() as context:
            fetcher = context.directory_fetcher
            if refresh:
                context.kv_store.delete(directory_cache_key(letter))
            if not fetcher.is_cached(letter):
                ensure_session(context)
            entries = fetcher.get(letter)
    except HarvesterError as e:
        click.secho(f"✗ Error fetching directory: {e}", fg='red')
        raise click.Abort()

    if as_json:
        click.echo(json.dumps([entry.to_dict() for entry in entries], indent=2))
        return

    click.echo(f"\nDirectory entries for '{letter}':\n")
    for entry in entries:
        click.echo(f"  {entry.name}")
        details = ", ".join(part for part in (entry.job_title, entry.department, entry.college) if part)
        if details:
            click.echo(f"    {details}")
        click.echo(f"    ID: {entry.id}")
    click.echo(f"\nTotal: {len(entries)} entries")


@click.command('profile')
@click.argument('profile_id')
@click.option('--refresh', is_flag=True, help='Ignore the cached profile and scrape it again')
@click.option('--json', 'as_json', is_flag=True, help='Print the profile as JSON')
def profile(profile_id, refresh, as_json):
    """
    Show the full profile for PROFILE_ID.

    Example:
        python main.py profile abc123
    """
    session_manager = get_cli_session_manager()

    try:
        with session_manager.open_context() as context:
            fetcher = context.detail_fetcher
            if refresh:
                context.kv_store.delete(profile_cache_key(profile_id))
            if not fetcher.is_cached(profile_id):
                ensure_session(context)
            full_profile = fetcher.get(profile_id)
    except HarvesterError as e:
        click.secho(f"✗ Error fetching profile: {e}", fg='red')
        raise click.Abort()

    if as_json:
        click.echo(json.dumps(full_profile.to_dict(), indent=2))
        return

    click.echo(f"\n{full_profile.name or profile_id}")
    click.echo("=" * 60)
    for label, value in (
        ('Classification', full_profile.classification),
        ('Title', full_profile.title),
        ('Department', full_profile.department),
        ('College', full_profile.college),
        ('Major', full_profile.major),
        ('Email', full_profile.email),
        ('Phone', full_profile.phone),
        ('Building', full_profile.building),
        ('Mailing address', full_profile.mailing_address),
    ):
        if value:
            click.echo(f"  {label}: {value}")
    for label, value in full_profile.other.items():
        click.echo(f"  {label}: {value}")
