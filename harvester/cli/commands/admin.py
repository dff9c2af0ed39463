"""
Admin commands for the directory harvester.

Handles database initialization.
"""

import click

from harvester.config import Config
from harvester.database import init_database


@click.command('init')
def init():
    """
    Initialize the database.

    Creates the key/value table that holds the cache, the session and the
    unsubscribe records.

    Example:
        python main.py init
    """
    try:
        db_path = init_database(Config.get_database_path())
        click.secho("✓ Database initialized successfully", fg='green')
        click.echo(f"Database location: {db_path}")
    except Exception as e:
        click.secho(f"✗ Error initializing database: {e}", fg='red')
        raise click.Abort()
