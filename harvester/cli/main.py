"""
Main CLI group for the directory harvester.

Integrates all command groups into a single CLI application.
"""

import click

from harvester import __version__
from harvester.config import Config
from harvester.logging import configure_logging
from .commands.admin import init
from .commands.session import session
from .commands.directory import directory, profile
from .commands.unsubscribe import unsubscribe, run
from .commands.cache import cache


@click.group()
@click.version_option(version=__version__, prog_name='Directory Harvester')
@click.option('--log-level', default=None, help='Override LOG_LEVEL (DEBUG, INFO, WARNING, ERROR)')
@click.option('--log-file', default=None, help='Also write logs to this file')
def cli(log_level, log_file):
    """
    Directory Harvester - Scrape the people directory and unsubscribe its emails.

    Logs in to the directory, caches every page it scrapes, and submits each
    discovered email to the vendor's unsubscribe form exactly once.
    """
    filename = log_file or Config.LOG_FILE
    configure_logging(
        level=log_level or Config.LOG_LEVEL,
        format=Config.LOG_FORMAT,
        output='both' if filename else 'console',
        filename=filename
    )


# Register command groups
cli.add_command(session, name='session')
cli.add_command(cache, name='cache')

# Register standalone commands
cli.add_command(init, name='init')
cli.add_command(directory, name='directory')
cli.add_command(profile, name='profile')
cli.add_command(unsubscribe, name='unsubscribe')
cli.add_command(run, name='run')


if __name__ == '__main__':
    cli()
