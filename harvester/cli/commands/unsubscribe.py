"""
Unsubscribe commands for the directory harvester.

Handles single-email unsubscribes and the full harvest-and-unsubscribe run.
"""

import signal
import threading

import click

from harvester.cli_session import get_cli_session_manager
from harvester.directory.constants import LETTERS
from harvester.exceptions import HarvesterError
from ..utils import ensure_session, parse_letters


@click.command('unsubscribe')
@click.argument('email')
@click.option('--dry-run', is_flag=True, help='Build and sign the form without submitting it')
@click.option('--cover/--no-cover', default=None, help='Send cover traffic after a submission')
def unsubscribe(email, dry_run, cover):
    """
    Unsubscribe a single EMAIL from the vendor's mailing list.

    Already processed emails are skipped without contacting the vendor.

    Example:
        python main.py unsubscribe jane.doe@utsa.edu
        python main.py unsubscribe jane.doe@utsa.edu --dry-run
    """
    session_manager = get_cli_session_manager()

    try:
        with session_manager.open_context(cover_traffic=cover, dry_run=dry_run) as context:
            result = context.dispatcher.try_unsubscribe(email)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint='EMAIL')
    except HarvesterError as e:
        click.secho(f"✗ Unsubscribe failed: {e}", fg='red')
        raise click.Abort()

    if result.submitted:
        click.secho(f"✓ {result.summary}", fg='green')
        if result.confirmation and result.confirmation.follow_up_url:
            click.echo(f"  Follow-up: {result.confirmation.follow_up_url}")
    elif dry_run:
        click.echo(f"[DRY RUN] {result.summary}")
    else:
        click.secho(f"- {result.summary}", fg='yellow')


@click.command('run')
@click.option('--letters', default=None, help='Letters to harvest, e.g. "A-C,Z" (default: A-Z)')
@click.option('--workers', type=click.IntRange(min=1), default=None, help='Scrape worker threads')
@click.option('--queue-size', type=click.IntRange(min=1), default=None, help='Capacity of each pipeline queue')
@click.option('--cover/--no-cover', default=None, help='Send cover traffic after each submission')
@click.option('--dry-run', is_flag=True, help='Harvest but do not submit unsubscribes')
def run(letters, workers, queue_size, cover, dry_run):
    """
    Harvest the directory and unsubscribe every email found.

    Press Ctrl-C to stop: no new letters start, queued work is discarded and
    in-flight requests finish before the session is saved.

    Example:
        python main.py run
        python main.py run --letters A-C --workers 2 --no-cover
    """
    selected = parse_letters(letters) if letters else list(LETTERS)
    session_manager = get_cli_session_manager()
    stop_event = threading.Event()

    def handle_interrupt(signum, frame):
        click.secho("\nStopping after in-flight requests finish...", fg='yellow', err=True)
        stop_event.set()

    previous_handler = signal.signal(signal.SIGINT, handle_interrupt)
    try:
        with session_manager.open_context(cover_traffic=cover, dry_run=dry_run) as context:
            ensure_session(context)
            coordinator = context.coordinator(
                letters=selected,
                scrape_workers=workers,
                queue_size=queue_size,
                stop_event=stop_event
            )
            click.echo(f"\nHarvesting {len(selected)} letter(s)...")
            stats = coordinator.run()
    except HarvesterError as e:
        click.secho(f"✗ Run failed: {e}", fg='red')
        raise click.Abort()
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    if stop_event.is_set():
        click.secho("✗ Run interrupted", fg='yellow')
    else:
        click.secho("✓ Run complete", fg='green')
    click.echo(f"  Letters scraped: {stats.letters}")
    click.echo(f"  Entries found: {stats.entries}")
    click.echo(f"  Profiles resolved: {stats.profiles}")
    click.echo(f"  Dropped (no email): {stats.dropped}")
    click.echo(f"  Unsubscribed: {stats.submitted}")
    click.echo(f"  Already processed: {stats.already_processed}")
    click.echo(f"  Dry run (not sent): {stats.dry_run}")
    click.echo(f"  Claimed by another run: {stats.claimed_elsewhere}")
    click.echo(f"  Failed: {stats.failed}")
    click.echo(f"  Skipped: {stats.skipped}")
