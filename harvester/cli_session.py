"""
CLI session management utilities for dependency injection.
"""

from contextlib import contextmanager
from typing import Generator, Optional

from harvester.config import LoginCredentials
from harvester.pipeline import AppContext


class CLISessionManager:
    """Builds the application context for CLI commands."""

    def __init__(self, database_url: str = None):
        self.database_url = database_url

    @contextmanager
    def open_context(
        self,
        credentials: Optional[LoginCredentials] = None,
        save_session: bool = True,
        **options
    ) -> Generator[AppContext, None, None]:
        """
        Yield an AppContext with the persisted session restored.

        Args:
            credentials: Login credentials for the directory site
            save_session: Persist the cookie jar when the context closes
            **options: Passed through to AppContext
        """
        context = AppContext(database_url=self.database_url, credentials=credentials, **options)
        try:
            context.restore_session()
            yield context
        finally:
            context.close(save_session=save_session)


# Global CLI session manager instance
_cli_session_manager = None


def get_cli_session_manager(database_url: str = None) -> CLISessionManager:
    """Get the global CLI session manager instance."""
    global _cli_session_manager
    if _cli_session_manager is None:
        _cli_session_manager = CLISessionManager(database_url)
    return _cli_session_manager
