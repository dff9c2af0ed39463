"""
Directory harvester.

Scrapes a session-protected people directory into a local cache and feeds
the discovered emails into a vendor's unsubscribe form.
"""

__version__ = '0.1.0'
