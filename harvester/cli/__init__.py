"""
CLI module for the directory harvester.

Provides click-based command-line interface with subcommands.
"""

from .main import cli

__all__ = ['cli']
