#!/usr/bin/env python3
"""
Command-line entry point for the directory harvester.

Loads the .env file and hands off to the click-based CLI.
"""

from harvester.config import load_config_from_env_file
from harvester.cli import cli


def main():
    """Main CLI entry point."""
    load_config_from_env_file()
    cli()


if __name__ == '__main__':
    main()
