"""
Configuration settings for the directory harvester.
"""

import os
from pathlib import Path
from typing import Dict, Tuple

from dotenv import load_dotenv


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ('1', 'true', 'yes', 'on')


class Config:
    """Configuration settings, read from the environment."""

    @classmethod
    def reload(cls):
        """Re-read every setting from the environment."""
        # Database settings
        cls.DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///harvester.db')

        # HTTP settings
        cls.REQUEST_TIMEOUT = int(os.getenv('REQUEST_TIMEOUT', '30'))

        # Rate limiting, per simplified domain
        cls.DEFAULT_RATE = float(os.getenv('DEFAULT_RATE', '1.0'))
        cls.DEFAULT_BURST = int(os.getenv('DEFAULT_BURST', '3'))
        cls.DOMAIN_LIMITS = os.getenv('DOMAIN_LIMITS', 'utsa.edu=2:5,thescla.org=3:7')

        # Pipeline settings
        cls.SCRAPE_WORKERS = int(os.getenv('SCRAPE_WORKERS', '4'))
        cls.QUEUE_SIZE = int(os.getenv('QUEUE_SIZE', '100'))

        # Unsubscribe settings
        cls.COVER_TRAFFIC = _env_bool('COVER_TRAFFIC', 'true')
        cls.COVER_TRAFFIC_PROBABILITY = float(os.getenv('COVER_TRAFFIC_PROBABILITY', '0.5'))

        # Logging settings
        cls.LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
        cls.LOG_FORMAT = os.getenv('LOG_FORMAT', 'json')
        cls.LOG_FILE = os.getenv('LOG_FILE')

    @classmethod
    def get_data_dir(cls) -> Path:
        """Get the data directory for storing the database."""
        data_dir = Path(os.getenv('DATA_DIR', Path.cwd() / 'data'))
        data_dir.mkdir(parents=True, exist_ok=True)
        return data_dir

    @classmethod
    def get_database_path(cls) -> str:
        """Get the full database URL, placing relative SQLite files in the data directory."""
        if cls.DATABASE_URL.startswith('sqlite:///') and ':memory:' not in cls.DATABASE_URL:
            db_file = cls.DATABASE_URL[10:]
            if not os.path.isabs(db_file):
                db_path = cls.get_data_dir() / db_file
                return f"sqlite:///{db_path}"
        return cls.DATABASE_URL

    @classmethod
    def get_domain_limits(cls) -> Dict[str, Tuple[float, int]]:
        """
        Parse DOMAIN_LIMITS into {domain: (rate, burst)}.

        Format is a comma-separated list of ``domain=rate:burst`` items, e.g.
        ``utsa.edu=2:5,thescla.org=3:7``.
        """
        return parse_domain_limits(cls.DOMAIN_LIMITS)


Config.reload()


def parse_domain_limits(value: str) -> Dict[str, Tuple[float, int]]:
    limits = {}
    for item in (value or '').split(','):
        item = item.strip()
        if not item:
            continue
        domain, _, limit = item.partition('=')
        rate, _, burst = limit.partition(':')
        if not domain or not rate or not burst:
            raise ValueError(f"Invalid domain limit: {item!r} (expected domain=rate:burst)")
        limits[domain.strip().lower()] = (float(rate), int(burst))
    return limits


def load_config_from_env_file(env_file: str = '.env'):
    """Load configuration from environment file."""
    env_path = Path(env_file)
    if env_path.exists():
        load_dotenv(env_path)
        Config.reload()
