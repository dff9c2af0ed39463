"""
Configuration module.
"""

from .settings import Config, load_config_from_env_file, parse_domain_limits
from .credentials import LoginCredentials, get_login_credentials

__all__ = [
    'Config', 'load_config_from_env_file', 'parse_domain_limits',
    'LoginCredentials', 'get_login_credentials'
]
