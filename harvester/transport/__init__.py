"""
HTTP transport module.

All outbound traffic is rate limited per simplified domain and never
follows redirects.
"""

from .rate_limiter import TokenBucket, LimiterRegistry, simplify_domain
from .http_client import RateLimitedTransport, BROWSER_USER_AGENT

__all__ = [
    'TokenBucket', 'LimiterRegistry', 'simplify_domain',
    'RateLimitedTransport', 'BROWSER_USER_AGENT'
]
