"""
External integrations for zendesk-export.
"""

from .zendesk_client import (
    APIErrorClassifier,
    RateLimitHandler,
    ZendeskClient,
    ZendeskCredentials,
)

__all__ = [
    "ZendeskClient",
    "ZendeskCredentials",
    "RateLimitHandler",
    "APIErrorClassifier",
]
