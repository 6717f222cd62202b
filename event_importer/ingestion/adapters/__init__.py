"""
Source Adapters for feed ingestion.
"""

from .base_adapter import AdapterConfig, BaseSourceAdapter, FetchResult
from .feed_adapter import FeedAdapterConfig, FeedClient

__all__ = [
    "AdapterConfig",
    "BaseSourceAdapter",
    "FetchResult",
    "FeedAdapterConfig",
    "FeedClient",
]
