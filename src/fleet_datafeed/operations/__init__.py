# fleet_datafeed/operations/__init__.py

from fleet_datafeed.operations.entity_cache import EntityCache, reference_id
from fleet_datafeed.operations.feed_loader import (
    FEEDS,
    DataFeedLoader,
    FeedLoader,
    FeedSpec,
)

__all__: list[str] = [
    'FEEDS',
    'DataFeedLoader',
    'EntityCache',
    'FeedLoader',
    'FeedSpec',
    'reference_id',
]
