from .asset_fetcher import AssetFetcher, get_asset_fetcher, set_asset_fetcher
from .order_source import (
    BulkOrderSnapshot,
    HttpOrderSource,
    OrderLine,
    OrderSnapshot,
    OrderSource,
    OrderSourceError,
    get_order_source,
    set_order_source,
)

__all__ = [
    'AssetFetcher',
    'get_asset_fetcher',
    'set_asset_fetcher',
    'BulkOrderSnapshot',
    'HttpOrderSource',
    'OrderLine',
    'OrderSnapshot',
    'OrderSource',
    'OrderSourceError',
    'get_order_source',
    'set_order_source',
]
