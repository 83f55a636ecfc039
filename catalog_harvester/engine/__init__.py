"""Core harvesting engine components."""

from .assets import AssetDownloader
from .dedup import DedupCache
from .discovery import FrontierDiscovery, RenderingSession
from .fetcher import FetchError, FetchResponse, Fetcher
from .parser import ExtractionError, Parser, normalize_price
from .thread_pool import ThreadPoolManager

__all__ = [
    "AssetDownloader",
    "DedupCache",
    "ExtractionError",
    "FetchError",
    "FetchResponse",
    "Fetcher",
    "FrontierDiscovery",
    "Parser",
    "RenderingSession",
    "ThreadPoolManager",
    "normalize_price",
]
