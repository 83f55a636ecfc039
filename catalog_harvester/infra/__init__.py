"""Infra layer utilities (storage, files, proxy, UA pools)."""

from .files import ContentStore
from .proxy_pool import ProxyPool
from .repository import QueueStore
from .storage import SQLiteManager
from .ua_pool import UserAgentPool

__all__ = ["ContentStore", "ProxyPool", "QueueStore", "SQLiteManager", "UserAgentPool"]
