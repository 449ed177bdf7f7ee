from collectors.base import BaseCollector
from collectors.rss import RssCollector

__all__ = [
    "BaseCollector",
    "RssCollector",
]
