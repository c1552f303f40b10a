"""In-memory news broadcasting: replay-then-live news streams and a live subscriber count."""

from .models import NewsEngine, ServiceClosedError, seed_default_news
from .schemas import NewsItem

__all__ = ["NewsEngine", "NewsItem", "ServiceClosedError", "seed_default_news"]
