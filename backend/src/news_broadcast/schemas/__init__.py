from .schemas import CreateNewsRequest, NewsItem

__all__ = ["CreateNewsRequest", "NewsItem"]
