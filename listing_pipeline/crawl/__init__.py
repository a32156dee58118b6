"""Paged and time-windowed crawling."""

from .pagination import PageNumberCrawler, PageSource, TimeWindowCrawler, crawl

__all__ = [
    "PageNumberCrawler",
    "PageSource",
    "TimeWindowCrawler",
    "crawl",
]
