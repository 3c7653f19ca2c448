"""
Services
Collaborators around the core: the live tick source and export formatting.
"""

from .live_feed import BinanceTickSource, FeedStats

__all__ = ["BinanceTickSource", "FeedStats"]
