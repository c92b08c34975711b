"""Storage layer for cached feed payloads and exports."""

from .cache import FeedCache
from .export import export_csv, export_json

__all__ = [
    "FeedCache",
    "export_csv",
    "export_json",
]
