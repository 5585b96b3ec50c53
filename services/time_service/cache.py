"""
Time cache: in-memory read-through store with no expiry.

Keys are normalised the same way as the weather cache (strip + lowercase), so
"Tokyo" and "tokyo" share one entry.
"""

from services.common.cache import TTLCache
from services.common.models import TimeSample


class TimeCache(TTLCache[TimeSample]):
    def __init__(self, **kwargs) -> None:
        super().__init__(ttl_seconds=None, name="time-cache", **kwargs)
