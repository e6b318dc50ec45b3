"""
Activity feed for dashboard monitoring

Bounded, append-only log of ledger events. Oldest entries are evicted once
the feed holds max_size records; reads come back newest-first.
"""

from collections import deque
from datetime import datetime
from typing import Any, Dict, List, Optional

from pyramid_trader.schemas import ActivityFeedEntry

DEFAULT_FEED_SIZE = 100


class ActivityFeed:
    def __init__(self, max_size: int = DEFAULT_FEED_SIZE):
        self._entries: deque = deque(maxlen=max_size)

    def __len__(self) -> int:
        return len(self._entries)

    def record(
        self,
        timestamp: datetime,
        pair: str,
        action: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> ActivityFeedEntry:
        entry = ActivityFeedEntry(timestamp=timestamp, pair=pair, action=action, details=details or {})
        self._entries.append(entry)
        return entry

    def recent(self, limit: int = 20) -> List[ActivityFeedEntry]:
        """Most recent `limit` entries, newest first"""
        if limit <= 0:
            return []
        return list(reversed(self._entries))[:limit]
