"""
fireflow/services/cache.py

Read-cache invalidation signals. Display layers keep cached reads of
assets, records, stats and friends; after a submission commits (or rolls
back assets) the orchestrator asserts which of those caches are stale.

Signals are fire-and-forget: each named cache gets a version counter that
readers compare against, and listeners (if any) are called synchronously.
A listener that raises is logged and skipped; it never fails the caller.
"""

import logging
from collections import defaultdict
from typing import Callable, Dict, List

logger = logging.getLogger(__name__)


class CacheSignals:
    def __init__(self):
        self.versions: Dict[str, int] = defaultdict(int)
        self.history: List[str] = []
        self._listeners: List[Callable[[str], None]] = []

    def subscribe(self, listener: Callable[[str], None]):
        self._listeners.append(listener)

    def refresh(self, *names: str):
        """Mark each named cache stale, in order, skipping duplicates."""
        for name in dict.fromkeys(names):
            self.versions[name] += 1
            self.history.append(name)
            logger.debug(f"Cache '{name}' invalidated (v{self.versions[name]})")
            for listener in self._listeners:
                try:
                    listener(name)
                except Exception as e:
                    logger.warning(f"Cache listener failed for '{name}': {e}")

    def version(self, name: str) -> int:
        return self.versions[name]


# Process-wide signals used by the HTTP layer
signals = CacheSignals()
