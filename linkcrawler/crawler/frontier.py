"""
Frontier: the in-memory set of pages due for crawling in the current round.
"""

import logging
from collections import OrderedDict
from typing import Dict, Iterable, List, Optional, Set

from ..storage.models import URLRecord


class Frontier:
    """
    Working set of uncrawled records for one round.

    It is rebuilt from the page store at the start of every round and never
    carried over. URLs listed in `excluded` are left out of every load.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self._pending: "OrderedDict[str, URLRecord]" = OrderedDict()
        self.excluded: Set[str] = set()

    def load(self, records: Iterable[URLRecord], limit: int = 0) -> int:
        """
        Replace the working set with at most `limit` records (0 = no limit).

        Returns the number of records loaded.
        """
        self._pending.clear()
        skipped = 0
        for record in records:
            if record.url in self.excluded:
                skipped += 1
                continue
            if limit and len(self._pending) >= limit:
                break
            self._pending[record.url] = record

        if skipped:
            self.logger.debug(f"Left {skipped} exhausted URLs out of the frontier")
        return len(self._pending)

    def exclude(self, url: str):
        """Keep `url` out of this and later frontiers."""
        self.excluded.add(url)
        self._pending.pop(url, None)

    def snapshot(self) -> List[URLRecord]:
        """Records currently pending, in load order."""
        return list(self._pending.values())

    def discard(self, url: str) -> Optional[URLRecord]:
        return self._pending.pop(url, None)

    def is_empty(self) -> bool:
        return not self._pending

    def __len__(self) -> int:
        return len(self._pending)

    def get_stats(self) -> Dict[str, int]:
        return {'pending': len(self._pending), 'excluded': len(self.excluded)}
