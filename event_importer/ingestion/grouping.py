"""
Item grouping.

Feeds list a recurring event once per occurrence. ItemGrouper merges all
occurrences sharing an external identifier into one GroupedItem whose
computed range spans the earliest start to the latest end.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from event_importer.ingestion.normalization.dates import parse_datetime

logger = logging.getLogger(__name__)

DatePair = Tuple[Any, Any]


@dataclass
class GroupedItem:
    """A raw feed item plus the date range merged across its occurrences."""

    identifier: str
    raw: Dict[str, Any]
    computed_start: Optional[datetime] = None
    computed_end: Optional[datetime] = None
    occurrences: int = 1

    def get(self, key: str, default: Any = None) -> Any:
        value = self.raw.get(key, default)
        return default if value is None else value


@dataclass
class _Group:
    base: Dict[str, Any]
    pairs: List[DatePair] = field(default_factory=list)
    occurrences: int = 0


def extract_date_pairs(item: Dict[str, Any]) -> List[DatePair]:
    """
    Collect (start, end) pairs from every known date location of an item.

    - attributes[]: key/value pairs named interval_start / interval_end
    - timeIntervals[]: objects with start / end
    - eventInfo: startDateUTC / endDateUTC
    """
    pairs: List[DatePair] = []

    attributes = item.get("attributes") or []
    if isinstance(attributes, list):
        values = {
            a.get("key"): a.get("value") for a in attributes if isinstance(a, dict)
        }
        if values.get("interval_start"):
            pairs.append((values["interval_start"], values.get("interval_end")))

    intervals = item.get("timeIntervals") or []
    if isinstance(intervals, list):
        for interval in intervals:
            if isinstance(interval, dict) and interval.get("start"):
                pairs.append((interval["start"], interval.get("end")))

    event_info = item.get("eventInfo")
    if isinstance(event_info, dict) and event_info.get("startDateUTC"):
        pairs.append((event_info["startDateUTC"], event_info.get("endDateUTC")))

    return pairs


class ItemGrouper:
    """Groups raw feed items by their external identifier."""

    def group(
        self,
        raw_items: Iterable[Dict[str, Any]],
        id_field: str,
    ) -> Dict[str, GroupedItem]:
        """
        Group items by `id_field`, preserving first-seen order.

        Args:
            raw_items: Items as returned by the feed
            id_field: Name of the identifier field (e.g. "global_id")

        Returns:
            Ordered mapping of identifier -> GroupedItem
        """
        groups: Dict[str, _Group] = {}
        dropped = 0

        for item in raw_items:
            if not isinstance(item, dict):
                dropped += 1
                continue
            raw_id = item.get(id_field)
            if raw_id is None or str(raw_id).strip() == "":
                dropped += 1
                continue

            key = str(raw_id).strip()
            group = groups.get(key)
            if group is None:
                group = groups[key] = _Group(base=item)
            group.occurrences += 1
            group.pairs.extend(extract_date_pairs(item))

        if dropped:
            logger.debug(f"Dropped {dropped} items without '{id_field}'")

        return {key: self._merge(key, group) for key, group in groups.items()}

    @staticmethod
    def _merge(key: str, group: _Group) -> GroupedItem:
        starts = [s for s in (parse_datetime(p[0]) for p in group.pairs) if s]
        ends = [e for e in (parse_datetime(p[1]) for p in group.pairs) if e]
        return GroupedItem(
            identifier=key,
            raw=group.base,
            computed_start=min(starts) if starts else None,
            computed_end=max(ends) if ends else None,
            occurrences=group.occurrences,
        )
