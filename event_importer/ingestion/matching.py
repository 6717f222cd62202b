"""
Fuzzy entry matching.

An incoming record matches a stored entry when the titles are equal and the
calendar dates of start and end are equal. Time of day is ignored. A missing
date only matches a stored NULL, never a stored date.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, List, Optional, Tuple

from event_importer.schemas.entry import EntryFields, StoredEntry


def _as_date(value: Optional[datetime]) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    return value


@dataclass(frozen=True)
class MatchKey:
    """(title, date(start), date(end)) match key."""

    title: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @classmethod
    def from_fields(cls, fields: EntryFields) -> "MatchKey":
        return cls(
            title=fields.title,
            start_date=_as_date(fields.start),
            end_date=_as_date(fields.end),
        )

    @classmethod
    def from_values(
        cls,
        title: str,
        start: Optional[datetime],
        end: Optional[datetime],
    ) -> "MatchKey":
        return cls(title=title, start_date=_as_date(start), end_date=_as_date(end))

    def matches(self, entry: StoredEntry) -> bool:
        """Check a stored entry against this key."""
        return (
            entry.title == self.title
            and _as_date(entry.start) == self.start_date
            and _as_date(entry.end) == self.end_date
        )

    def sql_conditions(self) -> Tuple[str, List[Any]]:
        """
        WHERE fragment and parameters for a psycopg2 query.

        Returns:
            (sql, params) with %s placeholders
        """
        clauses = ["title = %s"]
        params: List[Any] = [self.title]
        for column, value in (("start", self.start_date), ("end", self.end_date)):
            if value is None:
                clauses.append(f'"{column}" IS NULL')
            else:
                clauses.append(f'DATE("{column}") = %s')
                params.append(value)
        return " AND ".join(clauses), params
