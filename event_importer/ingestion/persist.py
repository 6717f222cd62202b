# Persistence layer for imported entries
"""
Persistence Layer for Event Import.

EntryStore and CategoryLinker describe what the orchestrator needs from
storage; the psycopg2 implementations below map them onto the calendar
tables. Each write runs in its own transaction, so a failing item never
rolls back previously imported ones. Failed reads roll back as well, leaving
the shared connection usable for the next item.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import psycopg2
from psycopg2.extras import RealDictCursor

from event_importer.configs.settings import Settings, get_settings
from event_importer.ingestion.errors import SideEffectError
from event_importer.ingestion.matching import MatchKey
from event_importer.schemas.entry import StoredEntry

logger = logging.getLogger(__name__)

ENTRY_TABLE = "calendar_entries"
COUNTRY_TABLE = "calendar_countries"
CATEGORY_JOIN_TABLE = "calendar_entries_categories"


def get_connection(settings: Optional[Settings] = None):
    """Open a psycopg2 connection from DATABASE_URL."""
    settings = settings or get_settings()
    return psycopg2.connect(**settings.get_psycopg2_params())


# ============================================================================
# CONTRACTS
# ============================================================================


class EntryStore(ABC):
    """Access to persisted calendar entries."""

    @abstractmethod
    def find_by_identifier(self, identifier: str) -> Optional[StoredEntry]:
        """Entry with this identifier, soft-deleted rows included."""

    @abstractmethod
    def find_matching(
        self,
        key: MatchKey,
        exclude_identifier: Optional[str] = None,
    ) -> Optional[StoredEntry]:
        """
        First entry matching title and start/end dates.

        Args:
            key: Title/date match key
            exclude_identifier: Ignore entries carrying exactly this identifier
        """

    @abstractmethod
    def insert(self, record: Dict[str, Any]) -> int:
        """Insert a new entry and return its id."""

    @abstractmethod
    def update(self, entry_id: int, record: Dict[str, Any], revive: bool = False) -> None:
        """Update columns of an entry; `revive` clears the soft-delete marker."""

    @abstractmethod
    def iter_imported(self, source: Optional[str] = None) -> List[StoredEntry]:
        """Live, non-internal entries that carry an identifier."""

    @abstractmethod
    def find_country_id(self, name: str) -> Optional[int]:
        """Country id by case-insensitive name."""

    @abstractmethod
    def slug_exists(self, slug: str) -> bool:
        """Whether any entry already uses this slug."""


class CategoryLinker(ABC):
    """Entry <-> category join rows."""

    @abstractmethod
    def attach(self, entry_id: int, category_id: int) -> bool:
        """Ensure the join row exists; True only if it was newly created."""

    @abstractmethod
    def has_any(self, entry_id: int) -> bool:
        """Whether the entry has at least one category."""


# ============================================================================
# POSTGRES
# ============================================================================


class PostgresEntryStore(EntryStore):
    """
    EntryStore backed by PostgreSQL through psycopg2.

    Implements the 'Data Mapper' pattern between StoredEntry/EntryFields and
    the calendar_entries table.
    """

    def __init__(self, db_connection, table: str = ENTRY_TABLE) -> None:
        """Initialize with an active psycopg2 connection."""
        self.conn = db_connection
        self.table = table

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _query(self, sql: str, params: Sequence[Any], many: bool = False, as_dict: bool = True):
        """Run a read; a failed read rolls back so the connection stays usable."""
        cursor_kwargs = {"cursor_factory": RealDictCursor} if as_dict else {}
        try:
            with self.conn.cursor(**cursor_kwargs) as cur:
                cur.execute(sql, params)
                return cur.fetchall() if many else cur.fetchone()
        except psycopg2.Error:
            self.conn.rollback()
            raise

    def _fetch_one(self, sql: str, params: List[Any]) -> Optional[StoredEntry]:
        row = self._query(sql, params)
        return StoredEntry.model_validate(dict(row)) if row else None

    def find_by_identifier(self, identifier: str) -> Optional[StoredEntry]:
        return self._fetch_one(
            f"SELECT * FROM {self.table} WHERE identifier = %s LIMIT 1",
            [identifier],
        )

    def find_matching(
        self,
        key: MatchKey,
        exclude_identifier: Optional[str] = None,
    ) -> Optional[StoredEntry]:
        where, params = key.sql_conditions()
        if exclude_identifier is not None:
            where += " AND identifier IS DISTINCT FROM %s"
            params.append(exclude_identifier)
        return self._fetch_one(
            f"SELECT * FROM {self.table} WHERE {where} ORDER BY id LIMIT 1",
            params,
        )

    def iter_imported(self, source: Optional[str] = None) -> List[StoredEntry]:
        sql = (
            f"SELECT * FROM {self.table} "
            "WHERE is_internal = false AND identifier IS NOT NULL AND deleted_at IS NULL"
        )
        params: List[Any] = []
        if source:
            sql += " AND source = %s"
            params.append(source)
        sql += " ORDER BY id"

        rows = self._query(sql, params, many=True)
        return [StoredEntry.model_validate(dict(row)) for row in rows]

    def find_country_id(self, name: str) -> Optional[int]:
        row = self._query(
            f"SELECT id FROM {COUNTRY_TABLE} WHERE name ILIKE %s LIMIT 1",
            (name,),
            as_dict=False,
        )
        return row[0] if row else None

    def slug_exists(self, slug: str) -> bool:
        row = self._query(
            f"SELECT 1 FROM {self.table} WHERE slug = %s LIMIT 1", (slug,), as_dict=False
        )
        return row is not None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, record: Dict[str, Any]) -> int:
        now = datetime.now()
        values = {**record, "created_at": now, "updated_at": now}
        columns = ", ".join(f'"{c}"' for c in values)
        placeholders = ", ".join(["%s"] * len(values))

        try:
            with self.conn.cursor() as cur:
                cur.execute(
                    f"INSERT INTO {self.table} ({columns}) VALUES ({placeholders}) RETURNING id",
                    list(values.values()),
                )
                entry_id = cur.fetchone()[0]
            self.conn.commit()
        except psycopg2.Error:
            self.conn.rollback()
            raise
        return entry_id

    def update(self, entry_id: int, record: Dict[str, Any], revive: bool = False) -> None:
        values = {**record, "updated_at": datetime.now()}
        if revive:
            values["deleted_at"] = None
        assignments = ", ".join(f'"{c}" = %s' for c in values)

        try:
            with self.conn.cursor() as cur:
                cur.execute(
                    f"UPDATE {self.table} SET {assignments} WHERE id = %s",
                    list(values.values()) + [entry_id],
                )
            self.conn.commit()
        except psycopg2.Error:
            self.conn.rollback()
            raise


class PostgresCategoryLinker(CategoryLinker):
    """CategoryLinker backed by the entry/category join table."""

    def __init__(self, db_connection, table: str = CATEGORY_JOIN_TABLE) -> None:
        self.conn = db_connection
        self.table = table

    def attach(self, entry_id: int, category_id: int) -> bool:
        try:
            with self.conn.cursor() as cur:
                cur.execute(
                    f"SELECT 1 FROM {self.table} WHERE entry_id = %s AND category_id = %s",
                    (entry_id, category_id),
                )
                if cur.fetchone():
                    return False
                cur.execute(
                    f"INSERT INTO {self.table} (entry_id, category_id) VALUES (%s, %s)",
                    (entry_id, category_id),
                )
            self.conn.commit()
            return True
        except psycopg2.Error as e:
            self.conn.rollback()
            raise SideEffectError(
                f"Failed to attach category {category_id} to entry {entry_id}: {e}"
            ) from e

    def has_any(self, entry_id: int) -> bool:
        try:
            with self.conn.cursor() as cur:
                cur.execute(f"SELECT 1 FROM {self.table} WHERE entry_id = %s LIMIT 1", (entry_id,))
                return cur.fetchone() is not None
        except psycopg2.Error:
            self.conn.rollback()
            raise
