"""
Shared pytest fixtures for the event importer test suite.

Provides in-memory stand-ins for the entry store, blob store, category
linker and feed client, plus factories for raw feed items.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

import pytest

from event_importer.configs.config import FeedConfig
from event_importer.ingestion.adapters.base_adapter import (
    AdapterConfig,
    BaseSourceAdapter,
    FetchResult,
)
from event_importer.ingestion.matching import MatchKey
from event_importer.ingestion.media import BlobStore
from event_importer.ingestion.persist import CategoryLinker, EntryStore
from event_importer.schemas.entry import StoredEntry


# =============================================================================
# FAKES
# =============================================================================


class InMemoryEntryStore(EntryStore):
    """EntryStore keeping rows in a dict; counts writes."""

    def __init__(self, countries: Optional[Dict[str, int]] = None):
        self.rows: Dict[int, Dict[str, Any]] = {}
        self.countries = {k.lower(): v for k, v in (countries or {}).items()}
        self.inserts = 0
        self.updates = 0
        self._next_id = 1

    def add(self, **values) -> int:
        """Seed a row directly, bypassing write counters."""
        entry_id = self._next_id
        self._next_id += 1
        row = {"is_public": True, "is_internal": False, "deleted_at": None, **values}
        row["id"] = entry_id
        self.rows[entry_id] = row
        return entry_id

    def get(self, entry_id: int) -> StoredEntry:
        return StoredEntry.model_validate(self.rows[entry_id])

    @property
    def writes(self) -> int:
        return self.inserts + self.updates

    def find_by_identifier(self, identifier):
        for row in self.rows.values():
            if row.get("identifier") == identifier:
                return StoredEntry.model_validate(row)
        return None

    def find_matching(self, key: MatchKey, exclude_identifier=None):
        for row in self.rows.values():
            entry = StoredEntry.model_validate(row)
            if exclude_identifier is not None and entry.identifier == exclude_identifier:
                continue
            if key.matches(entry):
                return entry
        return None

    def insert(self, record):
        self.inserts += 1
        now = datetime.now()
        return self.add(**record, created_at=now, updated_at=now)

    def update(self, entry_id, record, revive=False):
        self.updates += 1
        row = self.rows[entry_id]
        row.update(record)
        row["updated_at"] = datetime.now()
        if revive:
            row["deleted_at"] = None

    def iter_imported(self, source=None):
        return [
            StoredEntry.model_validate(row)
            for row in self.rows.values()
            if not row.get("is_internal")
            and row.get("identifier")
            and row.get("deleted_at") is None
            and (source is None or row.get("source") == source)
        ]

    def find_country_id(self, name):
        return self.countries.get(name.lower())

    def slug_exists(self, slug):
        return any(row.get("slug") == slug for row in self.rows.values())


class FakeBlobStore(BlobStore):
    """BlobStore keeping files in a dict keyed by (entry_id, field)."""

    def __init__(self):
        self.files: Dict[tuple, tuple] = {}
        self.deleted: List[tuple] = []

    def store(self, data, filename, entry_id, field):
        self.files[(entry_id, field)] = (filename, data)
        return True

    def exists(self, entry_id, field):
        return (entry_id, field) in self.files

    def delete(self, entry_id, field):
        self.deleted.append((entry_id, field))
        return self.files.pop((entry_id, field), None) is not None


class FakeCategoryLinker(CategoryLinker):
    """CategoryLinker keeping (entry_id, category_id) pairs in a set."""

    def __init__(self):
        self.links = set()

    def attach(self, entry_id, category_id):
        if (entry_id, category_id) in self.links:
            return False
        self.links.add((entry_id, category_id))
        return True

    def has_any(self, entry_id):
        return any(link[0] == entry_id for link in self.links)


class StaticFeedClient(BaseSourceAdapter):
    """Feed adapter returning a fixed item list."""

    def __init__(self, items: List[Dict[str, Any]]):
        self.items = items
        self.fetched_urls: List[str] = []
        self.closed = 0
        super().__init__(AdapterConfig(source_id="static"))

    def _validate_config(self) -> None:
        pass

    def fetch(self, url):
        self.fetched_urls.append(url)
        return FetchResult(url=url, raw_data=list(self.items))

    def close(self):
        self.closed += 1


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def entry_store():
    """Empty in-memory entry store."""
    return InMemoryEntryStore(countries={"Austria": 14})


@pytest.fixture
def blob_store():
    return FakeBlobStore()


@pytest.fixture
def category_linker():
    return FakeCategoryLinker()


@pytest.fixture
def feed_config():
    """Return a function that creates FeedConfig objects."""

    def _feed_config(source_name: str = "destination_one", **kwargs) -> FeedConfig:
        defaults = {
            "api_url": "https://feeds.example.com/events.json",
            "import_enabled": True,
            "default_category_id": 1,
        }
        defaults.update(kwargs)
        return FeedConfig(source_name=source_name, **defaults)

    return _feed_config


@pytest.fixture
def create_destination_item():
    """
    Return a function that creates destination.one raw items.

    Example:
        item = create_destination_item("E1", title="Spring Fair", categories=["Climate"])
    """

    def _create(
        global_id: str = "E1",
        title: str = "Harbour Festival",
        start: Optional[str] = "2024-05-01T10:00:00",
        end: Optional[str] = "2024-05-01T18:00:00",
        **kwargs,
    ) -> Dict[str, Any]:
        item = {
            "global_id": global_id,
            "title": title,
            "type": "Event",
            "texts": [
                {"rel": "details", "type": "text/html", "value": "<p>Boats and music.</p>"},
                {"rel": "teaser", "type": "text/plain", "value": "Boats and music"},
            ],
            "timeIntervals": [{"start": start, "end": end}] if start else [],
            "categories": [],
            "keywords": [],
            "features": [],
            "media_objects": [],
            "addresses": [],
            "country": "Germany",
        }
        item.update(kwargs)
        return item

    return _create


@pytest.fixture
def create_split_item():
    """Return a function that creates split.hr raw articles."""

    def _create(
        article_id: Any = 101,
        title: str = "Science Picnic",
        start: Optional[str] = "2024-09-20T08:00:00Z",
        end: Optional[str] = "2024-09-20T14:00:00Z",
        **kwargs,
    ) -> Dict[str, Any]:
        item = {
            "articleId": article_id,
            "title": title,
            "summary": "<p>Experiments for all ages</p>",
            "articleText": "<p>Hands-on experiments on the Riva.</p>",
            "eventInfo": {"startDateUTC": start, "endDateUTC": end, "wholeDay": False},
            "articleCategories": [],
            "customFieldList": [],
        }
        item.update(kwargs)
        return item

    return _create


@pytest.fixture
def static_feed():
    """Return the StaticFeedClient class for building canned feeds."""
    return StaticFeedClient
