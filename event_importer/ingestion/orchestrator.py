"""
Import Orchestrator.

Drives one run of a feed import in one of five modes:

- IMPORT: insert new entries, update entries matched by identifier
- DRY_RUN: IMPORT without any writes, statistics only
- UPDATE_MATCHING: update non-key fields of entries matched by title + dates
- UPDATE_ALL_MATCHING: update every field of matched entries, replace cover image
- POPULATE_MISSING: fill empty fields of already imported entries

Each item is processed into an ItemOutcome that is folded into ImportStats.
A failing item never aborts the run; only configuration, fetch and parse
errors do.
"""

import logging
import traceback
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional

from event_importer.configs.config import FeedConfig
from event_importer.ingestion.adapters.base_adapter import BaseSourceAdapter
from event_importer.ingestion.errors import ConfigurationError, ItemError, SideEffectError
from event_importer.ingestion.grouping import GroupedItem, ItemGrouper
from event_importer.ingestion.matching import MatchKey
from event_importer.ingestion.media import CoverImageService
from event_importer.ingestion.persist import CategoryLinker, EntryStore
from event_importer.ingestion.transformers.base import ItemTransformer
from event_importer.monitoring.logging import with_context
from event_importer.schemas.entry import (
    FEED_UNSUPPLIED_FIELDS,
    FLAG_FIELDS,
    KEY_FIELDS,
    StoredEntry,
    is_blank,
)

logger = logging.getLogger(__name__)

# Stored column -> populate-missing counter
POPULATE_FIELDS = (
    ("description", "descriptions_updated"),
    ("place", "places_updated"),
    ("url", "urls_updated"),
    ("country_id", "countries_updated"),
    ("theme", "themes_updated"),
    ("target", "targets_updated"),
    ("contact", "contacts_updated"),
    ("email", "emails_updated"),
    ("institution", "institutions_updated"),
    ("format", "formats_updated"),
)


class RunMode(str, Enum):
    """Mutually exclusive run modes."""

    IMPORT = "import"
    DRY_RUN = "dry_run"
    POPULATE_MISSING = "populate_missing"
    UPDATE_MATCHING = "update_matching"
    UPDATE_ALL_MATCHING = "update_all_matching"


class RunStatus(str, Enum):
    """Status of a finished run."""

    SUCCESS = "success"
    DISABLED = "disabled"


class ItemStatus(str, Enum):
    """Result of processing one item."""

    INSERTED = "inserted"
    UPDATED = "updated"
    SKIPPED = "skipped"
    DUPLICATE = "duplicate"
    NOT_FOUND = "not_found"
    ERROR = "error"


@dataclass
class ItemOutcome:
    """Per-item result, folded into ImportStats."""

    identifier: Optional[str]
    status: ItemStatus
    entry_id: Optional[int] = None
    counters: List[str] = field(default_factory=list)
    error: Optional[ItemError] = None


@dataclass
class ImportStats:
    """Counters for one run."""

    counts: Counter = field(default_factory=Counter)
    errors: List[ItemError] = field(default_factory=list)

    def record(self, outcome: ItemOutcome) -> None:
        self.counts[outcome.status.value] += 1
        for counter in outcome.counters:
            self.counts[counter] += 1
        if outcome.error is not None:
            self.errors.append(outcome.error)

    def __getitem__(self, key: str) -> int:
        return self.counts.get(key, 0)

    @property
    def inserted(self) -> int:
        return self["inserted"]

    @property
    def updated(self) -> int:
        return self["updated"]

    @property
    def skipped(self) -> int:
        return self["skipped"]

    @property
    def duplicates(self) -> int:
        return self["duplicate"]

    @property
    def not_found(self) -> int:
        return self["not_found"]

    @property
    def error_count(self) -> int:
        return self["error"]

    def as_dict(self) -> Dict[str, int]:
        return dict(sorted(self.counts.items()))


@dataclass
class RunResult:
    """Result of an orchestrator run."""

    source_name: str
    mode: RunMode
    status: RunStatus
    dry_run: bool
    started_at: datetime
    ended_at: datetime
    url: Optional[str] = None
    items_fetched: int = 0
    items_grouped: int = 0
    stats: ImportStats = field(default_factory=ImportStats)

    @property
    def duration_seconds(self) -> float:
        """Calculate execution duration."""
        return (self.ended_at - self.started_at).total_seconds()


def _error_location(exc: BaseException) -> Optional[str]:
    """file:line of the frame that raised `exc`."""
    frames = traceback.extract_tb(exc.__traceback__)
    if not frames:
        return None
    last = frames[-1]
    return f"{Path(last.filename).name}:{last.lineno}"


class ImportOrchestrator:
    """
    Runs a feed import for one source.

    Responsibilities:
    - Resolve the feed URL and honour the enabled toggle
    - Fetch and group the feed
    - Dispatch to the handler of the selected run mode
    - Delegate cover image and category side effects
    """

    def __init__(
        self,
        feed_config: FeedConfig,
        transformer: ItemTransformer,
        store: EntryStore,
        feed_client: BaseSourceAdapter,
        images: Optional[CoverImageService] = None,
        categories: Optional[CategoryLinker] = None,
        grouper: Optional[ItemGrouper] = None,
    ):
        self.feed_config = feed_config
        self.transformer = transformer
        self.store = store
        self.feed_client = feed_client
        self.images = images
        self.categories = categories
        self.grouper = grouper or ItemGrouper()
        self.logger = with_context(logger, source_id=feed_config.source_name)

    # ========================================================================
    # EXECUTION
    # ========================================================================

    def resolve_url(self, url_override: Optional[str] = None) -> str:
        """
        Feed URL for this run.

        Raises:
            ConfigurationError: If neither an override nor a configured URL exists
        """
        url = (url_override or self.feed_config.api_url or "").strip()
        if not url:
            raise ConfigurationError(
                f"No feed URL configured for '{self.feed_config.source_name}'"
            )
        return url

    def run(
        self,
        mode: RunMode = RunMode.IMPORT,
        url: Optional[str] = None,
        dry_run: bool = False,
    ) -> RunResult:
        """
        Execute one run.

        Args:
            mode: Run mode
            url: Feed URL override; skips the enabled check when given
            dry_run: Count only, write nothing (implied by RunMode.DRY_RUN)

        Returns:
            RunResult with statistics

        Raises:
            ConfigurationError: Missing feed URL
            FetchError: Feed could not be retrieved
            ParseError: Feed payload is not usable
        """
        started_at = datetime.now()
        dry_run = dry_run or mode == RunMode.DRY_RUN
        self.logger = with_context(
            logger, source_id=self.feed_config.source_name, stage=mode.value
        )

        feed_url = self.resolve_url(url)
        if url is None and not self.feed_config.import_enabled:
            self.logger.warning(
                f"Import for '{self.feed_config.source_name}' is disabled, nothing to do"
            )
            return RunResult(
                source_name=self.feed_config.source_name,
                mode=mode,
                status=RunStatus.DISABLED,
                dry_run=dry_run,
                started_at=started_at,
                ended_at=datetime.now(),
                url=feed_url,
            )

        self.logger.info(
            f"Starting {mode.value} for {self.feed_config.source_name}"
            f"{' (dry run)' if dry_run else ''} from {feed_url}"
        )
        with self.feed_client:
            fetched = self.feed_client.fetch(feed_url)
        self.logger.debug(
            f"Feed responded with status {fetched.status_code} "
            f"in {fetched.duration_seconds:.1f}s"
        )
        grouped = self.grouper.group(fetched.raw_data, self.transformer.id_field)
        self.logger.info(f"Found {len(grouped)} unique events in {fetched.total_fetched} items")

        if mode == RunMode.POPULATE_MISSING:
            stats = self.populate_missing(grouped, dry_run)
        elif mode == RunMode.UPDATE_MATCHING:
            stats = self.update_matching(grouped, dry_run, all_fields=False)
        elif mode == RunMode.UPDATE_ALL_MATCHING:
            stats = self.update_matching(grouped, dry_run, all_fields=True)
        else:
            stats = self.import_items(grouped, dry_run)

        result = RunResult(
            source_name=self.feed_config.source_name,
            mode=mode,
            status=RunStatus.SUCCESS,
            dry_run=dry_run,
            started_at=started_at,
            ended_at=datetime.now(),
            url=feed_url,
            items_fetched=fetched.total_fetched,
            items_grouped=len(grouped),
            stats=stats,
        )
        self.logger.info(
            f"{mode.value} completed{' (dry run)' if dry_run else ''} "
            f"in {result.duration_seconds:.1f}s: {stats.as_dict()}"
        )
        return result

    def _guarded(self, identifier: Optional[str], process: Callable[[], ItemOutcome]) -> ItemOutcome:
        """Run one item; any exception becomes an ERROR outcome."""
        try:
            return process()
        except Exception as e:
            error = ItemError(identifier, str(e), _error_location(e))
            self.logger.error(f"Error processing item {identifier}: {error}", exc_info=True)
            return ItemOutcome(identifier=identifier, status=ItemStatus.ERROR, error=error)

    # ========================================================================
    # IMPORT / DRY RUN
    # ========================================================================

    def import_items(self, grouped: Dict[str, GroupedItem], dry_run: bool = False) -> ImportStats:
        """Insert or update every grouped item by identifier."""
        stats = ImportStats()
        seen = set()
        for external_id, item in grouped.items():
            outcome = self._guarded(
                external_id, lambda: self._import_item(external_id, item, seen, dry_run)
            )
            stats.record(outcome)
        return stats

    def _import_item(
        self,
        external_id: str,
        item: GroupedItem,
        seen: set,
        dry_run: bool,
    ) -> ItemOutcome:
        identifier = self.transformer.build_identifier(external_id)
        if is_blank(item.get("title")):
            return ItemOutcome(identifier, ItemStatus.SKIPPED)
        if identifier in seen:
            self.logger.debug(f"Identifier {identifier} already processed in this run")
            return ItemOutcome(identifier, ItemStatus.SKIPPED)
        seen.add(identifier)

        fields = self.transformer.transform(item, identifier)

        duplicate = self.store.find_matching(
            MatchKey.from_fields(fields), exclude_identifier=identifier
        )
        if duplicate is not None:
            self.logger.info(
                f"Duplicate of entry {duplicate.id} ({duplicate.identifier}): "
                f"'{fields.title}', skipping {identifier}"
            )
            return ItemOutcome(identifier, ItemStatus.DUPLICATE, entry_id=duplicate.id)

        existing = self.store.find_by_identifier(identifier)
        if dry_run:
            status = ItemStatus.UPDATED if existing else ItemStatus.INSERTED
            return ItemOutcome(identifier, status, entry_id=existing.id if existing else None)

        record = fields.to_record(exclude=FEED_UNSUPPLIED_FIELDS)
        if existing is not None:
            self.store.update(existing.id, record, revive=True)
            self._apply_side_effects(existing.id, item, keep_existing_image=True)
            return ItemOutcome(identifier, ItemStatus.UPDATED, entry_id=existing.id)

        entry_id = self.store.insert(record)
        self._apply_side_effects(entry_id, item, keep_existing_image=False)
        return ItemOutcome(identifier, ItemStatus.INSERTED, entry_id=entry_id)

    # ========================================================================
    # UPDATE MATCHING
    # ========================================================================

    def update_matching(
        self,
        grouped: Dict[str, GroupedItem],
        dry_run: bool = False,
        all_fields: bool = False,
    ) -> ImportStats:
        """
        Update entries matched by title and dates.

        Args:
            grouped: Grouped feed items
            dry_run: Count only
            all_fields: Also rewrite title/start/end/slug and replace the cover image
        """
        stats = ImportStats()
        for external_id, item in grouped.items():
            outcome = self._guarded(
                external_id,
                lambda: self._update_matching_item(external_id, item, dry_run, all_fields),
            )
            stats.record(outcome)
        return stats

    def _update_matching_item(
        self,
        external_id: str,
        item: GroupedItem,
        dry_run: bool,
        all_fields: bool,
    ) -> ItemOutcome:
        identifier = self.transformer.build_identifier(external_id)
        if is_blank(item.get("title")):
            return ItemOutcome(identifier, ItemStatus.SKIPPED)

        fields = self.transformer.transform(item, identifier)
        match = self.store.find_matching(MatchKey.from_fields(fields))
        if match is None:
            return ItemOutcome(identifier, ItemStatus.NOT_FOUND)
        if dry_run:
            return ItemOutcome(identifier, ItemStatus.UPDATED, entry_id=match.id)

        exclude = FEED_UNSUPPLIED_FIELDS
        if not all_fields:
            exclude += KEY_FIELDS + FLAG_FIELDS
        self.store.update(match.id, fields.to_record(exclude=exclude), revive=True)

        if self.images is not None:
            cover = self.transformer.cover_image(item)
            if all_fields:
                self.images.replace(match.id, cover)
            else:
                self.images.attach(match.id, cover, skip_if_present=True)
        self._attach_default_category(match.id)

        return ItemOutcome(identifier, ItemStatus.UPDATED, entry_id=match.id)

    # ========================================================================
    # POPULATE MISSING
    # ========================================================================

    def populate_missing(self, grouped: Dict[str, GroupedItem], dry_run: bool = False) -> ImportStats:
        """Fill empty fields of imported entries from the feed."""
        stats = ImportStats()
        entries = self.store.iter_imported(self.transformer.populate_source)
        self.logger.info(f"Checking {len(entries)} imported entries for missing fields")

        for entry in entries:
            outcome = self._guarded(
                entry.identifier, lambda: self._populate_entry(entry, grouped, dry_run)
            )
            stats.record(outcome)
        return stats

    def _populate_entry(
        self,
        entry: StoredEntry,
        grouped: Dict[str, GroupedItem],
        dry_run: bool,
    ) -> ItemOutcome:
        external_id = self.transformer.external_id_from_identifier(entry.identifier)
        item = grouped.get(external_id) if external_id else None
        if item is None:
            return ItemOutcome(entry.identifier, ItemStatus.NOT_FOUND, entry_id=entry.id)

        candidate = self.transformer.transform(item, entry.identifier)
        updates = {}
        counters = []
        for column, counter in POPULATE_FIELDS:
            value = getattr(candidate, column)
            if is_blank(getattr(entry, column)) and not is_blank(value):
                updates[column] = value
                counters.append(counter)

        cover = self.transformer.cover_image(item)
        needs_cover = (
            self.images is not None and cover is not None and not self.images.has_cover(entry.id)
        )
        needs_category = (
            self.categories is not None
            and self.feed_config.default_category_id is not None
            and not self.categories.has_any(entry.id)
        )

        if dry_run:
            if needs_cover:
                counters.append("cover_images_added")
            if needs_category:
                counters.append("categories_added")
        else:
            if needs_cover and self.images.attach(entry.id, cover):
                counters.append("cover_images_added")
            if needs_category and self._attach_default_category(entry.id):
                counters.append("categories_added")
            if updates:
                self.store.update(entry.id, updates)

        if not counters:
            return ItemOutcome(entry.identifier, ItemStatus.SKIPPED, entry_id=entry.id)
        return ItemOutcome(
            entry.identifier, ItemStatus.UPDATED, entry_id=entry.id, counters=counters
        )

    # ========================================================================
    # SIDE EFFECTS
    # ========================================================================

    def _apply_side_effects(self, entry_id: int, item: GroupedItem, keep_existing_image: bool) -> None:
        if self.images is not None:
            self.images.attach(
                entry_id,
                self.transformer.cover_image(item),
                skip_if_present=keep_existing_image,
            )
        self._attach_default_category(entry_id)

    def _attach_default_category(self, entry_id: int) -> bool:
        category_id = self.feed_config.default_category_id
        if self.categories is None or category_id is None:
            return False
        try:
            return self.categories.attach(entry_id, category_id)
        except SideEffectError as e:
            self.logger.warning(f"Category not attached to entry {entry_id}: {e}")
            return False
