"""
Spreadsheet Importer.

Imports the Excel upload format: one event per row under a header row whose
labels come from a fixed vocabulary. Rows have no stable external id, so
duplicates are detected by title and dates only and slugs get numeric
suffixes instead of an identifier hash.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import pandas as pd
from dateutil import parser as date_parser
from pydantic import ValidationError

from event_importer.ingestion.errors import ParseError, RowError, SideEffectError
from event_importer.ingestion.matching import MatchKey
from event_importer.ingestion.normalization.slugs import unique_slug
from event_importer.ingestion.persist import CategoryLinker, EntryStore
from event_importer.schemas.entry import EntryFields

logger = logging.getLogger(__name__)

DEFAULT_SHEET = "Upload sheet"
FALLBACK_SHEETS = ("Upload sheet", "Sheet1", "Data", "Events")

# Normalized header label -> canonical column
HEADER_MAP = {
    "date": "start_date",
    "end date (if multi-day)": "end_date",
    "start (hour)": "start_time",
    "end (hour)": "end_time",
    "adress (concrete adress)": "address",
    "address (concrete address)": "address",
    "title of event (english)": "title",
    "implementing institution (full name, no acronym)": "institution",
    "short description (english)": "description",
    "links": "links",
    "target group1": "target_group1",
    "target group2 (optional)": "target_group2",
    "target group3 (optional)": "target_group3",
    "thematic focus": "theme",
    "format/category": "format",
    "public or closed event (by invitation)": "is_public",
    "entrance fee": "fee",
    "remarks": "remarks",
    "contact person": "contact",
    "email contact": "email",
    "picture for calendar": "picture",
    "tags": "tags",
}

# Canonical column -> entry field for values copied as text
TEXT_COLUMNS = {
    "title": "title",
    "address": "place",
    "institution": "institution",
    "description": "description",
    "links": "url",
    "theme": "theme",
    "format": "format",
    "fee": "fee",
    "remarks": "remarks",
    "contact": "contact",
    "email": "email",
    "tags": "tags",
}
TARGET_GROUP_COLUMNS = ("target_group1", "target_group2", "target_group3")

CLOSED_VALUES = {
    "closed",
    "closed (invitation /registration)",
    "invitation",
    "private",
    "no",
    "false",
    "0",
}

EXCEL_EPOCH = datetime(1899, 12, 30)
_ISO_DATE = re.compile(r"^(\d{4}-\d{2}-\d{2})")
_CLOCK_TIME = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")

END_OF_DAY = time(23, 59, 59)


@dataclass
class SpreadsheetImportResult:
    """Counters and row errors of a spreadsheet import."""

    success: int = 0
    failed: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "failed": self.failed,
            "skipped": self.skipped,
            "errors": list(self.errors),
        }


# ============================================================================
# CELL PARSING
# ============================================================================


def is_empty_cell(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def parse_excel_date(value: Any) -> Optional[date]:
    """
    Parse a date cell.

    Accepts native dates, ISO date strings, spreadsheet serial numbers and
    anything dateutil can make sense of.
    """
    if is_empty_cell(value):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if _is_number(value):
        return (EXCEL_EPOCH + timedelta(days=int(value))).date()

    text = str(value).strip()
    match = _ISO_DATE.match(text)
    if match:
        try:
            return datetime.strptime(match.group(1), "%Y-%m-%d").date()
        except ValueError:
            pass
    try:
        return date_parser.parse(text).date()
    except (ValueError, OverflowError):
        logger.debug(f"Unparseable date cell '{value}'")
        return None


def parse_excel_time(value: Any) -> Optional[time]:
    """
    Parse a time cell.

    Accepts native times, "HH:MM[:SS]" strings, day fractions in [0, 1) and
    serial datetimes (the time part is used).
    """
    if is_empty_cell(value):
        return None
    if isinstance(value, datetime):
        return value.time().replace(microsecond=0)
    if isinstance(value, time):
        return value.replace(microsecond=0)
    if _is_number(value):
        fraction = float(value) % 1 if value >= 1 else float(value)
        seconds = int(round(fraction * 86400)) % 86400
        return (datetime.min + timedelta(seconds=seconds)).time()

    text = str(value).strip()
    match = _CLOCK_TIME.match(text)
    if match:
        hour, minute, second = int(match.group(1)), int(match.group(2)), int(match.group(3) or 0)
        if hour < 24 and minute < 60 and second < 60:
            return time(hour, minute, second)
    try:
        return date_parser.parse(text).time()
    except (ValueError, OverflowError):
        logger.debug(f"Unparseable time cell '{value}'")
        return None


def parse_public_status(value: Any) -> bool:
    """False for closed/invitation-only values, True otherwise."""
    if is_empty_cell(value):
        return True
    return str(value).strip().lower() not in CLOSED_VALUES


def normalize_header(label: Any) -> Optional[str]:
    """Canonical column for a header label, or None if unknown."""
    if is_empty_cell(label):
        return None
    return HEADER_MAP.get(str(label).strip().lower())


def resolve_sheet_name(available: List[str], requested: Optional[str] = None) -> str:
    """
    Pick the worksheet to import.

    Raises:
        ParseError: If no usable worksheet exists
    """
    for name in (requested or DEFAULT_SHEET, *FALLBACK_SHEETS):
        if name in available:
            return name
    for name in available:
        if "read" not in name.lower():
            return name
    raise ParseError(f"Sheet not found. Available sheets: {', '.join(available)}")


def _cell_text(value: Any) -> Optional[str]:
    if is_empty_cell(value):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


# ============================================================================
# IMPORTER
# ============================================================================


class SpreadsheetImporter:
    """
    Imports rows of an upload workbook as new entries.
    """

    def __init__(self, store: EntryStore, categories: Optional[CategoryLinker] = None):
        self.store = store
        self.categories = categories

    def load_sheet(self, path: Union[str, Path], sheet_name: Optional[str] = None) -> pd.DataFrame:
        """
        Read a worksheet without header inference.

        Raises:
            ParseError: If the workbook cannot be read or has no usable sheet
        """
        try:
            workbook = pd.ExcelFile(path, engine="openpyxl")
        except Exception as e:
            raise ParseError(f"Cannot read workbook {path}: {e}") from e

        with workbook:
            name = resolve_sheet_name(workbook.sheet_names, sheet_name)
            logger.info(f"Importing sheet '{name}' from {path}")
            return workbook.parse(name, header=None, dtype=object)

    def import_file(
        self,
        path: Union[str, Path],
        sheet_name: Optional[str] = None,
        category_ids: Iterable[int] = (),
        country_id: Optional[int] = None,
    ) -> SpreadsheetImportResult:
        sheet = self.load_sheet(path, sheet_name)
        return self.import_sheet(sheet, category_ids, country_id)

    def import_sheet(
        self,
        sheet: pd.DataFrame,
        category_ids: Iterable[int] = (),
        country_id: Optional[int] = None,
    ) -> SpreadsheetImportResult:
        """
        Import every data row of a header-less DataFrame (row 0 = header).

        Args:
            sheet: Worksheet as read by load_sheet
            category_ids: Categories attached to every created entry
            country_id: Country assigned to every created entry

        Returns:
            SpreadsheetImportResult
        """
        result = SpreadsheetImportResult()
        if sheet.empty:
            return result

        category_ids = list(category_ids)
        headers = {
            column: normalize_header(label) for column, label in sheet.iloc[0].items()
        }

        for position in range(1, len(sheet)):
            row_number = position + 1
            cells = {
                canonical: sheet.iat[position, index]
                for index, (column, canonical) in enumerate(headers.items())
                if canonical is not None
            }
            try:
                status = self._import_row(row_number, cells, category_ids, country_id)
            except Exception as e:
                error = e if isinstance(e, RowError) else RowError(row_number, str(e))
                logger.error(f"Spreadsheet import failed: {error}")
                result.failed += 1
                result.errors.append(str(error))
                continue

            if status == "success":
                result.success += 1
            elif status == "skipped":
                result.skipped += 1

        logger.info(
            f"Spreadsheet import completed: {result.success} created, "
            f"{result.skipped} skipped, {result.failed} failed"
        )
        return result

    def map_row(self, cells: Dict[str, Any], row_number: int = 0) -> Optional[EntryFields]:
        """
        Map canonical cells onto entry fields.

        Returns:
            EntryFields, or None for rows without title and start date

        Raises:
            RowError: If the row cannot be mapped
        """
        values: Dict[str, Any] = {}
        for column, target in TEXT_COLUMNS.items():
            text = _cell_text(cells.get(column))
            if text:
                values[target] = text

        targets = [_cell_text(cells.get(c)) for c in TARGET_GROUP_COLUMNS]
        targets = [t for t in targets if t]
        if targets:
            values["target"] = ", ".join(targets)

        if "is_public" in cells:
            values["is_public"] = parse_public_status(cells["is_public"])

        start_date = parse_excel_date(cells.get("start_date"))
        end_date = parse_excel_date(cells.get("end_date"))
        start_time = parse_excel_time(cells.get("start_time"))
        end_time = parse_excel_time(cells.get("end_time"))

        if start_date is not None:
            values["start"] = datetime.combine(start_date, start_time or time(0, 0, 0))
        if end_date is not None or start_date is not None:
            values["end"] = datetime.combine(end_date or start_date, end_time or END_OF_DAY)

        if not values.get("title") and "start" not in values:
            return None
        if not values.get("title"):
            raise RowError(row_number, "Title is required")

        try:
            return EntryFields(show_on_timeline=False, is_internal=False, **values)
        except ValidationError as e:
            raise RowError(row_number, str(e)) from e

    def _import_row(
        self,
        row_number: int,
        cells: Dict[str, Any],
        category_ids: List[int],
        country_id: Optional[int],
    ) -> str:
        fields = self.map_row(cells, row_number)
        if fields is None:
            return "ignored"
        if country_id is not None:
            fields.country_id = country_id

        if self.store.find_matching(MatchKey.from_fields(fields)) is not None:
            logger.info(f"Row {row_number}: '{fields.title}' already exists, skipping")
            return "skipped"

        fields.slug = unique_slug(fields.title, self.store.slug_exists)
        record = {
            k: v for k, v in fields.to_record(exclude=("identifier",)).items() if v is not None
        }
        entry_id = self.store.insert(record)

        if self.categories is not None:
            for category_id in category_ids:
                try:
                    self.categories.attach(entry_id, category_id)
                except SideEffectError as e:
                    logger.warning(f"Row {row_number}: {e}")
        return "success"
