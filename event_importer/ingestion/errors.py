"""
Error taxonomy for the import pipeline.

Fatal errors (configuration, fetch, parse) abort a run before any item is
processed. Item, side-effect and row errors are recovered at the loop
boundary and only show up in logs and run statistics.
"""

from typing import Optional


class EventImportError(Exception):
    """Base class for all importer errors."""


class ConfigurationError(EventImportError):
    """A feed URL or source configuration is missing or invalid."""


class FetchError(EventImportError):
    """The feed could not be retrieved."""

    def __init__(self, url: str, message: str):
        self.url = url
        super().__init__(f"Failed to fetch {url}: {message}")


class ParseError(EventImportError):
    """The feed or workbook could not be parsed into records."""


class ItemError(EventImportError):
    """Processing a single feed item failed."""

    def __init__(
        self,
        identifier: Optional[str],
        message: str,
        location: Optional[str] = None,
    ):
        self.identifier = identifier
        self.message = message
        self.location = location
        where = f" at {location}" if location else ""
        super().__init__(f"Item {identifier}: {message}{where}")


class SideEffectError(EventImportError):
    """An image or category side effect failed."""


class RowError(EventImportError):
    """Mapping or writing a spreadsheet row failed."""

    def __init__(self, row_number: int, message: str):
        self.row_number = row_number
        self.message = message
        super().__init__(f"Row {row_number}: {message}")
