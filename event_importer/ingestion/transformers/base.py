"""
Base Item Transformer.

Abstract base class for per-source transformers. A transformer knows the
shape of one feed (identifier field, envelope, date and text locations) and
maps a GroupedItem onto EntryFields without touching the store.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Type
import logging

from event_importer.ingestion.grouping import GroupedItem
from event_importer.ingestion.normalization.country import CountryResolver
from event_importer.ingestion.normalization.dates import is_all_day, parse_datetime
from event_importer.ingestion.normalization.taxonomy_mapper import TaxonomyMapper
from event_importer.ingestion.normalization.text import TextNormalizer
from event_importer.schemas.entry import CoverImage, EntryFields

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp")


class ItemTransformer(ABC):
    """
    Maps grouped feed items of one source onto entry fields.

    Subclasses must define the class attributes below and implement:
        - transform(): GroupedItem -> EntryFields
        - cover_image(): pick the cover image candidate of an item
    """

    # Registry key, also used as the config section name
    source_name: str = ""
    # Provenance tag written to entry.source
    source_tag: str = ""
    # Identifier field of raw items
    id_field: str = ""
    # Envelope key holding the item list, None for a bare JSON array
    items_key: Optional[str] = None
    # Prefix added to external ids when building entry identifiers
    identifier_prefix: str = ""
    # Only entries with this source are visited by populate-missing
    populate_source: Optional[str] = None

    def __init__(
        self,
        country_resolver: Optional[Callable[[str], Optional[int]]] = None,
        taxonomy: Optional[TaxonomyMapper] = None,
    ):
        self.resolve_country = country_resolver or CountryResolver()
        self.taxonomy = taxonomy or TaxonomyMapper()
        self.text = TextNormalizer
        self.logger = logging.getLogger(f"{__name__}.{self.source_name}")

    # ------------------------------------------------------------------
    # Identifiers
    # ------------------------------------------------------------------

    def build_identifier(self, external_id: str) -> str:
        """Entry identifier for an external id (namespaced per source)."""
        return f"{self.identifier_prefix}{external_id}"

    def external_id_from_identifier(self, identifier: str) -> Optional[str]:
        """Recover the bare external id from a stored identifier."""
        if self.identifier_prefix:
            if not identifier.startswith(self.identifier_prefix):
                return None
            return identifier[len(self.identifier_prefix):] or None
        return identifier

    # ------------------------------------------------------------------
    # Interface
    # ------------------------------------------------------------------

    @abstractmethod
    def transform(self, item: GroupedItem, identifier: str) -> EntryFields:
        """
        Map a grouped item onto entry fields.

        Args:
            item: Grouped feed item
            identifier: Entry identifier (already namespaced)

        Returns:
            EntryFields ready to be written
        """
        pass

    @abstractmethod
    def cover_image(self, item: GroupedItem) -> Optional[CoverImage]:
        """Cover image candidate of an item, if any."""
        pass

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    @staticmethod
    def resolve_range(
        item: GroupedItem,
        fallback: Optional[Tuple[Any, Any]] = None,
    ) -> Tuple[Optional[datetime], Optional[datetime]]:
        """Computed group range, else the item's own first interval."""
        if item.computed_start is not None:
            return item.computed_start, item.computed_end
        if fallback:
            return parse_datetime(fallback[0]), parse_datetime(fallback[1])
        return None, item.computed_end

    @staticmethod
    def all_day(start: Optional[datetime], end: Optional[datetime]) -> bool:
        return is_all_day(start, end)

    @staticmethod
    def terms(values: Any) -> List[str]:
        """Flatten a list of strings or named objects into plain terms."""
        if not values:
            return []
        if isinstance(values, (str, dict)):
            values = [values]
        result = []
        for value in values:
            if isinstance(value, dict):
                value = value.get("name") or value.get("value") or value.get("title")
            if value is not None and str(value).strip():
                result.append(str(value).strip())
        return result

    @staticmethod
    def join(values: Iterable[str]) -> Optional[str]:
        return TextNormalizer.join_non_empty(values)

    @staticmethod
    def looks_like_image(url: str) -> bool:
        return url.lower().split("?")[0].endswith(IMAGE_EXTENSIONS)


# Transformer registry - maps source names to transformer classes
TRANSFORMER_REGISTRY: Dict[str, Type[ItemTransformer]] = {}


def register_transformer(source_name: str):
    """
    Decorator to register a transformer class.

    Usage:
        @register_transformer("destination_one")
        class DestinationOneTransformer(ItemTransformer):
            ...
    """

    def decorator(cls: Type[ItemTransformer]) -> Type[ItemTransformer]:
        cls.source_name = source_name
        TRANSFORMER_REGISTRY[source_name] = cls
        return cls

    return decorator
