"""
Transformer for the destination.one feed.

Items arrive as {"items": [...]} keyed by `global_id`. Texts, media and
addresses are lists of objects tagged with a `rel`.
"""

import posixpath
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from event_importer.ingestion.grouping import GroupedItem
from event_importer.ingestion.normalization.slugs import feed_slug
from event_importer.ingestion.transformers.base import ItemTransformer, register_transformer
from event_importer.schemas.entry import CoverImage, EntryFields

COVER_IMAGE_RELS = ("image", "teaser", "default", "primary", "main")


def find_text(texts: List[Dict[str, Any]], rel: str, mime_type: str) -> Optional[str]:
    """Value of the first text entry with the given rel and type."""
    for text in texts or []:
        if text.get("rel") == rel and text.get("type") == mime_type:
            return text.get("value")
    return None


@register_transformer("destination_one")
class DestinationOneTransformer(ItemTransformer):
    """Maps destination.one items onto entry fields."""

    source_tag = "destination.one"
    id_field = "global_id"
    items_key = "items"

    def external_id_from_identifier(self, identifier: str) -> Optional[str]:
        # Occurrence suffixes are appended after an underscore
        return identifier.split("_", 1)[0] or None

    def transform(self, item: GroupedItem, identifier: str) -> EntryFields:
        texts = item.get("texts", [])
        title = str(item.get("title", "")).strip()

        description = self._description(texts)
        teaser = find_text(texts, "teaser", "text/plain") or self.text.strip_html(
            find_text(texts, "teaser", "text/html")
        )
        teaser = self.text.clean_unicode_escapes(teaser)

        intervals = item.get("timeIntervals", [])
        fallback = None
        if intervals and isinstance(intervals[0], dict):
            fallback = (intervals[0].get("start"), intervals[0].get("end"))
        start, end = self.resolve_range(item, fallback)

        organizer = self._organizer(item)
        keywords = self.terms(item.get("keywords"))
        categories = self.terms(item.get("categories"))
        features = self.terms(item.get("features"))
        tags = self.join(keywords)

        source = item.get("source")
        source_tag = source.get("value") if isinstance(source, dict) else None

        return EntryFields(
            identifier=identifier,
            title=title,
            slug=feed_slug(title, identifier),
            start=start,
            end=end,
            all_day=self.all_day(start, end),
            description=description,
            url=self._url(item),
            place=self._place(item),
            country_id=self.resolve_country(item.get("country")),
            institution=organizer.get("name"),
            contact=organizer.get("phone") or item.get("phone"),
            email=organizer.get("email") or item.get("email"),
            theme=self.join(self.taxonomy.map_themes(categories + keywords)),
            target=self.join(self.taxonomy.map_target_groups(features + keywords)),
            format=item.get("type"),
            tags=tags,
            fee=find_text(texts, "PRICE_INFO", "text/plain"),
            meta_title=title,
            meta_description=teaser,
            meta_keywords=tags,
            is_public=True,
            is_internal=False,
            show_on_timeline=False,
            source=source_tag or self.source_tag,
        )

    def cover_image(self, item: GroupedItem) -> Optional[CoverImage]:
        media_objects = [m for m in item.get("media_objects", []) if isinstance(m, dict)]

        chosen = next(
            (m for m in media_objects if m.get("rel") in COVER_IMAGE_RELS and m.get("url")),
            None,
        )
        if chosen is None:
            chosen = next(
                (m for m in media_objects if m.get("url") and self.looks_like_image(m["url"])),
                None,
            )
        if chosen is None:
            return None

        url = chosen["url"]
        name = chosen.get("name") or posixpath.basename(urlparse(url).path) or "cover.jpg"
        return CoverImage(url=url, filename=name)

    # ------------------------------------------------------------------
    # Field helpers
    # ------------------------------------------------------------------

    def _description(self, texts: List[Dict[str, Any]]) -> Optional[str]:
        description = find_text(texts, "details", "text/html")
        if not description:
            description = self.text.nl2br(find_text(texts, "details", "text/plain"))
        description = self.text.clean_unicode_escapes(description)
        return self.text.clean_html(description)

    @staticmethod
    def _url(item: GroupedItem) -> Optional[str]:
        for media in item.get("media_objects", []):
            if isinstance(media, dict) and media.get("rel") == "venuewebsite" and media.get("url"):
                return media["url"]
        return item.get("web")

    @staticmethod
    def _organizer(item: GroupedItem) -> Dict[str, Any]:
        for address in item.get("addresses", []):
            if isinstance(address, dict) and address.get("rel") == "organizer":
                return address
        return {}

    def _place(self, item: GroupedItem) -> Optional[str]:
        zip_city = self.text.join_non_empty([item.get("zip"), item.get("city")], " ")
        return self.join([item.get("name"), item.get("street"), zip_city])
