"""
Transformer for the split.hr article feed.

Items arrive as a bare JSON array keyed by `articleId`. Contact details are
not structured: they are embedded in the article body as labelled lines
("Contact person: ...", "Location: ...").
"""

import re
from typing import Any, Dict, List, Optional

from event_importer.ingestion.grouping import GroupedItem
from event_importer.ingestion.normalization.slugs import feed_slug
from event_importer.ingestion.transformers.base import ItemTransformer, register_transformer
from event_importer.schemas.entry import CoverImage, EntryFields

DEFAULT_COUNTRY = "Croatia"

EMAIL_PATTERN = re.compile(r"[\w.+-]+@[\w-]+\.[\w.]*\w")

# field -> label pattern
LABELS = {
    "contact": r"Contact\s+person",
    "place": r"Location",
    "institution": r"Implementing\s+institution",
    "format": r"Format",
}
_ANY_LABEL = re.compile(rf"\b({'|'.join(LABELS.values())})\s*:", re.IGNORECASE)

_STRIP_CHARS = " \t\n\r\0\x0b;,"


def custom_fields(field_list: List[Dict[str, Any]]) -> Dict[str, str]:
    """Label -> value for non-empty entries of customFieldList."""
    fields = {}
    for entry in field_list or []:
        if not isinstance(entry, dict) or not entry.get("label") or entry.get("value") is None:
            continue
        value = str(entry["value"]).strip()
        if value:
            fields[str(entry["label"]).strip()] = value
    return fields


def parse_contact_text(text: Optional[str]) -> Dict[str, Optional[str]]:
    """
    Extract contact person, email, place, institution and format from the
    plain text of an article body.

    A labelled value runs until the end of its line or the next label,
    whichever comes first. Emails are removed from the contact person.
    """
    result: Dict[str, Optional[str]] = {
        "contact": None,
        "email": None,
        "place": None,
        "institution": None,
        "format": None,
    }
    if not text:
        return result

    match = EMAIL_PATTERN.search(text)
    if match:
        result["email"] = match.group(0)

    for name, label in LABELS.items():
        match = re.search(rf"\b{label}\s*:", text, re.IGNORECASE)
        if not match:
            continue
        value = text[match.end():].split("\n", 1)[0]
        following = _ANY_LABEL.search(value)
        if following:
            value = value[: following.start()]
        if name == "contact":
            value = EMAIL_PATTERN.sub("", value.split(";", 1)[0])
        result[name] = value.strip(_STRIP_CHARS) or None

    return result


@register_transformer("split_hr")
class SplitTransformer(ItemTransformer):
    """Maps split.hr articles onto entry fields."""

    source_tag = "split.hr"
    id_field = "articleId"
    items_key = None
    identifier_prefix = "split-"
    populate_source = "split.hr"

    def transform(self, item: GroupedItem, identifier: str) -> EntryFields:
        title = str(item.get("title", "")).strip()
        event_info = item.get("eventInfo", {})
        if not isinstance(event_info, dict):
            event_info = {}

        body = self.text.decode_html_field(item.get("articleText"))
        summary = self.text.decode_html_field(item.get("summary"))
        description = self.text.clean_html(body or summary)
        teaser = self.text.strip_html(summary, collapse_whitespace=True)

        start, end = self.resolve_range(
            item, (event_info.get("startDateUTC"), event_info.get("endDateUTC"))
        )
        all_day = bool(event_info.get("wholeDay")) or self.all_day(start, end)

        fields = custom_fields(item.get("customFieldList", []))
        categories = self.terms(item.get("articleCategories"))
        parsed = parse_contact_text(self.text.strip_html(body or summary))

        theme = fields.get("Theme") or self.join(self.taxonomy.map_themes(categories))
        target = fields.get("Target groups") or self._target(categories, description)
        tags = self.join(categories)

        return EntryFields(
            identifier=identifier,
            title=title,
            slug=feed_slug(title, identifier),
            start=start,
            end=end,
            all_day=all_day,
            description=description,
            url=self._url(item),
            place=parsed["place"],
            country_id=self.resolve_country(DEFAULT_COUNTRY),
            institution=parsed["institution"],
            contact=parsed["contact"] or item.get("author"),
            email=parsed["email"],
            theme=theme,
            target=target,
            format=parsed["format"],
            tags=tags,
            fee=None,
            meta_title=title,
            meta_description=teaser,
            meta_keywords=tags,
            is_public=True,
            is_internal=False,
            show_on_timeline=False,
            source=self.source_tag,
        )

    def cover_image(self, item: GroupedItem) -> Optional[CoverImage]:
        url = item.get("articleImage") or item.get("articleDetailImage")
        if not url:
            for media in item.get("articlegallerymediaData", []):
                if not isinstance(media, dict):
                    continue
                if media.get("mediaType") == "Image" and media.get("mediaImageUrl"):
                    url = media["mediaImageUrl"]
                else:
                    url = media.get("mediaData")
                if url:
                    break
        if not url:
            return None
        return CoverImage(url=str(url), filename="cover.jpg")

    # ------------------------------------------------------------------
    # Field helpers
    # ------------------------------------------------------------------

    def _target(self, categories: List[str], description: Optional[str]) -> Optional[str]:
        groups = self.taxonomy.map_target_groups(categories)
        if not groups:
            hints = self.taxonomy.extract_target_hints(self.text.strip_html(description))
            groups = self.taxonomy.map_target_groups(hints)
        return self.join(groups)

    @staticmethod
    def _url(item: GroupedItem) -> Optional[str]:
        if item.get("articlelUrl"):
            return item.get("articlelUrl")
        for link in item.get("articleLinkList", []):
            if isinstance(link, dict) and link.get("URL"):
                return link["URL"]
        return None
