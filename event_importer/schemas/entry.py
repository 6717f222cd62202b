"""
Entry schemas.

EntryFields is the canonical shape produced by feed transformers and the
spreadsheet importer. StoredEntry is a row read back from the entry store.
"""

from datetime import datetime
from typing import Any, Dict, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_FIELD_LENGTH = 255

# String columns limited to MAX_FIELD_LENGTH; description is unbounded
BOUNDED_FIELDS = (
    "identifier",
    "title",
    "slug",
    "place",
    "url",
    "institution",
    "contact",
    "email",
    "theme",
    "target",
    "tags",
    "fee",
    "remarks",
    "format",
    "meta_title",
    "meta_description",
    "meta_keywords",
    "source",
)

# Columns only written by UpdateAllMatching
KEY_FIELDS = ("title", "start", "end", "slug")

# Flags owned by the entry store; UpdateMatching leaves them untouched
FLAG_FIELDS = ("all_day", "is_public", "is_internal", "show_on_timeline")

# Columns no feed supplies; feed imports never write them
FEED_UNSUPPLIED_FIELDS = ("remarks",)


def is_blank(value: Any) -> bool:
    """True for None, empty strings and whitespace-only strings."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return False


class EntryFields(BaseModel):
    """
    Field set written to the entry store for one event.

    Bounded string fields are truncated on construction and on assignment.
    """

    model_config = ConfigDict(validate_assignment=True)

    identifier: Optional[str] = None
    title: str = Field(..., min_length=1)
    slug: Optional[str] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    all_day: bool = False
    description: Optional[str] = None
    place: Optional[str] = None
    url: Optional[str] = None
    country_id: Optional[int] = None
    institution: Optional[str] = None
    contact: Optional[str] = None
    email: Optional[str] = None
    theme: Optional[str] = None
    target: Optional[str] = None
    tags: Optional[str] = None
    fee: Optional[str] = None
    remarks: Optional[str] = None
    format: Optional[str] = None
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    meta_keywords: Optional[str] = None
    is_public: bool = True
    is_internal: bool = False
    show_on_timeline: bool = False
    source: Optional[str] = None

    @field_validator(*BOUNDED_FIELDS, mode="before")
    @classmethod
    def truncate_bounded(cls, v: Any) -> Any:
        if v is None:
            return None
        if not isinstance(v, str):
            v = str(v)
        if v == "":
            return None
        return v[:MAX_FIELD_LENGTH]

    def to_record(self, exclude: Iterable[str] = ()) -> Dict[str, Any]:
        """Column/value mapping for a store write."""
        return self.model_dump(exclude=set(exclude))


class StoredEntry(BaseModel):
    """An entry row as read from the store."""

    model_config = ConfigDict(extra="ignore")

    id: int
    identifier: Optional[str] = None
    title: Optional[str] = None
    slug: Optional[str] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    all_day: bool = False
    description: Optional[str] = None
    place: Optional[str] = None
    url: Optional[str] = None
    country_id: Optional[int] = None
    institution: Optional[str] = None
    contact: Optional[str] = None
    email: Optional[str] = None
    theme: Optional[str] = None
    target: Optional[str] = None
    tags: Optional[str] = None
    fee: Optional[str] = None
    remarks: Optional[str] = None
    format: Optional[str] = None
    is_public: bool = True
    is_internal: bool = False
    source: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class CoverImage(BaseModel):
    """Remote cover image candidate for an entry."""

    url: str
    filename: str
