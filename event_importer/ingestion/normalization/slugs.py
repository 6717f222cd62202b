"""Slug generation for feed and spreadsheet entries."""

import hashlib
import re
import unicodedata
from typing import Callable

MAX_SLUG_BASE = 200


def slugify(text: str) -> str:
    """Lowercase ASCII slug: accents folded, other characters collapsed to '-'."""
    text = unicodedata.normalize("NFKD", text or "").encode("ascii", "ignore").decode("ascii")
    text = re.sub(r"[^a-z0-9]+", "-", text.lower())
    return text.strip("-")


def feed_slug(title: str, identifier: str) -> str:
    """
    Stable slug for a feed entry.

    The identifier hash suffix keeps slugs unique across entries with the
    same title while staying identical across re-imports.
    """
    base = slugify(title)[:MAX_SLUG_BASE]
    digest = hashlib.md5(identifier.encode("utf-8")).hexdigest()[:8]
    return f"{base}-{digest}"


def unique_slug(title: str, exists: Callable[[str], bool]) -> str:
    """Slug with an incrementing numeric suffix until `exists` says it is free."""
    base = slugify(title)[:MAX_SLUG_BASE] or "entry"
    slug = base
    counter = 1
    while exists(slug):
        slug = f"{base}-{counter}"
        counter += 1
    return slug
