"""
Text Normalizer.

HTML and escape-sequence cleanup for feed text fields. Feeds deliver event
bodies as HTML, plain text, or JSON that was encoded more than once, and
the entry store expects sanitized HTML for descriptions and plain text
everywhere else.
"""

import html
import re
from typing import Optional

from bs4 import BeautifulSoup, Comment

ALLOWED_TAGS = frozenset(
    {
        "p", "br", "strong", "b", "em", "i", "u", "ul", "ol", "li", "a",
        "h1", "h2", "h3", "h4", "h5", "h6", "span", "div", "blockquote",
    }
)
ALLOWED_ATTRIBUTES = {"a": {"href", "title", "target"}}
DROPPED_TAGS = ("script", "style")

_UNICODE_ESCAPE = re.compile(r"\\+u([0-9a-fA-F]{4})")
_BR = re.compile(r"<br\s*/?>", re.IGNORECASE)
_BR_RUN = re.compile(r"(<br\s*/?>\s*){3,}", re.IGNORECASE)
_EMPTY_PARAGRAPH = re.compile(r"<p>\s*</p>", re.IGNORECASE)
_PARAGRAPH_END = re.compile(r"</p>", re.IGNORECASE)
_NEWLINE_RUN = re.compile(r"\n{3,}")
_WHITESPACE = re.compile(r"\s+")
_LINE_BREAK = re.compile(r"(\r\n|\n\r|\n|\r)")


class TextNormalizer:
    """
    Stateless HTML/unicode cleanup utilities.

    Every method returns None for empty input and for output that is empty
    after cleanup, so callers can chain fallbacks with `or`.
    """

    @staticmethod
    def clean_unicode_escapes(text: Optional[str]) -> Optional[str]:
        """
        Decode literal \\uXXXX sequences left behind by nested JSON encoding.

        Handles singly and doubly escaped forms (``\\u003C`` and
        ``\\\\u003C``).
        """
        if not text:
            return None
        return _UNICODE_ESCAPE.sub(lambda m: chr(int(m.group(1), 16)), text)

    @staticmethod
    def clean_html(value: Optional[str]) -> Optional[str]:
        """
        Sanitize HTML down to a small allow-list of structural/inline tags.

        Entities are decoded first, unknown tags are unwrapped (their text is
        kept), scripts, styles and comments are dropped, runs of three or more
        line breaks collapse to two, empty paragraphs are removed, and all
        whitespace collapses to single spaces.
        """
        if not value:
            return None

        soup = BeautifulSoup(html.unescape(value), "html.parser")

        for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
            comment.extract()
        for tag in soup.find_all(DROPPED_TAGS):
            tag.decompose()

        for tag in soup.find_all(True):
            if tag.name not in ALLOWED_TAGS:
                tag.unwrap()
                continue
            allowed = ALLOWED_ATTRIBUTES.get(tag.name, set())
            tag.attrs = {k: v for k, v in tag.attrs.items() if k in allowed}

        cleaned = str(soup)
        cleaned = _BR_RUN.sub("<br><br>", cleaned)
        cleaned = _EMPTY_PARAGRAPH.sub("", cleaned)
        cleaned = cleaned.replace("\xa0", " ")
        cleaned = _WHITESPACE.sub(" ", cleaned)
        cleaned = _BR.sub("<br>", cleaned)

        return cleaned.strip() or None

    @staticmethod
    def strip_html(value: Optional[str], collapse_whitespace: bool = False) -> Optional[str]:
        """
        Reduce HTML to plain text.

        Line breaks and paragraph ends become newlines before tags are
        removed; runs of three or more newlines collapse to two.

        Args:
            value: HTML fragment
            collapse_whitespace: Also collapse every whitespace run (including
                non-breaking spaces) to a single space

        Returns:
            Plain text or None
        """
        if not value:
            return None

        text = _BR.sub("\n", value)
        text = _PARAGRAPH_END.sub("\n\n", text)
        text = BeautifulSoup(text, "html.parser").get_text()
        text = _NEWLINE_RUN.sub("\n\n", text)
        if collapse_whitespace:
            text = re.sub(r"[\s\xa0]+", " ", text)

        return text.strip() or None

    @staticmethod
    def decode_html_field(value: Optional[str]) -> Optional[str]:
        """Decode HTML entities that may have been encoded twice."""
        if not value:
            return None
        value = html.unescape(html.unescape(value))
        return value.strip() or None

    @staticmethod
    def nl2br(text: Optional[str]) -> Optional[str]:
        """Insert <br /> before every line break, keeping the break."""
        if not text:
            return None
        return _LINE_BREAK.sub(lambda m: "<br />" + m.group(1), text)

    @staticmethod
    def join_non_empty(parts, separator: str = ", ") -> Optional[str]:
        """Join the non-blank parts, or None when nothing is left."""
        kept = [str(p).strip() for p in parts if p is not None and str(p).strip()]
        return separator.join(kept) or None
