"""
Unit tests for the split.hr transformer.

Tests for article mapping, labelled contact parsing and cover image choice.
"""

from datetime import datetime

import pytest

from event_importer.ingestion.grouping import ItemGrouper
from event_importer.ingestion.normalization.country import CountryResolver
from event_importer.ingestion.transformers.split_hr import (
    SplitTransformer,
    custom_fields,
    parse_contact_text,
)


@pytest.fixture
def transformer():
    return SplitTransformer(country_resolver=CountryResolver())


@pytest.fixture
def transform(transformer):
    def _transform(*items):
        grouped = ItemGrouper().group(list(items), transformer.id_field)
        identifier, item = next(iter(grouped.items()))
        return transformer.transform(item, transformer.build_identifier(identifier))

    return _transform


# =============================================================================
# TEST DATA
# =============================================================================

ARTICLE_BODY = (
    "<p>Hands-on experiments for children.</p>"
    "<p>Location: Riva promenade</p>"
    "<p>Contact person: Ana Anić, ana@split.example.hr</p>"
    "<p>Implementing institution: Institute of Oceanography; Format: Workshop</p>"
)


# =============================================================================
# TEST CLASSES
# =============================================================================


class TestSplitTransform:
    """Tests for SplitTransformer.transform."""

    def test_basic_fields(self, transform, create_split_item):
        """Should map article fields onto the entry."""
        fields = transform(create_split_item())

        assert fields.identifier == "split-101"
        assert fields.title == "Science Picnic"
        assert fields.start == datetime(2024, 9, 20, 8, 0)
        assert fields.end == datetime(2024, 9, 20, 14, 0)
        assert fields.all_day is False
        assert fields.description == "<p>Hands-on experiments on the Riva.</p>"
        assert fields.meta_description == "Experiments for all ages"
        assert fields.country_id == 58
        assert fields.source == "split.hr"
        assert fields.fee is None

    def test_whole_day_flag(self, transform, create_split_item):
        item = create_split_item()
        item["eventInfo"]["wholeDay"] = True
        assert transform(item).all_day is True

    def test_description_falls_back_to_summary(self, transform, create_split_item):
        fields = transform(create_split_item(articleText=None))
        assert fields.description == "<p>Experiments for all ages</p>"

    def test_double_encoded_body(self, transform, create_split_item):
        """Should decode entities encoded twice before sanitizing."""
        fields = transform(create_split_item(articleText="&amp;lt;p&amp;gt;Sea&amp;lt;/p&amp;gt;"))
        assert fields.description == "<p>Sea</p>"

    def test_contact_details_from_body(self, transform, create_split_item):
        """Should pull labelled contact details out of the body text."""
        fields = transform(create_split_item(articleText=ARTICLE_BODY))

        assert fields.place == "Riva promenade"
        assert fields.contact == "Ana Anić"
        assert fields.email == "ana@split.example.hr"
        assert fields.institution == "Institute of Oceanography"
        assert fields.format == "Workshop"

    def test_author_is_contact_fallback(self, transform, create_split_item):
        fields = transform(create_split_item(author="Press Office"))
        assert fields.contact == "Press Office"

    def test_custom_fields_preferred(self, transform, create_split_item):
        """Should use Theme/Target groups custom fields verbatim."""
        item = create_split_item(
            articleCategories=[{"name": "Climate"}],
            customFieldList=[
                {"label": "Theme", "value": "Sea and water"},
                {"label": "Target groups", "value": "Children (0-16 y)"},
            ],
        )
        fields = transform(item)
        assert fields.theme == "Sea and water"
        assert fields.target == "Children (0-16 y)"
        assert fields.tags == "Climate"

    def test_taxonomy_from_categories(self, transform, create_split_item):
        item = create_split_item(articleCategories=[{"name": "Climate"}, {"name": "Students"}])
        fields = transform(item)
        assert fields.theme == "Sustainability, Talents"
        assert fields.target == "Young people (16-26 y)"

    def test_target_hints_from_description(self, transform, create_split_item):
        """Should fall back to audience hints in the text when categories say nothing."""
        fields = transform(create_split_item(articleText="<p>Fun for kids and seniors.</p>"))
        assert fields.target == "Children (0-16 y), Elderly people (+65y)"

    def test_url_order(self, transform, create_split_item):
        links = [{"URL": "https://link.example.hr"}]
        assert transform(
            create_split_item(articlelUrl="https://split.example.hr/a", articleLinkList=links)
        ).url == "https://split.example.hr/a"
        assert transform(create_split_item(articleLinkList=links)).url == "https://link.example.hr"


class TestSplitCoverImage:
    """Tests for SplitTransformer.cover_image."""

    def _cover(self, transformer, item):
        grouped = ItemGrouper().group([item], "articleId")
        return transformer.cover_image(grouped["101"])

    def test_article_image(self, transformer, create_split_item):
        image = self._cover(
            transformer,
            create_split_item(
                articleImage="https://img.example.hr/a.jpg",
                articleDetailImage="https://img.example.hr/b.jpg",
            ),
        )
        assert image.url == "https://img.example.hr/a.jpg"
        assert image.filename == "cover.jpg"

    def test_gallery_fallback(self, transformer, create_split_item):
        gallery = [{"mediaType": "Image", "mediaImageUrl": "https://img.example.hr/g.jpg"}]
        image = self._cover(transformer, create_split_item(articlegallerymediaData=gallery))
        assert image.url == "https://img.example.hr/g.jpg"

    def test_no_image(self, transformer, create_split_item):
        assert self._cover(transformer, create_split_item()) is None


class TestContactParsing:
    """Tests for parse_contact_text and custom_fields."""

    def test_values_end_at_next_label(self):
        """Labels on a single line should not bleed into each other."""
        text = "Location: Old Town Contact person: Ivo Ivić Format: Lecture"
        parsed = parse_contact_text(text)
        assert parsed["place"] == "Old Town"
        assert parsed["contact"] == "Ivo Ivić"
        assert parsed["format"] == "Lecture"

    def test_email_anywhere(self):
        parsed = parse_contact_text("Write to info@example.hr.")
        assert parsed["email"] == "info@example.hr"
        assert parsed["contact"] is None

    def test_empty_text(self):
        assert parse_contact_text(None)["place"] is None

    def test_custom_fields_skip_empty(self):
        fields = custom_fields(
            [{"label": "Theme", "value": " Europe "}, {"label": "Target groups", "value": ""}, "x"]
        )
        assert fields == {"Theme": "Europe"}


class TestIdentifiers:
    def test_prefix_round_trip(self, transformer):
        assert transformer.build_identifier("101") == "split-101"
        assert transformer.external_id_from_identifier("split-101") == "101"
        assert transformer.external_id_from_identifier("E1") is None
