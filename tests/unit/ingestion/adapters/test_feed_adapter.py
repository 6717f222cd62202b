"""
Unit tests for the JSON feed adapter.

Tests for FeedClient envelope handling and error translation.
"""

from unittest.mock import MagicMock

import pytest
import requests

from event_importer.ingestion.adapters import FeedAdapterConfig, FeedClient
from event_importer.ingestion.errors import FetchError, ParseError

FEED_URL = "https://feeds.example.com/events.json"


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def make_client(session):
    """Return a function that creates a FeedClient with a canned response."""

    def _make(payload=None, items_key="items", **config_kwargs):
        session.get.return_value.json.return_value = payload
        session.get.return_value.status_code = 200
        config = FeedAdapterConfig(source_id="test_feed", items_key=items_key, **config_kwargs)
        return FeedClient(config, session=session)

    return _make


# =============================================================================
# TEST CLASSES
# =============================================================================


class TestFeedClientFetch:
    """Tests for FeedClient.fetch."""

    def test_envelope(self, make_client, session):
        client = make_client({"items": [{"global_id": "E1"}, {"global_id": "E2"}]})

        result = client.fetch(FEED_URL)

        assert result.total_fetched == 2
        assert result.url == FEED_URL
        assert result.status_code == 200
        assert session.get.call_args.kwargs["timeout"] == 60

    def test_bare_array(self, make_client):
        client = make_client([{"articleId": 1}], items_key=None)
        assert client.fetch(FEED_URL).raw_data == [{"articleId": 1}]

    def test_custom_timeout(self, make_client, session):
        make_client({"items": []}, request_timeout=5).fetch(FEED_URL)
        assert session.get.call_args.kwargs["timeout"] == 5

    def test_missing_envelope_key(self, make_client):
        with pytest.raises(ParseError):
            make_client({"data": []}).fetch(FEED_URL)

    def test_array_expected(self, make_client):
        with pytest.raises(ParseError):
            make_client({"items": []}, items_key=None).fetch(FEED_URL)

    def test_invalid_json(self, make_client, session):
        client = make_client()
        session.get.return_value.json.side_effect = ValueError("Expecting value")
        with pytest.raises(ParseError):
            client.fetch(FEED_URL)

    def test_transport_error(self, make_client, session):
        client = make_client()
        session.get.side_effect = requests.ConnectionError("refused")

        with pytest.raises(FetchError) as exc_info:
            client.fetch(FEED_URL)
        assert exc_info.value.url == FEED_URL

    def test_http_error_status(self, make_client, session):
        client = make_client()
        session.get.return_value.raise_for_status.side_effect = requests.HTTPError("500")
        with pytest.raises(FetchError):
            client.fetch(FEED_URL)


class TestFeedClientConfig:
    """Tests for configuration and lifecycle."""

    def test_rejects_non_positive_timeout(self):
        with pytest.raises(ValueError):
            FeedClient(FeedAdapterConfig(source_id="x", request_timeout=0))

    def test_context_manager_closes_session(self, make_client, session):
        with make_client({"items": []}) as client:
            client.fetch(FEED_URL)
        session.close.assert_called_once()
        assert client.source_id == "test_feed"
