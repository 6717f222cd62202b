"""
Feed Adapter.

Fetches a JSON event feed over HTTP and returns its item list. Feeds come
either wrapped in an envelope ({"items": [...]}) or as a bare array.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

import requests

from event_importer.ingestion.adapters.base_adapter import (
    AdapterConfig,
    BaseSourceAdapter,
    FetchResult,
)
from event_importer.ingestion.errors import FetchError, ParseError

logger = logging.getLogger(__name__)


@dataclass
class FeedAdapterConfig(AdapterConfig):
    """
    Configuration for JSON feed adapters.
    """

    # Envelope key holding the item list; None for a bare JSON array
    items_key: Optional[str] = None


class FeedClient(BaseSourceAdapter):
    """
    Adapter for JSON event feeds.

    One blocking GET per fetch, no retries: a failed fetch ends the run.
    """

    def __init__(
        self,
        config: FeedAdapterConfig,
        session: Optional[requests.Session] = None,
    ):
        self._session = session
        super().__init__(config)

    @property
    def feed_config(self) -> FeedAdapterConfig:
        """Get typed config."""
        return self.config

    def _validate_config(self) -> None:
        if self.feed_config.request_timeout <= 0:
            raise ValueError("Feed adapter requires a positive request_timeout")

    def _get_session(self) -> requests.Session:
        """Get or create HTTP session."""
        if self._session is None:
            self._session = requests.Session()
            self._session.headers.update({
                "Accept": "application/json",
                **self.feed_config.headers,
            })
        return self._session

    def fetch(self, url: str) -> FetchResult:
        """
        Fetch and parse the feed.

        Args:
            url: Feed URL

        Returns:
            FetchResult with the raw item list

        Raises:
            FetchError: On transport errors or a non-2xx response
            ParseError: On invalid JSON or a missing item list
        """
        fetch_started = datetime.now()
        logger.info(f"Fetching feed from {url}")

        response = self._make_request(url)
        items = self._parse_response(url, response)

        logger.info(f"Fetched {len(items)} items from {url}")
        return FetchResult(
            url=url,
            raw_data=items,
            status_code=response.status_code,
            fetch_started_at=fetch_started,
            fetch_ended_at=datetime.now(),
        )

    def _make_request(self, url: str) -> requests.Response:
        try:
            response = self._get_session().get(
                url,
                timeout=self.feed_config.request_timeout,
                headers={"Accept": "application/json"},
            )
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Feed request failed for {url}: {e}")
            raise FetchError(url, str(e)) from e
        return response

    def _parse_response(self, url: str, response: requests.Response) -> List[Dict[str, Any]]:
        try:
            payload = response.json()
        except ValueError as e:
            raise ParseError(f"Invalid JSON from {url}: {e}") from e

        items_key = self.feed_config.items_key
        if items_key:
            if not isinstance(payload, dict) or not isinstance(payload.get(items_key), list):
                raise ParseError(f"Response from {url} has no '{items_key}' list")
            return payload[items_key]

        if not isinstance(payload, list):
            raise ParseError(f"Response from {url} is not a JSON array")
        return payload

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None
