"""
Orchestrator Factory.

Wires an ImportOrchestrator for a configured source: feed config from
sources.yaml, a psycopg2-backed store, the local blob store and the
source's registered transformer.

Usage:
    from event_importer.ingestion.factory import OrchestratorFactory

    factory = OrchestratorFactory()
    with factory.connect() as conn:
        orchestrator = factory.create_orchestrator("destination_one", conn)
        result = orchestrator.run(RunMode.IMPORT)
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from event_importer.configs.config import Config
from event_importer.configs.settings import Settings, get_settings
from event_importer.ingestion.adapters.feed_adapter import FeedAdapterConfig, FeedClient
from event_importer.ingestion.errors import ConfigurationError
from event_importer.ingestion.media import CoverImageService, LocalBlobStore
from event_importer.ingestion.normalization.country import CountryResolver
from event_importer.ingestion.orchestrator import ImportOrchestrator
from event_importer.ingestion.persist import (
    PostgresCategoryLinker,
    PostgresEntryStore,
    get_connection,
)
from event_importer.ingestion.spreadsheet import SpreadsheetImporter
from event_importer.ingestion.transformers import TRANSFORMER_REGISTRY

logger = logging.getLogger(__name__)


class OrchestratorFactory:
    """
    Builds importers from settings and sources.yaml.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        config: Optional[Config] = None,
    ):
        self.settings = settings or get_settings()
        self.config = config or Config(self.settings.CONFIG_PATH, settings=self.settings)

    @contextmanager
    def connect(self) -> Iterator:
        """Open a database connection for the duration of a run."""
        conn = get_connection(self.settings)
        try:
            yield conn
        finally:
            conn.close()

    def list_sources(self):
        return sorted(TRANSFORMER_REGISTRY)

    def create_orchestrator(self, source_name: str, db_connection) -> ImportOrchestrator:
        """
        Create the orchestrator for a source.

        Args:
            source_name: Registered source name (e.g. "destination_one")
            db_connection: Open psycopg2 connection

        Raises:
            ConfigurationError: If the source is unknown
        """
        transformer_cls = TRANSFORMER_REGISTRY.get(source_name)
        if transformer_cls is None:
            raise ConfigurationError(
                f"Unknown source '{source_name}'. Available: {', '.join(self.list_sources())}"
            )

        feed_config = self.config.get_feed_config(source_name)
        store = PostgresEntryStore(db_connection)
        transformer = transformer_cls(country_resolver=CountryResolver(store.find_country_id))
        feed_client = FeedClient(
            FeedAdapterConfig(
                source_id=source_name,
                request_timeout=self.settings.FEED_TIMEOUT_SECONDS,
                items_key=transformer.items_key,
            )
        )
        images = CoverImageService(
            LocalBlobStore(self.settings.BLOB_ROOT),
            timeout=self.settings.IMAGE_TIMEOUT_SECONDS,
        )

        logger.debug(f"Created orchestrator for {source_name}")
        return ImportOrchestrator(
            feed_config=feed_config,
            transformer=transformer,
            store=store,
            feed_client=feed_client,
            images=images,
            categories=PostgresCategoryLinker(db_connection),
        )

    def create_spreadsheet_importer(self, db_connection) -> SpreadsheetImporter:
        return SpreadsheetImporter(
            store=PostgresEntryStore(db_connection),
            categories=PostgresCategoryLinker(db_connection),
        )
