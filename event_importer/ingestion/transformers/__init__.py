"""
Per-source item transformers.

Importing this package registers every built-in transformer.
"""

from event_importer.ingestion.transformers.base import (
    TRANSFORMER_REGISTRY,
    ItemTransformer,
    register_transformer,
)
from event_importer.ingestion.transformers.destination_one import DestinationOneTransformer
from event_importer.ingestion.transformers.split_hr import SplitTransformer

__all__ = [
    "TRANSFORMER_REGISTRY",
    "ItemTransformer",
    "register_transformer",
    "DestinationOneTransformer",
    "SplitTransformer",
]
