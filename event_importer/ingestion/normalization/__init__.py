"""
Normalization helpers shared by all feed transformers.
"""

from event_importer.ingestion.normalization.taxonomy_mapper import TaxonomyMapper
from event_importer.ingestion.normalization.text import TextNormalizer

__all__ = ["TaxonomyMapper", "TextNormalizer"]
