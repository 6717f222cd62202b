"""
Event Importer.

Fetches external event feeds and spreadsheets, normalizes them into calendar
entries and reconciles them against the entry store.
"""

__version__ = "0.1.0"
