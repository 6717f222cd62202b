"""
Ingestion layer for the event importer.

Key Components:
- FeedClient: fetches a remote JSON feed into raw items
- ItemGrouper: merges multi-occurrence items into one date range
- ItemTransformer: maps grouped items onto entry fields (one per source)
- ImportOrchestrator: runs import, dry-run, populate-missing and update modes
- SpreadsheetImporter: imports the Excel upload format
"""
