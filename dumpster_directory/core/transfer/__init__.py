"""Bulk import, export and duplicate consolidation of businesses."""

from .csv_io import CSV_COLUMNS, BusinessRecord, parse_csv, parse_json, parse_record, read_records, render_csv
from .dedupe import DedupeReport, DuplicateGroup, consolidate_duplicates, ensure_claim_campaigns, find_duplicate_groups
from .importer import ImportReport, export_businesses, import_businesses

__all__ = [
    "CSV_COLUMNS",
    "BusinessRecord",
    "DedupeReport",
    "DuplicateGroup",
    "ImportReport",
    "consolidate_duplicates",
    "ensure_claim_campaigns",
    "export_businesses",
    "find_duplicate_groups",
    "import_businesses",
    "parse_csv",
    "parse_json",
    "parse_record",
    "read_records",
    "render_csv",
]
