"""CSV interchange codec."""

from expense_tracker.codec.csv_codec import (
    BOM,
    CSV_HEADERS,
    REQUIRED_HEADERS,
    CsvImportError,
    EmptyExportError,
    create_expense_from_row,
    export_to_csv,
    import_csv,
    parse_csv,
    validate_csv_headers,
)

__all__ = [
    "BOM",
    "CSV_HEADERS",
    "REQUIRED_HEADERS",
    "CsvImportError",
    "EmptyExportError",
    "create_expense_from_row",
    "export_to_csv",
    "import_csv",
    "parse_csv",
    "validate_csv_headers",
]
