"""Tests for CSV export and import."""

import pytest
from datetime import date

from expense_tracker.codec import (
    BOM,
    CsvImportError,
    EmptyExportError,
    create_expense_from_row,
    export_to_csv,
    import_csv,
    parse_csv,
    validate_csv_headers,
)
from expense_tracker.models.audit import AuditEventType


class TestExport:
    """Tests for export_to_csv."""

    def test_export_layout(self, make_expense):
        """Test BOM, header, ISO dates, two-decimal amounts and blank optionals."""
        text = export_to_csv([make_expense(amount_cents=1599), make_expense(amount_cents=5)])
        assert text.startswith(BOM)
        assert text[1:].split("\n") == [
            "date,amount,currency,category,note,payment_method",
            "2024-03-15,15.99,EUR,Food,,",
            "2024-03-15,0.05,EUR,Food,,",
            "",
        ]

    def test_export_quotes_embedded_separators(self, make_expense):
        """Test that commas and quotes in text are escaped."""
        text = export_to_csv([make_expense(note='lunch, with "Bob"', payment_method="Cash")])
        assert '"lunch, with ""Bob""",Cash' in text

    def test_empty_export_raises(self):
        """Test that an empty export is refused."""
        with pytest.raises(EmptyExportError, match="No expenses to export"):
            export_to_csv([])


class TestHeaders:
    """Tests for validate_csv_headers."""

    def test_clean_headers(self):
        """Test the full header and the required subset."""
        assert validate_csv_headers(["date", "amount", "currency", "category", "note", "payment_method"]) == []
        assert validate_csv_headers(["category", "amount", "date"]) == []

    def test_missing_then_unknown(self):
        """Test message order and content."""
        assert validate_csv_headers(["date", "tags", "memo"]) == [
            "Missing required columns: amount, category",
            "Unknown columns will be ignored: tags, memo",
        ]


class TestCreateExpenseFromRow:
    """Tests for create_expense_from_row."""

    def _row(self, **overrides):
        row = {"date": "2024-01-05", "amount": "12.50", "category": "Travel"}
        row.update(overrides)
        return row

    def test_minimal_row(self):
        """Test defaults for absent optional columns."""
        expense = create_expense_from_row(self._row(), "EUR", existing=[])
        assert expense.amount_cents == 1250
        assert expense.currency == "EUR"
        assert expense.note is None
        assert expense.paid_at == date(2024, 1, 5)

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("05-01-2024", date(2024, 1, 5)),
            ("05/01/2024", date(2024, 1, 5)),
            ("2024/01/05", date(2024, 1, 5)),
            ("2024-01-05T18:30:00Z", date(2024, 1, 5)),
        ],
    )
    def test_date_formats(self, raw, expected):
        """Test accepted date spellings."""
        assert create_expense_from_row(self._row(date=raw), "EUR", existing=[]).paid_at == expected

    def test_amount_rounding(self):
        """Test half-up rounding to cents."""
        assert create_expense_from_row(self._row(amount="0.005"), "EUR", existing=[]).amount_cents == 1
        assert create_expense_from_row(self._row(amount="12.345"), "EUR", existing=[]).amount_cents == 1235

    @pytest.mark.parametrize(
        "overrides",
        [
            {"date": ""},
            {"amount": ""},
            {"category": ""},
            {"date": "yesterday"},
            {"amount": "abc"},
            {"amount": "-5"},
            {"amount": "0"},
            {"category": "!!!"},
        ],
    )
    def test_unusable_rows_are_skipped(self, overrides):
        """Test that unusable rows yield None rather than raising."""
        assert create_expense_from_row(self._row(**overrides), "EUR", existing=[]) is None

    def test_invalid_values_raise(self):
        """Test that values failing the schema raise ValueError."""
        with pytest.raises(ValueError):
            create_expense_from_row(self._row(currency="EURO"), "EUR", existing=[])
        with pytest.raises(ValueError):
            create_expense_from_row(self._row(amount="1000000.01"), "EUR", existing=[])

    def test_currency_is_uppercased(self):
        """Test that a lowercase code is accepted."""
        assert create_expense_from_row(self._row(currency="usd"), "EUR", existing=[]).currency == "USD"

    def test_duplicate_detection(self, make_expense):
        """Test the (date, amount, category, note) duplicate key."""
        existing = [make_expense(amount_cents=1250, category="Travel", paid_at=date(2024, 1, 5))]
        assert create_expense_from_row(self._row(), "EUR", existing=existing) is None
        assert create_expense_from_row(
            self._row(), "EUR", existing=existing, allow_duplicates=True
        ) is not None
        assert create_expense_from_row(self._row(note="other"), "EUR", existing=existing) is not None


class TestImport:
    """Tests for import_csv against a store."""

    def test_import_into_empty_store(self, store, categories):
        """Test a minimal file: one expense and one back-filled category."""
        result = import_csv("date,amount,category\n2024-01-05,12.50,Travel\n", store)

        assert result.imported == 1
        assert result.skipped == 0
        assert result.errors == []

        expenses = store.get_expenses()
        assert len(expenses) == 1
        assert expenses[0].amount_cents == 1250
        assert expenses[0].currency == "EUR"
        assert expenses[0].paid_at == date(2024, 1, 5)

        assert [cat.name for cat in result.created_categories] == ["Travel"]
        assert result.created_categories[0].color == "#ef4444"
        assert categories.list_categories()[-1].name == "Travel"

    def test_reimport_of_export_is_all_duplicates(self, store, make_expense):
        """Test that importing an export of the same data adds nothing."""
        store.save_expenses([
            make_expense(),
            make_expense(amount_cents=250, category="Bills", note="water, cold"),
        ])
        exported = export_to_csv(store.get_expenses())

        result = import_csv(exported, store)

        assert result.imported == 0
        assert result.skipped == 2
        assert result.errors == []
        assert len(store.get_expenses()) == 2

    def test_reimport_matches_unsanitized_stored_text(self, store, make_expense):
        """Test that stored text with characters the importer drops still matches."""
        store.save_expenses([
            make_expense(note="Tom & Jerry"),
            make_expense(amount_cents=450, category="Cafe+Bar"),
        ])
        exported = export_to_csv(store.get_expenses())

        result = import_csv(exported, store)

        assert result.imported == 0
        assert result.skipped == 2
        assert result.created_categories == []
        assert len(store.get_expenses()) == 2
        assert "CafeBar" not in [cat.name for cat in store.get_preferences().categories]

    def test_reimport_with_duplicates_allowed(self, store, make_expense):
        """Test that the duplicate check can be disabled."""
        store.save_expenses([make_expense()])
        result = import_csv(export_to_csv(store.get_expenses()), store, allow_duplicates=True)
        assert result.imported == 1
        assert len(store.get_expenses()) == 2

    def test_row_errors_use_file_line_numbers(self, store):
        """Test that a bad row is reported and the batch continues."""
        content = (
            "date,amount,currency,category\n"
            "2024-01-05,1.00,EUR,Food\n"
            "2024-01-06,2.00,EURO,Food\n"
            "2024-01-07,,EUR,Food\n"
            "2024-01-08,3.00,usd,Food\n"
        )
        result = import_csv(content, store)

        assert result.imported == 2
        assert result.skipped == 2
        assert len(result.errors) == 1
        assert result.errors[0].startswith("Row 3: currency")
        assert [expense.currency for expense in store.get_expenses()] == ["EUR", "USD"]

    def test_header_variants(self, store):
        """Test case-insensitive headers, any order and ignored columns."""
        content = " Category ,AMOUNT,Date,Tags\nRent,900,2024-02-01,home\n"
        result = import_csv(content, store)
        assert result.imported == 1
        assert result.warnings == ["Unknown columns will be ignored: tags"]
        assert result.created_categories[0].name == "Rent"

    def test_known_category_is_not_recreated(self, store):
        """Test case-insensitive category back-fill."""
        result = import_csv("date,amount,category\n2024-01-05,1,food\n", store)
        assert result.imported == 1
        assert result.created_categories == []

    def test_blank_lines_are_ignored(self, store):
        """Test that empty lines are neither rows nor errors."""
        result = import_csv("date,amount,category\n\n2024-01-05,1,Food\n\n", store)
        assert result.imported == 1
        assert result.skipped == 0

    def test_bytes_with_bom(self, store):
        """Test raw bytes as written by the exporter."""
        content = (BOM + "date,amount,category\n2024-01-05,1,Food\n").encode("utf-8")
        assert import_csv(content, store).imported == 1

    def test_invalid_encoding(self, store):
        """Test that undecodable bytes fail the file."""
        with pytest.raises(CsvImportError, match="UTF-8"):
            import_csv(b"date,amount,category\n\xff\xfe,1,Food\n", store)

    def test_missing_required_column(self, store):
        """Test that a bad header fails the whole import."""
        with pytest.raises(CsvImportError, match="Missing required columns: category"):
            import_csv("date,amount\n2024-01-05,1\n", store)
        assert store.get_expenses() == []

    def test_empty_file(self, store):
        """Test content with no header."""
        with pytest.raises(CsvImportError, match="empty"):
            import_csv("\n\n", store)

    def test_size_limit(self, store):
        """Test the configurable upper bound on file size."""
        with pytest.raises(CsvImportError, match="too large"):
            import_csv("date,amount,category\n2024-01-05,1,Food\n", store, max_bytes=10)

    def test_import_audited(self, store, audit_logger):
        """Test the audit trail."""
        import_csv("date,amount,category\n2024-01-05,1,Food\n", store)
        assert audit_logger.recent_events[-1].event_type == AuditEventType.CSV_IMPORTED


class TestParseCsv:
    """Tests for the parse_csv dry run."""

    def test_counts_without_writing(self, store, storage):
        """Test that the dry run reports counts and touches no storage."""
        content = (
            "date,amount,currency,category\n"
            "2024-01-05,1.00,EUR,Food\n"
            "bad-date,1.00,EUR,Food\n"
            "2024-01-06,1.00,EURO,Food\n"
        )
        result = parse_csv(content)
        assert result.imported == 1
        assert result.skipped == 2
        assert result.errors[0].startswith("Row 4:")
        assert storage.keys() == []

    def test_dry_run_header_errors(self):
        """Test that header problems surface the same way as on import."""
        with pytest.raises(CsvImportError):
            parse_csv("amount,category\n1,Food\n")
