"""
CSV Import/Export

Interchange format: UTF-8 with a leading byte-order mark, comma
separated, header `date,amount,currency,category,note,payment_method`.

Export always writes all six columns. Import needs only `date`,
`amount` and `category`, accepts any column order and ignores unknown
columns.

CRITICAL: Import never aborts the batch for a bad ROW. Rows that cannot
be used are skipped and counted; rows that fail while being built are
also reported as `Row N: <message>`. Only a bad HEADER or an unreadable
file fails the whole import.
"""

import csv
import io
from collections.abc import Callable, Iterator, Mapping, Sequence
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional, Union
from uuid import UUID, uuid4

import structlog

from expense_tracker.config import get_settings
from expense_tracker.models.expense import (
    MAX_NOTE_LENGTH,
    MAX_PAYMENT_METHOD_LENGTH,
    Expense,
    ImportResult,
)
from expense_tracker.services.store import CategoryManager, RecordStore
from expense_tracker.validation import sanitize_category, sanitize_text


logger = structlog.get_logger(__name__)

BOM = "\ufeff"
CSV_HEADERS = ("date", "amount", "currency", "category", "note", "payment_method")
REQUIRED_HEADERS = ("date", "amount", "category")

# Accepted on import; export always writes ISO dates
DATE_FORMATS = ("%Y-%m-%d", "%d-%m-%Y", "%d/%m/%Y", "%Y/%m/%d")


class CsvImportError(Exception):
    """The file as a whole cannot be imported (bad header, unreadable, too large)."""
    pass


class EmptyExportError(Exception):
    """There are no expenses to export."""
    pass


# =============================================================================
# EXPORT
# =============================================================================

def _format_amount(amount_cents: int) -> str:
    return f"{amount_cents // 100}.{amount_cents % 100:02d}"


def export_to_csv(expenses: Sequence[Expense]) -> str:
    """
    Serialize expenses to CSV text, BOM included.

    Raises:
        EmptyExportError: If `expenses` is empty
    """
    if not expenses:
        raise EmptyExportError("No expenses to export")

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for expense in expenses:
        writer.writerow([
            expense.paid_at.isoformat(),
            _format_amount(expense.amount_cents),
            expense.currency,
            expense.category,
            expense.note or "",
            expense.payment_method or "",
        ])
    return BOM + buffer.getvalue()


# =============================================================================
# IMPORT HELPERS
# =============================================================================

def validate_csv_headers(headers: Sequence[str]) -> list[str]:
    """
    Check normalized header names.

    Returns:
        Messages in order: the missing-required-columns error (fatal),
        then the unknown-columns warning (non-fatal). Empty if clean.
    """
    messages = []
    missing = [name for name in REQUIRED_HEADERS if name not in headers]
    if missing:
        messages.append(f"Missing required columns: {', '.join(missing)}")

    unknown = [name for name in headers if name not in CSV_HEADERS]
    if unknown:
        messages.append(f"Unknown columns will be ignored: {', '.join(unknown)}")
    return messages


def _parse_date(value: str) -> Optional[date]:
    value = value.strip()
    candidates = [value]
    if "T" in value:
        candidates.append(value.split("T", 1)[0])
    for candidate in candidates:
        for fmt in DATE_FORMATS:
            try:
                return datetime.strptime(candidate, fmt).date()
            except ValueError:
                continue
    return None


def _parse_amount_cents(value: str) -> Optional[int]:
    """Positive amount in major units to cents; None if unusable."""
    try:
        amount = Decimal(value.strip())
    except InvalidOperation:
        return None
    if not amount.is_finite() or amount <= 0:
        return None
    cents = int((amount * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))
    return cents if cents > 0 else None


def _decode(content: Union[str, bytes]) -> str:
    if isinstance(content, bytes):
        try:
            content = content.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise CsvImportError("CSV file is not valid UTF-8") from e
    return content[1:] if content.startswith(BOM) else content


def _read_table(content: Union[str, bytes]) -> tuple[list[str], Iterator[tuple[int, dict[str, str]]]]:
    """
    Split content into normalized headers and (line_number, row) pairs.

    Blank lines are ignored. Raises CsvImportError if there is no header
    or the header lacks a required column.
    """
    text = _decode(content)
    reader = csv.reader(io.StringIO(text))

    try:
        header_row = next((row for row in reader if any(cell.strip() for cell in row)), None)
    except csv.Error as e:
        raise CsvImportError(f"Unreadable CSV file: {e}") from e
    if header_row is None:
        raise CsvImportError("CSV file is empty")

    headers = [cell.strip().lower() for cell in header_row]
    messages = validate_csv_headers(headers)
    if messages and messages[0].startswith("Missing"):
        raise CsvImportError(messages[0])

    def rows() -> Iterator[tuple[int, dict[str, str]]]:
        try:
            for values in reader:
                if not any(cell.strip() for cell in values):
                    continue
                padded = values + [""] * (len(headers) - len(values))
                yield reader.line_num, {
                    header: padded[index].strip()
                    for index, header in enumerate(headers)
                }
        except csv.Error as e:
            raise CsvImportError(f"Unreadable CSV file: {e}") from e

    return headers, rows()


def _error_text(error: Exception) -> str:
    errors = getattr(error, "errors", None)
    if callable(errors):
        return "; ".join(
            f"{'.'.join(str(part) for part in item['loc'])}: {item['msg']}"
            for item in errors()
        )
    return str(error) or type(error).__name__


def _is_duplicate(
    candidate: Expense,
    existing: Sequence[Expense],
    raw_category: str,
    raw_note: str,
) -> bool:
    # Stored text may predate sanitizing, so the row matches in either form
    categories = {candidate.category, raw_category}
    notes = {candidate.note or "", raw_note}
    return any(
        expense.paid_at == candidate.paid_at
        and expense.amount_cents == candidate.amount_cents
        and expense.category in categories
        and (expense.note or "") in notes
        for expense in existing
    )


def create_expense_from_row(
    row: Mapping[str, str],
    default_currency: str,
    existing: Sequence[Expense],
    allow_duplicates: bool = False,
    now: Optional[datetime] = None,
    id_factory: Callable[[], UUID] = uuid4,
) -> Optional[Expense]:
    """
    Build an Expense from one parsed CSV row.

    Returns None when the row should be skipped: a required field is
    empty, the date or amount does not parse, or (unless
    `allow_duplicates`) an existing expense has the same date, amount,
    category and note.

    Raises:
        ValueError: If the parsed values do not form a valid Expense
            (pydantic's ValidationError is a ValueError)
    """
    raw_date = row.get("date", "")
    raw_amount = row.get("amount", "")
    raw_category = row.get("category", "")
    if not raw_date or not raw_amount or not raw_category:
        return None

    paid_at = _parse_date(raw_date)
    if paid_at is None:
        return None
    amount_cents = _parse_amount_cents(raw_amount)
    if amount_cents is None:
        return None
    category = sanitize_category(raw_category)
    if not category:
        return None

    now = now or datetime.now(timezone.utc)
    expense = Expense(
        id=id_factory(),
        amount_cents=amount_cents,
        currency=(row.get("currency") or default_currency).upper(),
        category=category,
        note=sanitize_text(row.get("note", ""), MAX_NOTE_LENGTH) or None,
        paid_at=paid_at,
        payment_method=sanitize_text(row.get("payment_method", ""), MAX_PAYMENT_METHOD_LENGTH) or None,
        created_at=now,
        updated_at=now,
    )

    raw_note = (row.get("note") or "").strip()
    if not allow_duplicates and _is_duplicate(expense, existing, raw_category.strip(), raw_note):
        return None
    return expense


def _check_size(content: Union[str, bytes], max_bytes: Optional[int]) -> None:
    max_bytes = max_bytes or get_settings().app.max_import_bytes
    size = len(content) if isinstance(content, bytes) else len(content.encode("utf-8"))
    if size > max_bytes:
        raise CsvImportError(f"CSV file is too large ({size} bytes, limit {max_bytes})")


# =============================================================================
# IMPORT
# =============================================================================

def parse_csv(content: Union[str, bytes]) -> ImportResult:
    """
    Dry run: count how many rows would import, touching no storage.

    Duplicates are not detected here since no existing data is read.

    Raises:
        CsvImportError: Missing required columns or unreadable content
    """
    headers, rows = _read_table(content)
    result = ImportResult(warnings=validate_csv_headers(headers))

    default_currency = get_settings().currency.base_currency
    for line_number, row in rows:
        try:
            expense = create_expense_from_row(
                row,
                default_currency=default_currency,
                existing=[],
                allow_duplicates=True,
            )
        except ValueError as e:
            result.skipped += 1
            result.errors.append(f"Row {line_number}: {_error_text(e)}")
            continue
        if expense is None:
            result.skipped += 1
        else:
            result.imported += 1

    return result


def import_csv(
    content: Union[str, bytes],
    store: RecordStore,
    allow_duplicates: bool = False,
    categories: Optional[CategoryManager] = None,
    max_bytes: Optional[int] = None,
) -> ImportResult:
    """
    Import expenses from CSV into the store.

    Accepted rows are appended with ONE expense write. Category names not
    yet known (case-insensitively) are then appended to the category
    list with palette colors.

    Raises:
        CsvImportError: Missing required columns, unreadable or oversized content
        InvalidRecordError / StorageCapacityError / RateLimitExceededError:
            From the final save; nothing is imported in that case
    """
    _check_size(content, max_bytes)
    headers, rows = _read_table(content)
    result = ImportResult(warnings=validate_csv_headers(headers))

    existing = store.get_expenses()
    now = store.now()
    accepted: list[Expense] = []

    for line_number, row in rows:
        try:
            expense = create_expense_from_row(
                row,
                default_currency=store.base_currency,
                existing=existing,
                allow_duplicates=allow_duplicates,
                now=now,
                id_factory=store.new_id,
            )
        except ValueError as e:
            result.skipped += 1
            result.errors.append(f"Row {line_number}: {_error_text(e)}")
            continue

        if expense is None:
            result.skipped += 1
        else:
            accepted.append(expense)

    if accepted:
        store.save_expenses(existing + accepted)
        result.imported = len(accepted)

        names = list(dict.fromkeys(expense.category for expense in accepted))
        manager = categories or CategoryManager(store)
        result.created_categories = manager.ensure_categories(names)

    logger.info(
        "csv_import_finished",
        imported=result.imported,
        skipped=result.skipped,
        errors=len(result.errors),
    )
    store.audit.log_csv_imported(
        result.imported,
        result.skipped,
        len(result.created_categories),
    )
    return result
