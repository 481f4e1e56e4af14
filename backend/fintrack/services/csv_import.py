"""
CSV transaction import pipeline.

1. Parse the CSV into headers and rows
2. Resolve a header -> field mapping (caller-supplied, or suggested by the LLM)
3. Require date, description and amount to be mapped
4. Validate and write each row on its own, collecting row-indexed errors
5. Stamp the account's last-imported time if anything was written

Every data row ends up either imported or with exactly one error message.
"""

import logging
import math
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from fintrack.config import settings
from fintrack.database.db_service import DatabaseService
from fintrack.parsers.csv_parser import CsvTransactionParser
from fintrack.services.categories import UNCATEGORIZED
from fintrack.services.date_parsing import parse_transaction_date
from fintrack.services.llm_classifier import (
    ClassificationError,
    LLMClassificationService,
    TRANSACTION_FIELDS,
)

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("date", "description", "amount")

_AMOUNT_JUNK = re.compile(r"[^0-9.\-]")


class ColumnMappingError(ValueError):
    """The column mapping does not cover every required transaction field."""


@dataclass
class ImportResult:
    imported_count: int = 0
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    # (transaction id, category label as it appeared in the file)
    imported: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return len(self.errors)


def resolve_column_map(headers: List[str], mappings: Iterable[Tuple[str, str]]) -> Dict[str, str]:
    """
    Reconcile proposed (header, field) pairs against the real headers.

    Pairs naming a header that is not in the file are dropped, unknown target
    fields count as unmapped, and headers without a pair default to unmapped ("").
    """
    column_map = {header: "" for header in headers}
    for header, target in mappings:
        header = (header or "").strip()
        if header not in column_map:
            continue
        target = (target or "").strip().lower()
        column_map[header] = target if target in TRANSACTION_FIELDS else ""
    return column_map


def suggest_column_map(
    parser: CsvTransactionParser,
    headers: List[str],
    classifier: Optional[LLMClassificationService],
) -> Tuple[Dict[str, str], Optional[str]]:
    """
    Ask the LLM for a column mapping.

    Returns:
        (column_map, error); on failure every header is unmapped and error says why
    """
    if classifier is None:
        return resolve_column_map(headers, []), "No column mapping service configured"

    try:
        result = classifier.map_columns(parser.sample(settings.CSV_SAMPLE_LINES))
    except ClassificationError as e:
        logger.warning(f"AI column mapping failed for {parser.file_name}: {e}")
        return resolve_column_map(headers, []), f"AI column mapping failed: {e}"

    pairs = [(m.csv_header, m.transaction_field) for m in result.column_mappings]
    return resolve_column_map(headers, pairs), None


def validate_column_map(column_map: Dict[str, str]) -> None:
    mapped = set(column_map.values())
    missing = [name for name in REQUIRED_FIELDS if name not in mapped]
    if missing:
        raise ColumnMappingError(
            f"Missing required column mapping(s): {', '.join(missing)}"
        )


def _columns_by_field(column_map: Dict[str, str]) -> Dict[str, str]:
    """Invert header -> field; the first header mapped to a field wins."""
    columns = {}
    for header, target in column_map.items():
        if target and target not in columns:
            columns[target] = header
    return columns


def parse_amount(value: Optional[str]) -> Optional[float]:
    """Strip everything but digits, '.' and '-' and parse what is left."""
    cleaned = _AMOUNT_JUNK.sub("", value or "")
    if not cleaned:
        return None
    try:
        amount = float(cleaned)
    except ValueError:
        return None
    return amount if math.isfinite(amount) else None


def summarize_errors(errors: List[str], limit: Optional[int] = None) -> List[str]:
    """First `limit` errors, plus a trailing line counting the rest."""
    if limit is None:
        limit = settings.IMPORT_ERROR_DISPLAY_LIMIT
    summary = list(errors[:limit])
    remaining = len(errors) - limit
    if remaining > 0:
        summary.append(f"And {remaining} more errors...")
    return summary


def import_transactions(
    db: DatabaseService,
    content: str,
    account_id: str,
    file_name: str,
    column_map: Optional[Dict[str, str]] = None,
    classifier: Optional[LLMClassificationService] = None,
) -> ImportResult:
    """
    Import CSV content into an account.

    Args:
        db: Database service; each row is committed on its own
        content: Raw CSV text
        account_id: Target account
        file_name: Source file name recorded on every transaction
        column_map: header -> field mapping; suggested by the classifier when omitted
        classifier: LLM service used only when column_map is omitted

    Raises:
        ValueError: empty file or header row
        ColumnMappingError: date, description or amount is not mapped
    """
    parser = CsvTransactionParser(content, file_name)
    parsed = parser.parse()
    headers = parsed["headers"]
    rows = parsed["rows"]
    row_errors = parsed.get("row_errors", {})

    mapping_error = None
    if column_map is None:
        column_map, mapping_error = suggest_column_map(parser, headers, classifier)
        if mapping_error:
            logger.warning(mapping_error)
    else:
        column_map = resolve_column_map(headers, column_map.items())

    try:
        validate_column_map(column_map)
    except ColumnMappingError as e:
        if mapping_error:
            raise ColumnMappingError(f"{e} ({mapping_error}); map the columns manually")
        raise
    columns = _columns_by_field(column_map)

    result = ImportResult()
    load_time = datetime.utcnow()

    for index, row in enumerate(rows, start=1):
        if index in row_errors:
            result.errors.append(f"Row {index}: Unreadable CSV line ({row_errors[index]}). Skipping.")
            continue

        raw_date = row.get(columns["date"], "")
        raw_amount = row.get(columns["amount"], "")
        description = row.get(columns["description"], "").strip()
        label = row.get(columns["category"], "").strip() if "category" in columns else ""

        txn_date = parse_transaction_date(raw_date)
        if txn_date is None:
            result.errors.append(f'Row {index}: Invalid or unparseable date "{raw_date}". Skipping.')
            continue

        amount = parse_amount(raw_amount)
        if amount is None:
            result.errors.append(f'Row {index}: Invalid amount "{raw_amount}". Skipping.')
            continue

        if not description:
            result.errors.append(f"Row {index}: Missing description. Skipping.")
            continue

        category = label or UNCATEGORIZED
        try:
            transaction = db.insert("transactions", {
                "account_id": account_id,
                "date": txn_date,
                "description": description,
                "amount": amount,
                "category": category,
                "is_debit": amount < 0,
                "source": "import",
                "file_name": file_name,
                "load_date_time": load_time,
            })
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Failed to save row {index} of {file_name}: {e}")
            result.errors.append(f'Row {index} ("{description[:20]}..."): {e}')
            continue

        result.imported_count += 1
        result.imported.append((transaction["id"], category))

    if result.imported_count:
        try:
            db.update("accounts", account_id, {"last_imported": datetime.utcnow()})
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.warning(f"Could not update last import time for account {account_id}: {e}")
            result.warnings.append(f"Could not update the account's last import time: {e}")

    logger.info(
        f"Imported {result.imported_count} of {len(rows)} rows from {file_name} "
        f"into account {account_id} ({result.error_count} errors)"
    )
    return result
