from datetime import date

import pytest
from sqlalchemy.exc import OperationalError

from fintrack.models.schemas import ColumnMapping
from fintrack.services.csv_import import (
    ColumnMappingError,
    import_transactions,
    parse_amount,
    resolve_column_map,
    summarize_errors,
    validate_column_map,
)


IDENTITY_MAP = {"date": "date", "description": "description", "amount": "amount", "category": "category"}

SCENARIO_CSV = (
    "date,description,amount,category\n"
    "2024-07-01,Coffee,-5.50,Dining\n"
    "07/02/2024,Paycheck,1000,Income\n"
)


def _transactions(db, account_id):
    return db.find("transactions", {"account_id": account_id}, order_by=["date"])


def test_two_row_scenario(db, account):
    result = import_transactions(db, SCENARIO_CSV, account["id"], "july.csv", column_map=IDENTITY_MAP)

    assert result.imported_count == 2
    assert result.errors == []

    stored = _transactions(db, account["id"])
    assert [t["date"] for t in stored] == [date(2024, 7, 1), date(2024, 7, 2)]
    assert [t["is_debit"] for t in stored] == [True, False]
    assert [t["amount"] for t in stored] == [-5.5, 1000.0]
    assert [t["category"] for t in stored] == ["Dining", "Income"]
    assert all(t["file_name"] == "july.csv" for t in stored)
    assert all(t["source"] == "import" for t in stored)


def test_malformed_row_is_rejected_and_counted(db, account):
    content = SCENARIO_CSV.replace("2024-07-01,Coffee,-5.50,Dining", "bad-date,X,abc,Y")

    result = import_transactions(db, content, account["id"], "july.csv", column_map=IDENTITY_MAP)

    assert result.imported_count == 1
    assert result.errors == ['Row 1: Invalid or unparseable date "bad-date". Skipping.']
    assert result.imported_count + result.error_count == 2
    assert [t["description"] for t in _transactions(db, account["id"])] == ["Paycheck"]


def test_each_rejected_row_reports_one_reason(db, account):
    content = (
        "date,description,amount\n"
        "2024-07-01,Good,-1\n"
        "2024-07-02,Bad amount,abc\n"
        "2024-07-03,,-2\n"
        "bad,Bad date,also bad\n"
        "2024-07-05,Also good,\"$1,234.50\"\n"
    )
    column_map = {"date": "date", "description": "description", "amount": "amount"}

    result = import_transactions(db, content, account["id"], "mixed.csv", column_map=column_map)

    assert result.imported_count == 2
    assert result.errors == [
        'Row 2: Invalid amount "abc". Skipping.',
        "Row 3: Missing description. Skipping.",
        'Row 4: Invalid or unparseable date "bad". Skipping.',
    ]
    assert result.imported_count + result.error_count == 5


def test_header_only_file_imports_nothing(db, account):
    result = import_transactions(
        db, "date,description,amount,category\n", account["id"], "empty.csv", column_map=IDENTITY_MAP
    )

    assert result.imported_count == 0
    assert result.errors == []
    assert db.find_one("accounts", {"id": account["id"]})["last_imported"] is None


def test_missing_category_defaults_to_uncategorized(db, account):
    content = "date,description,amount,category\n2024-07-01,Coffee,-5,\n"

    result = import_transactions(db, content, account["id"], "a.csv", column_map=IDENTITY_MAP)

    assert result.imported == [(result.imported[0][0], "Uncategorized")]
    assert _transactions(db, account["id"])[0]["category"] == "Uncategorized"


def test_last_imported_is_stamped(db, account):
    import_transactions(db, SCENARIO_CSV, account["id"], "july.csv", column_map=IDENTITY_MAP)

    assert db.find_one("accounts", {"id": account["id"]})["last_imported"] is not None


def test_failed_write_is_recorded_and_batch_continues(db, account, monkeypatch):
    original_insert = db.insert
    calls = {"count": 0}

    def flaky_insert(collection, document):
        calls["count"] += 1
        if calls["count"] == 1:
            raise OperationalError("INSERT", {}, Exception("database is locked"))
        return original_insert(collection, document)

    monkeypatch.setattr(db, "insert", flaky_insert)

    result = import_transactions(db, SCENARIO_CSV, account["id"], "july.csv", column_map=IDENTITY_MAP)

    assert result.imported_count == 1
    assert len(result.errors) == 1
    assert result.errors[0].startswith('Row 1 ("Coffee...")')
    assert [t["description"] for t in _transactions(db, account["id"])] == ["Paycheck"]


def test_last_imported_failure_is_a_warning(db, account, monkeypatch):
    def failing_update(collection, query, update_data=None):
        raise OperationalError("UPDATE", {}, Exception("connection reset"))

    monkeypatch.setattr(db, "update", failing_update)

    result = import_transactions(db, SCENARIO_CSV, account["id"], "july.csv", column_map=IDENTITY_MAP)

    assert result.imported_count == 2
    assert result.errors == []
    assert len(result.warnings) == 1


def test_column_map_comes_from_classifier(db, account, classifier):
    content = "Posted,Memo,Value,Type\n2024-07-01,Coffee,-5.50,Dining\n"
    classifier.column_mappings = [
        ("Posted", "date"),
        ("Memo", "description"),
        ("Value", "amount"),
        ("Type", "category"),
    ]

    result = import_transactions(db, content, account["id"], "bank.csv", classifier=classifier)

    assert result.imported_count == 1
    assert classifier.map_calls == ["Posted,Memo,Value,Type\n2024-07-01,Coffee,-5.50,Dining"]


def test_classifier_failure_leaves_columns_unmapped(db, account, classifier):
    classifier.fail_mapping = True

    with pytest.raises(ColumnMappingError, match="AI column mapping failed"):
        import_transactions(db, SCENARIO_CSV, account["id"], "july.csv", classifier=classifier)

    assert db.count("transactions") == 0


def test_empty_file_is_rejected(db, account):
    with pytest.raises(ValueError):
        import_transactions(db, "", account["id"], "empty.csv", column_map=IDENTITY_MAP)


def test_resolve_column_map_reconciles_against_headers():
    mappings = [
        ColumnMapping(csv_header="Date", transaction_field="date"),
        ColumnMapping(csv_header="Ghost", transaction_field="amount"),
        ColumnMapping(csv_header="Memo", transaction_field="notes"),
    ]
    pairs = [(m.csv_header, m.transaction_field) for m in mappings]

    column_map = resolve_column_map(["Date", "Memo", "Amount"], pairs)

    assert column_map == {"Date": "date", "Memo": "", "Amount": ""}


def test_validate_column_map_requires_core_fields():
    validate_column_map({"a": "date", "b": "description", "c": "amount", "d": ""})

    with pytest.raises(ColumnMappingError) as exc:
        validate_column_map({"a": "date", "b": "category", "c": ""})

    assert "description" in str(exc.value)
    assert "amount" in str(exc.value)


@pytest.mark.parametrize(
    "value, expected",
    [
        ("-5.50", -5.5),
        ("1000", 1000.0),
        ("$1,234.56", 1234.56),
        ("(USD) -12.00", -12.0),
        ("abc", None),
        ("", None),
        ("1.2.3", None),
        ("--5", None),
    ],
)
def test_parse_amount(value, expected):
    assert parse_amount(value) == expected


def test_summarize_errors_caps_the_list():
    errors = [f"Row {i}: Missing description. Skipping." for i in range(1, 14)]

    summary = summarize_errors(errors, limit=10)

    assert summary[:10] == errors[:10]
    assert summary[10] == "And 3 more errors..."
    assert len(summary) == 11


def test_summarize_errors_without_overflow():
    assert summarize_errors(["one", "two"], limit=10) == ["one", "two"]


def test_stray_quote_does_not_swallow_later_rows(db, account):
    content = (
        "date,description,amount,category\n"
        '2024-07-01,"Coffee,-5.50,Dining\n'
        "2024-07-02,Tea,-3,Dining\n"
        "2024-07-03,Lunch,-12,Dining\n"
        "2024-07-04,Paycheck,1000,Income\n"
    )

    result = import_transactions(db, content, account["id"], "july.csv", column_map=IDENTITY_MAP)

    assert result.imported_count == 3
    assert result.error_count == 1
    assert result.errors[0].startswith("Row 1: ")
    assert result.imported_count + result.error_count == 4


def test_oversized_field_is_a_row_error(db, account):
    rows = [f"2024-07-{day:02d},Item {day},-{day},Misc" for day in range(1, 29)]
    rows[4] = "2024-07-05," + "x" * 200_000 + ",-5,Misc"
    content = "date,description,amount,category\n" + "\n".join(rows) + "\n"

    result = import_transactions(db, content, account["id"], "big.csv", column_map=IDENTITY_MAP)

    assert result.imported_count == 27
    assert result.error_count == 1
    assert result.errors[0].startswith("Row 5: Unreadable CSV line")
