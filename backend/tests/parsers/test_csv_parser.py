import pytest

from fintrack.parsers.csv_parser import CsvTransactionParser


def test_parse_headers_and_rows():
    content = "date,description,amount\n2024-07-01,Coffee,-5.50\n2024-07-02,Paycheck,1000\n"
    result = CsvTransactionParser(content, "july.csv").parse()

    assert result["headers"] == ["date", "description", "amount"]
    assert result["rows"] == [
        {"date": "2024-07-01", "description": "Coffee", "amount": "-5.50"},
        {"date": "2024-07-02", "description": "Paycheck", "amount": "1000"},
    ]


def test_headers_and_values_are_trimmed_and_unquoted():
    content = ' "Date" , "Description" ,Amount\n"07/01/2024", " Coffee Shop ", "-4.25"\n'
    result = CsvTransactionParser(content).parse()

    assert result["headers"] == ["Date", "Description", "Amount"]
    assert result["rows"][0] == {"Date": "07/01/2024", "Description": "Coffee Shop", "Amount": "-4.25"}


def test_quoted_field_keeps_embedded_comma():
    content = 'date,description,amount\n2024-07-01,"Smith, John",-20\n'
    rows = CsvTransactionParser(content).parse()["rows"]

    assert rows[0]["description"] == "Smith, John"
    assert rows[0]["amount"] == "-20"


def test_blank_lines_are_skipped():
    content = "date,description,amount\n\n2024-07-01,Coffee,-5\n   \n2024-07-02,Tea,-3\n\n"
    rows = CsvTransactionParser(content).parse()["rows"]

    assert [row["description"] for row in rows] == ["Coffee", "Tea"]


def test_short_rows_are_padded():
    content = "date,description,amount,category\n2024-07-01,Coffee\n"
    rows = CsvTransactionParser(content).parse()["rows"]

    assert rows[0] == {"date": "2024-07-01", "description": "Coffee", "amount": "", "category": ""}


def test_header_only_file_has_no_rows():
    result = CsvTransactionParser("date,description,amount\n").parse()

    assert result["headers"] == ["date", "description", "amount"]
    assert result["rows"] == []


@pytest.mark.parametrize("content", ["", "\n\n", "  \n"])
def test_empty_content_is_rejected(content):
    with pytest.raises(ValueError):
        CsvTransactionParser(content).parse()


def test_empty_header_row_is_rejected():
    with pytest.raises(ValueError):
        CsvTransactionParser(',,\n2024-07-01,Coffee,-5\n').parse()


def test_sample_returns_first_non_blank_lines():
    lines = ["date,description,amount"] + [f"2024-07-{day:02d},Item {day},-{day}" for day in range(1, 20)]
    content = "\n\n".join(lines)

    sample = CsvTransactionParser(content).sample(10)

    assert sample.splitlines() == lines[:10]


def test_stray_quote_only_affects_its_own_line():
    content = (
        "date,description,amount\n"
        '2024-07-01,"Coffee,-5.50\n'
        "2024-07-02,Tea,-3\n"
        "2024-07-03,Lunch,-12\n"
    )
    result = CsvTransactionParser(content).parse()

    assert len(result["rows"]) == 3
    assert result["rows"][0]["amount"] == ""
    assert result["rows"][1] == {"date": "2024-07-02", "description": "Tea", "amount": "-3"}
    assert result["rows"][2]["description"] == "Lunch"
    assert result["row_errors"] == {}


def test_oversized_field_becomes_row_error():
    content = (
        "date,description,amount\n"
        f"2024-07-01,{'x' * 200_000},-5\n"
        "2024-07-02,Tea,-3\n"
    )
    result = CsvTransactionParser(content).parse()

    assert len(result["rows"]) == 2
    assert list(result["row_errors"]) == [1]
    assert result["rows"][1]["description"] == "Tea"


def test_oversized_header_is_rejected():
    with pytest.raises(ValueError, match="header row could not be read"):
        CsvTransactionParser("y" * 200_000 + ",amount\n2024-07-01,-5\n").parse()
