"""
Generic CSV Transaction Parser

Reads bank exports whose column layout is not known in advance. The header row
is returned as-is (trimmed) so the caller can map columns onto transaction
fields, either from the LLM suggestion or from a user-supplied mapping.
"""

import csv
import logging
from typing import Any, Dict, List

logger = logging.getLogger(__name__)


class CsvTransactionParser:
    """Parser for comma-delimited transaction exports with a header row."""

    def __init__(self, content: str, file_name: str = "upload.csv"):
        """
        Initialize the parser.

        Args:
            content: Raw CSV text
            file_name: Name of the uploaded file, kept for provenance
        """
        self.content = content or ""
        self.file_name = file_name

    def _lines(self) -> List[str]:
        return [line for line in self.content.splitlines() if line.strip()]

    @staticmethod
    def _clean(value: str) -> str:
        return value.strip().strip('"').strip()

    def sample(self, max_lines: int = 10) -> str:
        """Return the header plus the first data lines, for the column-mapping prompt."""
        return "\n".join(self._lines()[:max_lines])

    def _split(self, line: str) -> List[str]:
        """Split one physical line; quoting never spans lines."""
        return [self._clean(value) for value in next(csv.reader([line], skipinitialspace=True), [])]

    def parse(self) -> Dict[str, Any]:
        """
        Parse the CSV content.

        Returns:
            Dictionary with "headers" (list of header names), "rows"
            (one dict per data row, keyed by header) and "row_errors"
            (1-based data row number -> reason, for lines that could not be read)
        """
        lines = self._lines()
        if not lines:
            raise ValueError("CSV file is empty")

        try:
            headers = self._split(lines[0])
        except csv.Error as e:
            raise ValueError(f"CSV header row could not be read: {e}")
        if not any(headers):
            raise ValueError("CSV header row is empty")

        rows = []
        row_errors = {}
        for index, line in enumerate(lines[1:], start=1):
            try:
                values = self._split(line)
            except csv.Error as e:
                logger.warning(f"{self.file_name}: row {index} could not be read: {e}")
                row_errors[index] = str(e)
                values = []
            if len(values) < len(headers):
                values.extend([""] * (len(headers) - len(values)))
            elif len(values) > len(headers):
                logger.warning(
                    f"{self.file_name}: row has {len(values)} fields but header has {len(headers)}; "
                    "extra fields ignored"
                )
            rows.append(dict(zip(headers, values)))

        logger.info(f"Parsed {len(rows)} data rows from {self.file_name}")
        return {"headers": headers, "rows": rows, "row_errors": row_errors}
