"""
LLM Classification Service

Two single-shot prompts answered by a local LLM through Ollama:
- map_columns: map raw CSV headers onto transaction fields
- categorize: suggest a category for a free-text label, with a confidence score

Both calls ask Ollama for JSON output and validate it with pydantic before
returning. Every failure (service down, timeout, bad status, unparseable or
invalid JSON) is raised as ClassificationError so callers can fall back.
"""

import json
import logging
from typing import Any, Dict, Optional, Sequence

import requests
from pydantic import ValidationError

from fintrack.config import settings
from fintrack.models.schemas import CategorySuggestion, ColumnMappingResult

logger = logging.getLogger(__name__)

TRANSACTION_FIELDS = ("date", "description", "amount", "category")


class ClassificationError(RuntimeError):
    """Raised when the LLM cannot produce a usable answer."""


class LLMClassificationService:
    """Service for LLM-assisted column mapping and category suggestion."""

    def __init__(
        self,
        ollama_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[int] = None,
    ):
        self.ollama_url = (ollama_url or settings.OLLAMA_URL).rstrip("/")
        self.model = model or settings.OLLAMA_MODEL
        self.timeout = timeout or settings.OLLAMA_TIMEOUT
        self.enabled = self._check_ollama_availability()

    def _check_ollama_availability(self) -> bool:
        """Check if Ollama service is available."""
        try:
            response = requests.get(f"{self.ollama_url}/api/tags", timeout=2)
            return response.status_code == 200
        except requests.RequestException as e:
            logger.warning(f"Ollama not available: {e}. LLM classification disabled.")
            return False

    def _generate(self, prompt: str) -> Dict[str, Any]:
        """Run one prompt through Ollama and return the decoded JSON object."""
        if not self.enabled:
            raise ClassificationError("LLM service is not available")

        try:
            response = requests.post(
                f"{self.ollama_url}/api/generate",
                json={
                    "model": self.model,
                    "prompt": prompt,
                    "stream": False,
                    "format": "json",
                    "options": {
                        "temperature": 0.1,  # Low temperature for consistent results
                        "top_p": 0.9,
                    },
                },
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            logger.warning("LLM request timed out after %ss", self.timeout)
            raise ClassificationError("LLM request timed out") from e
        except requests.RequestException as e:
            raise ClassificationError(f"LLM request failed: {e}") from e

        if response.status_code != 200:
            raise ClassificationError(f"Ollama API error: {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            raise ClassificationError(f"Ollama returned a non-JSON body: {e}") from e
        if not isinstance(body, dict):
            raise ClassificationError("Ollama returned an unexpected body")

        llm_output = body.get("response", "")
        if not isinstance(llm_output, str):
            raise ClassificationError("Ollama response field was not text")
        return self._parse_json(llm_output)

    @staticmethod
    def _parse_json(llm_output: str) -> Dict[str, Any]:
        try:
            parsed = json.loads(llm_output)
        except json.JSONDecodeError:
            # Model wrapped the object in extra text
            start = llm_output.find("{")
            end = llm_output.rfind("}")
            if start == -1 or end <= start:
                raise ClassificationError("LLM response did not contain JSON")
            try:
                parsed = json.loads(llm_output[start:end + 1])
            except json.JSONDecodeError as e:
                raise ClassificationError(f"Failed to parse LLM JSON response: {e}") from e

        if not isinstance(parsed, dict):
            raise ClassificationError("LLM response was not a JSON object")
        return parsed

    def map_columns(self, csv_sample: str) -> ColumnMappingResult:
        """
        Ask the LLM which transaction field each CSV header holds.

        Args:
            csv_sample: Header line plus the first few data lines

        Returns:
            ColumnMappingResult with one entry per header the model recognised
        """
        field_list = ", ".join(TRANSACTION_FIELDS)
        prompt = f"""You are helping import bank transactions from a CSV file.
Below are the first lines of the file (the first line is the header row).

{csv_sample}

Map each CSV header to exactly one of these transaction fields: {field_list}.
Use an empty string for headers that match none of them. Use each field at most once.

Respond in this EXACT JSON format:
{{
  "columnMappings": [
    {{"csvHeader": "header text", "transactionField": "date"}}
  ]
}}"""

        data = self._generate(prompt)
        try:
            result = ColumnMappingResult.model_validate(data)
        except ValidationError as e:
            raise ClassificationError(f"LLM column mapping failed validation: {e}") from e

        logger.info("LLM proposed %s column mapping(s)", len(result.column_mappings))
        return result

    def categorize(self, label: str, available_categories: Sequence[str]) -> CategorySuggestion:
        """
        Suggest a category for a transaction label.

        Returns:
            CategorySuggestion with the suggested name and a confidence in [0, 1]
        """
        category_list = ", ".join(available_categories) or "(none yet)"
        prompt = f"""You are a financial transaction categorization expert.

Transaction description: "{label}"
Existing categories: {category_list}

Choose the existing category that best fits the description. If none fits,
propose a short new category name. Give a confidence score between 0.0 and 1.0.

Respond in this EXACT JSON format:
{{
  "suggestedCategory": "category name",
  "confidence": 0.95
}}"""

        data = self._generate(prompt)
        try:
            suggestion = CategorySuggestion.model_validate(data)
        except ValidationError as e:
            raise ClassificationError(f"LLM category suggestion failed validation: {e}") from e

        logger.info(
            f"LLM suggested '{suggestion.suggested_category}' for '{label}' "
            f"(confidence: {suggestion.confidence})"
        )
        return suggestion


# Singleton instance
_classifier_service = None


def get_classifier_service() -> LLMClassificationService:
    """Get or create the LLM classification service instance."""
    global _classifier_service
    if _classifier_service is None:
        _classifier_service = LLMClassificationService()
    return _classifier_service
