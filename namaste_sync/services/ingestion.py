"""Bulk ingestion of NAMASTE mapping CSV files.

The header is checked once and is fatal when wrong. Every data row is then
validated on its own: a bad row becomes an ``IngestionError`` carrying the
1-indexed line number of the original text (header = line 1) and is skipped,
while the remaining rows keep flowing.
"""

from __future__ import annotations

import csv
import logging
import math

from pydantic import ValidationError as PydanticValidationError

from namaste_sync.core.errors import FormatError, ValidationError
from namaste_sync.schemas.ingestion import IngestionError, IngestionResult
from namaste_sync.schemas.terminology import Category, MappingRecord

logger = logging.getLogger(__name__)

CANONICAL_HEADER = (
    "namaste_code,namaste_term,category,chapter_name,"
    "icd11_tm2_code,icd11_tm2_description,icd11_biomedicine_code,confidence_score"
)
EXPECTED_FIELD_COUNT = len(CANONICAL_HEADER.split(","))
_CATEGORY_VALUES = {c.value for c in Category}


class BulkIngestionValidator:
    def parse(self, raw_text: str) -> IngestionResult:
        lines = (raw_text or "").splitlines()
        if not lines or not lines[0].strip():
            raise FormatError(f"Invalid CSV format. Expected header: {CANONICAL_HEADER}")

        header = lines[0].lstrip("\ufeff").strip()
        if header.lower() != CANONICAL_HEADER.lower():
            raise FormatError(
                f"Invalid CSV format. Expected header: {CANONICAL_HEADER} Actual header: {header}"
            )

        records: list[MappingRecord] = []
        errors: list[IngestionError] = []

        for line_number, line in enumerate(lines[1:], start=2):
            if not line.strip():
                continue
            try:
                record = self._parse_row(line, line_number)
            except ValidationError as exc:
                errors.append(IngestionError(line_number=exc.line_number, message=exc.message))
                continue
            records.append(record)

        logger.info("Parsed ingestion payload rows=%s valid=%s errors=%s", len(lines) - 1, len(records), len(errors))
        return IngestionResult(records=records, errors=errors)

    @staticmethod
    def _split(line: str, line_number: int) -> list[str]:
        try:
            row = next(csv.reader([line], skipinitialspace=True), [])
        except csv.Error as exc:
            raise ValidationError(line_number, f"Malformed CSV row: {exc}") from exc
        return [field.strip() for field in row]

    def _parse_row(self, line: str, line_number: int) -> MappingRecord:
        fields = self._split(line, line_number)
        if len(fields) != EXPECTED_FIELD_COUNT:
            raise ValidationError(
                line_number,
                f"Expected {EXPECTED_FIELD_COUNT} fields, got {len(fields)}",
            )

        code, term, category, group, tm2_code, tm2_description, biomedicine_code, confidence_raw = fields

        if not code:
            raise ValidationError(line_number, "Missing NAMASTE code")
        if category not in _CATEGORY_VALUES:
            raise ValidationError(line_number, "Invalid category. Must be Ayurveda, Siddha, or Unani")

        try:
            confidence = float(confidence_raw)
        except ValueError:
            confidence = math.nan
        if not math.isfinite(confidence) or not 0.0 <= confidence <= 1.0:
            raise ValidationError(line_number, "Invalid confidence score. Must be between 0 and 1")

        try:
            return MappingRecord(
                code=code,
                term=term,
                category=Category(category),
                group=group,
                tm2_code=tm2_code,
                tm2_description=tm2_description,
                biomedicine_code=biomedicine_code,
                confidence=confidence,
            )
        except PydanticValidationError as exc:
            first = exc.errors()[0]
            field = ".".join(str(part) for part in first.get("loc", ()))
            raise ValidationError(line_number, f"Invalid {field}: {first.get('msg')}") from exc
