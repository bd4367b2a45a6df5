"""FHIR R4 resource builders for NAMASTE mappings.

Produces plain JSON-serializable dicts: a ``Bundle`` (collection) of
``Condition`` resources for bulk uploads, plus the ``CodeSystem`` and
``ConceptMap`` describing the whole terminology.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from namaste_sync.schemas.terminology import MappingRecord

NAMASTE_SYSTEM_URI = "http://terminology.gov.in/CodeSystem/namaste"
ICD11_BASE_URI = "http://id.who.int/icd/release/11/2022-02"
ICD11_TM2_SYSTEM_URI = f"{ICD11_BASE_URI}/tm2"
ICD11_BIOMEDICINE_SYSTEM_URI = f"{ICD11_BASE_URI}/biomedicine"
CONDITION_CATEGORY_SYSTEM_URI = "http://terminology.gov.in/CodeSystem/condition-category"
CONDITION_CLINICAL_SYSTEM_URI = "http://terminology.hl7.org/CodeSystem/condition-clinical"
CONDITION_PROFILE_URI = "http://terminology.gov.in/StructureDefinition/NAMASTECondition"
PUBLISHER = "Ministry of AYUSH, Government of India"

_ENTRY_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, NAMASTE_SYSTEM_URI)


def entry_uuid(code: str, occurrence: int = 0) -> str:
    """Stable identifier for a mapping inside any generated bundle.

    A code repeated within one bundle gets a distinct id per repeat.
    """
    name = code if occurrence == 0 else f"{code}#{occurrence}"
    return str(uuid.uuid5(_ENTRY_NAMESPACE, name))


def _iso(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _codings(record: MappingRecord) -> list[dict[str, str]]:
    return [
        {"system": NAMASTE_SYSTEM_URI, "code": record.code, "display": record.term},
        {"system": ICD11_TM2_SYSTEM_URI, "code": record.tm2_code, "display": record.tm2_description},
        # The biomedicine axis carries no display of its own; the TM2 description is reused.
        {"system": ICD11_BIOMEDICINE_SYSTEM_URI, "code": record.biomedicine_code, "display": record.tm2_description},
    ]


def _condition(record: MappingRecord, recorded: str) -> dict[str, Any]:
    return {
        "resourceType": "Condition",
        "id": record.code,
        "meta": {"profile": [CONDITION_PROFILE_URI]},
        "clinicalStatus": {
            "coding": [{"system": CONDITION_CLINICAL_SYSTEM_URI, "code": "active", "display": "Active"}]
        },
        "category": [
            {
                "coding": [
                    {
                        "system": CONDITION_CATEGORY_SYSTEM_URI,
                        "code": record.category.value.lower(),
                        "display": record.category.value,
                    }
                ]
            }
        ],
        "code": {"coding": _codings(record), "text": record.term},
        "recordedDate": recorded,
    }


def build_bundle(records: Sequence[MappingRecord], *, generated_at: Optional[datetime] = None) -> dict[str, Any]:
    moment = generated_at or datetime.now(timezone.utc)
    stamp = _iso(moment)
    seen: dict[str, int] = {}
    entries = []
    for record in records:
        occurrence = seen.get(record.code, 0)
        seen[record.code] = occurrence + 1
        entries.append(
            {
                "fullUrl": f"urn:uuid:{entry_uuid(record.code, occurrence)}",
                "resource": _condition(record, stamp),
            }
        )
    return {
        "resourceType": "Bundle",
        "id": f"bulk-upload-{int(moment.timestamp() * 1000)}",
        "meta": {"lastUpdated": stamp},
        "type": "collection",
        "timestamp": stamp,
        "total": len(records),
        "entry": entries,
    }


def build_code_system(records: Sequence[MappingRecord], *, generated_at: Optional[datetime] = None) -> dict[str, Any]:
    moment = generated_at or datetime.now(timezone.utc)
    return {
        "resourceType": "CodeSystem",
        "id": "namaste-terminology",
        "url": NAMASTE_SYSTEM_URI,
        "version": "1.0.0",
        "name": "NAMASTETerminology",
        "title": "NAMASTE Traditional Medicine Terminology",
        "status": "active",
        "experimental": False,
        "date": _iso(moment),
        "publisher": PUBLISHER,
        "description": "Standardized terminology for Ayurveda, Siddha, and Unani medical systems",
        "purpose": (
            "To provide standardized coding for traditional Indian medicine systems "
            "in FHIR-compliant electronic health records"
        ),
        "content": "complete",
        "count": len(records),
        "concept": [
            {
                "code": record.code,
                "display": record.term,
                "definition": f"{record.category.value} term for {record.group}",
                "property": [
                    {"code": "category", "valueString": record.category.value},
                    {"code": "chapter", "valueString": record.group},
                    {"code": "icd11-tm2-map", "valueCode": record.tm2_code},
                    {"code": "icd11-biomedicine-map", "valueCode": record.biomedicine_code},
                    {"code": "confidence", "valueString": str(record.confidence)},
                ],
            }
            for record in records
        ],
    }


def _concept_map_group(records: Sequence[MappingRecord], target_uri: str, *, biomedicine: bool) -> dict[str, Any]:
    return {
        "source": NAMASTE_SYSTEM_URI,
        "target": target_uri,
        "element": [
            {
                "code": record.code,
                "display": record.term,
                "target": [
                    {
                        "code": record.biomedicine_code if biomedicine else record.tm2_code,
                        "display": record.tm2_description,
                        "equivalence": "equivalent",
                        "comment": f"Confidence: {record.confidence}",
                    }
                ],
            }
            for record in records
        ],
    }


def build_concept_map(records: Sequence[MappingRecord], *, generated_at: Optional[datetime] = None) -> dict[str, Any]:
    moment = generated_at or datetime.now(timezone.utc)
    return {
        "resourceType": "ConceptMap",
        "id": "namaste-icd11-map",
        "url": "http://terminology.gov.in/ConceptMap/namaste-icd11",
        "version": "1.0.0",
        "name": "NAMASTEToICD11Map",
        "title": "NAMASTE to ICD-11 Concept Mapping",
        "status": "active",
        "experimental": False,
        "date": _iso(moment),
        "publisher": PUBLISHER,
        "description": "Mapping between NAMASTE traditional medicine codes and ICD-11 TM2 + Biomedicine codes",
        "sourceUri": NAMASTE_SYSTEM_URI,
        "targetUri": ICD11_BASE_URI,
        "group": [
            _concept_map_group(records, ICD11_TM2_SYSTEM_URI, biomedicine=False),
            _concept_map_group(records, ICD11_BIOMEDICINE_SYSTEM_URI, biomedicine=True),
        ],
    }
