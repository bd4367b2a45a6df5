"""HTTP surface tests through FastAPI's TestClient."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from namaste_sync.core.errors import StoreUnavailableError
from namaste_sync.main import create_app
from namaste_sync.repositories.local_store import LocalFallbackStore
from namaste_sync.services.gateway import HybridPersistenceGateway
from namaste_sync.services.terminology_service import TerminologyService

from tests.conftest import VALID_HEADER


@pytest.fixture
def client(store_dir: Path) -> Iterator[TestClient]:
    """Client bound to a service whose gateway runs on the local store only."""
    service = TerminologyService(HybridPersistenceGateway(None, LocalFallbackStore(store_dir)))
    with TestClient(create_app(service)) as http:
        yield http


def test_health_reports_local_mode(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "store_mode": "local", "mappings": 8}


def test_health_maps_store_failure_to_503(client: TestClient) -> None:
    service = client.app.state.terminology_service
    service.gateway.count = AsyncMock(side_effect=StoreUnavailableError("remote store went away"))

    response = client.get("/health")

    assert response.status_code == 503
    assert response.json()["detail"] == "remote store went away"


def test_lookup(client: TestClient) -> None:
    response = client.get("/terminology/lookup", params={"q": "cough"})

    assert response.status_code == 200
    body = response.json()
    assert body["results"][0]["record"]["code"] == "AYU-001"
    assert body["results"][0]["highlights"]["term"] == "Kasa (<mark>Cough</mark>)"
    assert body["query"] == "cough"
    assert body["sequence"] == 1


def test_lookup_rejects_oversized_pages(client: TestClient) -> None:
    response = client.get("/terminology/lookup", params={"q": "cough", "page_size": 10_000})

    assert response.status_code == 422


def test_translate(client: TestClient) -> None:
    response = client.get(
        "/terminology/translate",
        params={"code": "AYU-001", "source": "namaste", "target": "icd11-tm2"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["source_system"] == "namaste"
    assert body["translations"][0]["target_system"] == "icd11-tm2"
    assert body["translations"][0]["confidence"] == pytest.approx(0.95)


def test_translate_errors(client: TestClient) -> None:
    missing = client.get("/terminology/translate", params={"code": "NOPE", "source": "namaste"})
    unknown = client.get(
        "/terminology/translate",
        params={"code": "AYU-001", "source": "namaste", "target": "snomed"},
    )

    assert missing.status_code == 404
    assert unknown.status_code == 422


def test_mappings_listing_and_detail(client: TestClient) -> None:
    listing = client.get("/terminology/mappings", params={"page_size": 2})
    unani = client.get("/terminology/mappings", params={"category": "Unani"})
    detail = client.get("/terminology/mappings/SID-001")
    missing = client.get("/terminology/mappings/NOPE")
    stats = client.get("/terminology/mappings/stats")
    metadata = client.get("/terminology/metadata")

    assert listing.json()["total"] == 8
    assert len(listing.json()["items"]) == 2
    assert listing.json()["total_pages"] == 4
    assert unani.json()["total"] == 2
    assert detail.json()["term"] == "Vayu Gunmam (Joint Pain)"
    assert missing.status_code == 404
    assert stats.json()["total_mappings"] == 8
    assert metadata.json()["categories"] == ["Ayurveda", "Siddha", "Unani"]


def test_bulk_upload(client: TestClient) -> None:
    content = "\n".join(
        [
            VALID_HEADER,
            "AYU-500,Pandu (Anemia),Ayurveda,Blood Disorders,XC50000,Traditional pallor disorder,3A00,0.83",
            "AYU-501,Broken,Ayurveda,Blood Disorders,XC50001,desc,3A01,2",
        ]
    )

    validate = client.post("/terminology/bulk-upload/validate", json={"content": content})
    upload = client.post("/terminology/bulk-upload", json={"content": content})
    bad = client.post("/terminology/bulk-upload", json={"content": "code,term\nX,Y"})

    assert validate.status_code == 200
    assert [e["line_number"] for e in validate.json()["errors"]] == [3]
    assert upload.status_code == 200
    assert upload.json()["inserted"] == 1
    assert upload.json()["bundle"]["total"] == 1
    assert bad.status_code == 422
    assert client.get("/terminology/mappings/AYU-500").status_code == 200


def test_fhir_resources(client: TestClient) -> None:
    code_system = client.get("/fhir/CodeSystem/namaste").json()
    concept_map = client.get("/fhir/ConceptMap/namaste-icd11").json()

    assert code_system["resourceType"] == "CodeSystem"
    assert code_system["count"] == 8
    assert concept_map["resourceType"] == "ConceptMap"
    assert len(concept_map["group"]) == 2
    assert concept_map["group"][0]["element"][0]["target"][0]["comment"] == "Confidence: 0.95"


def test_audit_listing_uses_actor_headers(client: TestClient) -> None:
    client.get("/terminology/lookup", params={"q": "kasa"}, headers={"X-Actor-Id": "clinician-7"})
    client.get("/fhir/CodeSystem/namaste")

    searches = client.get("/audit", params={"action": "search"}).json()
    everything = client.get("/audit").json()

    assert searches["total"] == 1
    assert searches["items"][0]["actor_id"] == "clinician-7"
    assert everything["total"] == 2
    assert everything["items"][0]["action"] == "fhir_generation"

    assert client.delete("/audit").status_code == 204
    assert client.get("/audit").json()["total"] == 0
