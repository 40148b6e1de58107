import pytest
from fastapi.testclient import TestClient

import server
from conftest import FakeLLM, property_filter
from filter_layer.catalog import default_catalog
from filter_layer.errors import ModelRequestFailure
from filter_layer.extractor import FilterExtractor
from filter_layer.metrics import MetricsCollector

EXTRACTION = {
    "filters": [property_filter(2, "number", "gte", {"gte": 3})],
    "explanation": {"matched": "bedrooms", "unmatched": ""},
    "search_name": "Three Bedroom Homes",
}


@pytest.fixture
def make_client():
    metrics = MetricsCollector()

    def _make(llm):
        server.app.dependency_overrides[server.get_llm_client] = lambda: llm
        server.app.dependency_overrides[server.get_extractor] = lambda: FilterExtractor(llm, default_catalog())
        server.app.dependency_overrides[server.get_metrics_collector] = lambda: metrics
        return TestClient(server.app)

    yield _make
    server.app.dependency_overrides.clear()


def test_filter_catalog_endpoints(make_client):
    client = make_client(FakeLLM())

    body = client.get("/api/filters").json()
    assert body["status"] == "success"
    assert body["meta"]["version"] == "1.0"
    assert len(body["data"]["filters"]) == len(default_catalog())

    contacts = client.get("/api/filters/contacts").json()["data"]["filters"]
    assert {f["source_type"] for f in contacts} == {"contacts"}
    properties = client.get("/api/filters/properties").json()["data"]["filters"]
    assert {f["source_type"] for f in properties} == {"properties"}


def test_empty_prompt_without_filters_is_rejected(make_client):
    response = make_client(FakeLLM()).post("/api/prompt", json={"prompt": "  ", "filters": []})
    assert response.status_code == 400
    assert response.json()["status"] == "error"


def test_empty_prompt_names_applied_filters(make_client):
    filters = [property_filter(2, "number", "gte", {"gte": 3}, label="Bedrooms")]
    llm = FakeLLM(structured=[{"name": '"Roomy Homes"'}])
    body = make_client(llm).post("/api/prompt", json={"prompt": "", "filters": filters}).json()

    assert body["data"]["categorization"]["category"] == "multiple_properties"
    saved = body["data"]["action"]["saved_search"]
    assert saved["name"] == "Roomy Homes"
    assert saved["filters"] == filters
    assert saved["criteria"]["filter_count"] == 1


def test_empty_prompt_name_falls_back_when_model_fails(make_client):
    filters = [{"id": 18, "type": "number", "source_type": "contacts", "filterType": "gte", "value": {"gte": 65}}]
    llm = FakeLLM(structured=[ModelRequestFailure("down")])
    body = make_client(llm).post("/api/prompt", json={"prompt": "", "filters": filters}).json()

    assert body["data"]["categorization"]["category"] == "multiple_people"
    assert body["data"]["action"]["action_type"] == "people_search"
    assert body["data"]["action"]["saved_search"]["name"] == "Contact Search (1 filters)"


def test_source_type_filter_skips_categorization(make_client):
    applied = [{"type": "source_type", "value": "contacts"}]
    contact = {"id": 18, "type": "number", "source_type": "contacts", "filterType": "gte", "value": 65}
    llm = FakeLLM(structured=[{"filters": [contact], "explanation": {}, "search_name": "Seniors"}])
    body = make_client(llm).post("/api/prompt", json={"prompt": "people over 65", "filters": applied}).json()

    assert body["message"] == "Prompt processed with filter override"
    assert body["data"]["categorization"] == {
        "category": "multiple_people",
        "confidence": 1.0,
        "explanation": "Category determined by filter",
    }
    saved = body["data"]["action"]["saved_search"]
    assert saved["filters"][0]["value"] == {"gte": 65}
    assert saved["filters"][-1] == applied[0]
    assert saved["criteria"]["search_type"] == "multiple_people"
    assert len(llm.calls) == 1


def test_prompt_is_categorized_then_extracted(make_client):
    llm = FakeLLM(structured=[{"category": "multiple_properties", "confidence": 0.92}, EXTRACTION])
    client = make_client(llm)
    body = client.post("/api/prompt", json={"prompt": "3 bedroom homes"}).json()

    assert body["data"]["categorization"]["category"] == "multiple_properties"
    action = body["data"]["action"]
    assert action["action_type"] == "get_properties_filters"
    assert action["saved_search"]["name"] == "Three Bedroom Homes"
    assert action["saved_search"]["criteria"]["filter_count"] == 1
    assert llm.calls[0][3].temperature == 0.3

    summary = client.get("/api/metrics/summary").json()["summary"]
    assert summary["total_queries"] == 1
    assert summary["strategy_distribution"] == {"structured": 1}
    usage = client.get("/api/metrics/filters").json()["filters"]
    assert usage == [{"label": "Bedrooms", "count": 1}]


def test_other_categories_get_default_action(make_client):
    llm = FakeLLM(structured=[{"category": "individual_person"}])
    action = make_client(llm).post("/api/prompt", json={"prompt": "John Smith"}).json()["data"]["action"]
    assert action == {
        "action_type": "person_profile_search",
        "details": "Searching for individual person profile",
        "query": "John Smith",
    }


def test_categorization_failure_returns_500(make_client):
    llm = FakeLLM(structured=[ModelRequestFailure("quota exceeded")])
    response = make_client(llm).post("/api/prompt", json={"prompt": "homes in Mesa"})

    assert response.status_code == 500
    body = response.json()
    assert body["message"] == "Error processing prompt"
    if not server.settings.is_production:
        assert body["debug"]["error_details"]["message"] == "quota exceeded"


def test_health_reports_model_configuration(make_client):
    assert make_client(FakeLLM()).get("/health").json()["llm_configured"] is True
    assert make_client(None).get("/health").json()["llm_configured"] is False
