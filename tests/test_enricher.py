import copy

from conftest import property_filter
from filter_layer.catalog import default_catalog
from filter_layer.enricher import enrich_filter, enrich_filters


def features_definition():
    return default_catalog().lookup(12, "properties")


# Option ids resolve to the catalog option record
def test_multiselect_option_resolved_to_catalog_label():
    instance = property_filter(12, "multiselect", "contains_any", {"values": [{"id": 1}]}, label="Features")
    out = enrich_filter(instance, features_definition())
    assert out["value"]["values"] == [{"id": 1, "label": "Pool"}]


def test_multiselect_caller_label_wins():
    instance = property_filter(
        12, "multiselect", "contains_any", {"values": [{"id": 1, "label": "Swimming Pool"}]}, label="Features",
    )
    out = enrich_filter(instance, features_definition())
    assert out["value"]["values"] == [{"id": 1, "label": "Swimming Pool"}]


def test_multiselect_unknown_option_left_as_is():
    unknown = {"id": 77, "label": "Helipad"}
    instance = property_filter(12, "multiselect", "contains_any", {"values": [unknown, {"id": 2}]}, label="Features")
    out = enrich_filter(instance, features_definition())
    assert out["value"]["values"] == [unknown, {"id": 2, "label": "Garage"}]


def test_catalog_fields_copied_when_missing():
    catalog = default_catalog()
    out = enrich_filter(property_filter(1, "number", "lt", {"lt": 1}, label="Property Value"), catalog.lookup(1, "properties"))
    assert out["description"] == "Estimated market value of the property in USD"
    assert out["subtype"] == "currency"
    assert out["unit"] == "USD"
    assert out["group"] == "Valuation"
    assert len(features_definition().options) == len(enrich_filter(
        property_filter(12, "multiselect", "contains_any", {"values": []}), features_definition(),
    )["options"])


def test_instance_fields_win_over_catalog():
    catalog = default_catalog()
    instance = property_filter(
        1, "number", "lt", {"lt": 1}, label="Budget", description="My budget", unit="EUR",
    )
    out = enrich_filter(instance, catalog.lookup(1, "properties"))
    assert out["label"] == "Budget"
    assert out["description"] == "My budget"
    assert out["unit"] == "EUR"


def test_enrich_does_not_mutate_input():
    instance = property_filter(12, "multiselect", "contains_any", {"values": [{"id": 3}]}, label="Features")
    original = copy.deepcopy(instance)
    enrich_filter(instance, features_definition())
    assert instance == original


def test_enrich_filters_uses_catalog_lookup():
    instances = [
        property_filter(2, "number", "gte", {"gte": 3}, label="Bedrooms"),
        {"id": 500, "type": "text", "label": "Unknown"},
    ]
    out = enrich_filters(instances, default_catalog(), "properties")
    assert out[0]["description"] == "Number of bedrooms"
    assert out[1] == instances[1]


def test_missing_label_filled_from_catalog():
    catalog = default_catalog()
    out = enrich_filter(property_filter(5, "number", "gte", {"gte": 1990}), catalog.lookup(5, "properties"))
    assert out["label"] == "Year Built"

    kept = enrich_filter(property_filter(5, "number", "gte", {"gte": 1990}, label="My Build Year"), catalog.lookup(5, "properties"))
    assert kept["label"] == "My Build Year"
