import copy

from filter_layer.filter_types import SourceType
from filter_layer.merge import merge_filters, summarize_filters


def year(filter_type, value, **extra):
    data = {"id": 5, "type": "number", "source_type": "properties", "filterType": filter_type, "value": value}
    data.update(extra)
    return data


# Operator change on the same catalog id updates in place, keeping applied-only fields
def test_operator_change_updates_applied_filter():
    applied = [year("eq", 3, label="Custom Year", timestamp=100)]
    new = [year("range", {"min": 2, "max": 4}, timestamp=200)]

    result = merge_filters(new, applied)

    assert len(result.filters) == 1
    merged = result.filters[0]
    assert merged["filterType"] == "range"
    assert merged["value"] == {"min": 2, "max": 4}
    assert merged["timestamp"] == 200
    assert merged["label"] == "Custom Year"
    assert (result.new_filter_count, result.updated_filter_count) == (0, 1)


def test_no_new_filters_returns_applied_unchanged():
    applied = [{"id": 1, "type": "number", "filterType": "lt", "value": {"lt": 5}, "label": "Property Value"}]
    result = merge_filters([], applied)
    assert result.filters == applied
    assert (result.new_filter_count, result.updated_filter_count) == (0, 0)


def test_no_applied_filters_returns_new():
    new = [{"id": 2, "type": "number", "filterType": "gte", "value": {"gte": 3}, "label": "Bedrooms"}]
    result = merge_filters(new, [])
    assert result.filters == new
    assert result.filter_count == 1
    assert (result.new_filter_count, result.updated_filter_count) == (1, 0)


def test_new_filters_come_first_then_untouched_applied():
    applied = [
        {"id": 7, "filterType": "contains", "value": {"type": "contains", "text": "Tempe"}},
        {"id": 2, "filterType": "gte", "value": {"gte": 2}},
        {"id": 9, "value": "yes"},
    ]
    new = [
        {"id": 3, "filterType": "gte", "value": {"gte": 2}},
        {"id": 2, "filterType": "gte", "value": {"gte": 4}},
    ]
    result = merge_filters(new, applied)

    assert [(f["id"], f.get("filterType")) for f in result.filters] == [
        (3, "gte"), (2, "gte"), (7, "contains"), (9, None),
    ]
    assert result.filters[1]["value"] == {"gte": 4}
    assert (result.new_filter_count, result.updated_filter_count) == (1, 1)


# Exact id:operator match consumes the applied filter before an id-only match can
def test_exact_key_match_wins_tie_break():
    applied = [{"id": 2, "filterType": "lt", "value": {"lt": 5}, "label": "Beds"}]
    new = [
        {"id": 2, "filterType": "gte", "value": {"gte": 2}},
        {"id": 2, "filterType": "lt", "value": {"lt": 4}},
    ]
    result = merge_filters(new, applied)

    assert [f["filterType"] for f in result.filters] == ["gte", "lt"]
    assert "label" not in result.filters[0]
    assert result.filters[1] == {"id": 2, "filterType": "lt", "value": {"lt": 4}, "label": "Beds"}
    assert result.updated_filter_count == 2


def test_repeated_new_key_keeps_later_value():
    new = [
        {"id": 2, "filterType": "gte", "value": {"gte": 2}},
        {"id": 2, "filterType": "gte", "value": {"gte": 3}},
    ]
    result = merge_filters(new)
    assert result.filters == [{"id": 2, "filterType": "gte", "value": {"gte": 3}}]


def test_merge_does_not_mutate_inputs():
    applied = [year("eq", 3, label="Custom Year")]
    new = [year("range", {"min": 2, "max": 4})]
    applied_before, new_before = copy.deepcopy(applied), copy.deepcopy(new)

    result = merge_filters(new, applied)
    result.filters[0]["value"]["min"] = 0

    assert applied == applied_before
    assert new == new_before


def test_merge_names_the_merged_set():
    result = merge_filters([{"id": 2, "filterType": "gte", "label": "Bedrooms"}], [{"id": 9, "label": "Owner Occupied"}])
    assert result.name == "Property Search: Bedrooms, Owner Occupied"


def test_summarize_filters():
    filters = [{"label": label} for label in ("Age", "Occupation", "Annual Income", "Homeowner", "Age")]
    assert summarize_filters(filters, SourceType.CONTACTS) == "Contact Search: Age, Occupation, Annual Income (+1 more)"
    assert summarize_filters([]) == "Untitled Search"
    assert summarize_filters([{"type": "source_type", "value": "properties"}]) == "Untitled Search"


# Client-side applied filters may carry the id as a string
def test_string_applied_id_matches_numeric_new_id():
    applied = [{"id": "5", "type": "number", "filterType": "eq", "value": 3, "label": "Custom Year"}]
    new = [year("range", {"min": 2, "max": 4})]

    result = merge_filters(new, applied)

    assert len(result.filters) == 1
    assert result.filters[0]["id"] == 5
    assert result.filters[0]["filterType"] == "range"
    assert result.filters[0]["label"] == "Custom Year"
    assert (result.new_filter_count, result.updated_filter_count) == (0, 1)


def test_null_fields_on_new_filter_do_not_clear_applied_fields():
    applied = [year("eq", 3, label="Custom Year", description="Mine")]
    new = [year("range", {"min": 2, "max": 4}, label=None, description=None)]

    merged = merge_filters(new, applied).filters[0]

    assert merged["label"] == "Custom Year"
    assert merged["description"] == "Mine"
    assert merged["value"] == {"min": 2, "max": 4}


def test_processed_count_marks_leading_new_filters():
    applied = [year("eq", 3), {"id": 9, "value": "yes"}]
    new = [year("gte", 2000), {"id": 2, "filterType": "gte", "value": {"gte": 3}}]
    result = merge_filters(new, applied)
    assert result.processed_count == 2
    assert [f["id"] for f in result.filters[:result.processed_count]] == [5, 2]
