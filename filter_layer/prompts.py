"""
Prompt construction for filter extraction.

Builds the system prompt (catalog, filter formats, already-applied
filters) and the JSON schemas sent with structured requests.
"""

from typing import Any, Dict, List, Optional
import json

from .filter_types import (
    RELATIVE_TIME_DIRECTIONS,
    RELATIVE_TIME_UNITS,
    VALID_OPERATORS,
    FilterDefinition,
    FilterInstance,
    SourceType,
    ValueType,
)

PROMPT_CATEGORIES = (
    "individual_person",
    "individual_property",
    "individual_company",
    "multiple_properties",
    "multiple_people",
    "multiple_companies",
    "other",
)


def _operator_rule(value_type: ValueType) -> Dict[str, Any]:
    return {
        "if": {"properties": {"type": {"enum": [value_type.value]}}},
        "then": {"properties": {"filterType": {"enum": sorted(VALID_OPERATORS[value_type])}}},
    }


def filter_item_schema(source_type: SourceType) -> Dict[str, Any]:
    """JSON schema of one filter object, with per-type operator rules."""
    return {
        "type": "object",
        "required": ["id", "type", "source_type", "label", "filterType", "value"],
        "properties": {
            "id": {"type": "integer"},
            "type": {"type": "string", "enum": [t.value for t in ValueType]},
            "subtype": {"type": ["string", "null"]},
            "source_type": {"type": "string", "enum": [source_type.value]},
            "label": {"type": "string"},
            "filterType": {"type": "string"},
            "value": {"type": ["object", "string", "number", "boolean"]},
        },
        "allOf": [
            _operator_rule(t) for t in ValueType if VALID_OPERATORS[t]
        ],
    }


def response_schema(source_type: SourceType) -> Dict[str, Any]:
    """Schema of the structured extraction response."""
    return {
        "type": "object",
        "required": ["filters", "explanation", "search_name"],
        "properties": {
            "filters": {"type": "array", "items": filter_item_schema(source_type)},
            "explanation": {
                "type": "object",
                "required": ["matched", "unmatched"],
                "properties": {
                    "matched": {"type": "string"},
                    "unmatched": {"type": "string"},
                },
            },
            "search_name": {"type": "string"},
        },
    }


CATEGORY_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["category"],
    "properties": {
        "category": {"type": "string", "enum": list(PROMPT_CATEGORIES)},
        "confidence": {"type": "number", "minimum": 0, "maximum": 1},
        "explanation": {"type": "string"},
    },
}

SEARCH_NAME_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["name"],
    "properties": {
        "name": {
            "type": "string",
            "description": "A concise, descriptive name for the search without any quotation marks",
        },
    },
}


CATEGORIZATION_SYSTEM_PROMPT = """You are an AI that categorizes search prompts based on their intent. Determine whether the user is searching for:
- individual_person
- individual_property
- individual_company
- multiple_properties
- multiple_people
- multiple_companies
- other

Priority rules for mixed queries:
1. Properties + People -> multiple_properties
2. Properties + Companies -> multiple_properties
3. People + Companies (no properties) -> multiple_people

Examples:
- '65 and older absentee owned' -> multiple_properties (properties owned by elderly absentee owners)
- 'Vacant properties owned by corporations' -> multiple_properties
- 'Small business owners in Phoenix' -> multiple_people
- 'Rental property management companies' -> multiple_companies

Be very careful to identify the primary entity being searched for: properties, people, or companies."""


SEARCH_NAME_SYSTEM_PROMPT = """You are a helpful assistant that generates concise, descriptive names for saved searches.
Create a search name that summarizes the key filters while remaining brief.
For property searches: Focus on property type, location, bedrooms/bathrooms, and price when available.
For contact searches: Focus on profession, location, age, and income when available.
For company searches: Focus on industry, location, size, and revenue when available.
Keep names under 60 characters when possible.
IMPORTANT: Do not include any quotation marks around the name in your response."""


FILTER_FORMAT_RULES = f"""FILTER STRUCTURE REQUIREMENTS:
1. All filters must include: id, type, source_type, label, filterType, value
2. Valid filter types are: "number", "text", "bool", "date", "multiselect"
3. Use the exact id, label and type of the matching entry in AVAILABLE FILTERS

NUMBER FILTER FORMAT:
- For ranges: {{"type":"number", "filterType":"range", "value":{{"min":number, "max":number}}}}
- For single comparisons (gt, gte, lt, lte, neq): {{"type":"number", "filterType":"lt", "value":{{"lt":100000}}}} - the value must be an object keyed by the filterType
- For equality: {{"type":"number", "filterType":"eq", "value":number}}

TEXT FILTER FORMAT:
- Standard text: {{"type":"text", "filterType":"contains|starts_with|ends_with|equals|not_equals|not_contains", "value":{{"type":<filterType>, "text":string}}}}
- Multi-value: {{"type":"text", "filterType":"any_of", "value":{{"type":"any_of", "values":[strings]}}}}

BOOLEAN FILTER FORMAT:
- {{"type":"bool", "value":"yes"|"no"}}

MULTISELECT FILTER FORMAT:
- {{"type":"multiselect", "filterType":"contains_any|contains_none", "value":{{"values":[{{"id":option_id, "label":option_label}}]}}}}

DATE FILTER FORMAT:
- Range: {{"type":"date", "filterType":"date_range", "value":{{"start":"YYYY-MM-DD", "end":"YYYY-MM-DD"}}}}
- Single: {{"type":"date", "filterType":"is_after|is_before|is_equal", "value":{{"type":<filterType>, "date":"YYYY-MM-DD"}}}}
- Relative: {{"type":"date", "filterType":"relative_time", "value":{{"relativeTime":{{"value":number, "unit":"{'|'.join(RELATIVE_TIME_UNITS)}", "direction":"{'|'.join(RELATIVE_TIME_DIRECTIONS)}"}}}}}}"""


class PromptBuilder:
    """Build extraction prompts from the catalog and the applied filters."""

    def build_system_prompt(
        self,
        definitions: List[FilterDefinition],
        source_type: SourceType,
        applied_filters: Optional[List[FilterInstance]] = None,
    ) -> str:
        entity = "property" if source_type == SourceType.PROPERTIES else "contact"
        filter_details = json.dumps([d.to_dict() for d in definitions], indent=2)

        return f"""You are a specialized AI designed to extract {entity} search filters from natural language queries.
Your task is to analyze user queries and transform them into structured filter objects.

AVAILABLE FILTERS:
{filter_details}

{FILTER_FORMAT_RULES}

source_type must be "{source_type.value}" for every filter.
{self._build_applied_context(applied_filters)}
Be thorough and precise in your analysis. Extract all relevant filters, even when they are only implied.

ADDITIONAL TASKS:
1. After extracting the filters, provide a structured explanation with two parts:
   a. A brief note on what parts of the query matched to filters (the "matched" section)
   b. A brief note on what parts couldn't be included and why (the "unmatched" section)
2. Create a concise, descriptive name for this search based on the key filter criteria (3-7 words).
   Examples: "Luxury Beach Homes", "Family-Friendly Suburbs", "Downtown Condos Under 500K"

Both explanation sections should be extremely concise (just a few words or a short phrase each).
No introductory text or phrases like "Based on your query." Direct and to the point.

YOUR RESPONSE FORMAT:
{{
  "filters": [...array of filter objects...],
  "explanation": {{
    "matched": "Brief note on what matched",
    "unmatched": "Brief note on what didn't match"
  }},
  "search_name": "Descriptive name for this search"
}}"""

    def _build_applied_context(self, applied_filters: Optional[List[FilterInstance]]) -> str:
        if not applied_filters:
            return ""
        applied_json = json.dumps(applied_filters, indent=2, default=str)
        return f"""
ALREADY APPLIED FILTERS:
{applied_json}

The user is refining this existing search. Return only filters that are new or that
change an applied filter. To change an applied filter, reuse its id. Do not repeat
applied filters that the query leaves untouched. The search name should describe the
whole refined search, not only the new criteria.
"""

    def build_user_prompt(self, prompt: str) -> str:
        return f'Extract filters from this prompt and provide a brief explanation: "{prompt}"'

    def build_categorization_prompt(self, prompt: str) -> str:
        return (
            "Categorize the following prompt into one of these categories: "
            f"{', '.join(PROMPT_CATEGORIES)}. Prompt: \"{prompt}\""
        )

    def build_search_name_prompt(self, filters: List[FilterInstance], category: str) -> str:
        return (
            f"Generate a concise, descriptive name for a {category} search with these filters:\n"
            f"{json.dumps(filters, indent=2, default=str)}"
        )
