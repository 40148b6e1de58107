"""
Filter Catalog

Static, per-source list of available filter definitions. The catalog is
read-only after construction and safe to share between requests.
"""

from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple
import json

from .filter_types import (
    FilterDefinition,
    FilterOption,
    SourceType,
    ValueType,
    coerce_filter_id,
)


class FilterCatalog:
    """Lookup table of filter definitions keyed by (id, source_type)."""

    def __init__(self, definitions: Iterable[FilterDefinition] = ()):
        self._definitions: Dict[Tuple[int, SourceType], FilterDefinition] = {}
        for definition in definitions:
            key = (definition.id, definition.source_type)
            if key in self._definitions:
                raise ValueError(
                    f"Duplicate filter id {definition.id} for {definition.source_type.value}"
                )
            self._definitions[key] = definition

    def __len__(self) -> int:
        return len(self._definitions)

    def __iter__(self):
        return iter(self._definitions.values())

    def lookup(self, filter_id, source_type) -> Optional[FilterDefinition]:
        """Definition for `filter_id` within `source_type`, or None."""
        source = SourceType.parse(source_type)
        key = coerce_filter_id(filter_id)
        if source is None or key is None:
            return None
        return self._definitions.get((key, source))

    def all_ids(self, source_type) -> Set[int]:
        source = SourceType.parse(source_type)
        return {fid for (fid, src) in self._definitions if src == source}

    def for_source(self, source_type) -> List[FilterDefinition]:
        source = SourceType.parse(source_type)
        return [d for d in self._definitions.values() if d.source_type == source]

    def to_list(self, source_type=None) -> List[Dict]:
        """Wire-shaped definitions, optionally restricted to one source."""
        definitions = self.for_source(source_type) if source_type else list(self)
        return [d.to_dict() for d in definitions]

    @classmethod
    def from_dicts(cls, data: Iterable[Dict]) -> "FilterCatalog":
        return cls(FilterDefinition.from_dict(item) for item in data)

    @classmethod
    def from_file(cls, path) -> "FilterCatalog":
        """Load a catalog from a JSON file holding a list of definitions."""
        with Path(path).open("r", encoding="utf-8") as f:
            data = json.load(f)
        if isinstance(data, dict):
            data = data.get("filters", [])
        return cls.from_dicts(data)


def _options(*labels: str) -> Tuple[FilterOption, ...]:
    return tuple(FilterOption(id=i, label=label) for i, label in enumerate(labels, start=1))


PROPERTY_FILTERS: Tuple[FilterDefinition, ...] = (
    FilterDefinition(
        id=1,
        label="Property Value",
        value_type=ValueType.NUMBER,
        source_type=SourceType.PROPERTIES,
        description="Estimated market value of the property in USD",
        subtype="currency",
        min=0,
        max=100_000_000,
        aliases=("price", "value", "worth", "cost"),
        metadata={"unit": "USD", "group": "Valuation"},
    ),
    FilterDefinition(
        id=2,
        label="Bedrooms",
        value_type=ValueType.NUMBER,
        source_type=SourceType.PROPERTIES,
        description="Number of bedrooms",
        min=0,
        max=20,
        aliases=("beds", "bed", "br", "bedroom"),
        metadata={"group": "Characteristics"},
    ),
    FilterDefinition(
        id=3,
        label="Bathrooms",
        value_type=ValueType.NUMBER,
        source_type=SourceType.PROPERTIES,
        description="Number of bathrooms",
        min=0,
        max=20,
        aliases=("baths", "bath", "ba"),
        metadata={"group": "Characteristics"},
    ),
    FilterDefinition(
        id=4,
        label="Living Area",
        value_type=ValueType.NUMBER,
        source_type=SourceType.PROPERTIES,
        description="Finished living area in square feet",
        min=0,
        max=50_000,
        aliases=("sqft", "square feet", "size"),
        metadata={"unit": "sqft", "group": "Characteristics"},
    ),
    FilterDefinition(
        id=5,
        label="Year Built",
        value_type=ValueType.NUMBER,
        source_type=SourceType.PROPERTIES,
        description="Year the structure was built",
        subtype="year",
        min=1800,
        max=2100,
        aliases=("built", "construction year", "age of home"),
        metadata={"group": "Characteristics"},
    ),
    FilterDefinition(
        id=6,
        label="Property Type",
        value_type=ValueType.MULTISELECT,
        source_type=SourceType.PROPERTIES,
        description="Land use classification of the property",
        options=_options(
            "Single Family", "Condo", "Townhouse", "Multi-Family", "Vacant Land", "Mobile Home",
        ),
        aliases=("house", "condo", "townhome", "duplex", "land"),
        metadata={"group": "Characteristics"},
    ),
    FilterDefinition(
        id=7,
        label="City",
        value_type=ValueType.TEXT,
        source_type=SourceType.PROPERTIES,
        description="City of the property address",
        aliases=("in", "located in", "town"),
        metadata={"placeholder": "e.g. Phoenix", "group": "Location"},
    ),
    FilterDefinition(
        id=8,
        label="Zip Code",
        value_type=ValueType.TEXT,
        source_type=SourceType.PROPERTIES,
        description="Postal code of the property address",
        aliases=("zip", "postal code"),
        metadata={"group": "Location"},
    ),
    FilterDefinition(
        id=9,
        label="Owner Occupied",
        value_type=ValueType.BOOL,
        source_type=SourceType.PROPERTIES,
        description="Whether the owner lives at the property",
        aliases=("owner lives there", "primary residence"),
        metadata={"group": "Ownership"},
    ),
    FilterDefinition(
        id=10,
        label="Absentee Owner",
        value_type=ValueType.BOOL,
        source_type=SourceType.PROPERTIES,
        description="Owner mailing address differs from the property address",
        aliases=("absentee", "out of state owner", "non-owner occupied"),
        metadata={"group": "Ownership"},
    ),
    FilterDefinition(
        id=11,
        label="Last Sale Date",
        value_type=ValueType.DATE,
        source_type=SourceType.PROPERTIES,
        description="Date the property was last sold",
        aliases=("sold", "purchased", "bought"),
        metadata={"group": "Transactions"},
    ),
    FilterDefinition(
        id=12,
        label="Features",
        value_type=ValueType.MULTISELECT,
        source_type=SourceType.PROPERTIES,
        description="Notable property features",
        options=_options("Pool", "Garage", "Fireplace", "Basement", "Waterfront"),
        aliases=("amenities", "with a pool", "garage"),
        metadata={"group": "Characteristics"},
    ),
    FilterDefinition(
        id=13,
        label="Owner Age",
        value_type=ValueType.NUMBER,
        source_type=SourceType.PROPERTIES,
        description="Age of the primary owner in years",
        min=18,
        max=100,
        aliases=("older", "senior owner", "years old"),
        metadata={"group": "Ownership"},
    ),
)


CONTACT_FILTERS: Tuple[FilterDefinition, ...] = (
    FilterDefinition(
        id=18,
        label="Age",
        value_type=ValueType.NUMBER,
        source_type=SourceType.CONTACTS,
        description="Age of the contact in years",
        min=18,
        max=100,
        aliases=("age", "years old", "person age"),
    ),
    FilterDefinition(
        id=19,
        label="Occupation",
        value_type=ValueType.TEXT,
        source_type=SourceType.CONTACTS,
        description="Job title or profession of the contact",
        aliases=("job", "profession", "works as"),
    ),
    FilterDefinition(
        id=20,
        label="Annual Income",
        value_type=ValueType.NUMBER,
        source_type=SourceType.CONTACTS,
        description="Estimated household income in USD",
        subtype="currency",
        min=0,
        aliases=("income", "earns", "salary"),
        metadata={"unit": "USD"},
    ),
    FilterDefinition(
        id=21,
        label="Homeowner",
        value_type=ValueType.BOOL,
        source_type=SourceType.CONTACTS,
        description="Whether the contact owns their residence",
        aliases=("owns a home", "renter"),
    ),
)


def default_catalog() -> FilterCatalog:
    """Built-in catalog holding property and contact filters."""
    return FilterCatalog(PROPERTY_FILTERS + CONTACT_FILTERS)
