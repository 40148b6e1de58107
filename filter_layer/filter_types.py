"""
Typed Filter Model

Catalog definitions and the vocabulary shared by validation, enrichment
and merging. Filter instances travel as plain JSON-shaped dicts (the wire
shape used by clients and the language model); definitions are immutable
dataclasses loaded once at startup.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple


# A single applied or candidate filter in its JSON wire shape:
# {"id", "type", "source_type", "label", "filterType", "value", "timestamp", ...}
FilterInstance = Dict[str, Any]

OPERATOR_KEY = "filterType"


class ValueType(str, Enum):
    """Value type of a filter definition (the validator variant)."""
    NUMBER = "number"
    TEXT = "text"
    BOOL = "bool"
    DATE = "date"
    MULTISELECT = "multiselect"

    @classmethod
    def parse(cls, value: Any) -> Optional["ValueType"]:
        try:
            return cls(value)
        except ValueError:
            return None


class SourceType(str, Enum):
    """Dataset a filter applies to."""
    PROPERTIES = "properties"
    CONTACTS = "contacts"

    @classmethod
    def parse(cls, value: Any) -> Optional["SourceType"]:
        try:
            return cls(value)
        except ValueError:
            return None

    @property
    def search_type(self) -> str:
        return "multiple_properties" if self == SourceType.PROPERTIES else "multiple_people"

    @property
    def display_name(self) -> str:
        return "Property" if self == SourceType.PROPERTIES else "Contact"


class NumberOperator(str, Enum):
    RANGE = "range"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    EQ = "eq"
    NEQ = "neq"


class TextOperator(str, Enum):
    CONTAINS = "contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    NOT_CONTAINS = "not_contains"
    ANY_OF = "any_of"


class DateOperator(str, Enum):
    DATE_RANGE = "date_range"
    IS_AFTER = "is_after"
    IS_BEFORE = "is_before"
    IS_EQUAL = "is_equal"
    RELATIVE_TIME = "relative_time"


class MultiselectOperator(str, Enum):
    CONTAINS_ANY = "contains_any"
    CONTAINS_NONE = "contains_none"


# Bool filters carry a value only; they have no operator.
VALID_OPERATORS: Dict[ValueType, FrozenSet[str]] = {
    ValueType.NUMBER: frozenset(op.value for op in NumberOperator),
    ValueType.TEXT: frozenset(op.value for op in TextOperator),
    ValueType.BOOL: frozenset(),
    ValueType.DATE: frozenset(op.value for op in DateOperator),
    ValueType.MULTISELECT: frozenset(op.value for op in MultiselectOperator),
}

RELATIVE_TIME_UNITS = ("days", "weeks", "months", "years")
RELATIVE_TIME_DIRECTIONS = ("ago", "from_now")
BOOL_VALUES = ("yes", "no")


@dataclass(frozen=True)
class FilterOption:
    """One selectable option of a multiselect filter."""
    id: Any
    label: str

    def to_dict(self) -> Dict:
        return {"id": self.id, "label": self.label}

    @classmethod
    def from_dict(cls, data: Mapping) -> "FilterOption":
        return cls(id=data["id"], label=data.get("label", ""))


@dataclass(frozen=True)
class FilterDefinition:
    """
    Catalog entry describing one available filter.

    `metadata` holds optional display/help fields (display_name, hint,
    placeholder, unit, group, icon, ...) that enrichment copies onto
    instances.
    """
    id: int
    label: str
    value_type: ValueType
    source_type: SourceType
    description: str = ""
    subtype: Optional[str] = None
    min: Optional[float] = None
    max: Optional[float] = None
    options: Tuple[FilterOption, ...] = ()
    aliases: Tuple[str, ...] = ()
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def option_for(self, option_id: Any) -> Optional[FilterOption]:
        for option in self.options:
            if option.id == option_id:
                return option
        return None

    def to_dict(self) -> Dict:
        """Catalog wire shape, as served to clients and the language model."""
        data: Dict[str, Any] = {
            "id": self.id,
            "label": self.label,
            "type": self.value_type.value,
            "subtype": self.subtype,
            "source_type": self.source_type.value,
            "description": self.description,
        }
        if self.aliases:
            data["aliases"] = list(self.aliases)
        if self.min is not None:
            data["min"] = self.min
        if self.max is not None:
            data["max"] = self.max
        if self.options:
            data["options"] = [option.to_dict() for option in self.options]
        data.update(self.metadata)
        return data

    @classmethod
    def from_dict(cls, data: Mapping) -> "FilterDefinition":
        known = {
            "id", "label", "type", "value_type", "subtype", "source_type",
            "description", "min", "max", "options", "aliases",
        }
        return cls(
            id=int(data["id"]),
            label=data["label"],
            value_type=ValueType(data.get("type") or data["value_type"]),
            source_type=SourceType(data["source_type"]),
            description=data.get("description", ""),
            subtype=data.get("subtype"),
            min=data.get("min"),
            max=data.get("max"),
            options=tuple(FilterOption.from_dict(o) for o in data.get("options") or []),
            aliases=tuple(data.get("aliases") or []),
            metadata={k: v for k, v in data.items() if k not in known},
        )


def filter_key(instance: Mapping) -> str:
    """Composite identity of a filter: `id:operator`."""
    return f"{instance.get('id')}:{instance.get(OPERATOR_KEY) or ''}"


def coerce_filter_id(value: Any) -> Optional[int]:
    """Integer filter id from model/client output, or None when unusable."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None
