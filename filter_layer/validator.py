"""
Typed Filter Validation

Candidate filters arrive from the language model or a client and are
untrusted. Each candidate is checked in two steps:
1. CATALOG level - id, type and source_type match a known definition
2. SHAPE level - value matches the type/operator contract, after light repair

A candidate that fails either step is dropped whole; there is no partial
filter state.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
import copy
import logging
import math
import re
import time

from .catalog import FilterCatalog
from .errors import CandidateRejected, CatalogMismatch, ShapeViolation
from .filter_types import (
    BOOL_VALUES,
    OPERATOR_KEY,
    RELATIVE_TIME_DIRECTIONS,
    RELATIVE_TIME_UNITS,
    VALID_OPERATORS,
    DateOperator,
    FilterInstance,
    NumberOperator,
    SourceType,
    TextOperator,
    ValueType,
    coerce_filter_id,
)

logger = logging.getLogger(__name__)

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@dataclass
class ValidationIssue:
    """A single rejected candidate."""
    level: str  # "catalog" or "shape"
    message: str
    filter_id: Any = None
    location: Optional[str] = None  # e.g., "filters[0]"


@dataclass
class ValidationResult:
    """Accepted filters plus the issues of every dropped candidate."""
    accepted: List[FilterInstance] = field(default_factory=list)
    issues: List[ValidationIssue] = field(default_factory=list)

    @property
    def rejected_count(self) -> int:
        return len(self.issues)

    def to_dict(self) -> Dict:
        return {
            "accepted": len(self.accepted),
            "rejected": self.rejected_count,
            "issues": [
                {
                    "level": i.level,
                    "message": i.message,
                    "filter_id": i.filter_id,
                    "location": i.location,
                }
                for i in self.issues
            ],
        }


def _to_number(value: Any) -> Optional[float]:
    """Numeric value of `value`, accepting numeric strings; None otherwise."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        clean = value.strip()
        try:
            return int(clean)
        except ValueError:
            pass
        try:
            number = float(clean)
        except ValueError:
            return None
        return number if math.isfinite(number) else None
    return None


def is_valid_date(value: Any) -> bool:
    """True for a real calendar date written as YYYY-MM-DD."""
    if not isinstance(value, str) or not DATE_PATTERN.match(value):
        return False
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        return False
    return True


def _operator(instance: FilterInstance, value_type: ValueType) -> str:
    operator = instance.get(OPERATOR_KEY)
    if operator not in VALID_OPERATORS[value_type]:
        raise ShapeViolation(
            instance.get("id"),
            f"operator {operator!r} is not valid for {value_type.value} filters",
        )
    return operator


def validate_number(instance: FilterInstance) -> FilterInstance:
    operator = _operator(instance, ValueType.NUMBER)
    value = instance.get("value")
    fid = instance.get("id")

    if operator == NumberOperator.RANGE.value:
        if not isinstance(value, dict):
            raise ShapeViolation(fid, "range value must be an object with min and max")
        low, high = _to_number(value.get("min")), _to_number(value.get("max"))
        if low is None or high is None:
            raise ShapeViolation(fid, "range min and max must be numeric")
        if low > high:
            low, high = high, low
            logger.info("Swapped inverted range bounds for filter %s", fid)
        instance["value"] = {**value, "min": low, "max": high}

    elif operator == NumberOperator.EQ.value:
        number = _to_number(value)
        if number is None:
            raise ShapeViolation(fid, "eq value must be a bare number")
        instance["value"] = number

    else:
        # Extractors often emit {"filterType": "lt", "value": 100000}
        bare = _to_number(value)
        if bare is not None:
            value = {operator: bare}
            logger.info("Auto-fixed number filter format for filter %s", fid)
        if not isinstance(value, dict):
            raise ShapeViolation(fid, f"{operator} value must be an object keyed by {operator!r}")
        number = _to_number(value.get(operator))
        if number is None:
            raise ShapeViolation(fid, f"{operator} value must hold a numeric {operator!r}")
        instance["value"] = {**value, operator: number}

    return instance


def validate_text(instance: FilterInstance) -> FilterInstance:
    operator = _operator(instance, ValueType.TEXT)
    value = instance.get("value")
    fid = instance.get("id")

    if not isinstance(value, dict):
        raise ShapeViolation(fid, "text value must be an object")

    if operator == TextOperator.ANY_OF.value:
        values = value.get("values")
        if value.get("type") != TextOperator.ANY_OF.value or not isinstance(values, list):
            raise ShapeViolation(fid, "any_of value must be {type: 'any_of', values: [...]}")
        if not all(isinstance(v, str) for v in values):
            raise ShapeViolation(fid, "any_of values must all be strings")
    else:
        if value.get("type") != operator or not isinstance(value.get("text"), str):
            raise ShapeViolation(fid, f"text value must be {{type: {operator!r}, text: string}}")

    return instance


def validate_bool(instance: FilterInstance) -> FilterInstance:
    value = instance.get("value")
    if value is True or value == "true":
        instance["value"] = "yes"
    elif value is False or value == "false":
        instance["value"] = "no"

    if instance["value"] not in BOOL_VALUES:
        raise ShapeViolation(instance.get("id"), f"bool value must be 'yes' or 'no', got {value!r}")
    return instance


def validate_date(instance: FilterInstance) -> FilterInstance:
    operator = _operator(instance, ValueType.DATE)
    value = instance.get("value")
    fid = instance.get("id")

    if not isinstance(value, dict):
        raise ShapeViolation(fid, "date value must be an object")

    if operator == DateOperator.DATE_RANGE.value:
        if not (is_valid_date(value.get("start")) and is_valid_date(value.get("end"))):
            raise ShapeViolation(fid, "date_range needs valid start and end dates (YYYY-MM-DD)")

    elif operator == DateOperator.RELATIVE_TIME.value:
        relative = value.get("relativeTime")
        if not isinstance(relative, dict):
            raise ShapeViolation(fid, "relative_time value must hold a relativeTime object")
        if _to_number(relative.get("value")) is None:
            raise ShapeViolation(fid, "relativeTime.value must be numeric")
        if relative.get("unit") not in RELATIVE_TIME_UNITS:
            raise ShapeViolation(fid, f"relativeTime.unit must be one of {RELATIVE_TIME_UNITS}")
        if relative.get("direction") not in RELATIVE_TIME_DIRECTIONS:
            raise ShapeViolation(fid, f"relativeTime.direction must be one of {RELATIVE_TIME_DIRECTIONS}")

    else:
        if value.get("type") != operator or not is_valid_date(value.get("date")):
            raise ShapeViolation(fid, f"date value must be {{type: {operator!r}, date: YYYY-MM-DD}}")

    return instance


def validate_multiselect(instance: FilterInstance) -> FilterInstance:
    _operator(instance, ValueType.MULTISELECT)
    value = instance.get("value")
    fid = instance.get("id")

    if not isinstance(value, dict) or not isinstance(value.get("values"), list):
        raise ShapeViolation(fid, "multiselect value must be {values: [...]}")

    for item in value["values"]:
        if not isinstance(item, dict) or item.get("id") is None or item.get("label") is None:
            raise ShapeViolation(fid, "each multiselect value needs an id and a label")

    return instance


TYPE_VALIDATORS: Dict[ValueType, Callable[[FilterInstance], FilterInstance]] = {
    ValueType.NUMBER: validate_number,
    ValueType.TEXT: validate_text,
    ValueType.BOOL: validate_bool,
    ValueType.DATE: validate_date,
    ValueType.MULTISELECT: validate_multiselect,
}


class FilterValidator:
    """
    Validates candidate filters against a catalog for one source_type.

    Validation works on a deep copy; the caller's candidate is never mutated.
    """

    def __init__(self, catalog: FilterCatalog):
        self.catalog = catalog

    def validate(self, candidate: Any, source_type) -> FilterInstance:
        """Return the repaired filter or raise CatalogMismatch/ShapeViolation."""
        if not isinstance(candidate, dict):
            raise CatalogMismatch(None, "candidate is not an object")

        raw_id = candidate.get("id")
        filter_id = coerce_filter_id(raw_id)
        if filter_id is None:
            raise CatalogMismatch(raw_id, "missing or non-integer id")

        value_type = ValueType.parse(candidate.get("type"))
        if value_type is None:
            raise CatalogMismatch(filter_id, f"unknown type {candidate.get('type')!r}")

        context = SourceType.parse(source_type)
        declared = SourceType.parse(candidate.get("source_type"))
        if declared is None or declared != context:
            raise CatalogMismatch(
                filter_id,
                f"source_type {candidate.get('source_type')!r} does not match {source_type!r}",
            )

        definition = self.catalog.lookup(filter_id, declared)
        if definition is None:
            raise CatalogMismatch(filter_id, f"no {declared.value} filter with this id")
        if definition.value_type != value_type:
            raise CatalogMismatch(
                filter_id,
                f"type {value_type.value!r} does not match catalog type {definition.value_type.value!r}",
            )

        if candidate.get("value") is None:
            raise ShapeViolation(filter_id, "missing value")

        instance = copy.deepcopy(candidate)
        instance["id"] = filter_id
        if instance.get("timestamp") is None:
            instance["timestamp"] = int(time.time())

        return TYPE_VALIDATORS[value_type](instance)

    def validate_all(self, candidates: List[Any], source_type) -> ValidationResult:
        """Validate every candidate, dropping (and logging) the invalid ones."""
        result = ValidationResult()
        for i, candidate in enumerate(candidates):
            location = f"filters[{i}]"
            try:
                result.accepted.append(self.validate(candidate, source_type))
            except CandidateRejected as e:
                level = "catalog" if isinstance(e, CatalogMismatch) else "shape"
                logger.debug("Dropped candidate %s (%s): %s", location, level, e.reason)
                result.issues.append(ValidationIssue(
                    level=level,
                    message=e.reason,
                    filter_id=e.filter_id,
                    location=location,
                ))
        return result
