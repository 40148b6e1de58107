"""
Catalog Enrichment

Copies descriptive metadata from a filter definition onto a validated
instance. Values supplied on the instance always win over the catalog.
"""

from typing import Dict, List, Optional
import copy
import logging

from .catalog import FilterCatalog
from .filter_types import FilterDefinition, FilterInstance, ValueType

logger = logging.getLogger(__name__)

# Definition fields copied onto instances that do not already carry them
ENRICHMENT_FIELDS = (
    "description",
    "options",
    "subtype",
    "display_name",
    "hint",
    "placeholder",
    "unit",
    "allowed_values",
    "default_value",
    "group",
    "icon",
    "importance",
)


def _resolve_options(values: List, definition: FilterDefinition) -> List:
    """Replace partial {id} selections with full catalog option records."""
    resolved = []
    for item in values:
        option = definition.option_for(item.get("id")) if isinstance(item, dict) else None
        if option is None:
            resolved.append(item)
            continue

        record = option.to_dict()
        supplied_label = item.get("label")
        if supplied_label and supplied_label != option.label:
            record["label"] = supplied_label
        resolved.append(record)
    return resolved


def enrich_filter(instance: FilterInstance, definition: Optional[FilterDefinition]) -> FilterInstance:
    """Return a copy of `instance` enriched from `definition`."""
    enriched = copy.deepcopy(instance)
    if definition is None:
        return enriched

    if not enriched.get("label"):
        enriched["label"] = definition.label

    catalog_fields: Dict = definition.to_dict()
    for name in ENRICHMENT_FIELDS:
        if enriched.get(name) is None and catalog_fields.get(name) is not None:
            enriched[name] = copy.deepcopy(catalog_fields[name])

    value = enriched.get("value")
    if (
        definition.value_type == ValueType.MULTISELECT
        and definition.options
        and isinstance(value, dict)
        and isinstance(value.get("values"), list)
    ):
        enriched["value"] = {**value, "values": _resolve_options(value["values"], definition)}

    return enriched


def enrich_filters(
    instances: List[FilterInstance],
    catalog: FilterCatalog,
    source_type,
) -> List[FilterInstance]:
    enriched = []
    for instance in instances:
        definition = catalog.lookup(instance.get("id"), source_type)
        if definition is None:
            logger.debug("No catalog entry to enrich filter %s", instance.get("id"))
        enriched.append(enrich_filter(instance, definition))
    return enriched
