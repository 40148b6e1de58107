"""
Filter Layer for Natural-Language Property Search

Turns prompts into typed, catalog-validated search filters and merges
them into the caller's applied filters, degrading gracefully when the
language model returns malformed output.
"""

from .filter_types import (
    FilterInstance,
    ValueType,
    SourceType,
    FilterOption,
    FilterDefinition,
    filter_key,
)
from .catalog import FilterCatalog, default_catalog
from .errors import (
    FilterEngineError,
    CandidateRejected,
    CatalogMismatch,
    ShapeViolation,
    ModelRequestFailure,
    ModelOutputUnschematic,
)
from .validator import (
    ValidationIssue,
    ValidationResult,
    FilterValidator,
)
from .enricher import enrich_filter, enrich_filters
from .merge import MergeResult, merge_filters, summarize_filters
from .config import LLMConfig, Settings, get_settings, configure_logging
from .llm_client import LLMClient, GeminiClient
from .extractor import (
    ExtractionStrategy,
    ExtractionResult,
    FilterExtractor,
)
from .metrics import MetricsCollector, ExtractionMetrics, get_metrics

__all__ = [
    # Filter model
    "FilterInstance",
    "ValueType",
    "SourceType",
    "FilterOption",
    "FilterDefinition",
    "filter_key",
    "FilterCatalog",
    "default_catalog",
    # Errors
    "FilterEngineError",
    "CandidateRejected",
    "CatalogMismatch",
    "ShapeViolation",
    "ModelRequestFailure",
    "ModelOutputUnschematic",
    # Validation
    "ValidationIssue",
    "ValidationResult",
    "FilterValidator",
    # Enrichment and merge
    "enrich_filter",
    "enrich_filters",
    "MergeResult",
    "merge_filters",
    "summarize_filters",
    # Extraction
    "LLMConfig",
    "Settings",
    "get_settings",
    "configure_logging",
    "LLMClient",
    "GeminiClient",
    "ExtractionStrategy",
    "ExtractionResult",
    "FilterExtractor",
    # Utilities
    "MetricsCollector",
    "ExtractionMetrics",
    "get_metrics",
]

__version__ = "1.0.0"
