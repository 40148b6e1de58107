"""
Filter Extraction Orchestrator

Turns a natural-language prompt plus the caller's applied filters into a
canonical filter set. The language model is asked for a structured object
first; when that fails the orchestrator degrades through two text-parsing
strategies before giving up:

    structured -> text_fallback -> block_fallback -> empty

Whatever happens, `extract` returns an ExtractionResult. Model outages and
parse errors keep the applied filters untouched and report an `error`.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
import copy
import json
import logging
import re
import time
import uuid

from .catalog import FilterCatalog, default_catalog
from .config import LLMConfig
from .enricher import enrich_filters
from .errors import ModelOutputUnschematic
from .filter_types import FilterInstance, SourceType
from .merge import merge_filters, summarize_filters
from .prompts import PromptBuilder, response_schema
from .validator import FilterValidator

logger = logging.getLogger(__name__)

FENCED_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)```")

NAME_PROMPT_CHARS = 30

NO_MATCH_EXPLANATION = {"matched": "", "unmatched": "No filters matched."}
NOTHING_EXTRACTED_EXPLANATION = {"matched": "", "unmatched": "No filters could be extracted"}
BLOCK_EXPLANATION = {"matched": "Filters extracted from query", "unmatched": ""}
ERROR_EXPLANATION = {"matched": "", "unmatched": "Query resulted in an error"}

LLM_NOT_CONFIGURED = "Language model is not configured"


class ExtractionStrategy(Enum):
    """How the candidate filters were obtained."""
    STRUCTURED = "structured"          # Structured JSON response
    TEXT_FALLBACK = "text_fallback"    # JSON object recovered from free text
    BLOCK_FALLBACK = "block_fallback"  # Bare filter array from a fenced block
    EMPTY = "empty"                    # Nothing recoverable
    ERROR = "error"                    # Model or pipeline error


@dataclass
class ExtractionResult:
    """Outcome of one extraction call."""
    search_name: str
    explanation: Dict[str, str]
    extracted_criteria: List[FilterInstance] = field(default_factory=list)
    filter_count: int = 0
    new_filter_count: int = 0
    updated_filter_count: int = 0

    search_type: str = SourceType.PROPERTIES.search_type
    search_id: str = ""
    applied_filters_count: int = 0
    rejected_filter_count: int = 0
    used_fallback: bool = False
    raw_llm_response: Optional[str] = None
    error: Optional[str] = None
    strategy: ExtractionStrategy = ExtractionStrategy.STRUCTURED
    extraction_time_ms: float = 0.0
    merged_name: str = ""

    def to_dict(self) -> Dict:
        data = {
            "search_type": self.search_type,
            "search_id": self.search_id,
            "search_name": self.search_name,
            "extracted_criteria": self.extracted_criteria,
            "filter_count": self.filter_count,
            "new_filter_count": self.new_filter_count,
            "updated_filter_count": self.updated_filter_count,
            "applied_filters_count": self.applied_filters_count,
            "rejected_filter_count": self.rejected_filter_count,
            "explanation": self.explanation,
            "merged_name": self.merged_name,
            "used_fallback": self.used_fallback,
            "strategy": self.strategy.value,
            "extraction_time_ms": round(self.extraction_time_ms, 1),
        }
        if self.raw_llm_response is not None:
            data["raw_llm_response"] = self.raw_llm_response
        if self.error is not None:
            data["error"] = self.error
        return data


def new_search_id() -> str:
    return f"search_{uuid.uuid4().hex[:13]}"


def default_search_name(prompt: str, applied_count: int = 0, source_type=SourceType.PROPERTIES) -> str:
    """Name synthesized from the prompt when the model supplies none."""
    source = SourceType.parse(source_type) or SourceType.PROPERTIES
    snippet = prompt[:NAME_PROMPT_CHARS]
    if len(prompt) > NAME_PROMPT_CHARS:
        snippet += "..."
    if applied_count:
        return f"{source.display_name} Search ({applied_count} applied): {snippet}"
    return f"{source.display_name} Search: {snippet}"


def extract_json_block(text: str) -> str:
    """First fenced code block of `text`, or the whole text when there is none."""
    match = FENCED_BLOCK.search(text)
    return (match.group(1) if match else text).strip()


def unwrap_filters(filters: Any) -> Any:
    """Unwrap the {type: "array", items: [...]} envelope some models emit."""
    if isinstance(filters, dict) and filters.get("type") == "array" and "items" in filters:
        return filters["items"]
    return filters


def _clean_name(name: Any) -> Optional[str]:
    if not isinstance(name, str):
        return None
    name = name.strip().strip("\"'").strip()
    return name or None


def _normalize_explanation(explanation: Any) -> Dict[str, str]:
    if isinstance(explanation, dict):
        return {
            "matched": str(explanation.get("matched") or ""),
            "unmatched": str(explanation.get("unmatched") or ""),
        }
    if isinstance(explanation, str) and explanation:
        return {"matched": explanation, "unmatched": ""}
    return dict(NO_MATCH_EXPLANATION)


def _candidate_list(filters: Any) -> List[Any]:
    filters = unwrap_filters(filters)
    if filters is None:
        return []
    if not isinstance(filters, list):
        logger.warning("Model returned filters as %s, ignoring", type(filters).__name__)
        return []
    return filters


class FilterExtractor:
    """
    Prompt -> validated, enriched and merged filter set.

    The extractor holds no per-request state; the catalog is read-only and
    the model config is passed per call, so one instance can serve
    concurrent requests.
    """

    def __init__(
        self,
        llm_client=None,
        catalog: Optional[FilterCatalog] = None,
        config: Optional[LLMConfig] = None,
    ):
        self.llm = llm_client
        self.catalog = catalog or default_catalog()
        self.config = config or LLMConfig()
        self.prompt_builder = PromptBuilder()

    def extract(
        self,
        prompt: str,
        applied_filters: Optional[List[FilterInstance]] = None,
        catalog: Optional[FilterCatalog] = None,
        source_type=SourceType.PROPERTIES,
        config: Optional[LLMConfig] = None,
    ) -> ExtractionResult:
        """Extract filters from `prompt` and merge them into `applied_filters`."""
        start_time = time.time()
        applied = list(applied_filters or [])
        source = SourceType.parse(source_type)

        try:
            if source is None:
                raise ValueError(f"Unknown source_type: {source_type!r}")
            if self.llm is None:
                raise RuntimeError(LLM_NOT_CONFIGURED)
            result = self._extract(prompt, applied, catalog or self.catalog, source, config or self.config)
        except Exception as e:
            logger.exception("Error extracting search criteria: %s", e)
            result = self._error_result(prompt, applied, source or SourceType.PROPERTIES, str(e))

        result.extraction_time_ms = (time.time() - start_time) * 1000
        return result

    def _extract(
        self,
        prompt: str,
        applied: List[FilterInstance],
        catalog: FilterCatalog,
        source: SourceType,
        config: LLMConfig,
    ) -> ExtractionResult:
        system_prompt = self.prompt_builder.build_system_prompt(
            catalog.for_source(source), source, applied
        )
        user_prompt = self.prompt_builder.build_user_prompt(prompt)

        raw_response = None
        try:
            payload = self.llm.request_structured(
                system_prompt, user_prompt, response_schema(source), config
            )
            if not isinstance(payload, dict):
                raise ModelOutputUnschematic(
                    f"Structured response is a {type(payload).__name__}, expected an object"
                )
            candidates, explanation, name = self._read_payload(payload)
            strategy = ExtractionStrategy.STRUCTURED
        except Exception as e:
            logger.warning("JSON structured output failed, falling back to text parsing: %s", e)
            raw_response = self.llm.request_text(system_prompt, user_prompt, config)
            candidates, explanation, name, strategy = self._parse_text_response(raw_response)

        if strategy == ExtractionStrategy.EMPTY:
            result = self._unchanged_result(prompt, applied, source)
            result.explanation = dict(NOTHING_EXTRACTED_EXPLANATION)
            result.error = "No filters could be extracted from the model response"
            result.strategy = strategy
            result.used_fallback = True
            result.raw_llm_response = raw_response
            return result

        validation = FilterValidator(catalog).validate_all(candidates, source)
        merged = merge_filters(validation.accepted, applied, source)

        # Enrich after merging so applied-only fields are not shadowed by catalog defaults
        processed = merged.processed_count
        merged.filters[:processed] = enrich_filters(merged.filters[:processed], catalog, source)
        merged.name = summarize_filters(merged.filters, source)

        logger.info(
            "Extracted %d filters (%d new, %d updated, %d rejected) via %s",
            processed,
            merged.new_filter_count,
            merged.updated_filter_count,
            validation.rejected_count,
            strategy.value,
        )

        return ExtractionResult(
            search_name=name or default_search_name(prompt, len(applied), source),
            explanation=explanation,
            extracted_criteria=merged.filters,
            filter_count=merged.filter_count,
            new_filter_count=merged.new_filter_count,
            updated_filter_count=merged.updated_filter_count,
            search_type=source.search_type,
            search_id=new_search_id(),
            applied_filters_count=len(applied),
            rejected_filter_count=validation.rejected_count,
            used_fallback=strategy != ExtractionStrategy.STRUCTURED,
            raw_llm_response=raw_response,
            strategy=strategy,
            merged_name=merged.name,
        )

    def _read_payload(self, payload: Dict) -> Tuple[List[Any], Dict[str, str], Optional[str]]:
        for key in ("filters", "explanation", "search_name"):
            if key not in payload:
                logger.warning("Model response is missing %r, using default", key)
        return (
            _candidate_list(payload.get("filters")),
            _normalize_explanation(payload.get("explanation")),
            _clean_name(payload.get("search_name")),
        )

    def _parse_text_response(
        self, text: str
    ) -> Tuple[List[Any], Dict[str, str], Optional[str], ExtractionStrategy]:
        """Recover candidates from a free-text response."""
        try:
            data = json.loads(extract_json_block(text))
        except (TypeError, ValueError):
            data = None

        if isinstance(data, dict):
            candidates, explanation, name = self._read_payload(data)
            return candidates, explanation, name, ExtractionStrategy.TEXT_FALLBACK

        for block in FENCED_BLOCK.findall(text or ""):
            try:
                decoded = json.loads(block.strip())
            except ValueError:
                continue
            # A later block may hold the full response object
            if isinstance(decoded, dict) and "filters" in decoded:
                candidates, explanation, name = self._read_payload(decoded)
                return candidates, explanation, name, ExtractionStrategy.TEXT_FALLBACK
            filters = unwrap_filters(decoded)
            if isinstance(filters, list):
                logger.info("Recovered %d candidate filters from a fenced block", len(filters))
                return filters, dict(BLOCK_EXPLANATION), None, ExtractionStrategy.BLOCK_FALLBACK

        logger.warning("No filters could be recovered from the text response")
        return [], dict(NOTHING_EXTRACTED_EXPLANATION), None, ExtractionStrategy.EMPTY

    def _unchanged_result(
        self, prompt: str, applied: List[FilterInstance], source: SourceType
    ) -> ExtractionResult:
        filters = copy.deepcopy(applied)
        return ExtractionResult(
            search_name=default_search_name(prompt, len(applied), source),
            explanation=dict(NO_MATCH_EXPLANATION),
            extracted_criteria=filters,
            filter_count=len(filters),
            search_type=source.search_type,
            search_id=new_search_id(),
            applied_filters_count=len(applied),
            merged_name=summarize_filters(filters, source),
        )

    def _error_result(
        self, prompt: str, applied: List[FilterInstance], source: SourceType, error: str
    ) -> ExtractionResult:
        result = self._unchanged_result(prompt, applied, source)
        result.explanation = dict(ERROR_EXPLANATION)
        result.error = error or "Unknown extraction error"
        result.strategy = ExtractionStrategy.ERROR
        return result
