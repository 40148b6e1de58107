"""
FastAPI Backend for the Property Search Assistant

Endpoints:
- /api/filters          filter catalog (all, properties, contacts)
- /api/prompt           categorize a prompt and extract search filters
- /api/metrics/*        extraction metrics
- /health               liveness and model configuration
"""

import asyncio
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from dataclasses import replace
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from filter_layer import (
    FilterCatalog,
    FilterExtractor,
    GeminiClient,
    LLMConfig,
    MetricsCollector,
    SourceType,
    __version__,
    configure_logging,
    default_catalog,
    get_metrics,
    get_settings,
)
from filter_layer.extractor import new_search_id
from filter_layer.prompts import (
    CATEGORIZATION_SYSTEM_PROMPT,
    CATEGORY_SCHEMA,
    SEARCH_NAME_SCHEMA,
    SEARCH_NAME_SYSTEM_PROMPT,
    PromptBuilder,
)

settings = get_settings()
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

API_VERSION = "1.0"

CATEGORIZATION_TEMPERATURE = 0.3
NAMING_TEMPERATURE = 0.7

# Categories whose prompts run through the filter engine
ENGINE_CATEGORIES = {
    SourceType.PROPERTIES.search_type: SourceType.PROPERTIES,
    SourceType.CONTACTS.search_type: SourceType.CONTACTS,
}

ENGINE_ACTIONS = {
    SourceType.PROPERTIES: ("get_properties_filters", "Filtering property listings based on criteria"),
    SourceType.CONTACTS: ("people_search", "Searching for multiple individuals"),
}

# Lookups for these categories are served by the search index
DEFAULT_ACTIONS = {
    "individual_person": ("person_profile_search", "Searching for individual person profile"),
    "individual_property": ("property_lookup", "Looking up specific property details"),
    "individual_company": ("company_profile_search", "Searching for company information"),
    "multiple_companies": ("company_list_filter", "Filtering company listings based on criteria"),
}
GENERAL_ACTION = ("general_search", "Performing general search with provided criteria")

SOURCE_CATEGORIES = {
    "properties": "multiple_properties",
    "contacts": "multiple_people",
    "companies": "multiple_companies",
}

FALLBACK_NAMES = {
    "multiple_properties": "Property Search",
    "multiple_people": "Contact Search",
    "multiple_companies": "Company Search",
    "individual_property": "Property Lookup",
    "individual_person": "Contact Lookup",
    "individual_company": "Company Lookup",
    "other": "Custom Search",
}

EMPTY_PROMPT_ACTIONS = {
    "multiple_properties": "get_properties_filters",
    "multiple_people": "people_search",
    "multiple_companies": "companies_search",
}


def _load_catalog() -> FilterCatalog:
    if settings.catalog_file:
        logger.info("Loading filter catalog from %s", settings.catalog_file)
        return FilterCatalog.from_file(settings.catalog_file)
    return default_catalog()


catalog = _load_catalog()
llm_client = None
filter_extractor: Optional[FilterExtractor] = None

_llm_pool = ThreadPoolExecutor(max_workers=4, thread_name_prefix="llm")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the model client and the extractor on startup."""
    global llm_client, filter_extractor

    if settings.google_api_key:
        llm_client = GeminiClient(settings.google_api_key)
        logger.info("Configured %s model: %s", settings.llm.provider, settings.llm.model)
    else:
        llm_client = None
        logger.warning("GOOGLE_API_KEY not set. LLM extraction will be disabled.")

    filter_extractor = FilterExtractor(llm_client, catalog, settings.llm)
    logger.info("Filter engine initialized with %d catalog filters", len(catalog))
    yield


app = FastAPI(
    title="Property Search Assistant API",
    description="Natural-language prompts to validated property and contact search filters",
    version=__version__,
    lifespan=lifespan,
)

# CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Dependencies (overridden in tests)
def get_llm_client():
    return llm_client


def get_extractor() -> FilterExtractor:
    if filter_extractor is None:
        raise HTTPException(status_code=500, detail="Extractor not initialized")
    return filter_extractor


def get_metrics_collector() -> MetricsCollector:
    return get_metrics()


def get_llm_config() -> LLMConfig:
    return settings.llm


# Pydantic models
class PromptRequest(BaseModel):
    prompt: str = ""
    filters: List[Dict[str, Any]] = []


def envelope(message: str, data: Any, code: int = 200, status: str = "success") -> Dict[str, Any]:
    return {
        "status": status,
        "code": code,
        "message": message,
        "data": data,
        "meta": {
            "timestamp": int(time.time()),
            "version": API_VERSION,
        },
    }


def categorize_prompt(client, prompt: str, config: LLMConfig) -> Dict[str, Any]:
    """Ask the model which kind of entity the prompt searches for."""
    if client is None:
        raise RuntimeError("Language model is not configured")

    result = client.request_structured(
        CATEGORIZATION_SYSTEM_PROMPT,
        PromptBuilder().build_categorization_prompt(prompt),
        CATEGORY_SCHEMA,
        replace(config, temperature=CATEGORIZATION_TEMPERATURE),
    )
    if not isinstance(result, dict) or not result.get("category"):
        raise ValueError("Failed to parse category from LLM response")
    return result


def generate_search_name(client, filters: List[Dict], category: str, config: LLMConfig) -> str:
    """Model-generated name for a filter set, with a count-based fallback."""
    if not filters:
        return "Untitled Search"

    try:
        if client is None:
            raise RuntimeError("Language model is not configured")
        response = client.request_structured(
            SEARCH_NAME_SYSTEM_PROMPT,
            PromptBuilder().build_search_name_prompt(filters, category),
            SEARCH_NAME_SCHEMA,
            replace(config, temperature=NAMING_TEMPERATURE),
        )
        name = str(response.get("name") or "").strip()
        name = name.replace('"', "").replace("'", "")
        if not name:
            raise ValueError("Failed to generate search name")
        return name
    except Exception as e:
        logger.warning("Search name generation failed, using fallback: %s", e)
        return f"{FALLBACK_NAMES.get(category, 'Search')} ({len(filters)} filters)"


def _category_for_filters(filters: List[Dict]) -> str:
    for instance in filters:
        category = SOURCE_CATEGORIES.get(instance.get("source_type"))
        if category:
            return category
    return SOURCE_CATEGORIES["properties"]


def _category_override(filters: List[Dict]) -> Optional[str]:
    """Category forced by a leading source_type pseudo-filter."""
    if not filters:
        return None
    first = filters[0]
    if isinstance(first, dict) and first.get("type") == "source_type":
        category = SOURCE_CATEGORIES.get(first.get("value"))
        if category in ENGINE_CATEGORIES:
            return category
    return None


async def _run_action(
    category: str,
    prompt: str,
    filters: List[Dict],
    extractor: FilterExtractor,
    metrics: MetricsCollector,
    config: LLMConfig,
) -> Dict[str, Any]:
    source = ENGINE_CATEGORIES.get(category)
    if source is None:
        action_type, details = DEFAULT_ACTIONS.get(category, GENERAL_ACTION)
        return {"action_type": action_type, "details": details, "query": prompt}

    start_time = time.time()
    loop = asyncio.get_running_loop()
    result = await loop.run_in_executor(
        _llm_pool,
        lambda: extractor.extract(prompt, filters, source_type=source, config=config),
    )
    metrics.record_extraction(prompt, result, (time.time() - start_time) * 1000)

    action_type, details = ENGINE_ACTIONS[source]
    return {
        "action_type": action_type,
        "details": details,
        "query": prompt,
        "saved_search": {
            "id": result.search_id,
            "name": result.search_name,
            "filters": result.extracted_criteria,
            "criteria": result.to_dict(),
        },
    }


async def _name_filters(filters: List[Dict], client, config: LLMConfig) -> Dict[str, Any]:
    """Name an applied filter set without extracting new criteria."""
    category = _category_for_filters(filters)
    loop = asyncio.get_running_loop()
    search_name = await loop.run_in_executor(
        _llm_pool, generate_search_name, client, filters, category, config
    )
    search_id = new_search_id()

    action = {
        "action_type": EMPTY_PROMPT_ACTIONS[category],
        "details": "Filter-based search without prompt text",
        "query": "",
        "saved_search": {
            "id": search_id,
            "name": search_name,
            "filters": filters,
            "criteria": {
                "search_type": category,
                "search_id": search_id,
                "search_name": search_name,
                "extracted_criteria": filters,
                "filter_count": len(filters),
                "applied_filters_count": len(filters),
            },
        },
    }
    return envelope("Filters processed without prompt text", {
        "categorization": {
            "category": category,
            "confidence": 1.0,
            "explanation": "Category determined by filter source_type",
        },
        "action": action,
    })


# ============== Filter Catalog ==============

@app.get("/api/filters")
async def list_filters():
    return envelope("Filters retrieved successfully", {"filters": catalog.to_list()})


@app.get("/api/filters/properties")
async def list_property_filters():
    return envelope(
        "Property filters retrieved successfully",
        {"filters": catalog.to_list(SourceType.PROPERTIES)},
    )


@app.get("/api/filters/contacts")
async def list_contact_filters():
    return envelope(
        "Contact filters retrieved successfully",
        {"filters": catalog.to_list(SourceType.CONTACTS)},
    )


# ============== Prompt ==============

@app.post("/api/prompt")
async def process_prompt(
    request: PromptRequest,
    extractor: FilterExtractor = Depends(get_extractor),
    client=Depends(get_llm_client),
    metrics: MetricsCollector = Depends(get_metrics_collector),
    config: LLMConfig = Depends(get_llm_config),
):
    """
    Categorize a prompt and, for multi-record searches, extract filters.

    An empty prompt with applied filters only names the filter set. A
    leading source_type filter skips categorization.
    """
    prompt = request.prompt.strip()
    filters = request.filters

    if not prompt and filters:
        return await _name_filters(filters, client, config)

    if not prompt:
        return JSONResponse(
            status_code=400,
            content=envelope("No prompt provided", [], code=400, status="error"),
        )

    category = _category_override(filters)
    if category:
        action = await _run_action(category, prompt, filters, extractor, metrics, config)
        return envelope("Prompt processed with filter override", {
            "categorization": {
                "category": category,
                "confidence": 1.0,
                "explanation": "Category determined by filter",
            },
            "action": action,
        })

    try:
        loop = asyncio.get_running_loop()
        categorization = await loop.run_in_executor(
            _llm_pool, categorize_prompt, client, prompt, config
        )
        action = await _run_action(
            categorization["category"], prompt, filters, extractor, metrics, config
        )
    except Exception as e:
        logger.exception("Error processing prompt: %s", e)
        content = envelope("Error processing prompt", [], code=500, status="error")
        if not settings.is_production:
            content["debug"] = {
                "error_details": {"message": str(e), "type": type(e).__name__},
            }
        return JSONResponse(status_code=500, content=content)

    return envelope("Prompt categorized successfully", {
        "categorization": categorization,
        "action": action,
    })


# ============== Metrics ==============

@app.get("/api/metrics/summary")
async def metrics_summary(metrics: MetricsCollector = Depends(get_metrics_collector)):
    return {
        "summary": metrics.get_summary(),
        "recent_queries": metrics.get_recent_queries(),
    }


@app.get("/api/metrics/filters")
async def metrics_filters(
    limit: int = 10,
    metrics: MetricsCollector = Depends(get_metrics_collector),
):
    return {"filters": metrics.get_filter_usage(limit)}


@app.get("/health")
async def health(client=Depends(get_llm_client)):
    return {
        "status": "ok",
        "version": __version__,
        "llm_configured": client is not None,
        "catalog_size": len(catalog),
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
