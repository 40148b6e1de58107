"""
Language-Model Client

The extraction engine only needs two calls: a structured (JSON object)
request and a free-text request. `GeminiClient` implements both on Google
Gemini; tests and other providers implement the `LLMClient` protocol.
"""

from typing import Any, Dict, Protocol
import json
import logging

import google.generativeai as genai

from .config import LLMConfig
from .errors import ModelOutputUnschematic, ModelRequestFailure

logger = logging.getLogger(__name__)


class LLMClient(Protocol):
    def request_structured(
        self,
        system_prompt: str,
        user_prompt: str,
        schema: Dict[str, Any],
        config: LLMConfig,
    ) -> Dict[str, Any]:
        ...

    def request_text(self, system_prompt: str, user_prompt: str, config: LLMConfig) -> str:
        ...


class GeminiClient:
    """Stateless Gemini wrapper; model settings arrive with every call."""

    PROVIDER = "gemini"

    def __init__(self, api_key: str):
        if not api_key:
            raise ValueError("Gemini API key cannot be empty")
        genai.configure(api_key=api_key)

    def _generate(
        self,
        system_prompt: str,
        prompt: str,
        config: LLMConfig,
        mime_type: str = "text/plain",
    ) -> str:
        if config.provider != self.PROVIDER:
            raise ModelRequestFailure(f"Unsupported provider: {config.provider}")

        model = genai.GenerativeModel(config.model, system_instruction=system_prompt)
        generation_config = genai.GenerationConfig(
            temperature=config.temperature,
            max_output_tokens=config.max_output_tokens,
            response_mime_type=mime_type,
        )
        logger.debug("Gemini request: model=%s mime=%s", config.model, mime_type)
        try:
            response = model.generate_content(prompt, generation_config=generation_config)
            return response.text.strip()
        except Exception as e:
            raise ModelRequestFailure(f"Gemini API error: {e}") from e

    def request_structured(
        self,
        system_prompt: str,
        user_prompt: str,
        schema: Dict[str, Any],
        config: LLMConfig,
    ) -> Dict[str, Any]:
        """Ask for a JSON object matching `schema` and decode it."""
        prompt = (
            f"{user_prompt}\n\nRespond with a valid JSON object matching this schema: "
            f"{json.dumps(schema)}"
        )
        text = self._generate(system_prompt, prompt, config, mime_type="application/json")
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as e:
            raise ModelRequestFailure(f"Structured response is not valid JSON: {e}", text) from e

        if not isinstance(payload, dict):
            raise ModelOutputUnschematic(
                f"Structured response is a {type(payload).__name__}, expected an object", text
            )
        return payload

    def request_text(self, system_prompt: str, user_prompt: str, config: LLMConfig) -> str:
        return self._generate(system_prompt, user_prompt, config)
