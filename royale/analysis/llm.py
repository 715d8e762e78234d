"""
Vision model invocation for screenshot analysis.

This module is the only place that calls the external model. Deterministic
temperature, one request per image, no retries. Every failure surfaces as
ExternalServiceError so the upload pipeline can fail that one item.
"""
from __future__ import annotations

import json
import logging
from typing import Any

from openai import OpenAI, OpenAIError
from pydantic import ValidationError as PydanticValidationError

from royale.analysis.prompt import build_messages
from royale.analysis.schemas import ANALYSIS_JSON_SCHEMA, AnalysisResult
from royale.config import ANALYSIS_MODEL, ANALYSIS_TIMEOUT_SECONDS, OPENAI_API_KEY
from royale.errors import ExternalServiceError

logger = logging.getLogger(__name__)


def _get_client() -> OpenAI:
    if not OPENAI_API_KEY:
        raise ExternalServiceError(
            "OPENAI_API_KEY is not set",
            user_message="Screenshot analysis is not configured",
        )
    return OpenAI(api_key=OPENAI_API_KEY, timeout=ANALYSIS_TIMEOUT_SECONDS)


def parse_analysis(content: str | None) -> AnalysisResult:
    """Turn the model's message content into an AnalysisResult."""
    if not content:
        raise ExternalServiceError("Analysis response was empty", user_message="Analysis returned nothing")
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ExternalServiceError(f"Analysis response is not JSON: {e}", user_message="Analysis could not be read") from e
    if not isinstance(data, dict):
        raise ExternalServiceError("Analysis response is not an object", user_message="Analysis could not be read")
    try:
        return AnalysisResult.model_validate(data)
    except PydanticValidationError as e:
        raise ExternalServiceError(f"Analysis response has the wrong shape: {e}", user_message="Analysis could not be read") from e


def analyze_screenshot(image_url: str, client: Any | None = None) -> AnalysisResult:
    """
    Ask the vision model for placement, kills and player rows on one screenshot.
    client is injectable for tests; defaults to an OpenAI client from config.
    """
    client = client or _get_client()
    try:
        response = client.chat.completions.create(
            model=ANALYSIS_MODEL,
            messages=build_messages(image_url),
            temperature=0,
            response_format={
                "type": "json_schema",
                "json_schema": {
                    "name": "screenshot_analysis",
                    "strict": True,
                    "schema": ANALYSIS_JSON_SCHEMA,
                },
            },
            max_tokens=1024,
        )
    except OpenAIError as e:
        logger.warning("Analysis call failed for %s: %s", image_url, e)
        raise ExternalServiceError(f"Analysis call failed: {e}", user_message="Analysis service unavailable") from e
    if not response.choices:
        raise ExternalServiceError("Analysis response had no choices", user_message="Analysis returned nothing")
    return parse_analysis(response.choices[0].message.content)
