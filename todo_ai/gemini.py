from __future__ import annotations
import json
import logging
from typing import Optional

import google.generativeai as genai

from .config import GEMINI_MODEL, gemini_api_key
from .errors import QUOTA_MESSAGE, ConfigurationError, UnclassifiedRemoteFailure, classify_remote_error

logger = logging.getLogger(__name__)

class GeminiClient:
    """One JSON round trip to Gemini per call. No retry, no timeout override."""

    def __init__(self, model_name: str = GEMINI_MODEL, api_key: Optional[str] = None):
        self.model_name = model_name
        self._api_key = api_key

    def _key(self) -> str:
        key = self._api_key or gemini_api_key()
        if not key:
            raise ConfigurationError(
                "AI 서비스가 설정되지 않았습니다.",
                detail="GOOGLE_GENERATIVE_AI_API_KEY is not set",
            )
        return key

    def generate_json(self, prompt: str, temperature: float, failure_message: str,
                      quota_message: str = QUOTA_MESSAGE) -> dict:
        key = self._key()
        try:
            genai.configure(api_key=key)
            model = genai.GenerativeModel(self.model_name)
            response = model.generate_content(
                prompt,
                generation_config=genai.GenerationConfig(
                    temperature=temperature,
                    response_mime_type="application/json",
                ),
            )
            text = (getattr(response, "text", None) or "").strip()
        except Exception as exc:
            logger.exception("Gemini request failed (model=%s)", self.model_name)
            raise classify_remote_error(exc, failure_message, quota_message) from exc
        try:
            data = json.loads(text)
        except ValueError as exc:
            raise UnclassifiedRemoteFailure(failure_message, detail=f"non-JSON response: {text[:200]}") from exc
        if not isinstance(data, dict):
            raise UnclassifiedRemoteFailure(failure_message, detail="response is not a JSON object")
        return data
