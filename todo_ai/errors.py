from __future__ import annotations
from .config import is_development

class TodoServiceError(Exception):
    """Base error rendered as ``{"error": message}`` with ``status_code``.

    ``detail`` carries the raw cause; it replaces ``message`` in responses
    only when the service runs in development mode.
    """
    status_code = 500

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def public_message(self) -> str:
        if self.detail and is_development():
            return self.detail
        return self.message

class ValidationError(TodoServiceError):
    status_code = 400

    def public_message(self) -> str:
        # Validation messages name the violated rule and are always safe to show.
        return self.message

class QuotaExceeded(TodoServiceError):
    status_code = 429

    def public_message(self) -> str:
        # Retry guidance is shown in every environment.
        return self.message

class ConfigurationError(TodoServiceError):
    status_code = 500

class UnclassifiedRemoteFailure(TodoServiceError):
    status_code = 500

QUOTA_MESSAGE = "AI 서비스 사용량이 초과되었습니다. 잠시 후 다시 시도해주세요."
GENERATE_QUOTA_MESSAGE = QUOTA_MESSAGE + " API 할당량은 Google AI Studio에서 확인할 수 있습니다."

_QUOTA_MARKERS = ("quota", "Quota exceeded", "exceeded your current quota", "429", "rate limit", "resource exhausted")
_INPUT_MARKERS = ("invalid", "validation", "bad request", "400")
_AUTH_MARKERS = ("unauthorized", "authentication", "API key", "401", "permission denied")

def classify_remote_error(exc: Exception, failure_message: str,
                          quota_message: str = QUOTA_MESSAGE) -> TodoServiceError:
    """Map an exception raised by the generative service onto the error taxonomy."""
    if isinstance(exc, TodoServiceError):
        return exc
    raw = str(exc) or exc.__class__.__name__
    lowered = raw.lower()
    if any(m.lower() in lowered for m in _QUOTA_MARKERS):
        return QuotaExceeded(quota_message, detail=raw)
    if any(m.lower() in lowered for m in _INPUT_MARKERS):
        return ValidationError("입력값이 올바르지 않습니다. 다시 확인해주세요.", detail=raw)
    if any(m.lower() in lowered for m in _AUTH_MARKERS):
        return ConfigurationError("API 인증에 실패했습니다. API 키 설정을 확인해주세요.", detail=raw)
    return UnclassifiedRemoteFailure(f"{failure_message} 잠시 후 다시 시도해주세요.", detail=raw)
