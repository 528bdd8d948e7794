"""
Custom Exceptions
=================

Unified exception hierarchy for consistent error handling across the studio.
"""

from typing import Optional, Dict, Any


class StudioError(Exception):
    """Base exception for all Series Studio errors."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        self.recoverable = recoverable

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


class ConfigurationError(StudioError):
    """Configuration-related errors."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        expected_type: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if config_key:
            details["config_key"] = config_key
        if expected_type:
            details["expected_type"] = expected_type
        super().__init__(message, details=details, **kwargs)


class ProviderError(StudioError):
    """Provider/API-related errors."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if provider:
            details["provider"] = provider
        if status_code:
            details["status_code"] = status_code
        if response_body:
            # Truncate large responses
            details["response_body"] = response_body[:500] if len(response_body) > 500 else response_body

        recoverable = kwargs.pop("recoverable", status_code in (429, 500, 502, 503, 504) if status_code else False)
        super().__init__(message, recoverable=recoverable, details=details, **kwargs)


class QuotaExceededError(ProviderError):
    """The generation service reports the caller's quota is exhausted."""

    def __init__(
        self,
        message: str = "API quota exceeded",
        retry_after: Optional[int] = None,
        **kwargs,
    ):
        # Batch orchestration classifies failures by message text
        if "quota" not in message.lower():
            message = f"Quota exceeded: {message}"
        details = kwargs.pop("details", {})
        if retry_after:
            details["retry_after_seconds"] = retry_after
        kwargs.setdefault("status_code", 429)
        super().__init__(message, recoverable=False, details=details, **kwargs)


class GenerationError(StudioError):
    """Image or text generation errors."""

    def __init__(
        self,
        message: str,
        job_id: Optional[str] = None,
        stage: Optional[str] = None,
        prompt: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if job_id:
            details["job_id"] = job_id
        if stage:
            details["stage"] = stage
        if prompt:
            # Truncate long prompts
            details["prompt"] = prompt[:200] if len(prompt) > 200 else prompt
        super().__init__(message, details=details, **kwargs)


class GenerationTimeoutError(GenerationError):
    """A single generation call exceeded its deadline."""

    def __init__(
        self,
        message: str,
        timeout_seconds: Optional[float] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if timeout_seconds:
            details["timeout_seconds"] = timeout_seconds
        super().__init__(message, recoverable=True, details=details, **kwargs)


class ValidationError(StudioError):
    """Input/output validation errors."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        constraint: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)[:100]
        if constraint:
            details["constraint"] = constraint
        super().__init__(message, details=details, **kwargs)


class ResourceNotFoundError(StudioError):
    """Resource not found errors."""

    def __init__(
        self,
        message: str,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if resource_type:
            details["resource_type"] = resource_type
        if resource_id:
            details["resource_id"] = resource_id
        super().__init__(message, recoverable=False, details=details, **kwargs)


QUOTA_KEYWORDS = ("quota", "limit")


def is_quota_message(message: Optional[str]) -> bool:
    """Whether a failure message signals an exhausted quota or rate limit."""
    if not message:
        return False
    lowered = message.lower()
    return any(keyword in lowered for keyword in QUOTA_KEYWORDS)
