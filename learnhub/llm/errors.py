"""Exceptions raised by the LLM provider layer."""


class LLMDisabledError(Exception):
    """Raised when LLM is disabled but a call is attempted."""

    pass


class ProviderError(Exception):
    """Error response or transport failure from the LLM provider."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        retryable: bool | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self._retryable = retryable

    @property
    def retryable(self) -> bool:
        """Transport failures, rate limits and server errors are retried."""
        if self._retryable is not None:
            return self._retryable
        if self.status_code is None:
            return True
        return self.status_code == 429 or self.status_code >= 500


class ProviderRateLimitError(ProviderError):
    """Rate limit exceeded."""

    def __init__(self, retry_after: float | None = None):
        super().__init__("Rate limit exceeded", status_code=429)
        self.retry_after = retry_after


class AIServiceError(Exception):
    """An external AI call failed after every retry attempt."""

    def __init__(self, service: str, operation: str, cause: BaseException | None = None):
        super().__init__(f"AI service failed: {operation}")
        self.service = service
        self.operation = operation
        self.cause = cause

    @property
    def details(self) -> dict[str, str]:
        return {"service": self.service, "operation": self.operation}


class ModelOutputError(Exception):
    """Model returned output that could not be parsed into the expected shape."""

    def __init__(self, operation: str, raw: str | None = None):
        super().__init__(f"Malformed model output for {operation}")
        self.operation = operation
        self.raw = raw
