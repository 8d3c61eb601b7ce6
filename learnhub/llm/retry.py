"""Retry with exponential backoff for external AI calls."""

import asyncio
import functools
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from learnhub.config import config
from learnhub.llm.errors import AIServiceError, LLMDisabledError, ProviderError, ProviderRateLimitError
from learnhub.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to try and how long to wait in between."""

    max_retries: int = 3
    base_delay: float = 1.0
    backoff_multiplier: float = 2.0

    def delay_for(self, attempt: int) -> float:
        """Delay before the attempt following ``attempt`` (zero-based)."""
        return self.base_delay * (self.backoff_multiplier ** attempt)

    @classmethod
    def from_config(cls) -> "RetryPolicy":
        return cls(
            max_retries=config.ai_max_retries,
            base_delay=config.ai_retry_delay_seconds,
            backoff_multiplier=config.ai_backoff_multiplier,
        )


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    service: str,
    operation_name: str,
    policy: RetryPolicy | None = None,
) -> T:
    """Run ``operation`` until it succeeds or the policy is exhausted.

    Args:
        operation: Zero-argument coroutine factory, invoked once per attempt
        service: Name of the calling service, used in logs and errors
        operation_name: Name of the external operation
        policy: Retry policy; defaults to the configured one

    Returns:
        Result of the first successful attempt

    Raises:
        AIServiceError: Every attempt failed
        LLMDisabledError: LLM is switched off (never retried)
        ProviderError: Non-retryable provider error (never retried)
    """
    policy = policy or RetryPolicy.from_config()
    last_error: BaseException | None = None

    for attempt in range(policy.max_retries):
        context = {"service": service, "operation": operation_name, "attempt": attempt + 1}
        try:
            logger.debug(f"{service}: calling {operation_name}", extra={"context": context})
            result = await operation()
            logger.debug(f"{service}: {operation_name} successful", extra={"context": context})
            return result

        except LLMDisabledError:
            raise

        except ProviderError as e:
            if not e.retryable:
                logger.error(
                    f"{service}: {operation_name} rejected by provider: {e}",
                    extra={"context": {**context, "status": e.status_code}},
                )
                raise
            last_error = e

        except Exception as e:
            last_error = e

        logger.warning(
            f"{service}: {operation_name} failed: {last_error}",
            extra={"context": {**context, "max_retries": policy.max_retries}},
        )

        if attempt < policy.max_retries - 1:
            wait_time = policy.delay_for(attempt)
            if isinstance(last_error, ProviderRateLimitError) and last_error.retry_after:
                wait_time = last_error.retry_after
            await asyncio.sleep(wait_time)

    logger.error(
        f"{service}: {operation_name} failed after all retries: {last_error}",
        extra={"context": {"service": service, "operation": operation_name}},
    )
    raise AIServiceError(service, operation_name, cause=last_error)


def retrying(operation_name: str) -> Callable:
    """Decorate an async method so each call goes through ``call_with_retry``.

    The instance must expose ``service_name`` and ``retry_policy``.
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(self: Any, *args: Any, **kwargs: Any) -> T:
            return await call_with_retry(
                lambda: func(self, *args, **kwargs),
                service=self.service_name,
                operation_name=operation_name,
                policy=self.retry_policy,
            )

        return wrapper

    return decorator
