"""
retry.py

Retry policies for collaborator calls, and translation of OpenAI SDK errors
into the pipeline's ExternalServiceError taxonomy.

Only errors flagged retryable (rate limiting, connection failures, timeouts
and 5xx responses) are retried. Authentication, quota and other 4xx errors
surface on the first attempt.
Both policies are bounded and re-raise the last error once exhausted.
"""
from __future__ import annotations

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_incrementing,
)

from scriptcue.errors import (
    AuthenticationFailedError,
    ExternalServiceError,
    QuotaExceededError,
    RateLimitedError,
    RequestRejectedError,
    ServiceUnavailableError,
)


def is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, ExternalServiceError) and exc.retryable


def _log_retry(state: RetryCallState) -> None:
    exc = state.outcome.exception() if state.outcome else None
    print(f"[warn] attempt {state.attempt_number} failed: {exc}; retrying", flush=True)


def exponential_retrying(max_attempts: int, backoff_seconds: float) -> Retrying:
    """Backoff doubling from backoff_seconds, for classification calls."""
    return Retrying(
        retry=retry_if_exception(is_retryable),
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=backoff_seconds, max=60),
        before_sleep=_log_retry,
        reraise=True,
    )


def linear_retrying(max_attempts: int, backoff_seconds: float) -> Retrying:
    """Backoff growing by backoff_seconds per attempt, for speech synthesis."""
    return Retrying(
        retry=retry_if_exception(is_retryable),
        stop=stop_after_attempt(max_attempts),
        wait=wait_incrementing(start=backoff_seconds, increment=backoff_seconds),
        before_sleep=_log_retry,
        reraise=True,
    )


def translate_openai_error(exc: Exception, service: str) -> Exception:
    """
    Map an OpenAI SDK exception onto ExternalServiceError.

    Exceptions that are not OpenAI API errors are returned unchanged.
    """
    import openai

    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return AuthenticationFailedError(f"{service}: authentication failed: {exc}", service=service)
    if isinstance(exc, openai.RateLimitError):
        if getattr(exc, "code", None) == "insufficient_quota" or "quota" in str(exc).lower():
            return QuotaExceededError(f"{service}: quota exhausted: {exc}", service=service)
        return RateLimitedError(f"{service}: rate limited: {exc}", service=service)
    if isinstance(exc, openai.APIConnectionError):
        return ServiceUnavailableError(f"{service}: connection failed: {exc}", service=service)
    if isinstance(exc, openai.APIStatusError):
        if exc.status_code >= 500:
            return ServiceUnavailableError(f"{service}: server error: {exc}", service=service)
        return RequestRejectedError(f"{service}: request rejected: {exc}", service=service)
    if isinstance(exc, openai.APIError):
        return RequestRejectedError(f"{service}: unusable response: {exc}", service=service)
    return exc
