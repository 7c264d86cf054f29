# brainstorm_bot/resilience.py
"""
Error coordinator: retries with exponential backoff, per-operation fallback
chains, and the error history behind health reporting.

Usage:
    coordinator = ErrorCoordinator(RetryConfig(max_retries=2))
    coordinator.register_fallback_strategy("analyze_text", strategy)
    result = await coordinator.execute_with_resilience(call, context, "analyze_text")

Cancelling the awaiting task cancels the pending attempt and any backoff
sleep; wrap the call in ``asyncio.shield`` to let retries run to their limit.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections import defaultdict, deque
from datetime import timedelta
from typing import Any, Awaitable, Callable, Optional, TypeVar

from .exceptions import (
    AuthenticationError,
    MalformedResponseError,
    RateLimitError,
    ResilientOperationError,
    ServiceTimeoutError,
    ServiceUnavailableError,
)
from .models import (
    ErrorContext,
    ErrorRecord,
    ErrorSeverity,
    ErrorStatistics,
    ErrorType,
    FallbackStrategy,
    HealthStatus,
    RetryConfig,
    SystemHealthStatus,
    utcnow,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_RECORDS_PER_KEY = 100
HEALTH_WINDOW_SECONDS = 300.0

# Checked in order; the first match wins.
_MESSAGE_RULES: list[tuple[ErrorType, tuple[str, ...]]] = [
    (ErrorType.TIMEOUT_ERROR, ("timeout", "timed out")),
    (ErrorType.RATE_LIMIT, ("rate limit", "quota exceeded")),
    (ErrorType.NETWORK_ERROR, ("network", "connection", "econnrefused", "enotfound")),
    (ErrorType.AUTHENTICATION_ERROR, ("unauthorized", "authentication", "api key", "forbidden")),
    (ErrorType.VALIDATION_ERROR, ("validation", "invalid", "bad request")),
    (ErrorType.API_FAILURE, ("api", "server error", "internal error")),
]


def classify_error(error: BaseException) -> ErrorType:
    """Map an exception to an ``ErrorType``, by class first and message second."""
    if isinstance(error, AuthenticationError):
        return ErrorType.AUTHENTICATION_ERROR
    if isinstance(error, RateLimitError):
        return ErrorType.RATE_LIMIT
    if isinstance(error, (ServiceTimeoutError, asyncio.TimeoutError, TimeoutError)):
        return ErrorType.TIMEOUT_ERROR
    if isinstance(error, MalformedResponseError):
        return ErrorType.VALIDATION_ERROR
    if isinstance(error, ServiceUnavailableError):
        return ErrorType.API_FAILURE
    if isinstance(error, (ConnectionError, OSError)):
        return ErrorType.NETWORK_ERROR

    message = str(error).lower()
    for error_type, needles in _MESSAGE_RULES:
        if any(needle in message for needle in needles):
            return error_type
    return ErrorType.UNKNOWN_ERROR


def determine_severity(error_type: ErrorType, retry_count: int) -> ErrorSeverity:
    if error_type in (ErrorType.AUTHENTICATION_ERROR, ErrorType.VALIDATION_ERROR):
        return ErrorSeverity.HIGH
    if error_type == ErrorType.RATE_LIMIT:
        return ErrorSeverity.HIGH if retry_count > 2 else ErrorSeverity.MEDIUM
    if error_type in (ErrorType.NETWORK_ERROR, ErrorType.TIMEOUT_ERROR):
        if retry_count > 2:
            return ErrorSeverity.HIGH
        if retry_count > 0:
            return ErrorSeverity.MEDIUM
        return ErrorSeverity.LOW
    if error_type == ErrorType.API_FAILURE:
        return ErrorSeverity.HIGH if retry_count > 1 else ErrorSeverity.MEDIUM
    return ErrorSeverity.LOW


class ErrorCoordinator:
    """Runs operations under a uniform retry and fallback policy."""

    def __init__(
        self,
        retry_config: Optional[RetryConfig] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ):
        self.retry_config = retry_config or RetryConfig()
        self._sleep = sleep or asyncio.sleep
        self._fallbacks: dict[str, list[FallbackStrategy]] = defaultdict(list)
        self._history: dict[str, deque[ErrorRecord]] = defaultdict(lambda: deque(maxlen=MAX_RECORDS_PER_KEY))

    # ===== Execution =====

    async def execute_with_resilience(
        self,
        operation: Callable[[], Awaitable[T]],
        context: ErrorContext,
        operation_name: Optional[str] = None,
    ) -> T:
        """
        Run ``operation`` with retries, then the fallbacks registered under
        ``operation_name``.

        Raises:
            AuthenticationError: on the first authentication failure
            ResilientOperationError: when retries and fallbacks are exhausted
        """
        retry_count = 0
        last_error: Optional[Exception] = None

        while True:
            try:
                result = await self._attempt(operation)
            except Exception as exc:
                last_error = exc
                error_type = classify_error(exc)
                severity = determine_severity(error_type, retry_count)
                self._record_error(error_type, severity, str(exc), context, retry_count)

                if error_type == ErrorType.AUTHENTICATION_ERROR:
                    if isinstance(exc, AuthenticationError):
                        raise
                    raise AuthenticationError(str(exc)) from exc

                if error_type not in self.retry_config.retryable_errors or retry_count >= self.retry_config.max_retries:
                    break

                delay = self.calculate_backoff_delay(retry_count)
                logger.warning(
                    "%s failed (%s), retrying in %.2fs (attempt %d/%d)",
                    context.history_key,
                    exc,
                    delay,
                    retry_count + 1,
                    self.retry_config.max_retries,
                )
                await self._sleep(delay)
                retry_count += 1
            else:
                self._mark_resolved(context)
                return result

        if operation_name and self._fallbacks.get(operation_name):
            return await self.execute_fallbacks(operation_name, context, last_error, retry_count)

        raise self._enhance_error(last_error, context, retry_count) from last_error

    async def _attempt(self, operation: Callable[[], Awaitable[T]]) -> T:
        timeout = self.retry_config.attempt_timeout
        if timeout is None:
            return await operation()
        try:
            return await asyncio.wait_for(operation(), timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise ServiceTimeoutError(f"Operation timed out after {timeout}s") from exc

    async def execute_fallbacks(
        self,
        operation_name: str,
        context: ErrorContext,
        original_error: Exception,
        retry_count: int = 0,
    ) -> Any:
        """Try each strategy registered for ``operation_name`` in order; each receives ``context``."""
        for strategy in self._fallbacks.get(operation_name, []):
            logger.info("Attempting fallback strategy: %s", strategy.description)
            try:
                result = await strategy.implementation(context)
            except Exception as exc:
                logger.warning("Fallback strategy failed: %s (%s)", strategy.description, exc)
                continue
            logger.info("Fallback strategy succeeded: %s", strategy.description)
            return result

        raise self._enhance_error(
            original_error, context, retry_count, "All fallback strategies failed"
        ) from original_error

    def calculate_backoff_delay(self, retry_count: int) -> float:
        cfg = self.retry_config
        delay = cfg.base_delay * (cfg.backoff_multiplier**retry_count)
        return min(delay, cfg.max_delay)

    def register_fallback_strategy(self, operation_name: str, strategy: FallbackStrategy) -> None:
        """Append ``strategy`` to the chain tried for ``operation_name``."""
        self._fallbacks[operation_name].append(strategy)

    def get_fallback_strategies(self, operation_name: str) -> list[FallbackStrategy]:
        return list(self._fallbacks.get(operation_name, []))

    # ===== History =====

    def _record_error(
        self,
        error_type: ErrorType,
        severity: ErrorSeverity,
        message: str,
        context: ErrorContext,
        retry_count: int,
    ) -> ErrorRecord:
        record = ErrorRecord(
            id=uuid.uuid4().hex[:12],
            type=error_type,
            severity=severity,
            message=message,
            context=context,
            retry_count=retry_count,
        )
        self._history[context.history_key].append(record)

        level = logging.WARNING if severity == ErrorSeverity.LOW else logging.ERROR
        logger.log(
            level,
            "Error recorded: %s [%s/%s] %s (retry %d)",
            context.history_key,
            error_type.value,
            severity.value,
            message,
            retry_count,
        )
        return record

    def _mark_resolved(self, context: ErrorContext) -> None:
        for record in self._history.get(context.history_key, []):
            record.resolved = True

    def _enhance_error(
        self,
        original_error: Optional[Exception],
        context: ErrorContext,
        retry_count: int,
        additional_info: Optional[str] = None,
    ) -> ResilientOperationError:
        parts = [
            f"Operation failed after {retry_count} retries",
            f"Component: {context.component}",
            f"Operation: {context.operation}",
            f"Original error: {original_error}",
        ]
        if additional_info:
            parts.append(additional_info)
        return ResilientOperationError(". ".join(parts), context.component, context.operation, retry_count)

    def clear_history(self) -> None:
        self._history.clear()

    # ===== Reporting =====

    def get_error_statistics(self, window_seconds: Optional[float] = None) -> ErrorStatistics:
        cutoff = utcnow() - timedelta(seconds=window_seconds) if window_seconds else None
        records = [
            record
            for bucket in self._history.values()
            for record in bucket
            if cutoff is None or record.timestamp >= cutoff
        ]

        by_type: dict[str, int] = defaultdict(int)
        by_severity: dict[str, int] = defaultdict(int)
        resolved = 0
        for record in records:
            by_type[record.type.value] += 1
            by_severity[record.severity.value] += 1
            if record.resolved:
                resolved += 1

        total = len(records)
        return ErrorStatistics(
            total_errors=total,
            resolved_errors=resolved,
            error_rate=(total - resolved) / total if total else 0.0,
            errors_by_type=dict(by_type),
            errors_by_severity=dict(by_severity),
            time_window=window_seconds if window_seconds else "all-time",
        )

    def get_system_health(self) -> SystemHealthStatus:
        stats = self.get_error_statistics(HEALTH_WINDOW_SECONDS)
        score = 1.0
        status = HealthStatus.HEALTHY
        issues: list[str] = []

        if stats.error_rate > 0.5:
            score -= 0.4
            issues.append("High error rate detected")
            status = HealthStatus.UNHEALTHY
        elif stats.error_rate > 0.2:
            score -= 0.2
            issues.append("Elevated error rate")
            status = HealthStatus.DEGRADED

        critical = stats.errors_by_severity.get(ErrorSeverity.CRITICAL.value, 0)
        if critical > 0:
            score -= 0.3
            issues.append(f"{critical} critical errors detected")
            status = HealthStatus.UNHEALTHY

        api_failures = stats.errors_by_type.get(ErrorType.API_FAILURE.value, 0)
        if api_failures > 5:
            score -= 0.2
            issues.append("Multiple API failures detected")
            if status == HealthStatus.HEALTHY:
                status = HealthStatus.DEGRADED

        return SystemHealthStatus(
            status=status,
            health_score=max(round(score, 2), 0.0),
            issues=issues,
            statistics=stats,
        )
