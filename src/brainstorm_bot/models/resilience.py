# brainstorm_bot/models/resilience.py
"""Models for the error coordinator: contexts, records, policy and statistics."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Awaitable, Callable, Optional, Union

from pydantic import BaseModel, Field

from ..base_models import DictCompatModel
from .enums import ErrorSeverity, ErrorType, FallbackKind, HealthStatus
from .messages import utcnow


class ErrorContext(BaseModel):
    """Describes the operation a failure belongs to."""

    operation: str
    component: str
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    additional_data: dict[str, Any] = Field(default_factory=dict)

    @property
    def history_key(self) -> str:
        return f"{self.component}-{self.operation}"


class ErrorRecord(BaseModel):
    id: str
    type: ErrorType
    severity: ErrorSeverity
    message: str
    context: ErrorContext
    timestamp: datetime = Field(default_factory=utcnow)
    retry_count: int = 0
    resolved: bool = False


DEFAULT_RETRYABLE = [
    ErrorType.API_FAILURE,
    ErrorType.NETWORK_ERROR,
    ErrorType.TIMEOUT_ERROR,
    ErrorType.RATE_LIMIT,
]


class RetryConfig(BaseModel):
    max_retries: int = Field(default=3, ge=0)
    base_delay: float = Field(default=1.0, ge=0.0, description="Seconds")
    max_delay: float = Field(default=30.0, ge=0.0, description="Seconds")
    backoff_multiplier: float = Field(default=2.0, ge=1.0)
    attempt_timeout: Optional[float] = Field(default=30.0, description="Seconds per attempt; None disables")
    retryable_errors: list[ErrorType] = Field(default_factory=lambda: list(DEFAULT_RETRYABLE))


class FallbackStrategy(BaseModel):
    """A recovery action tried after the primary operation gives up.

    ``implementation`` is called with the failed operation's ``ErrorContext``.
    """

    model_config = {"arbitrary_types_allowed": True}

    kind: FallbackKind
    description: str
    implementation: Callable[[ErrorContext], Awaitable[Any]]


class ErrorStatistics(DictCompatModel):
    total_errors: int = 0
    resolved_errors: int = 0
    error_rate: float = 0.0
    errors_by_type: dict[str, int] = Field(default_factory=dict)
    errors_by_severity: dict[str, int] = Field(default_factory=dict)
    time_window: Union[float, str] = "all-time"


class SystemHealthStatus(DictCompatModel):
    status: HealthStatus = HealthStatus.HEALTHY
    health_score: float = Field(default=1.0, ge=0.0, le=1.0)
    issues: list[str] = Field(default_factory=list)
    last_checked: datetime = Field(default_factory=utcnow)
    statistics: ErrorStatistics = Field(default_factory=ErrorStatistics)
