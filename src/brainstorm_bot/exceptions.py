# brainstorm_bot/exceptions.py
"""Exception hierarchy for the brainstorm bot.

Authentication and configuration failures surface to the caller. Everything
else that comes out of the completion service is absorbed by retries,
fallback strategies or local heuristics before it reaches ``process_message``
or ``generate_response``.
"""

from __future__ import annotations


class BrainstormBotError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(BrainstormBotError):
    """Required settings are missing or out of range."""


class CompletionServiceError(BrainstormBotError):
    """The language-model service failed to produce a completion."""


class AuthenticationError(CompletionServiceError):
    """Credentials were rejected. Never retried, never falls back."""


class RateLimitError(CompletionServiceError):
    """The service rejected the call because of a rate limit or quota."""


class ServiceTimeoutError(CompletionServiceError):
    """The service did not answer in time."""


class ServiceUnavailableError(CompletionServiceError):
    """The service could not be reached or returned a server error."""


class MalformedResponseError(BrainstormBotError):
    """A structured completion result could not be parsed."""


class ResilientOperationError(BrainstormBotError):
    """Retries and fallback strategies were exhausted."""

    def __init__(self, message: str, component: str, operation: str, retry_count: int):
        super().__init__(message)
        self.component = component
        self.operation = operation
        self.retry_count = retry_count
