from __future__ import annotations

from enum import Enum


class ErrorCategory(str, Enum):
    """User-facing classes of generation failure."""
    SERVICE_BUSY = "service_busy"
    RATE_LIMITED = "rate_limited"
    NETWORK = "network"
    CONFIGURATION = "configuration"
    GENERIC = "generic"


USER_MESSAGES: dict[ErrorCategory, str] = {
    ErrorCategory.SERVICE_BUSY: "The recipe service is busy right now. Please try again in a moment.",
    ErrorCategory.RATE_LIMITED: "Too many requests. Please wait a little before generating another recipe.",
    ErrorCategory.NETWORK: "Network issue while contacting the recipe service. Check your connection and try again.",
    ErrorCategory.CONFIGURATION: "The recipe service is not configured correctly. Please contact support.",
    ErrorCategory.GENERIC: "Failed to generate recipe. Please try again.",
}

# Checked in order; the first category with a matching keyword wins.
_CATEGORY_KEYWORDS: tuple[tuple[ErrorCategory, tuple[str, ...]], ...] = (
    (ErrorCategory.CONFIGURATION, ("api key", "api_key", "permission", "unauthenticated", "not configured")),
    (ErrorCategory.RATE_LIMITED, ("429", "rate limit", "rate-limit", "ratelimit", "quota", "resource_exhausted", "too many requests")),
    (ErrorCategory.SERVICE_BUSY, ("503", "overload", "unavailable", "busy")),
    (ErrorCategory.NETWORK, ("network", "timeout", "timed out", "connection", "fetch")),
)


def classify_failure(error: BaseException | str) -> ErrorCategory:
    """Map an underlying failure to a user-facing category by keyword."""
    message = str(error).lower()
    for category, keywords in _CATEGORY_KEYWORDS:
        if any(keyword in message for keyword in keywords):
            return category
    return ErrorCategory.GENERIC


class CookAIError(Exception):
    pass


class GenerationError(CookAIError):
    def __init__(self, message: str, category: ErrorCategory = ErrorCategory.GENERIC, attempts: int = 1):
        super().__init__(message)
        self.category = category
        self.attempts = attempts

    @property
    def user_message(self) -> str:
        return USER_MESSAGES[self.category]


class ValidationError(GenerationError):
    def __init__(self, message: str, missing_fields: list[str] | None = None):
        super().__init__(message, category=ErrorCategory.GENERIC)
        self.missing_fields = missing_fields or []


class StorageError(CookAIError):
    def __init__(self, key: str, reason: str):
        super().__init__(f"Storage failure for {key}: {reason}")
        self.key = key
        self.reason = reason


class AuthRequiredError(CookAIError):
    def __init__(self, operation: str):
        super().__init__(f"Sign in required to {operation}")
        self.operation = operation


class InvalidIdentityError(CookAIError):
    def __init__(self, message: str = "Invalid authentication token"):
        super().__init__(message)
