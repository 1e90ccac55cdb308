from __future__ import annotations

import pytest

from cookai.app.domain.errors import (
    AuthRequiredError,
    CookAIError,
    ErrorCategory,
    GenerationError,
    InvalidIdentityError,
    StorageError,
    USER_MESSAGES,
    ValidationError,
    classify_failure,
)


class TestClassifyFailure:
    @pytest.mark.parametrize(
        ("message", "expected"),
        [
            ("429 RESOURCE_EXHAUSTED", ErrorCategory.RATE_LIMITED),
            ("You exceeded your current quota", ErrorCategory.RATE_LIMITED),
            ("503 The model is overloaded", ErrorCategory.SERVICE_BUSY),
            ("Service Unavailable", ErrorCategory.SERVICE_BUSY),
            ("Failed to fetch", ErrorCategory.NETWORK),
            ("Connection reset by peer", ErrorCategory.NETWORK),
            ("API key not valid. Please pass a valid API key.", ErrorCategory.CONFIGURATION),
            ("something odd happened", ErrorCategory.GENERIC),
        ],
    )
    def test_keyword_mapping(self, message: str, expected: ErrorCategory) -> None:
        assert classify_failure(message) == expected

    def test_accepts_exceptions(self) -> None:
        assert classify_failure(RuntimeError("request timed out")) == ErrorCategory.NETWORK


class TestGenerationError:
    def test_defaults_to_generic(self) -> None:
        error = GenerationError("boom")
        assert error.category == ErrorCategory.GENERIC
        assert error.attempts == 1
        assert error.user_message == USER_MESSAGES[ErrorCategory.GENERIC]

    def test_user_message_follows_category(self) -> None:
        error = GenerationError("429", category=ErrorCategory.RATE_LIMITED, attempts=3)
        assert error.user_message == USER_MESSAGES[ErrorCategory.RATE_LIMITED]
        assert error.attempts == 3

    def test_every_category_has_a_message(self) -> None:
        assert set(USER_MESSAGES) == set(ErrorCategory)


class TestValidationError:
    def test_is_generation_error(self) -> None:
        error = ValidationError("missing steps", missing_fields=["steps"])
        assert isinstance(error, GenerationError)
        assert error.missing_fields == ["steps"]
        assert error.category == ErrorCategory.GENERIC


class TestStorageError:
    def test_includes_key_and_reason(self) -> None:
        error = StorageError("cook-ai-recipes-U1", "quota exceeded")
        assert "cook-ai-recipes-U1" in str(error)
        assert "quota exceeded" in str(error)
        assert error.key == "cook-ai-recipes-U1"
        assert error.reason == "quota exceeded"


class TestAuthErrors:
    def test_auth_required_mentions_operation(self) -> None:
        error = AuthRequiredError("rate recipes")
        assert "rate recipes" in str(error)
        assert error.operation == "rate recipes"

    def test_invalid_identity_default_message(self) -> None:
        assert str(InvalidIdentityError()) == "Invalid authentication token"


class TestExceptionHierarchy:
    def test_all_errors_inherit_from_base(self) -> None:
        for error_type in (GenerationError, ValidationError, StorageError, AuthRequiredError, InvalidIdentityError):
            assert issubclass(error_type, CookAIError)
