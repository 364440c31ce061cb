"""
Domain exceptions - Semantic error types for onboarding.

This module defines domain-specific exceptions that communicate
business rule violations without leaking infrastructure details.
Each exception carries a stable ``reason`` code for API clients.
"""


class OnboardingError(Exception):
    """Base class for onboarding domain errors."""

    reason = "onboarding_error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.reason)
        self.message = message or self.reason


class ValidationFailed(OnboardingError):
    """Required input missing or malformed."""

    reason = "validation_error"


class HandleFormatInvalid(ValidationFailed):
    """Handle does not match the allowed pattern."""

    reason = "invalid_handle"


class AccountAlreadyExists(OnboardingError):
    """Identity fields belong to a completed (or protected) account."""

    reason = "already_exists"


class StageRegression(OnboardingError):
    """Requested transition would move progress backwards."""

    reason = "cannot_regress"

    def __init__(self, message: str = "", current: str | None = None) -> None:
        super().__init__(message)
        self.current = current


class SignupNotStarted(OnboardingError):
    """No stage tracker row exists for the caller."""

    reason = "signup_not_started"


class AccountNotFound(OnboardingError):
    """Operation referenced an identity with no account record."""

    reason = "not_found"


class InvalidToken(OnboardingError):
    """Session credential missing, malformed, expired or badly signed."""

    reason = "invalid_token"


class StageConflict(OnboardingError):
    """Progress marker kept changing underneath a compare-and-swap write."""

    reason = "stage_conflict"
