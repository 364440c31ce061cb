"""
Domain layer - Pure business logic with zero framework imports.

This package contains the signup stage-progression engine: the ordered
progress markers, the registration gatekeeper, the stage advancer and
the abandonment reaper. It defines its own port interfaces for
infrastructure abstraction.
"""

from .exceptions import (
    AccountAlreadyExists,
    AccountNotFound,
    HandleFormatInvalid,
    InvalidToken,
    OnboardingError,
    SignupNotStarted,
    StageConflict,
    StageRegression,
    ValidationFailed,
)
from .ports import (
    AccountRecord,
    AccountRepository,
    AccountStage,
    ClaimOutcome,
    ClaimResult,
    EmailSender,
    IdentityField,
    NewAccount,
    SignupStatus,
    TokenClaims,
    TokenIssuer,
)
from .progression import AdvanceMode, advance, next_after
from .reaper import AbandonmentReaper
from .registration import RegistrationService

__all__ = [
    "AbandonmentReaper",
    "AccountAlreadyExists",
    "AccountNotFound",
    "AccountRecord",
    "AccountRepository",
    "AccountStage",
    "AdvanceMode",
    "ClaimOutcome",
    "ClaimResult",
    "EmailSender",
    "HandleFormatInvalid",
    "IdentityField",
    "InvalidToken",
    "NewAccount",
    "OnboardingError",
    "RegistrationService",
    "SignupNotStarted",
    "SignupStatus",
    "StageConflict",
    "StageRegression",
    "TokenClaims",
    "TokenIssuer",
    "ValidationFailed",
    "advance",
    "next_after",
]
