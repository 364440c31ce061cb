"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the progress vocabularies, the records exchanged with
infrastructure, and the interfaces (ports) the domain requires.
Adapters implement these protocols.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol


class AccountStage(str, Enum):
    """
    Stage marker stored on the account record.

    Ordered by definition: PAYMENT < PROFILE < READY < LEGACY.
    LEGACY is the bucket for accounts that predate stage tracking.

    Terminal: READY, LEGACY
    """

    PAYMENT = "payment"
    PROFILE = "profile"
    READY = "ready"
    LEGACY = "legacy"


class SignupStatus(str, Enum):
    """
    Status marker stored in the stage tracker.

    Ordered by definition: STARTED < PAYMENT < PROFILE < COMPLETED.

    Terminal: COMPLETED
    """

    STARTED = "started"
    PAYMENT = "payment"
    PROFILE = "profile"
    COMPLETED = "completed"


TERMINAL_STAGES = frozenset({AccountStage.READY, AccountStage.LEGACY})
TERMINAL_STATUSES = frozenset({SignupStatus.COMPLETED})


class ClaimResult(Enum):
    """Result of an identity claim during registration."""

    CREATED = "created"
    RESURRECTED = "resurrected"
    ALREADY_EXISTS = "already_exists"


class IdentityField(str, Enum):
    """Identity fields a registration must not share with another account."""

    USERNAME = "username"
    EMAIL = "email"
    PHONE = "phone"


@dataclass(frozen=True)
class ClaimOutcome:
    result: ClaimResult
    account_id: int | None = None
    removed_ids: tuple[int, ...] = ()


@dataclass(frozen=True)
class NewAccount:
    """Normalized registration data ready for persistence."""

    email: str
    handle: str
    phone_number: str
    password_hash: str
    full_name: str
    company_name: str | None = None
    industry: str | None = None


@dataclass(frozen=True)
class AccountRecord:
    """Projection of an account row used by the onboarding engine."""

    id: int
    email: str
    handle: str
    phone_number: str
    full_name: str
    stage: AccountStage
    has_agreed_to_terms: bool = False
    has_completed_payment: bool = False
    profile_completed: bool = False
    is_admin: bool = False
    subscription_ref: str | None = None
    subscription_status: str = "inactive"

    @property
    def role(self) -> str:
        return "admin" if self.is_admin else "user"


@dataclass(frozen=True)
class TokenClaims:
    account_id: int
    email: str
    role: str


class AccountRepository(Protocol):
    """Port interface for account and stage tracker persistence."""

    def claim_identity(self, account: NewAccount) -> ClaimOutcome:
        """
        Atomically create an account and its stage tracker row.

        Every existing account matching the email (case-insensitive),
        handle (case-insensitive) or phone is locked. If any match is
        terminal or has no tracker row, nothing changes and
        ALREADY_EXISTS is returned. Otherwise the matches are deleted
        and the new pair is inserted in the same transaction.

        A unique-constraint violation on insert also yields
        ALREADY_EXISTS.
        """
        ...

    def get_account(self, email: str) -> AccountRecord | None:
        """Fetch an account by normalized email."""
        ...

    def is_identity_taken(self, field: IdentityField, value: str) -> bool:
        """
        Whether any account already holds ``value`` for ``field``.

        Username and email compare case-insensitively; phone compares the
        digits of the stored number with ``value`` (digits only).
        """
        ...

    def update_stage(
        self,
        account_id: int,
        expected: AccountStage,
        new: AccountStage,
        *,
        payment_completed: bool = False,
        subscription_ref: str | None = None,
    ) -> bool:
        """
        Compare-and-swap the account stage.

        Writes only if the stored stage still equals ``expected``.
        ``payment_completed`` sets the completed-payment flag;
        ``subscription_ref`` is recorded with status 'active'.

        Returns:
            True if the row was updated
        """
        ...

    def get_signup_status(self, account_id: int) -> SignupStatus | None:
        """Fetch the stage tracker status, or None if no row exists."""
        ...

    def update_signup_status(
        self, account_id: int, expected: SignupStatus, new: SignupStatus
    ) -> bool:
        """Compare-and-swap the tracker status and stamp updated_at."""
        ...

    def update_profile(self, account_id: int, fields: dict[str, Any]) -> None:
        """
        Persist recognized profile fields and set profile_completed.

        Raises:
            AccountAlreadyExists: If a changed phone number is taken
        """
        ...

    def complete_account(self, account_id: int) -> AccountRecord | None:
        """Mark the account ready and profile_completed, return the row."""
        ...

    def find_abandoned(self, retention_seconds: int) -> list[int]:
        """Ids of non-terminal, tracked accounts created before the retention window."""
        ...

    def delete_abandoned(self, account_id: int, retention_seconds: int) -> bool:
        """
        Delete one abandoned account and its tracker row atomically.

        The non-terminal and age conditions are re-checked inside the
        transaction. Returns True if the account was removed.
        """
        ...


class TokenIssuer(Protocol):
    """Port interface for session credential signing."""

    def issue(self, account_id: int, email: str, role: str) -> str:
        """Mint a signed session token."""
        ...

    def verify(self, token: str) -> TokenClaims:
        """
        Verify a session token.

        Raises:
            InvalidToken: If the token is malformed, expired or badly signed
        """
        ...


class EmailSender(Protocol):
    """Port interface for email delivery."""

    def send_welcome(self, email: str, full_name: str) -> None:
        """Deliver the welcome message to a newly activated account."""
        ...
