"""
Onboarding domain service - signup stage progression.

This module contains the core business logic that drives a new account
through its onboarding gates:

    registration -> payment -> profile -> ready

Two progress markers exist side by side:

- AccountStage on the account record, advanced with AdvanceMode.NEXT
  ("I finished the stage I am in")
- SignupStatus in the stage tracker, advanced with AdvanceMode.TARGET
  ("move to this status")

They are advanced by independent calls and may disagree at a given
instant. Both only ever move forward; writes are compare-and-swap on the
previously read value so a concurrent writer can never be overwritten
with an older position.

An account is terminal when its stage is READY/LEGACY or its tracker
status is COMPLETED. Terminal accounts are never resurrected by a new
registration and never reaped.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeVar

import bcrypt
from email_validator import EmailNotValidError, validate_email

from .exceptions import (
    AccountAlreadyExists,
    AccountNotFound,
    HandleFormatInvalid,
    SignupNotStarted,
    StageConflict,
    StageRegression,
    ValidationFailed,
)
from .ports import (
    AccountRecord,
    AccountRepository,
    AccountStage,
    ClaimResult,
    EmailSender,
    IdentityField,
    NewAccount,
    SignupStatus,
    TERMINAL_STAGES,
    TokenIssuer,
)
from .progression import AdvanceMode, advance, next_after

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)

HANDLE_PATTERN = re.compile(r"^[a-z0-9]{4,30}$")
_NON_DIGITS = re.compile(r"\D")

# Attempts at a compare-and-swap stage write before giving up
_MAX_CAS_ATTEMPTS = 3

PROFILE_FIELDS = frozenset(
    {
        "full_name",
        "company_name",
        "phone_number",
        "industry",
        "title",
        "location",
        "bio",
        "linkedin",
        "website",
        "twitter",
        "instagram",
        "do_follow",
    }
)


@dataclass(frozen=True)
class RegistrationResult:
    account_id: int
    stage: AccountStage
    token: str
    resurrected: bool = False


@dataclass(frozen=True)
class StageView:
    stage: AccountStage
    next_stage: AccountStage | None

    @classmethod
    def of(cls, stage: AccountStage) -> "StageView":
        # legacy follows ready in the ordering but is not a forward stage
        if stage in TERMINAL_STAGES:
            return cls(stage=stage, next_stage=None)
        return cls(stage=stage, next_stage=next_after(stage))


@dataclass(frozen=True)
class CompletionResult:
    token: str
    account: AccountRecord


@dataclass
class RegistrationService:
    """
    Domain service for signup stage progression.

    Orchestrates registration (validation, collision handling, password
    hashing, token issuance), forward-only stage and status advances,
    profile completion and final activation.
    """

    repository: AccountRepository
    email_sender: EmailSender
    token_issuer: TokenIssuer
    bcrypt_cost: int = 10

    def start_registration(
        self,
        email: str | None,
        handle: str | None,
        phone: str | None,
        password: str | None,
        terms_accepted: bool | None,
        full_name: str | None = None,
        company_name: str | None = None,
        industry: str | None = None,
    ) -> RegistrationResult:
        """
        Register a new account, resurrecting an abandoned one if needed.

        Returns:
            RegistrationResult with the new id, stage PAYMENT and a token

        Raises:
            ValidationFailed: Missing field, terms not accepted, bad email
            HandleFormatInvalid: Handle fails ^[a-z0-9]{4,30}$
            AccountAlreadyExists: Identity belongs to a terminal account
        """
        if not all(_present(value) for value in (email, handle, phone, password)) or not terms_accepted:
            raise ValidationFailed("Missing required fields")

        normalized_email = self._normalize_email(email)
        normalized_handle = self._normalize_handle(handle)
        normalized_phone = phone.strip()

        account = NewAccount(
            email=normalized_email,
            handle=normalized_handle,
            phone_number=normalized_phone,
            password_hash=self._hash_password(password),
            full_name=(full_name or "").strip() or normalized_handle,
            company_name=company_name,
            industry=industry,
        )

        outcome = self.repository.claim_identity(account)
        if outcome.result is ClaimResult.ALREADY_EXISTS:
            raise AccountAlreadyExists("User already exists")

        if outcome.result is ClaimResult.RESURRECTED:
            logger.info(
                "Resurrected abandoned registration for %s (removed ids: %s)",
                normalized_email,
                list(outcome.removed_ids),
            )
        logger.info("Registration started: account_id=%s", outcome.account_id)

        token = self.token_issuer.issue(outcome.account_id, normalized_email, "user")
        return RegistrationResult(
            account_id=outcome.account_id,
            stage=AccountStage.PAYMENT,
            token=token,
            resurrected=outcome.result is ClaimResult.RESURRECTED,
        )

    def get_stage(self, email: str) -> StageView:
        """Current stage of an account and the stage that follows it."""
        account = self._require_account(email)
        return StageView.of(account.stage)

    def check_identity_available(self, field: str | None, value: str | None) -> bool:
        """
        Pre-registration uniqueness check for one identity field.

        Username and email are trimmed and lowercased, phone is reduced to
        its digits. A phone value without digits is never available.

        Raises:
            ValidationFailed: Unknown field or missing value
        """
        if not _present(field) or not _present(value):
            raise ValidationFailed("Invalid query")
        identity_field = _parse(IdentityField, field, "field")

        if identity_field is IdentityField.PHONE:
            normalized = _NON_DIGITS.sub("", value)
            if not normalized:
                return False
        else:
            normalized = value.strip().lower()

        return not self.repository.is_identity_taken(identity_field, normalized)

    def advance_stage(
        self,
        email: str,
        target_stage: str,
        payment_ref: str | None = None,
        subscription_ref: str | None = None,
    ) -> StageView:
        """
        Complete the account's current stage.

        Requesting the current stage moves to the next one; requesting a
        later stage is a no-op; requesting an earlier stage is rejected.
        A terminal stage (ready, legacy) is never advanced further, so
        repeating the last step does not relabel an account as legacy.
        Completing PAYMENT with a payment reference also sets the
        completed-payment flag and records the subscription reference.

        Raises:
            ValidationFailed: Unknown stage name
            AccountNotFound: No account for email
            StageRegression: Target precedes the current stage
        """
        target = _parse(AccountStage, target_stage, "stage")

        for _ in range(_MAX_CAS_ATTEMPTS):
            account = self._require_account(email)
            current = account.stage
            try:
                new = advance(current, target, AdvanceMode.NEXT)
            except StageRegression:
                logger.warning(
                    "Rejected stage regression for account_id=%s: %s -> %s",
                    account.id,
                    current.value,
                    target.value,
                )
                raise

            payment_completed = (
                target is AccountStage.PAYMENT
                and current is AccountStage.PAYMENT
                and _present(payment_ref)
            )
            if new == current or current in TERMINAL_STAGES:
                return StageView.of(current)

            updated = self.repository.update_stage(
                account.id,
                current,
                new,
                payment_completed=payment_completed,
                subscription_ref=subscription_ref if payment_completed else None,
            )
            if updated:
                logger.info(
                    "Account %s advanced from %s to %s", account.id, current.value, new.value
                )
                return StageView.of(new)

        raise StageConflict("Stage changed concurrently, retry the request")

    def advance_status(self, account_id: int, target_status: str) -> SignupStatus:
        """
        Move the stage tracker status forward to ``target_status``.

        Raises:
            ValidationFailed: Unknown status name
            SignupNotStarted: No tracker row for the account
            StageRegression: Target precedes the current status
        """
        target = _parse(SignupStatus, target_status, "status")

        for _ in range(_MAX_CAS_ATTEMPTS):
            current = self.repository.get_signup_status(account_id)
            if current is None:
                raise SignupNotStarted("Signup not started")

            try:
                new = advance(current, target, AdvanceMode.TARGET)
            except StageRegression as exc:
                logger.warning(
                    "Rejected status regression for account_id=%s: %s -> %s",
                    account_id,
                    current.value,
                    target.value,
                )
                raise StageRegression("Cannot go backwards", current=current.value) from exc

            if new == current:
                return current
            if self.repository.update_signup_status(account_id, current, new):
                return new

        raise StageConflict("Status changed concurrently, retry the request")

    def update_profile(self, email: str, fields: dict[str, Any]) -> None:
        """
        Persist recognized profile fields and mark the profile completed.

        Unrecognized keys are dropped. An update with no recognized field
        is rejected so a profile is never marked completed empty. Values
        are stored as submitted; NULL in a mandatory column is rejected
        by the repository.

        Raises:
            AccountNotFound: No account for email
            ValidationFailed: No recognized profile field provided
        """
        account = self._require_account(email)

        recognized = {key: value for key, value in fields.items() if key in PROFILE_FIELDS}
        if not recognized:
            raise ValidationFailed("No valid profile fields provided")

        self.repository.update_profile(account.id, recognized)
        logger.info("Profile updated for account_id=%s (%d fields)", account.id, len(recognized))

    def complete_registration(self, email: str) -> CompletionResult:
        """
        Mark the account ready, send the welcome message, issue a token.

        Safe to call on an already completed account. Welcome delivery
        failures are logged and never fail the request.

        Raises:
            AccountNotFound: No account for email
        """
        account = self._require_account(email)
        completed = self.repository.complete_account(account.id)
        if completed is None:
            raise AccountNotFound("User not found")

        try:
            self.email_sender.send_welcome(completed.email, completed.full_name)
        except Exception:
            logger.exception("Welcome notification failed for account_id=%s", completed.id)

        token = self.token_issuer.issue(completed.id, completed.email, completed.role)
        logger.info("Registration completed: account_id=%s", completed.id)
        return CompletionResult(token=token, account=completed)

    def _require_account(self, email: str) -> AccountRecord:
        account = self.repository.get_account(email.strip().lower())
        if account is None:
            raise AccountNotFound("User not found")
        return account

    def _normalize_email(self, email: str) -> str:
        """
        Normalize email address for consistent storage and lookup.

        Applies: strip whitespace + syntax check + lowercase
        """
        candidate = email.strip()
        try:
            validate_email(candidate, check_deliverability=False)
        except EmailNotValidError as exc:
            raise ValidationFailed(f"Invalid email address: {exc}") from None
        return candidate.lower()

    def _normalize_handle(self, handle: str) -> str:
        normalized = handle.strip().lower()
        if not HANDLE_PATTERN.fullmatch(normalized):
            raise HandleFormatInvalid(
                "Username must be 4-30 characters, lowercase letters and numbers only"
            )
        return normalized

    def _hash_password(self, password: str) -> str:
        """Hash password using bcrypt with the configured cost factor."""
        return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=self.bcrypt_cost)).decode()


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def _parse(enum_type: type[E], value: str | None, label: str) -> E:
    try:
        return enum_type(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_type)
        raise ValidationFailed(f"Invalid {label} '{value}', expected one of: {allowed}") from None
