"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- An in-memory AccountRepository with the same atomicity rules as the
  PostgreSQL adapter, for end-to-end tests without a database
- A JWT token issuer with a test secret
"""

import re
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from src.adapters.tokens.jwt_issuer import JwtTokenIssuer
from src.domain.exceptions import AccountAlreadyExists, ValidationFailed
from src.domain.ports import (
    AccountRecord,
    AccountStage,
    ClaimOutcome,
    ClaimResult,
    IdentityField,
    NewAccount,
    SignupStatus,
    TERMINAL_STAGES,
    TERMINAL_STATUSES,
)

TEST_SECRET = "test-signing-secret"


@dataclass
class StoredAccount:
    record: AccountRecord
    password_hash: str
    created_at: datetime
    profile: dict[str, Any] = field(default_factory=dict)


class InMemoryAccountRepository:
    """Dict-backed AccountRepository mirroring the PostgreSQL semantics."""

    def __init__(self) -> None:
        self.accounts: dict[int, StoredAccount] = {}
        self.statuses: dict[int, SignupStatus] = {}
        self._next_id = 1

    def _matches(self, account: NewAccount) -> list[int]:
        return [
            account_id
            for account_id, stored in self.accounts.items()
            if stored.record.email.lower() == account.email.lower()
            or stored.record.handle.lower() == account.handle.lower()
            or stored.record.phone_number == account.phone_number
        ]

    def _is_terminal(self, account_id: int) -> bool:
        status = self.statuses.get(account_id)
        if status is None:
            return True
        stage = self.accounts[account_id].record.stage
        return stage in TERMINAL_STAGES or status in TERMINAL_STATUSES

    def claim_identity(self, account: NewAccount) -> ClaimOutcome:
        matches = self._matches(account)
        if any(self._is_terminal(account_id) for account_id in matches):
            return ClaimOutcome(ClaimResult.ALREADY_EXISTS)

        for account_id in matches:
            self.statuses.pop(account_id, None)
            del self.accounts[account_id]

        account_id = self._next_id
        self._next_id += 1
        self.accounts[account_id] = StoredAccount(
            record=AccountRecord(
                id=account_id,
                email=account.email,
                handle=account.handle,
                phone_number=account.phone_number,
                full_name=account.full_name,
                stage=AccountStage.PAYMENT,
                has_agreed_to_terms=True,
            ),
            password_hash=account.password_hash,
            created_at=datetime.now(timezone.utc),
        )
        self.statuses[account_id] = SignupStatus.PAYMENT

        result = ClaimResult.RESURRECTED if matches else ClaimResult.CREATED
        return ClaimOutcome(result, account_id=account_id, removed_ids=tuple(matches))

    def get_account(self, email: str) -> AccountRecord | None:
        for stored in self.accounts.values():
            if stored.record.email.lower() == email.lower():
                return stored.record
        return None

    def is_identity_taken(self, field: IdentityField, value: str) -> bool:
        for stored in self.accounts.values():
            record = stored.record
            if field is IdentityField.USERNAME and record.handle.lower() == value:
                return True
            if field is IdentityField.EMAIL and record.email.lower() == value:
                return True
            if field is IdentityField.PHONE and re.sub(r"\D", "", record.phone_number) == value:
                return True
        return False

    def update_stage(
        self,
        account_id: int,
        expected: AccountStage,
        new: AccountStage,
        *,
        payment_completed: bool = False,
        subscription_ref: str | None = None,
    ) -> bool:
        stored = self.accounts.get(account_id)
        if stored is None or stored.record.stage != expected:
            return False
        changes: dict[str, Any] = {"stage": new}
        if payment_completed:
            changes["has_completed_payment"] = True
        if subscription_ref is not None:
            changes["subscription_ref"] = subscription_ref
            changes["subscription_status"] = "active"
        stored.record = replace(stored.record, **changes)
        return True

    def get_signup_status(self, account_id: int) -> SignupStatus | None:
        return self.statuses.get(account_id)

    def update_signup_status(
        self, account_id: int, expected: SignupStatus, new: SignupStatus
    ) -> bool:
        if self.statuses.get(account_id) != expected:
            return False
        self.statuses[account_id] = new
        return True

    def update_profile(self, account_id: int, fields: dict[str, Any]) -> None:
        stored = self.accounts[account_id]
        if any(fields.get(key, "") is None for key in ("full_name", "phone_number")):
            raise ValidationFailed("Full name and phone number cannot be empty")
        phone = fields.get("phone_number")
        if phone is not None and any(
            other.record.phone_number == phone
            for other_id, other in self.accounts.items()
            if other_id != account_id
        ):
            raise AccountAlreadyExists("Phone number already in use")
        stored.profile.update(fields)
        changes: dict[str, Any] = {"profile_completed": True}
        for key in ("full_name", "phone_number"):
            if key in fields:
                changes[key] = fields[key]
        stored.record = replace(stored.record, **changes)

    def complete_account(self, account_id: int) -> AccountRecord | None:
        stored = self.accounts.get(account_id)
        if stored is None:
            return None
        stage = stored.record.stage if stored.record.stage is AccountStage.LEGACY else AccountStage.READY
        stored.record = replace(stored.record, stage=stage, profile_completed=True)
        return stored.record

    def find_abandoned(self, retention_seconds: int) -> list[int]:
        cutoff = datetime.now(timezone.utc) - timedelta(seconds=retention_seconds)
        return sorted(
            account_id
            for account_id, stored in self.accounts.items()
            if stored.record.stage not in TERMINAL_STAGES
            and account_id in self.statuses
            and self.statuses[account_id] not in TERMINAL_STATUSES
            and stored.created_at < cutoff
        )

    def delete_abandoned(self, account_id: int, retention_seconds: int) -> bool:
        if account_id not in self.find_abandoned(retention_seconds):
            return False
        self.statuses.pop(account_id, None)
        del self.accounts[account_id]
        return True

    # Test helpers

    def backdate(self, account_id: int, seconds: int) -> None:
        self.accounts[account_id].created_at -= timedelta(seconds=seconds)

    def set_stage(self, account_id: int, stage: AccountStage) -> None:
        stored = self.accounts[account_id]
        stored.record = replace(stored.record, stage=stage)


@pytest.fixture
def memory_repository() -> InMemoryAccountRepository:
    """Fresh in-memory repository for each test."""
    return InMemoryAccountRepository()


@pytest.fixture
def token_issuer() -> JwtTokenIssuer:
    """JWT issuer signing with a fixed test secret."""
    return JwtTokenIssuer(secret=TEST_SECRET)
