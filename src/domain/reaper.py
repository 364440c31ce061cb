"""
Abandonment reaper - reclaims identities of stale incomplete signups.

Accounts that never reach a terminal stage within the retention window
are deleted together with their stage tracker row, freeing the email,
handle and phone number for a new registration. Each account is removed
in its own transaction, so an interrupted sweep leaves every account
either fully present or fully gone.
"""

import logging
from dataclasses import dataclass

from .ports import AccountRepository

logger = logging.getLogger(__name__)


@dataclass
class AbandonmentReaper:
    """Deletes non-terminal accounts older than ``retention_seconds``."""

    repository: AccountRepository
    retention_seconds: int

    def sweep(self) -> int:
        """
        Run one cleanup pass.

        Returns:
            Number of accounts removed
        """
        candidates = self.repository.find_abandoned(self.retention_seconds)
        removed = 0
        for account_id in candidates:
            if self.repository.delete_abandoned(account_id, self.retention_seconds):
                removed += 1
            else:
                logger.info("Skipped account_id=%s: no longer abandoned", account_id)

        logger.info(
            "Abandoned signup sweep removed %d of %d candidate(s)", removed, len(candidates)
        )
        return removed
