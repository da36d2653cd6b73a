# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Re-evaluation delay and attempt gating."""

from __future__ import annotations

from dataclasses import dataclass

INITIAL_REEVALUATE_DELAY_MS = 1000
MAX_REEVALUATE_DELAY_MS = 10 * 60 * 1000
IGNORE_REEVALUATE_ATTEMPTS = 5
BLAME_FOR_EVALUATION_ATTEMPTS = 5
CAPTIVE_PORTAL_REEVALUATE_DELAY_MS = 10 * 60 * 1000


@dataclass(frozen=True)
class BackoffPolicy:
    """Exponential backoff for unreachable networks, fixed recheck for portals."""

    initial_delay_ms: int = INITIAL_REEVALUATE_DELAY_MS
    max_delay_ms: int = MAX_REEVALUATE_DELAY_MS
    ignore_reevaluate_attempts: int = IGNORE_REEVALUATE_ATTEMPTS
    blame_for_evaluation_attempts: int = BLAME_FOR_EVALUATION_ATTEMPTS
    captive_portal_recheck_ms: int = CAPTIVE_PORTAL_REEVALUATE_DELAY_MS

    def next_delay(self, current_ms: int) -> int:
        """Delay to use after one more failed probe."""
        return min(current_ms * 2, self.max_delay_ms)

    def delay_for_attempt(self, attempt: int) -> int:
        """Delay scheduled after the ``attempt``-th consecutive failure (1-based)."""
        if attempt <= 1:
            return min(self.initial_delay_ms, self.max_delay_ms)
        # Cap the exponent; the result saturates long before this.
        exponent = min(attempt - 1, 32)
        return min(self.initial_delay_ms * (2**exponent), self.max_delay_ms)

    def accepts_forced_reevaluation(self, attempts: int) -> bool:
        """Forced re-evaluations are ignored until enough attempts have been made."""
        return attempts >= self.ignore_reevaluate_attempts

    def should_clear_blame(self, attempts: int) -> bool:
        return attempts >= self.blame_for_evaluation_attempts

    def recheck_delay(self) -> int:
        return self.captive_portal_recheck_ms


DEFAULT_POLICY = BackoffPolicy()

__all__ = [
    "BLAME_FOR_EVALUATION_ATTEMPTS",
    "BackoffPolicy",
    "CAPTIVE_PORTAL_REEVALUATE_DELAY_MS",
    "DEFAULT_POLICY",
    "IGNORE_REEVALUATE_ATTEMPTS",
    "INITIAL_REEVALUATE_DELAY_MS",
    "MAX_REEVALUATE_DELAY_MS",
]
