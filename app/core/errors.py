"""
Keeper error taxonomy.

Input errors are rejected at the request boundary, oracle errors abort a
single evaluation, ledger errors fail one operation for one account.
"""

from __future__ import annotations


class KeeperError(Exception):
    """Root of all keeper errors."""


# ----------------------------------------------------------------------
# Input errors (HTTP 400)
# ----------------------------------------------------------------------

class KeeperInputError(KeeperError):
    """Caller supplied bad input."""


class InvalidAccount(KeeperInputError):
    pass


class InvalidAmount(KeeperInputError):
    pass


# ----------------------------------------------------------------------
# Oracle errors
# ----------------------------------------------------------------------

class RateFetchError(KeeperError):
    """A venue's rate could not be sampled this tick."""

    def __init__(self, venue: str, message: str):
        super().__init__(f"{venue}: {message}")
        self.venue = venue


class RateHTTPError(RateFetchError):
    pass


class RatePayloadError(RateFetchError):
    pass


class EmptyHistory(RateFetchError):
    pass


# ----------------------------------------------------------------------
# Ledger errors (HTTP 500)
# ----------------------------------------------------------------------

class LedgerError(KeeperError):
    pass


class LedgerTimeout(LedgerError):
    pass


# ----------------------------------------------------------------------
# Controller / startup
# ----------------------------------------------------------------------

class EvaluationInProgress(KeeperError):
    pass


class CredentialError(KeeperError):
    """Operator key could not be loaded. Fatal at startup."""
