# Overview: Error taxonomy shared by the ledger, invoice and payment services.

"""
Service errors.

Services raise these as soon as a rule is violated; the enclosing transaction
is rolled back and nothing is retried. Routes translate them to HTTP answers.
Messages are user-facing (French).
"""


class LedgerError(Exception):
    """Base class for business errors raised by the services."""


class NotFoundError(LedgerError):
    """Referenced register, invoice, payment or link does not exist."""


class BadRequestError(LedgerError):
    """Business rule violation or invalid input."""


class ConflictError(LedgerError):
    """Concurrent modification detected (optimistic version check failed)."""
