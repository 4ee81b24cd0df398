# Overview: Domain error taxonomy shared by services, routes and the CLI.

"""
Error taxonomy for the stock ledger and cash reconciliation engine.

Every error surfaces directly to the caller. Nothing here is retried:
operations are at-most-once and a failed action is resubmitted whole.
"""

from __future__ import annotations


class PosLedgerError(Exception):
    """Base class for all domain errors."""

    http_status = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": str(self), "details": self.details}


class NotFoundError(PosLedgerError):
    """Sale, session, product or warehouse missing for the tenant."""

    http_status = 404


class InvalidStateError(PosLedgerError):
    """Operation not allowed in the entity's current state."""

    http_status = 409


class ValidationError(PosLedgerError, ValueError):
    """Non-numeric, missing or out-of-range input."""

    http_status = 400


class PersistenceError(PosLedgerError):
    """Storage failure, surfaced as-is."""

    http_status = 500
