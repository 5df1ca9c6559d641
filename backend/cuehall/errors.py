# Overview: Domain error taxonomy shared by services and routes.

"""
Every failure a caller can recover from is a LedgerError carrying a stable
`kind`. Routes map the kind to an HTTP status; services never return a
half-applied mutation when one of these is raised.
"""

KIND_AUTHORIZATION = "authorization"
KIND_NOT_FOUND = "not_found"
KIND_PRECONDITION = "precondition"
KIND_VALIDATION = "validation"
KIND_CONFLICT = "conflict"

HTTP_STATUS_BY_KIND = {
    KIND_AUTHORIZATION: 403,
    KIND_NOT_FOUND: 404,
    KIND_PRECONDITION: 409,
    KIND_VALIDATION: 400,
    KIND_CONFLICT: 409,
}


class LedgerError(Exception):
    """Base class for recoverable, user-displayable domain failures."""
    kind = "error"


class AuthorizationError(LedgerError):
    """Actor not identified, inactive, or outside the account."""
    kind = KIND_AUTHORIZATION


class NotFoundError(LedgerError):
    """Referenced id does not exist (or belongs to another account)."""
    kind = KIND_NOT_FOUND


class PreconditionError(LedgerError):
    """State machine guard failed (session not active, table occupied, ...)."""
    kind = KIND_PRECONDITION


class ValidationError(LedgerError, ValueError):
    """400-level input problem, including over-spend of cashback or debt."""
    kind = KIND_VALIDATION


class ConflictError(LedgerError, ValueError):
    """A concurrent mutation invalidated an optimistic check."""
    kind = KIND_CONFLICT
