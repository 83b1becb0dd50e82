# pocketplan/services/errors.py
"""
Exception hierarchy for the PocketPlan service.

Routes never build error responses by hand: they let these propagate and
`main.py` maps each class to an HTTP status.
"""


class PocketPlanError(Exception):
    """Base exception for PocketPlan."""


class ValidationError(PocketPlanError):
    """Bad input from the caller (missing fields, mismatched passwords, ...)."""


class NotFoundError(PocketPlanError):
    """A transaction or goal id does not exist in the user's scope."""


class PersistenceError(PocketPlanError):
    """The record store failed to read or write."""


class AuthError(PocketPlanError):
    """Base class for authentication policy failures."""


class InvalidCredentialsError(AuthError):
    pass


class EmailNotVerifiedError(AuthError):
    pass


class EmailInUseError(AuthError):
    pass


class NotAuthenticatedError(AuthError):
    pass
