"""Service-layer errors.

They subclass ValueError like the rest of the services' failures so that
existing ``except ValueError`` handling keeps working; routers catch the
specific classes to pick a status code.
"""


class ValidationError(ValueError):
    """Input rejected before touching the store."""


class NotFoundError(ValueError):
    """A goal or user record does not exist."""


class OwnershipError(ValueError):
    """The record exists but belongs to someone else."""
