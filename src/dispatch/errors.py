"""Error taxonomy shared by the dispatch services and the API layer.

Validation and missing-record errors reuse Protean's own exceptions so that
field-level failures raised by aggregates and repositories need no
translation. The remaining cases have no Protean counterpart.
"""

from protean.exceptions import ObjectNotFoundError, ValidationError

NotFoundError = ObjectNotFoundError


class DispatchError(Exception):
    """Base class for errors raised by dispatch services."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ForbiddenError(DispatchError):
    """The principal is authenticated but not allowed to touch this resource."""


class ConflictError(DispatchError):
    """The request is well-formed but the current state does not allow it."""


class ServerError(DispatchError):
    """A store or transport failure on the primary write path."""


__all__ = [
    "ConflictError",
    "DispatchError",
    "ForbiddenError",
    "NotFoundError",
    "ServerError",
    "ValidationError",
]
