"""Domain-specific exceptions raised by the service layer.

All exceptions inherit from NovaError, so the application registers a single
exception handler that turns them into JSON error responses. Each subclass
carries the HTTP status code it maps to.
"""


class NovaError(Exception):
    """Base exception for all service-layer errors.

    Attributes:
        detail: Human-readable error message returned to the client.
        status_code: HTTP status the API layer responds with.
    """

    status_code = 500

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class InvalidRequestError(NovaError):
    """The request is well-formed JSON but semantically invalid."""

    status_code = 400


class PermissionDeniedError(NovaError):
    """The caller is authenticated but may not act on the target resource."""

    status_code = 403


class NotFoundError(NovaError):
    """The target resource does not exist."""

    status_code = 404


class ConflictError(NovaError):
    """The requested state change is not allowed from the current state.

    Raised for example when an embedding status is changed after it left
    ``pending``.
    """

    status_code = 409
