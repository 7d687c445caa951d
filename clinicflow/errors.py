"""
Domain exceptions. Routes translate these into HTTP status codes.
"""


class ValidationError(ValueError):
    """Request data failed validation. details is a list of {field, message}."""
    def __init__(self, message, details=None):
        self.details = details or []
        super().__init__(message)


class NotFoundError(LookupError):
    """Referenced row does not exist."""


class ConflictError(Exception):
    """Action not allowed from the record's current state."""


class FetchError(Exception):
    """A Prospect Journey read query failed; the whole refresh is aborted."""


class FunctionInvocationError(Exception):
    """An outbound notification function returned an error."""
    def __init__(self, name, message):
        self.name = name
        super().__init__(f"Function '{name}' failed: {message}")
