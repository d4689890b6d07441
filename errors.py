"""Errors raised by the resource services."""


class ServiceError(Exception):
    """Base error for a failed service operation."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(ServiceError):
    """Payload is missing required fields or has values of the wrong type."""


class StorageError(ServiceError):
    """Database is unavailable or the query failed."""


class AuthError(ServiceError):
    """Credential is missing or does not match the shared secret."""

    def __init__(self, message: str = "Not allowed"):
        super().__init__(message)
