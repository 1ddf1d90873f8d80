class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class ConflictError(DomainError):
    """Raised when a seat is taken, an identifier is duplicated, or a concurrent write won."""


class NotFoundError(DomainError):
    """Raised for an unknown member, session or alert."""


class StateError(DomainError):
    """Raised when an operation is invalid for the current lifecycle/session state."""


class ExternalDependencyError(DomainError):
    """Raised when the document store or push provider is unreachable or timed out."""
