"""Domain-specific exceptions for the expense wallet core services."""


class ValidationError(ValueError):
    """Raised when provided data does not meet validation requirements."""


class RecordNotFoundError(LookupError):
    """Raised when an expense, sub-expense or budget entry cannot be located."""


class PersistenceError(IOError):
    """Raised when the document store encounters unrecoverable issues."""


class AuthenticationError(PermissionError):
    """Raised when a request token is missing or fails verification."""
