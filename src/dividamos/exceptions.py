"""Custom exceptions for Dividamos."""


class DividamosError(Exception):
    """Base exception for all Dividamos errors."""

    pass


class ConfigurationError(DividamosError):
    """Raised when configuration is invalid or missing."""

    pass


class ValidationError(DividamosError):
    """Raised when an expense or friend is malformed."""

    pass


class DataIntegrityError(DividamosError):
    """Raised when data references unknown participants or has an unknown shape."""

    pass


class GroupNotFoundError(DividamosError):
    """Raised when a group id does not exist in the document."""

    def __init__(self, group_id: str, message: str | None = None):
        self.group_id = group_id
        super().__init__(message or f"Group '{group_id}' not found")


class ExpenseNotFoundError(DividamosError):
    """Raised when an expense id does not exist in a group."""

    def __init__(self, expense_id: str, message: str | None = None):
        self.expense_id = expense_id
        super().__init__(message or f"Expense '{expense_id}' not found")


class StoreError(DividamosError):
    """Raised when reading or writing the data store fails."""

    pass


class StoreConflictError(StoreError):
    """Raised when the stored document changed since it was last read."""

    pass
