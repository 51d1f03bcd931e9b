"""
Custom exception hierarchy for the SKU search engine.

Exception Hierarchy:
    SearchError (base)
    ├── IntentError        - Search intent payload could not be parsed
    └── LedgerDataError    - Ledger row has an unexpected structure

    ValidationError        - Input validation failed

The search pipeline itself never raises: bad rows and unresolvable fields
degrade to "excluded" or "zero". These exceptions are raised only at the
boundary (intent parsing, validators, ledger loading).
"""


class SearchError(Exception):
    """Base exception for all search-related errors."""

    def __init__(self, message: str, details: str = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class IntentError(SearchError):
    """
    Search intent payload is malformed.

    Raised by parse_intent when the translator produced something
    that cannot be turned into a SearchIntent.
    """

    def __init__(self, message: str, details: str = None, errors: list = None):
        super().__init__(message, details)
        self.errors = errors or []


class LedgerDataError(SearchError):
    """
    Ledger row has unexpected structure.

    Loaders catch this per row and skip the row; it only escapes
    when strict loading is requested.
    """

    def __init__(self, message: str, details: str = None, row: dict = None):
        super().__init__(message, details)
        self.row = row


class ValidationError(Exception):
    """
    Input validation failed.

    Used for validating intent values before running a search.
    """

    def __init__(self, field: str, message: str, value: any = None):
        self.field = field
        self.message = message
        self.value = value
        super().__init__(f"{field}: {message}")

    def __str__(self) -> str:
        if self.value is not None:
            return f"{self.field}: {self.message} (got: {self.value!r})"
        return f"{self.field}: {self.message}"
