"""Custom exceptions for the Pokemon GO toolkit."""


class PogoError(Exception):
    """Base exception for toolkit errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class FetchError(PogoError):
    """Raised when a remote feed is unreachable or returns a malformed response."""

    def __init__(self, source_id: str, reason: str):
        super().__init__(f"Failed to fetch {source_id}: {reason}")
        self.source_id = source_id
        self.reason = reason


class ParseError(PogoError):
    """Raised when a payload does not match the structure expected for its kind."""

    def __init__(self, source_id: str, reason: str):
        super().__init__(f"Invalid payload from {source_id}: {reason}")
        self.source_id = source_id
        self.reason = reason


class NotFoundError(PogoError):
    """Raised when a natural-key lookup misses a related row."""

    def __init__(self, entity: str, key: str):
        super().__init__(f"{entity} not found: {key}")
        self.entity = entity
        self.key = key


class PersistenceError(PogoError):
    """Raised when a store read or write fails."""

    pass


class SourceNotFoundError(PogoError):
    """Raised when a data source id is not registered."""

    def __init__(self, source_id: str):
        super().__init__(f"Data source not found: {source_id}")
        self.source_id = source_id
