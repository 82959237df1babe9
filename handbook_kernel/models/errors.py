"""Exception hierarchy for the handbook kernel."""


class HandbookError(Exception):
    """Base class for all handbook errors."""
    pass


class ConfigError(HandbookError):
    """Raised when required configuration is missing or invalid."""
    pass


class LoadError(HandbookError):
    """Raised when the server cannot produce a snapshot of the source."""
    pass


class SourceAbsentError(LoadError):
    """The source workbook does not exist."""

    def __init__(self, path):
        self.path = path
        super().__init__(f"Source file not found: {path}")


class SourceMalformedError(LoadError):
    """The source workbook exists but could not be parsed."""
    pass


class FetchError(HandbookError):
    """Raised when the client cannot obtain a snapshot from the server."""
    pass


class FetchTimeoutError(FetchError):
    """The server did not answer within the configured timeout."""
    pass
