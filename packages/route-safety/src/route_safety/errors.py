class RouteSafetyError(Exception):
    """Base route safety exception."""


class MalformedInputError(RouteSafetyError, ValueError):
    """Raised when an encoded polyline cannot be decoded."""


class ProviderError(RouteSafetyError):
    """Raised when the directions provider fails or returns no usable route."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class IndexQueryError(RouteSafetyError):
    """Raised when a proximity query keeps failing for one sample point."""

    def __init__(self, sample_index: int, message: str = "report index query failed") -> None:
        super().__init__(f"{message} (sample {sample_index})")
        self.sample_index = sample_index


class ScoringTimeoutError(RouteSafetyError):
    """Raised when a route could not be scored before its deadline."""
