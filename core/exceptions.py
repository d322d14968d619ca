"""Custom exception hierarchy for the keyhole proxy."""


class ProxyError(Exception):
    """Base exception for all proxy errors."""


class ConfigurationError(ProxyError):
    """Raised when configuration or the upstream registry is missing or invalid.

    Attributes:
        message: Error message
        path: File the error was found in (optional)
    """

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path

    def __str__(self) -> str:
        message = super().__str__()
        if self.path:
            return f"{self.path}: {message}"
        return message


class RequestTooLarge(ProxyError):
    """Request body exceeds size limit."""


class InvalidJSON(ProxyError):
    """Request body is not valid JSON."""


class InvalidKeyTransport(ProxyError):
    """Key transport cannot carry the secret (bad header name, empty placeholder)."""
