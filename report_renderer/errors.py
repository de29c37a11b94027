"""Error taxonomy shared by the services and the HTTP layer.

Every error here is surfaced to the caller as a textual response, except
``InstallError`` which the installation coordinator absorbs through its
fallback chain.
"""


class RendererError(Exception):
    """Base class for all report renderer errors."""

    pass


class ConfigError(RendererError):
    """Raised when a required setting (secret, credentials) is missing."""

    pass


class TokenError(RendererError):
    """Raised when an encrypted report token cannot be decoded."""

    pass


class MissingSecretError(TokenError, ConfigError):
    """Raised when a token operation runs without a configured secret."""

    pass


class FetchError(RendererError):
    """Raised when a remote document cannot be retrieved."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ValidationError(RendererError):
    """Raised when a fetched document is not a usable report."""

    pass


class ResolutionError(RendererError):
    """Raised when no known package layout provides the requested file."""

    pass


class InstallError(RendererError):
    """Raised by the package installer when npm fails."""

    pass


class RenderError(RendererError):
    """Raised when the report generator process fails."""

    pass
