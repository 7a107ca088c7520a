"""
Custom exceptions for the AutoUpdatePlugins application.

Every failure inside the update pipeline is expressed as one of these
exceptions and is degraded to a per-entry outcome at the pipeline boundary;
nothing is retried automatically.
"""

from typing import Optional


class AutoUpdateError(Exception):
    """
    Base exception for all AutoUpdatePlugins errors.

    All custom exceptions should inherit from this class to allow for easy
    catching of all application-specific errors.
    """

    def __init__(self, message: str, details: Optional[str] = None) -> None:
        """
        Initialize the exception.

        Args:
            message: The primary error message.
            details: Optional additional context about the error.
        """
        self.message = message
        self.details = details
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(AutoUpdateError):
    """
    Exception raised when configuration is invalid or missing.

    This includes:
    - Update entries missing `file` or `url`
    - An update list that is not a list
    - Configuration file parsing errors
    """

    pass


# =============================================================================
# Resolution Errors
# =============================================================================


class ResolutionError(AutoUpdateError):
    """
    Exception raised when a provider cannot turn a source URL into a direct download URL.

    Attributes:
        provider: Display label of the provider that failed (e.g. "[GitHub]").
        source_url: The configured source URL.
    """

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        source_url: Optional[str] = None,
        details: Optional[str] = None,
    ) -> None:
        super().__init__(message, details)
        self.provider = provider
        self.source_url = source_url


# =============================================================================
# Network Errors
# =============================================================================


class NetworkError(AutoUpdateError):
    """
    Exception raised for transport failures and non-success HTTP responses.

    Attributes:
        url: The URL that was being requested.
        status_code: The HTTP status code, when a response was received.
    """

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[str] = None,
    ) -> None:
        super().__init__(message, details)
        self.url = url
        self.status_code = status_code


# =============================================================================
# File System Errors
# =============================================================================


class IntegrityError(AutoUpdateError):
    """
    Exception raised when a downloaded archive is structurally invalid.

    Attributes:
        file_path: Path to the staged file that failed the check.
    """

    def __init__(
        self,
        message: str,
        file_path: Optional[str] = None,
        details: Optional[str] = None,
    ) -> None:
        super().__init__(message, details)
        self.file_path = file_path


class InstallError(AutoUpdateError):
    """
    Exception raised when a staged file cannot be moved over the installed copy.

    The staged file is left in place for manual recovery.

    Attributes:
        source: Path to the staged file.
        destination: Path the file should have been installed to.
    """

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        destination: Optional[str] = None,
        details: Optional[str] = None,
    ) -> None:
        super().__init__(message, details)
        self.source = source
        self.destination = destination
