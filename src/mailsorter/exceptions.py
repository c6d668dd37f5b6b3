"""Custom exceptions for Mailsorter."""


class MailsorterError(Exception):
    """Base exception for all Mailsorter errors."""


class ConfigurationError(MailsorterError):
    """Exception raised for configuration related errors."""


class AuthenticationError(MailsorterError):
    """Exception raised for authentication failures."""


class UpstreamError(MailsorterError):
    """Exception raised when a remote collaborator fails or is unreachable."""


class GmailAPIError(UpstreamError):
    """Exception raised for Gmail API related errors."""


class ClassifierError(UpstreamError):
    """Exception raised when the classification service call fails."""


class ClassifierTimeoutError(ClassifierError):
    """Exception raised when classification exceeds its time budget."""


class ParseError(ClassifierError):
    """Exception raised when a classification answer holds no usable JSON object."""


class NotFoundError(MailsorterError):
    """Exception raised when a record is absent or owned by another user."""


class InvalidTransitionError(MailsorterError):
    """Exception raised when a terminal suggestion state would be re-opened."""
