"""Gmail integration module."""

from .client import GmailClient

__all__ = ["GmailClient"]
