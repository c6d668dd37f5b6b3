"""Utility functions for Mailsorter."""

from __future__ import annotations

import logging
import unicodedata
from email.utils import parseaddr

import structlog


def configure_logging(log_level: str = "INFO") -> None:
    """Configure structlog with a level filter.

    Args:
        log_level: Standard logging level name.
    """
    level = getattr(logging, str(log_level).upper(), logging.INFO)
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(level),
    )


def extract_address(value: str) -> str:
    """Return the bare, lower-cased address from a raw "Name <addr>" header value."""
    if not value:
        return ""
    _, addr = parseaddr(value)
    return (addr or value).strip().lower()


def extract_domain(value: str) -> str:
    """Return the domain part of a sender.

    A value without "@" is assumed to already be a domain and is returned as is.
    """
    addr = extract_address(value)
    if "@" in addr:
        return addr.rsplit("@", 1)[1].lower()
    return addr


def extract_sender_name(value: str) -> str:
    """Return the display name of a raw From header, or the header itself."""
    if not value:
        return ""
    name, _ = parseaddr(value)
    name = name.strip().strip('"')
    return name or value.strip()


def normalize_label_name(name: str) -> str:
    """Fold a label name the way Gmail compares names for conflicts."""
    return unicodedata.normalize("NFKC", str(name)).strip().casefold()


def truncate(value: str, max_chars: int) -> str:
    """Truncate to max_chars characters, marking the cut with an ellipsis."""
    if len(value) <= max_chars:
        return value
    return value[:max_chars] + "..."
