"""Mailbox mutations for classification and rule decisions."""

from .applier import ActionApplier

__all__ = ["ActionApplier"]
