"""User-authored sorting rules."""

from .engine import evaluate

__all__ = ["evaluate"]
