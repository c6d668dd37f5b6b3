"""Classification service integration module."""

from .client import ChatClient, ClassifierClient
from .orchestrator import ClassificationOrchestrator

__all__ = ["ChatClient", "ClassificationOrchestrator", "ClassifierClient"]
