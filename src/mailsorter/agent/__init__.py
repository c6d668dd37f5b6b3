"""Agent module for mail sorting."""

from .sorting_agent import SortingAgent

__all__ = ["SortingAgent"]
