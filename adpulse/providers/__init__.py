"""LLM provider package."""
from adpulse.providers.base import BaseProvider, BudgetExceededError, TokenUsage
from adpulse.providers.mock_provider import MockProvider

__all__ = ["BaseProvider", "BudgetExceededError", "MockProvider", "TokenUsage"]
