"""Abstract base class for LLM providers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass
class TokenUsage:
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    cost: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_tokens": self.total_tokens,
            "cost": self.cost,
        }


class BudgetExceededError(RuntimeError):
    """Raised when max_calls_per_run has been reached."""


class BaseProvider(ABC):
    """Interface that all LLM providers must implement."""

    name: str = "base"
    model: str = ""

    def __init__(self) -> None:
        self.last_usage = TokenUsage()

    @abstractmethod
    def generate(self, prompt: str, system: str = "", max_tokens: int = 0) -> str:
        """Send a prompt and return the raw text response.

        Implementations record the call's token counts in ``last_usage``.
        """
        ...
