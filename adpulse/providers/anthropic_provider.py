"""Anthropic (Claude) provider with retry/backoff and budget tracking."""
from __future__ import annotations

import logging
import os
import random
import time
from typing import Optional

import anthropic
from dotenv import load_dotenv

from adpulse.config import BudgetConfig, RetryConfig
from adpulse.providers.base import BaseProvider, BudgetExceededError, TokenUsage

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-3-5-sonnet-20241022"
SYSTEM_PROMPT = (
    "You are a Google Ads optimization expert with deep knowledge of PPC campaign "
    "management, keyword analysis, and performance optimization. Provide specific, "
    "actionable recommendations based on the data provided."
)

# HTTP status codes that warrant an automatic retry
_RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504, 529}


class AnthropicProvider(BaseProvider):
    """Wraps the Anthropic Messages API with:

    - Exponential back-off + jitter on 429 / 529 / 5xx
    - Respect for the ``Retry-After`` response header
    - Per-run call budget (``max_calls_per_run``)
    - Token-usage tracking exposed via :meth:`stats`
    """

    name = "claude"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "",
        temperature: float = 0.7,
        max_tokens: int = 2000,
        retry_cfg: Optional[RetryConfig] = None,
        budget_cfg: Optional[BudgetConfig] = None,
    ):
        super().__init__()
        load_dotenv()
        api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        if not api_key:
            raise EnvironmentError(
                "ANTHROPIC_API_KEY not found. Pass --api-key or add it to .env."
            )
        self.client = anthropic.Anthropic(api_key=api_key)
        self.model = model or DEFAULT_MODEL
        self.temperature = temperature
        self.default_max_tokens = max_tokens

        self._retry_cfg = retry_cfg or RetryConfig()
        self._budget_cfg = budget_cfg or BudgetConfig()

        self.call_count: int = 0
        self.retry_count: int = 0
        self.total_input_tokens: int = 0
        self.total_output_tokens: int = 0
        self.last_error: Optional[str] = None

    def generate(self, prompt: str, system: str = "", max_tokens: int = 0) -> str:
        """Send *prompt* to Claude and return the text response.

        Raises
        ------
        BudgetExceededError
            If ``max_calls_per_run`` is > 0 and has been reached.
        anthropic.APIStatusError / anthropic.APIConnectionError
            If all retries are exhausted.
        """
        budget = self._budget_cfg.max_calls_per_run
        if budget and self.call_count >= budget:
            raise BudgetExceededError(f"max_calls_per_run={budget} reached")

        mt = max_tokens or self.default_max_tokens
        last_exc: Optional[BaseException] = None
        max_retries = self._retry_cfg.max_api_retries

        for attempt in range(max_retries + 1):
            try:
                self.call_count += 1
                message = self.client.messages.create(
                    model=self.model,
                    max_tokens=mt,
                    temperature=self.temperature,
                    system=system or SYSTEM_PROMPT,
                    messages=[{"role": "user", "content": prompt}],
                )
                usage = getattr(message, "usage", None)
                in_tok = int(getattr(usage, "input_tokens", 0) or 0) if usage else 0
                out_tok = int(getattr(usage, "output_tokens", 0) or 0) if usage else 0
                self.total_input_tokens += in_tok
                self.total_output_tokens += out_tok
                self.last_usage = TokenUsage(in_tok, out_tok, in_tok + out_tok)

                block = message.content[0] if message.content else None
                text = getattr(block, "text", None)
                return text or "No insights generated"

            except anthropic.APIStatusError as exc:
                if exc.status_code not in _RETRYABLE_STATUS_CODES:
                    self.last_error = f"HTTP {exc.status_code}: {exc.message}"
                    raise

                last_exc = exc
                if attempt >= max_retries:
                    break

                wait = self._get_wait_seconds(exc, attempt)
                logger.warning("Claude HTTP %s, retrying in %.1fs", exc.status_code, wait)
                self.retry_count += 1
                self.call_count -= 1  # failed attempt does not count toward budget
                time.sleep(wait)

            except (anthropic.APIConnectionError, anthropic.APITimeoutError) as exc:
                last_exc = exc
                if attempt >= max_retries:
                    break

                wait = self._backoff_secs(attempt)
                logger.warning("Claude connection error, retrying in %.1fs: %s", wait, exc)
                self.retry_count += 1
                self.call_count -= 1
                time.sleep(wait)

        self.last_error = str(last_exc)
        raise last_exc  # type: ignore[misc]

    def stats(self) -> dict:
        total_tokens = self.total_input_tokens + self.total_output_tokens
        return {
            "call_count": self.call_count,
            "retry_count": self.retry_count,
            "total_input_tokens": self.total_input_tokens,
            "total_output_tokens": self.total_output_tokens,
            "total_tokens": total_tokens,
            "last_error": self.last_error,
        }

    def _get_wait_seconds(self, exc: anthropic.APIStatusError, attempt: int) -> float:
        """Honour Retry-After if present, otherwise use exponential back-off."""
        try:
            retry_after = exc.response.headers.get("retry-after")
            if retry_after:
                return max(0.0, float(retry_after))
        except Exception:
            pass
        return self._backoff_secs(attempt)

    def _backoff_secs(self, attempt: int) -> float:
        base = self._retry_cfg.backoff_base_seconds
        cap = self._retry_cfg.backoff_max_seconds
        return min(base * (2 ** attempt) + random.uniform(0.0, 1.0), cap)
