"""OpenAI chat-completions provider with retry/backoff and budget tracking."""
from __future__ import annotations

import logging
import os
import random
import time
from typing import Optional

import openai
from dotenv import load_dotenv

from adpulse.config import BudgetConfig, RetryConfig
from adpulse.providers.anthropic_provider import SYSTEM_PROMPT
from adpulse.providers.base import BaseProvider, BudgetExceededError, TokenUsage

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4-turbo"

_RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


class OpenAIProvider(BaseProvider):
    """Same retry and budget behaviour as the Claude provider, over ``chat.completions``."""

    name = "openai"

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
        api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise EnvironmentError(
                "OPENAI_API_KEY not found. Pass --api-key or add it to .env."
            )
        self.client = openai.OpenAI(api_key=api_key)
        self.model = model or DEFAULT_MODEL
        self.temperature = temperature
        self.default_max_tokens = max_tokens

        self._retry_cfg = retry_cfg or RetryConfig()
        self._budget_cfg = budget_cfg or BudgetConfig()

        self.call_count: int = 0
        self.retry_count: int = 0
        self.last_error: Optional[str] = None

    def generate(self, prompt: str, system: str = "", max_tokens: int = 0) -> str:
        budget = self._budget_cfg.max_calls_per_run
        if budget and self.call_count >= budget:
            raise BudgetExceededError(f"max_calls_per_run={budget} reached")

        last_exc: Optional[BaseException] = None
        max_retries = self._retry_cfg.max_api_retries

        for attempt in range(max_retries + 1):
            try:
                self.call_count += 1
                resp = self.client.chat.completions.create(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": system or SYSTEM_PROMPT},
                        {"role": "user", "content": prompt},
                    ],
                    max_tokens=max_tokens or self.default_max_tokens,
                    temperature=self.temperature,
                )
                usage = getattr(resp, "usage", None)
                if usage:
                    self.last_usage = TokenUsage(
                        int(usage.prompt_tokens or 0),
                        int(usage.completion_tokens or 0),
                        int(usage.total_tokens or 0),
                    )
                else:
                    self.last_usage = TokenUsage()

                content = resp.choices[0].message.content if resp.choices else None
                return content or "No insights generated"

            except openai.APIStatusError as exc:
                if exc.status_code not in _RETRYABLE_STATUS_CODES:
                    self.last_error = f"HTTP {exc.status_code}: {exc.message}"
                    raise
                last_exc = exc
                if attempt >= max_retries:
                    break
                wait = self._backoff_secs(attempt)
                logger.warning("OpenAI HTTP %s, retrying in %.1fs", exc.status_code, wait)
                self.retry_count += 1
                self.call_count -= 1
                time.sleep(wait)

            except (openai.APIConnectionError, openai.APITimeoutError) as exc:
                last_exc = exc
                if attempt >= max_retries:
                    break
                wait = self._backoff_secs(attempt)
                logger.warning("OpenAI connection error, retrying in %.1fs: %s", wait, exc)
                self.retry_count += 1
                self.call_count -= 1
                time.sleep(wait)

        self.last_error = str(last_exc)
        raise last_exc  # type: ignore[misc]

    def stats(self) -> dict:
        return {
            "call_count": self.call_count,
            "retry_count": self.retry_count,
            "last_error": self.last_error,
        }

    def _backoff_secs(self, attempt: int) -> float:
        base = self._retry_cfg.backoff_base_seconds
        cap = self._retry_cfg.backoff_max_seconds
        return min(base * (2 ** attempt) + random.uniform(0.0, 1.0), cap)
