"""Tests for the Claude and OpenAI providers' retry/backoff + budget logic."""
from __future__ import annotations

import os
from unittest.mock import MagicMock, patch

import anthropic
import openai
import pytest

from adpulse.config import BudgetConfig, RetryConfig
from adpulse.providers.anthropic_provider import AnthropicProvider
from adpulse.providers.base import BudgetExceededError
from adpulse.providers.openai_provider import OpenAIProvider


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────

def _make_status_error(cls, status_code: int, retry_after: str = None):
    """Build an APIStatusError-compatible object for testing."""
    resp = MagicMock()
    resp.status_code = status_code
    resp.headers = {"retry-after": retry_after} if retry_after is not None else {}
    exc = cls.__new__(cls)
    exc.status_code = status_code
    exc.response = resp
    exc.message = f"HTTP {status_code}"
    return exc


def _claude_success(text: str = "1. **Executive Summary**"):
    msg = MagicMock()
    msg.content = [MagicMock()]
    msg.content[0].text = text
    msg.usage = MagicMock()
    msg.usage.input_tokens = 100
    msg.usage.output_tokens = 50
    return msg


def _openai_success(text: str = "1. **Executive Summary**"):
    resp = MagicMock()
    resp.choices = [MagicMock()]
    resp.choices[0].message.content = text
    resp.usage = MagicMock()
    resp.usage.prompt_tokens = 120
    resp.usage.completion_tokens = 30
    resp.usage.total_tokens = 150
    return resp


def _retry(max_retries: int) -> RetryConfig:
    return RetryConfig(max_api_retries=max_retries, backoff_base_seconds=0.0, backoff_max_seconds=0.0)


def _claude(max_retries: int = 2, max_calls: int = 10) -> AnthropicProvider:
    """Build a provider with instant back-off and a patched client."""
    with patch.dict(os.environ, {"ANTHROPIC_API_KEY": "test-key"}):
        with patch("anthropic.Anthropic"):
            return AnthropicProvider(
                retry_cfg=_retry(max_retries),
                budget_cfg=BudgetConfig(max_calls_per_run=max_calls),
            )


def _openai(max_retries: int = 2, max_calls: int = 10) -> OpenAIProvider:
    with patch.dict(os.environ, {"OPENAI_API_KEY": "test-key"}):
        with patch("openai.OpenAI"):
            return OpenAIProvider(
                retry_cfg=_retry(max_retries),
                budget_cfg=BudgetConfig(max_calls_per_run=max_calls),
            )


# ─────────────────────────────────────────────────────────────────────────────
# Claude
# ─────────────────────────────────────────────────────────────────────────────

class TestClaudeSuccessPath:
    def test_success_returns_text(self):
        p = _claude()
        p.client.messages.create.return_value = _claude_success("Hello!")
        assert p.generate("prompt") == "Hello!"

    def test_token_tracking(self):
        p = _claude()
        p.client.messages.create.return_value = _claude_success()
        p.generate("p1")
        p.generate("p2")
        assert p.call_count == 2
        assert p.last_usage.total_tokens == 150
        assert p.stats()["total_tokens"] == 300

    def test_default_model_and_system_prompt(self):
        p = _claude()
        p.client.messages.create.return_value = _claude_success()
        p.generate("prompt")
        _, kwargs = p.client.messages.create.call_args
        assert kwargs["model"] == "claude-3-5-sonnet-20241022"
        assert "google ads" in kwargs["system"].lower()

    def test_custom_system_prompt(self):
        p = _claude()
        p.client.messages.create.return_value = _claude_success()
        p.generate("prompt", system="Be terse.")
        _, kwargs = p.client.messages.create.call_args
        assert kwargs["system"] == "Be terse."

    def test_empty_content_placeholder(self):
        p = _claude()
        msg = _claude_success()
        msg.content = []
        p.client.messages.create.return_value = msg
        assert p.generate("p") == "No insights generated"

    def test_missing_key(self):
        with patch.dict(os.environ, {}, clear=True):
            with patch("adpulse.providers.anthropic_provider.load_dotenv"):
                with pytest.raises(EnvironmentError):
                    AnthropicProvider()


class TestClaudeRetry:
    def test_retry_on_429_then_success(self):
        p = _claude()
        p.client.messages.create.side_effect = [
            _make_status_error(anthropic.APIStatusError, 429),
            _claude_success("Retry worked"),
        ]
        with patch("time.sleep"):
            assert p.generate("p") == "Retry worked"
        assert p.retry_count == 1
        assert p.call_count == 1

    def test_retry_on_529_then_success(self):
        p = _claude()
        p.client.messages.create.side_effect = [
            _make_status_error(anthropic.APIStatusError, 529),
            _claude_success("529 ok"),
        ]
        with patch("time.sleep"):
            assert p.generate("p") == "529 ok"

    def test_exhausted_retries_raises(self):
        p = _claude(max_retries=2)
        err = _make_status_error(anthropic.APIStatusError, 429)
        p.client.messages.create.side_effect = [err, err, err, err]
        with patch("time.sleep"):
            with pytest.raises(anthropic.APIStatusError):
                p.generate("p")
        assert p.retry_count == 2
        assert p.last_error is not None

    def test_non_retryable_401_raises_immediately(self):
        p = _claude()
        p.client.messages.create.side_effect = _make_status_error(anthropic.APIStatusError, 401)
        with pytest.raises(anthropic.APIStatusError):
            p.generate("p")
        assert p.retry_count == 0
        assert p.last_error.startswith("HTTP 401")

    def test_retry_after_header_respected(self):
        p = _claude()
        p.client.messages.create.side_effect = [
            _make_status_error(anthropic.APIStatusError, 429, retry_after="5"),
            _claude_success(),
        ]
        with patch("time.sleep") as mock_sleep:
            p.generate("p")
        mock_sleep.assert_called_once_with(5.0)


class TestBudget:
    def test_budget_exceeded(self):
        p = _claude(max_calls=1)
        p.client.messages.create.return_value = _claude_success()
        p.generate("p")
        with pytest.raises(BudgetExceededError):
            p.generate("p")

    def test_zero_budget_is_unlimited(self):
        p = _openai(max_calls=0)
        p.client.chat.completions.create.return_value = _openai_success()
        for _ in range(12):
            p.generate("p")
        assert p.call_count == 12


# ─────────────────────────────────────────────────────────────────────────────
# OpenAI
# ─────────────────────────────────────────────────────────────────────────────

class TestOpenAI:
    def test_success_and_usage(self):
        p = _openai()
        p.client.chat.completions.create.return_value = _openai_success("Hi")
        assert p.generate("prompt") == "Hi"
        assert p.last_usage.input_tokens == 120
        assert p.last_usage.output_tokens == 30
        _, kwargs = p.client.chat.completions.create.call_args
        assert kwargs["model"] == "gpt-4-turbo"
        assert kwargs["messages"][0]["role"] == "system"
        assert kwargs["messages"][1] == {"role": "user", "content": "prompt"}

    def test_retry_on_500_then_success(self):
        p = _openai()
        p.client.chat.completions.create.side_effect = [
            _make_status_error(openai.APIStatusError, 500),
            _openai_success("ok"),
        ]
        with patch("time.sleep"):
            assert p.generate("p") == "ok"
        assert p.stats() == {"call_count": 1, "retry_count": 1, "last_error": None}

    def test_non_retryable_400(self):
        p = _openai()
        p.client.chat.completions.create.side_effect = _make_status_error(openai.APIStatusError, 400)
        with pytest.raises(openai.APIStatusError):
            p.generate("p")
        assert p.retry_count == 0

    def test_exhausted_retries(self):
        p = _openai(max_retries=1)
        err = _make_status_error(openai.APIStatusError, 503)
        p.client.chat.completions.create.side_effect = [err, err]
        with patch("time.sleep"):
            with pytest.raises(openai.APIStatusError):
                p.generate("p")
        assert p.retry_count == 1

    def test_empty_choices_placeholder(self):
        p = _openai()
        resp = _openai_success()
        resp.choices = []
        p.client.chat.completions.create.return_value = resp
        assert p.generate("p") == "No insights generated"
