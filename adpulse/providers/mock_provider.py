"""Mock provider for dry-run mode — no API calls, canned markdown insights."""

from __future__ import annotations

import re
from typing import List

from adpulse.providers.base import BaseProvider, TokenUsage

_MOCK_INSIGHTS = """\
1. **Executive Summary**: {rows} rows reviewed. Spend is concentrated in a few campaigns.
2. **Key Performance Insights**: Search terms with clicks and no conversions are the main source of waste.
3. **Optimization Recommendations**: Add converting search terms as exact match keywords; add non-converting terms as negatives.
4. **Implementation Steps**: Review the search terms report weekly and apply negatives at ad group level.
5. **Expected Impact**: Lower CPA and a higher ROAS on the same budget.
"""


class MockProvider(BaseProvider):
    """Deterministic provider for dry runs and tests.

    Extra keyword arguments are ignored so callers can pass the same
    kwargs used for the real providers.
    """

    name = "mock"
    model = "mock"

    def __init__(self, **kwargs):
        super().__init__()
        self._call_log: List[str] = []

    def generate(self, prompt: str, system: str = "", max_tokens: int = 0) -> str:
        self._call_log.append(prompt)
        m = re.search(r"Total Rows:\*\*\s*(\d+)", prompt)
        rows = m.group(1) if m else "0"
        # Rough 4-chars-per-token estimate keeps the usage panel populated.
        in_tok = len(prompt) // 4
        text = _MOCK_INSIGHTS.format(rows=rows)
        out_tok = len(text) // 4
        self.last_usage = TokenUsage(in_tok, out_tok, in_tok + out_tok)
        return text

    def stats(self) -> dict:
        return {
            "call_count": len(self._call_log),
            "retry_count": 0,
            "last_error": None,
        }
