"""Accent- and case-insensitive string ordering shared by the tree builder and the table pipeline."""

from __future__ import annotations

import unicodedata
from typing import Tuple


def _fold(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).casefold()


def collation_key(value) -> Tuple[str, str]:
    """Sort key ordering "Éclair" between "apple" and "Zeta" in any process locale.

    Primary level ignores accents and case; the casefolded original breaks
    ties between accented and plain spellings. Equal keys keep their input
    order under Python's stable sort.
    """
    text = str(value or "")
    return _fold(text), text.casefold()
