"""
backend/gambo/utils/team_matching.py

Purpose:
    Team-name comparison helpers shared by the game matcher and the settlement
    classifier. The heuristics are intentionally simple and deterministic so
    that repeated passes reach the same decision.

Notes:
    - Prefix containment is permissive: two fixtures whose names share a
      common leading substring can cross-match. Callers log ambiguity instead
      of guessing silently.
    - Token matching is only used to recognise a team named inside free-text
      pick descriptions ("Manchester City to Win" vs "Man City").
"""

from __future__ import annotations

import re
import unicodedata

_NOISE_TOKENS = {"fc", "cf", "sc", "ac", "as", "ss", "us", "afc", "rcd", "1.", "club", "de", "the"}


def fold(name: str | None) -> str:
    """Lowercase, accent-free, whitespace-collapsed form of a name."""
    normalized = unicodedata.normalize("NFKD", name or "")
    normalized = "".join(ch for ch in normalized if not unicodedata.combining(ch)).lower()
    return " ".join(normalized.split())


def name_prefix(name: str | None, length: int = 15) -> str:
    return fold(name)[:length].strip()


def prefix_contains(stored_name: str | None, live_name: str | None, length: int = 15) -> bool:
    """True when the stored name contains the first ``length`` chars of the live name."""
    prefix = name_prefix(live_name, length)
    if not prefix:
        return False
    return prefix in fold(stored_name)


def _normalize_tokens(name: str) -> set[str]:
    """Normalize a team name into lowercase, accent-free comparison tokens."""
    cleaned = re.sub(r"[^\w\s.]", " ", fold(name))
    return {token for token in cleaned.split() if token not in _NOISE_TOKENS and len(token) >= 3}


def teams_match(name_a: str, name_b: str) -> bool:
    """Return True when both names likely refer to the same team."""
    tokens_a = _normalize_tokens(name_a)
    tokens_b = _normalize_tokens(name_b)
    if not tokens_a or not tokens_b:
        return False

    if tokens_a & tokens_b:
        return True

    for token_a in tokens_a:
        for token_b in tokens_b:
            if len(token_a) >= 4 and len(token_b) >= 4:
                if token_a.startswith(token_b[:4]) or token_b.startswith(token_a[:4]):
                    return True
    return False
