"""Fuzzy matching of free-text picks and provider labels to matchup teams.

A selection like "Warriors +3.5", "LAL ML" or "Over 220.5" is resolved to a
tagged ``Side``. Matching is tiered: the rules are tried in order and, at
each tier, both teams are checked. The first tier where exactly one team
matches decides; if both teams match at the same tier the text is ambiguous
and the result is ``Side.UNKNOWN``.

Tiers:
  1. exact normalized equality
  2. substring containment in either direction
  3. short name / abbreviation equal to the first token (without a short
     name, the capitals of the display name: "LAL" for "Los Angeles Lakers")
  4. any team word of length >= 4 present as a token
"""
from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

# Shorter words ("la", "ny", "st") collide across teams.
_MIN_WORD_LEN = 4

# Signed numbers standing on their own ("+3.5", "-110") but not "76ers".
_NUMBER_RE = re.compile(r"(?<![a-z0-9])[+-]?\d+(?:\.\d+)?(?![a-z0-9])")
_TRAILING_LINE_RE = re.compile(r"([+-]?\d+(?:\.\d+)?)\s*$")
# First number not glued to a following word, so "76ers" is skipped.
_ANY_LINE_RE = re.compile(r"([+-]?\d+(?:\.\d+)?)(?!\d|\.\d|[a-z])", re.IGNORECASE)

_OVER_RE = re.compile(r"\bover(?![a-z])|\bo\s*\d")
_UNDER_RE = re.compile(r"\bunder(?![a-z])|\bu\s*\d")


class Side(str, Enum):
    HOME = "home"
    AWAY = "away"
    OVER = "over"
    UNDER = "under"
    UNKNOWN = "unknown"


def normalize(text: Optional[str]) -> str:
    """Lowercase, strip punctuation, collapse whitespace."""
    n = (text or "").lower()
    n = re.sub(r"[^a-z0-9\s]", "", n)
    n = re.sub(r"\s+", " ", n)
    return n.strip()


def _strip_numbers(text: Optional[str]) -> str:
    return _NUMBER_RE.sub(" ", (text or "").lower())


def _abbreviation(team: Optional[str]) -> str:
    """Capital letters of a display name: "Los Angeles Lakers" -> "lal"."""
    abbrev = re.sub(r"[^A-Z]", "", team or "").lower()
    return abbrev if len(abbrev) >= 2 else ""


# ---------------------------------------------------------------------------
# Tier rules: each takes (normalized text, normalized team, normalized short)
# ---------------------------------------------------------------------------

def _exact(sel: str, team: str, short: str) -> bool:
    return sel == team or (bool(short) and sel == short)


def _contains(sel: str, team: str, short: str) -> bool:
    return sel in team or team in sel


def _short_first_token(sel: str, team: str, short: str) -> bool:
    if not short:
        return False
    tokens = sel.split()
    return bool(tokens) and tokens[0] == short


def _word_overlap(sel: str, team: str, short: str) -> bool:
    tokens = set(sel.split())
    return any(len(w) >= _MIN_WORD_LEN and w in tokens for w in team.split())


_TIERS: List[Callable[[str, str, str], bool]] = [
    _exact,
    _contains,
    _short_first_token,
    _word_overlap,
]


def match_side(
    text: str,
    home_team: str,
    away_team: str,
    home_short: Optional[str] = None,
    away_short: Optional[str] = None,
) -> Side:
    """Resolve *text* to ``Side.HOME``, ``Side.AWAY`` or ``Side.UNKNOWN``."""
    sel = normalize(_strip_numbers(text))
    home = normalize(home_team)
    away = normalize(away_team)
    if not sel or not home or not away:
        return Side.UNKNOWN
    # no short name given: fall back to the capitals of the display name
    home_s = normalize(home_short) or _abbreviation(home_team)
    away_s = normalize(away_short) or _abbreviation(away_team)

    for rule in _TIERS:
        home_hit = rule(sel, home, home_s)
        away_hit = rule(sel, away, away_s)
        if home_hit and away_hit:
            logger.debug(f"ambiguous selection {text!r}: matches both {home_team!r} and {away_team!r}")
            return Side.UNKNOWN
        if home_hit:
            return Side.HOME
        if away_hit:
            return Side.AWAY

    logger.debug(f"selection {text!r} matches neither {home_team!r} nor {away_team!r}")
    return Side.UNKNOWN


def detect_over_under(text: str) -> Side:
    """Resolve a totals pick to ``Side.OVER`` / ``Side.UNDER``.

    Accepts "Over 215.5", "Over220.5", "o215.5", "U 44"; text naming both
    is UNKNOWN.
    """
    sel = (text or "").lower().strip()
    is_over = bool(_OVER_RE.search(sel))
    is_under = bool(_UNDER_RE.search(sel))
    if is_over and not is_under:
        return Side.OVER
    if is_under and not is_over:
        return Side.UNDER
    return Side.UNKNOWN


def extract_line(selection: str) -> Optional[float]:
    """Pull a signed line out of selection text.

    Prefers a trailing number ("Warriors +3.5"), falls back to the first
    embedded one ("Over 220.5 points"). Digits glued to a word ("76ers")
    are never a line.
    """
    sel = (selection or "").strip()
    m = _TRAILING_LINE_RE.search(sel) or _ANY_LINE_RE.search(sel)
    if not m:
        return None
    return float(m.group(1))


def same_team(name_a: str, name_b: str) -> bool:
    """Whether two spellings of a team name refer to the same team.

    Used to reconcile a results provider's labels ("LA Clippers") with the
    stored matchup ("Los Angeles Clippers").
    """
    a = re.sub(r"[^a-z0-9]", "", (name_a or "").lower())
    b = re.sub(r"[^a-z0-9]", "", (name_b or "").lower())
    if not a or not b:
        return False
    if a == b or a in b or b in a:
        return True
    words_a = {w for w in normalize(name_a).split() if len(w) >= _MIN_WORD_LEN}
    words_b = {w for w in normalize(name_b).split() if len(w) >= _MIN_WORD_LEN}
    return bool(words_a & words_b)
