"""
Fuzzy name matching primitives

Normalization, Levenshtein edit distance, percentage similarity and
best-of-name-and-aliases selection. All functions are pure.

Scores are integers in [0, 100]. Rounding is round-half-up: a raw
similarity of 84.5 scores 85.
"""

import re
import unicodedata
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

from rapidfuzz.distance import Levenshtein

_NON_KEY_CHARS = re.compile(r'[^A-Za-z0-9\s]')


class MatchedOn(str, Enum):
    """Which field of a subject produced its reported score"""
    NAME = 'Name'
    ALIAS = 'Alias'


@dataclass(frozen=True)
class BestMatch:
    """Best score for one subject and the field it came from"""
    score: int
    matched_on: MatchedOn


def normalize(text: Optional[str]) -> str:
    """Canonicalize a raw name into a comparison key

    Accents are folded to their base letter, anything that is not an ASCII
    letter, digit or whitespace is removed, the result is lowercased and
    its tokens are sorted so that word order does not matter.

    >>> normalize("BANDE  Hamà")
    'bande hama'
    >>> normalize("Hama Bande")
    'bande hama'
    """
    if not text:
        return ''
    decomposed = unicodedata.normalize('NFD', text)
    without_marks = ''.join(c for c in decomposed if not unicodedata.combining(c))
    cleaned = _NON_KEY_CHARS.sub('', without_marks).lower().strip()
    return ' '.join(sorted(cleaned.split()))


def edit_distance(a: str, b: str) -> int:
    """Levenshtein distance between two normalized keys (unit costs)

    Keys are compared as given; callers normalize first.
    """
    return Levenshtein.distance(a, b, weights=(1, 1, 1))


def _percent_half_up(distance: int, max_len: int) -> int:
    """(1 - distance / max_len) * 100 rounded half up, in exact integer arithmetic"""
    return (200 * (max_len - distance) + max_len) // (2 * max_len)


def similarity(s1: Optional[str], s2: Optional[str]) -> int:
    """Similarity percentage between two raw names

    Returns 0 when either side normalizes to an empty key (two blank
    names are not a match) and 100 when the keys are identical.
    """
    norm1 = normalize(s1)
    norm2 = normalize(s2)

    if not norm1 or not norm2:
        return 0
    if norm1 == norm2:
        return 100

    distance = edit_distance(norm1, norm2)
    max_len = max(len(norm1), len(norm2))
    score = _percent_half_up(distance, max_len)
    return max(0, min(100, score))


def best_match(query: str, primary_name: str, aliases: Optional[Sequence[str]] = None) -> BestMatch:
    """Best similarity of a query against a primary name and its aliases

    The match is attributed to an alias only when the alias scores strictly
    higher than the primary name; ties go to the name.
    """
    name_score = similarity(query, primary_name)

    alias_score = 0
    if aliases:
        alias_score = max(similarity(query, alias) for alias in aliases)

    matched_on = MatchedOn.ALIAS if alias_score > name_score else MatchedOn.NAME
    return BestMatch(score=max(name_score, alias_score), matched_on=matched_on)
