"""
Similarity scoring between a screened name and a blocklist entry

The score is a fixed, explainable blend of two measures:

- token-set score: Jaccard index of the two token sets, insensitive to
  word order and missing middle names
- edit-distance score: 1 - Levenshtein / max(len) over the full normalized
  strings, tolerant of typos and transliteration variants

    combined = 0.6 * token_set + 0.4 * edit_distance

An entry is scored against its canonical name and every alias and keeps the
best result. Weights are fixed so that an audited score can always be
recomputed by hand.
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, FrozenSet, List, Optional

from rapidfuzz.distance import Levenshtein

from aml_screening.models import BlockListEntry
from aml_screening.normalizer import (
    InputValidationError, NormalizedName, normalize
)

TOKEN_SET_WEIGHT = 0.6
EDIT_DISTANCE_WEIGHT = 0.4
SCORE_PRECISION = 6

# Blocklist names are not held to the sender-name cap
DEFAULT_MAX_ENTRY_NAME_LENGTH = 1024


class ScoringError(Exception):
    """Raised when an entry cannot be scored (corrupt entry data)

    Attributes:
        entry_id: Identifier of the entry that failed
    """
    def __init__(self, message: str, entry_id: Optional[str] = None):
        self.entry_id = entry_id
        super().__init__(message)


@dataclass(frozen=True)
class ScoreBreakdown:
    """Best score of an entry with the sub-scores that produced it"""
    overall: float
    token_set: float = 0.0
    edit_distance: float = 0.0
    matched_name: str = ''

    def to_dict(self) -> Dict[str, object]:
        return {
            'overall': self.overall,
            'token_set': round(self.token_set, SCORE_PRECISION),
            'edit_distance': round(self.edit_distance, SCORE_PRECISION),
            'matched_name': self.matched_name,
        }


@lru_cache(maxsize=65536)
def normalize_entry_name(name: str, max_length: int = DEFAULT_MAX_ENTRY_NAME_LENGTH) -> Optional[NormalizedName]:
    """Normalize a blocklist name, returning None when it has no usable form"""
    try:
        return normalize(name, max_length)
    except InputValidationError:
        return None


def token_set_score(query_tokens: FrozenSet[str], candidate_tokens: FrozenSet[str]) -> float:
    """Jaccard index of two token sets"""
    union = query_tokens | candidate_tokens
    if not union:
        return 0.0
    return len(query_tokens & candidate_tokens) / len(union)


def edit_distance_score(query: str, candidate: str) -> float:
    """1 - Levenshtein distance / length of the longer string"""
    longest = max(len(query), len(candidate))
    if longest == 0:
        return 0.0
    return 1.0 - Levenshtein.distance(query, candidate) / longest


def combine(token_set: float, edit_distance: float) -> float:
    """Weighted blend of the two sub-scores, clamped to [0, 1]"""
    combined = TOKEN_SET_WEIGHT * token_set + EDIT_DISTANCE_WEIGHT * edit_distance
    return round(max(0.0, min(1.0, combined)), SCORE_PRECISION)


class SimilarityScorer:
    """Scores normalized names against blocklist entries"""

    def __init__(self, max_entry_name_length: int = DEFAULT_MAX_ENTRY_NAME_LENGTH):
        self.max_entry_name_length = max_entry_name_length

    def _entry_names(self, entry: BlockListEntry) -> List[NormalizedName]:
        names = []
        try:
            raw_names = list(entry.all_names)
        except (AttributeError, TypeError) as e:
            raise ScoringError(f"Entry names unreadable: {e}", entry_id=getattr(entry, 'id', None))

        for raw in raw_names:
            if not isinstance(raw, str):
                raise ScoringError(
                    f"Entry {entry.id} has a non-string name: {raw!r}", entry_id=entry.id
                )
            normalized = normalize_entry_name(raw, self.max_entry_name_length)
            if normalized is not None:
                names.append(normalized)

        if not names:
            raise ScoringError(f"Entry {entry.id} has no usable name", entry_id=entry.id)
        return names

    def compare(self, query: NormalizedName, candidate: NormalizedName) -> ScoreBreakdown:
        """Score two normalized names"""
        token_set = token_set_score(query.token_set, candidate.token_set)
        edit = edit_distance_score(query.text, candidate.text)
        return ScoreBreakdown(
            overall=combine(token_set, edit),
            token_set=token_set,
            edit_distance=edit,
            matched_name=candidate.raw,
        )

    def explain(self, query: NormalizedName, entry: BlockListEntry) -> ScoreBreakdown:
        """Best score over the entry's canonical name and aliases

        Ties between names keep the earlier name (canonical first, then
        aliases in sorted order).

        Raises:
            ScoringError: If the entry has no name that can be scored
        """
        best: Optional[ScoreBreakdown] = None
        for candidate in self._entry_names(entry):
            breakdown = self.compare(query, candidate)
            if best is None or breakdown.overall > best.overall:
                best = breakdown
        return best

    def score(self, query: NormalizedName, entry: BlockListEntry) -> float:
        return self.explain(query, entry).overall
