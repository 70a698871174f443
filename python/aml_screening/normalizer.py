"""
Name normalization

Turns free-text names into a canonical token sequence so that case,
accents, punctuation and spacing differences do not affect matching.
"""

import re
import unicodedata
from dataclasses import dataclass, field
from typing import FrozenSet, Tuple

DEFAULT_MAX_NAME_LENGTH = 256

# Typographic apostrophes and hyphens folded to their ASCII forms
_JOINER_TRANSLATION = str.maketrans({
    '‘': "'",
    '’': "'",
    'ʼ': "'",
    '‐': '-',
    '‑': '-',
})

# Anything but letters, digits, whitespace and the two joiners; \w admits '_'
_PUNCTUATION = re.compile(r"[^\w\s'\-]|_")

# A joiner is kept only between two letters/digits
_LOOSE_JOINER = re.compile(r"(?<![^\W_])['\-]|['\-](?![^\W_])")


class InputValidationError(ValueError):
    """Raised when a name cannot be screened

    Attributes:
        field: The field that failed validation
        code: Error code for programmatic handling
        suggestion: Optional suggestion for fixing the error
    """
    def __init__(self, message: str, field: str = "sender_name", code: str = "VALIDATION_ERROR",
                 suggestion: str = ""):
        self.field = field
        self.code = code
        self.suggestion = suggestion
        super().__init__(message)


@dataclass(frozen=True)
class NormalizedName:
    """Canonical token sequence of a name

    ``raw`` keeps the caller's original string for reporting and does not
    take part in equality.
    """
    tokens: Tuple[str, ...]
    raw: str = field(default='', compare=False)

    @property
    def text(self) -> str:
        return ' '.join(self.tokens)

    @property
    def token_set(self) -> FrozenSet[str]:
        return frozenset(self.tokens)

    def __str__(self) -> str:
        return self.text


def strip_diacritics(text: str) -> str:
    """Decompose (NFKD) and drop combining marks"""
    decomposed = unicodedata.normalize('NFKD', text)
    return ''.join(c for c in decomposed if not unicodedata.combining(c))


def normalize(raw: str, max_length: int = DEFAULT_MAX_NAME_LENGTH) -> NormalizedName:
    """Normalize a raw name for matching

    Args:
        raw: Name as supplied by the caller
        max_length: Maximum length of the trimmed name

    Returns:
        NormalizedName with lowercase, accent-free, punctuation-free tokens

    Raises:
        InputValidationError: If the name is not a string, is empty after
            trimming, is too long, or has no tokens left after cleaning
    """
    if not isinstance(raw, str):
        raise InputValidationError(
            f"Name must be a string, got {type(raw).__name__}",
            code="NAME_NOT_STRING",
            suggestion="Provide the sender name as text"
        )

    trimmed = raw.strip()
    if not trimmed:
        raise InputValidationError(
            "Name is empty",
            code="NAME_EMPTY",
            suggestion="Provide a name with at least one character"
        )
    if len(trimmed) > max_length:
        raise InputValidationError(
            f"Name too long ({len(trimmed)} chars, maximum {max_length})",
            code="NAME_TOO_LONG",
            suggestion=f"Shorten the name to {max_length} characters or less"
        )

    text = trimmed.lower().translate(_JOINER_TRANSLATION)
    # NFKD can surface uppercase compatibility forms, lowercase once more
    text = strip_diacritics(text).lower()
    text = _PUNCTUATION.sub(' ', text)
    text = _LOOSE_JOINER.sub(' ', text)

    tokens = tuple(text.split())
    if not tokens:
        raise InputValidationError(
            "Name contains no letters or digits",
            code="NAME_NO_TOKENS",
            suggestion="Provide a name made of letters or digits"
        )

    return NormalizedName(tokens=tokens, raw=raw)
