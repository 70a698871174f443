"""
Blocklist index with n-gram candidate retrieval

Each load builds an immutable generation: the entries plus an inverted map
from token n-grams to entry ids. Screening asks the live generation for
candidates sharing at least ``admission_floor`` n-grams with the query. This
is a cheap high-recall filter, precision comes from the scorer.

Reloads build the next generation off to the side and publish it with one
reference assignment, so a reader holding a generation sees all of it and
nothing of its successor.
"""

import logging
import threading
from collections import Counter, deque
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Callable, Deque, Dict, FrozenSet, Iterable, Iterator, List, Mapping, Optional, Set, Tuple

from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from aml_screening.audit_logger import AuditLogger
from aml_screening.blocklist_source import BlockListSourceError
from aml_screening.config_manager import ConfigManager, get_config
from aml_screening.models import BlockListEntry, BlockListValidationError
from aml_screening.normalizer import InputValidationError, NormalizedName, normalize
from aml_screening.similarity import DEFAULT_MAX_ENTRY_NAME_LENGTH

logger = logging.getLogger(__name__)


class IndexUnavailableError(RuntimeError):
    """Raised when no blocklist generation has ever been loaded"""
    pass


def token_ngrams(tokens: Iterable[str], size: int) -> Set[str]:
    """Character n-grams of each token, padded with one space on each side

    The padding marks word starts and ends; no n-gram is a first letter
    alone. A padded token shorter than ``size`` is used whole.
    """
    grams = set()
    for token in tokens:
        padded = f" {token} "
        if len(padded) <= size:
            grams.add(padded)
            continue
        for i in range(len(padded) - size + 1):
            grams.add(padded[i:i + size])
    return grams


def create_retry_decorator(max_attempts: int = 3, min_wait: float = 0.5, max_wait: float = 5.0) -> Callable:
    """
    Create a retry decorator for blocklist source calls.

    Only BlockListSourceError (unreachable source) is retried; malformed
    data fails straight away.

    Args:
        max_attempts: Maximum number of attempts
        min_wait: Minimum wait time between retries (seconds)
        max_wait: Maximum wait time between retries (seconds)
    """
    return retry(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(BlockListSourceError),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True
    )


class BlockListGeneration:
    """Immutable snapshot of the blocklist and its n-gram postings"""

    def __init__(self, number: int, entries: Iterable[BlockListEntry], ngram_size: int = 3,
                 admission_floor: int = 1, max_entry_name_length: int = DEFAULT_MAX_ENTRY_NAME_LENGTH):
        self.number = number
        self.loaded_at = datetime.now(timezone.utc)
        self.ngram_size = ngram_size
        self.admission_floor = admission_floor
        self.max_entry_name_length = max_entry_name_length

        by_id: Dict[str, BlockListEntry] = {}
        for entry in entries:
            if not isinstance(entry, BlockListEntry):
                raise BlockListValidationError(
                    f"Expected BlockListEntry, got {type(entry).__name__}"
                )
            if entry.id in by_id:
                raise BlockListValidationError(f"Duplicate entry id: {entry.id}", entry_id=entry.id)
            by_id[entry.id] = entry

        self.entries: Tuple[BlockListEntry, ...] = tuple(by_id.values())
        self.by_id: Mapping[str, BlockListEntry] = MappingProxyType(by_id)
        self.postings: Mapping[str, FrozenSet[str]] = MappingProxyType(self._build_postings())

    def _build_postings(self) -> Dict[str, FrozenSet[str]]:
        postings: Dict[str, Set[str]] = {}
        for entry in self.entries:
            if not entry.active:
                continue
            grams: Set[str] = set()
            for name in entry.all_names:
                try:
                    normalized = normalize(name, self.max_entry_name_length)
                except InputValidationError as e:
                    logger.warning(
                        "Entry %s: name %r cannot be normalized (%s), it will not be matched",
                        entry.id, name[:80], e.code
                    )
                    continue
                grams |= token_ngrams(normalized.tokens, self.ngram_size)
            for gram in grams:
                postings.setdefault(gram, set()).add(entry.id)
        return {gram: frozenset(ids) for gram, ids in postings.items()}

    @property
    def active_count(self) -> int:
        return sum(1 for entry in self.entries if entry.active)

    def candidates(self, normalized: NormalizedName) -> Iterator[BlockListEntry]:
        """Active entries sharing at least admission_floor n-grams with the query

        Unordered and possibly empty. Empty means "no match", not a failure.
        """
        overlap: Counter = Counter()
        for gram in token_ngrams(normalized.tokens, self.ngram_size):
            overlap.update(self.postings.get(gram, ()))
        for entry_id, shared in overlap.items():
            if shared >= self.admission_floor:
                yield self.by_id[entry_id]

    def entries_list(self, active_only: bool = True) -> List[BlockListEntry]:
        """Entries of this generation sorted by id"""
        return sorted(
            (e for e in self.entries if e.active or not active_only),
            key=lambda e: e.id
        )

    def __repr__(self) -> str:
        return (f"BlockListGeneration(number={self.number}, entries={len(self.entries)}, "
                f"active={self.active_count}, ngrams={len(self.postings)})")


class BlockListIndex:
    """Holds the live blocklist generation and a short history for audit"""

    def __init__(self, config: Optional[ConfigManager] = None, audit_logger: Optional[AuditLogger] = None):
        self.config = config or get_config()
        self.audit_logger = audit_logger
        self._current: Optional[BlockListGeneration] = None
        self._history: Deque[BlockListGeneration] = deque(
            maxlen=self.config.index.retained_generations
        )
        # Serializes writers only, readers never take it
        self._swap_lock = threading.Lock()
        self._next_number = 1
        self._reload_failures = 0

    @property
    def is_loaded(self) -> bool:
        return self._current is not None

    @property
    def reload_failures(self) -> int:
        return self._reload_failures

    def current(self) -> BlockListGeneration:
        """Live generation

        Raises:
            IndexUnavailableError: If no generation has ever loaded
        """
        generation = self._current
        if generation is None:
            raise IndexUnavailableError("No blocklist generation has been loaded")
        return generation

    def candidates(self, normalized: NormalizedName) -> Iterator[BlockListEntry]:
        return self.current().candidates(normalized)

    def load(self, entries: Iterable[BlockListEntry]) -> BlockListGeneration:
        """Build a new generation from entries and make it live

        Raises:
            BlockListValidationError: If entries are malformed or ids repeat
        """
        with self._swap_lock:
            generation = BlockListGeneration(
                number=self._next_number,
                entries=entries,
                ngram_size=self.config.index.ngram_size,
                admission_floor=self.config.index.admission_floor,
                max_entry_name_length=self.config.input_validation.max_entry_name_length
            )
            self._next_number += 1
            self._history.append(generation)
            self._current = generation

        logger.info(
            "✓ Blocklist generation %d live: %d entries (%d active), %d n-grams",
            generation.number, len(generation.entries), generation.active_count,
            len(generation.postings)
        )
        return generation

    def reload(self, source: Callable[[], Iterable[BlockListEntry]]) -> Optional[BlockListGeneration]:
        """Fetch entries from source and load them

        Failures keep the current generation live: a stale list is safer
        than none. They are logged and counted, never raised.

        Returns:
            The new generation, or None if the reload failed
        """
        reload_cfg = self.config.reload
        fetch = create_retry_decorator(
            max_attempts=reload_cfg.max_attempts,
            min_wait=reload_cfg.min_wait,
            max_wait=reload_cfg.max_wait
        )(source)

        try:
            entries = list(fetch())
            return self.load(entries)
        except Exception as e:
            with self._swap_lock:
                self._reload_failures += 1
            kept = self._current.number if self._current is not None else None
            logger.exception("✗ Blocklist reload failed, keeping generation %s", kept)
            if self.audit_logger is not None:
                self.audit_logger.log_reload_failure(e, kept_generation=kept)
            return None

    def get_generation(self, number: int) -> BlockListGeneration:
        """Retained generation by number, for replaying audited decisions

        Raises:
            KeyError: If the generation is unknown or no longer retained
        """
        for generation in list(self._history):
            if generation.number == number:
                return generation
        raise KeyError(f"Generation {number} is not retained")
