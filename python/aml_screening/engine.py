"""
Block decision engine

Turns a sender name into a single explainable screening decision:

    normalize -> candidates -> score -> best match -> threshold -> record

The engine keeps no per-request state. It pins one blocklist generation per
call, so a reload that lands mid-call cannot mix entries from two
generations into one decision.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from aml_screening.audit_logger import AuditLogger
from aml_screening.blocklist_index import BlockListIndex
from aml_screening.config_manager import ConfigManager, get_config
from aml_screening.log_utils import sanitize_for_logging
from aml_screening.models import (
    REASON_BY_CATEGORY, BlockCheckRequest, BlockListEntry, BlockReason, BlockResult, RiskCategory
)
from aml_screening.normalizer import InputValidationError, NormalizedName, normalize
from aml_screening.similarity import ScoreBreakdown, ScoringError, SimilarityScorer
from aml_screening.stats import StatsAggregator

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BlockDecisionEngine:
    """Screens sender names against the live blocklist generation"""

    def __init__(
        self,
        index: BlockListIndex,
        scorer: Optional[SimilarityScorer] = None,
        stats: Optional[StatsAggregator] = None,
        config: Optional[ConfigManager] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """Initialize engine

        Args:
            index: Blocklist index providing candidates
            scorer: Similarity scorer (built from config if omitted)
            stats: Shared statistics aggregator (a private one if omitted)
            config: Configuration manager instance
            audit_logger: Optional audit trail for every decision
            clock: Source of decision timestamps, UTC now by default
        """
        self.config = config or get_config()
        self.index = index
        self.max_name_length = self.config.input_validation.max_name_length
        self.scorer = scorer or SimilarityScorer(
            max_entry_name_length=self.config.input_validation.max_entry_name_length
        )
        self.stats = stats if stats is not None else StatsAggregator()
        self.audit_logger = audit_logger
        self.clock = clock or _utc_now

    def threshold_for(self, category: RiskCategory) -> float:
        return self.config.thresholds.for_category(category)

    def check(self, request: Union[BlockCheckRequest, str]) -> BlockResult:
        """Screen one sender name

        Invalid names never raise, they produce an ``invalid-input`` result.

        Raises:
            IndexUnavailableError: If no blocklist has ever loaded
        """
        if not isinstance(request, BlockCheckRequest):
            request = BlockCheckRequest(sender_name=request)

        try:
            normalized = normalize(request.sender_name, self.max_name_length)
        except InputValidationError as e:
            logger.info("Invalid sender name (%s): %s", e.code,
                        sanitize_for_logging(str(request.sender_name), max_length=80))
            return self._finish(request, BlockResult.invalid_input(), None)

        generation = self.index.current()

        best: Optional[Tuple[BlockListEntry, ScoreBreakdown]] = None
        for entry in generation.candidates(normalized):
            try:
                breakdown = self.scorer.explain(normalized, entry)
            except ScoringError as e:
                self.stats.record_scoring_error()
                logger.warning("Skipping entry %s in generation %d: %s", entry.id, generation.number, e)
                continue
            if best is None or self._outranks(entry, breakdown, *best):
                best = (entry, breakdown)

        if best is None:
            return self._finish(request, BlockResult.no_match(generation.number), normalized)

        entry, breakdown = best
        score = breakdown.overall
        if score >= self.threshold_for(entry.risk_category):
            result = BlockResult(
                is_blocked=True,
                block_reason=REASON_BY_CATEGORY[entry.risk_category],
                similarity_score=score,
                matched_entity=entry.id,
                matched_name=breakdown.matched_name,
                matched_severity=entry.severity,
                generation=generation.number
            )
        else:
            result = BlockResult(
                is_blocked=False,
                block_reason=BlockReason.NONE,
                similarity_score=score,
                matched_name=breakdown.matched_name,
                generation=generation.number
            )
        return self._finish(request, result, normalized)

    @staticmethod
    def _outranks(entry: BlockListEntry, breakdown: ScoreBreakdown,
                  best_entry: BlockListEntry, best_breakdown: ScoreBreakdown) -> bool:
        # Higher score wins, equal scores go to the smaller id
        if breakdown.overall != best_breakdown.overall:
            return breakdown.overall > best_breakdown.overall
        return entry.id < best_entry.id

    def _finish(self, request: BlockCheckRequest, result: BlockResult,
                normalized: Optional[NormalizedName]) -> BlockResult:
        # Stats are only touched once the decision is complete
        self.stats.record(result, self.clock())
        if self.audit_logger is not None:
            self.audit_logger.log_decision(request, result, normalized)
        logger.debug(
            "Decision for %s: %s (%s, score %.6f, entity %s)",
            sanitize_for_logging(normalized.text if normalized else '', max_length=80),
            'BLOCK' if result.is_blocked else 'ALLOW',
            result.block_reason.value, result.similarity_score, result.matched_entity
        )
        return result

    def check_name(self, sender_name: str) -> Dict[str, Any]:
        """Screen a name and return the external response shape"""
        return self.check(BlockCheckRequest(sender_name=sender_name)).to_dict()

    def get_stats(self) -> Dict[str, Any]:
        """Statistics in the external reporting shape"""
        return self.stats.snapshot().to_dict()

    def bulk_check(self, names: Iterable[Union[BlockCheckRequest, str]],
                   max_workers: Optional[int] = None) -> List[BlockResult]:
        """Screen many names in parallel, results in input order

        Raises:
            IndexUnavailableError: If no blocklist has ever loaded
        """
        requests = list(names)
        # Fail fast before fanning out
        self.index.current()
        workers = max_workers or self.config.performance.max_threads
        with ThreadPoolExecutor(max_workers=workers) as executor:
            return list(executor.map(self.check, requests))
