"""
AML Name-Screening Package

This package provides:
- Name normalization for fuzzy comparison
- Generational blocklist index with n-gram candidate retrieval
- Deterministic token-set / edit-distance similarity scoring
- Block/allow decision engine with per-category thresholds
- Thread-safe decision statistics and a JSON audit trail
"""

from aml_screening.models import (
    RiskCategory,
    BlockReason,
    BlockListEntry,
    BlockListValidationError,
    BlockCheckRequest,
    BlockResult,
)
from aml_screening.normalizer import (
    NormalizedName,
    InputValidationError,
    normalize,
)
from aml_screening.blocklist_source import (
    BlockListSourceError,
    FileBlockListSource,
    InMemoryBlockListSource,
)
from aml_screening.blocklist_index import (
    BlockListGeneration,
    BlockListIndex,
    IndexUnavailableError,
)
from aml_screening.similarity import (
    ScoreBreakdown,
    ScoringError,
    SimilarityScorer,
)
from aml_screening.stats import (
    StatsAggregator,
    StatsSnapshot,
)
from aml_screening.engine import BlockDecisionEngine
from aml_screening.config_manager import (
    ConfigManager,
    ConfigurationError,
    get_config,
)
from aml_screening.audit_logger import (
    AuditLogger,
    get_audit_logger,
    reset_audit_logger,
)

__version__ = "1.0.0"

__all__ = [
    # Data model
    'RiskCategory',
    'BlockReason',
    'BlockListEntry',
    'BlockListValidationError',
    'BlockCheckRequest',
    'BlockResult',
    # Normalization
    'NormalizedName',
    'InputValidationError',
    'normalize',
    # Blocklist
    'BlockListSourceError',
    'FileBlockListSource',
    'InMemoryBlockListSource',
    'BlockListGeneration',
    'BlockListIndex',
    'IndexUnavailableError',
    # Scoring and decisions
    'ScoreBreakdown',
    'ScoringError',
    'SimilarityScorer',
    'BlockDecisionEngine',
    # Statistics
    'StatsAggregator',
    'StatsSnapshot',
    # Configuration
    'ConfigManager',
    'ConfigurationError',
    'get_config',
    # Audit
    'AuditLogger',
    'get_audit_logger',
    'reset_audit_logger',
]
