"""
Core data types for the AML name-screening engine

Blocklist entries, screening requests and decisions. Entries are immutable
once built so that an index generation can be shared across threads and
replayed later for audit.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional


class RiskCategory(str, Enum):
    """Risk category of a blocklist entry"""
    SANCTIONED = "sanctioned"
    WATCHLIST = "watchlist"
    PEP = "pep"
    OTHER = "other"


class BlockReason(str, Enum):
    """Reason attached to a screening decision"""
    NONE = "none"
    SANCTIONED_MATCH = "sanctioned-match"
    WATCHLIST_MATCH = "watchlist-match"
    PEP_MATCH = "pep-match"
    INVALID_INPUT = "invalid-input"

    @property
    def is_match(self) -> bool:
        return self not in (BlockReason.NONE, BlockReason.INVALID_INPUT)


# The closed reason set has no dedicated value for OTHER, it is reported
# with the watchlist reason.
REASON_BY_CATEGORY: Dict[RiskCategory, BlockReason] = {
    RiskCategory.SANCTIONED: BlockReason.SANCTIONED_MATCH,
    RiskCategory.WATCHLIST: BlockReason.WATCHLIST_MATCH,
    RiskCategory.PEP: BlockReason.PEP_MATCH,
    RiskCategory.OTHER: BlockReason.WATCHLIST_MATCH,
}

ENTITY_TYPES = ('person', 'organization', 'entity')


class BlockListValidationError(ValueError):
    """Raised when blocklist data is malformed

    Attributes:
        entry_id: Identifier of the offending entry, if known
    """
    def __init__(self, message: str, entry_id: Optional[str] = None):
        self.entry_id = entry_id
        super().__init__(message)


@dataclass(frozen=True)
class BlockListEntry:
    """A sanctioned, watchlisted or PEP entity to screen against

    Only ``canonical_name`` and ``aliases`` take part in scoring. The
    remaining descriptive fields are carried for reporting.
    """
    id: str
    canonical_name: str
    aliases: FrozenSet[str] = field(default_factory=frozenset)
    risk_category: RiskCategory = RiskCategory.SANCTIONED
    active: bool = True
    entity_type: str = 'person'
    reason: str = ''
    severity: int = 8
    notes: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.id, str) or not self.id.strip():
            raise BlockListValidationError("Entry id must be a non-empty string", entry_id=None)
        if not isinstance(self.canonical_name, str) or not self.canonical_name.strip():
            raise BlockListValidationError(
                f"Entry {self.id} has no canonical name", entry_id=self.id
            )

        aliases = self.aliases
        if aliases is None:
            aliases = frozenset()
        elif isinstance(aliases, str):
            aliases = frozenset([aliases])
        else:
            aliases = frozenset(aliases)
        if any(not isinstance(alias, str) for alias in aliases):
            raise BlockListValidationError(
                f"Entry {self.id} has non-string aliases", entry_id=self.id
            )
        object.__setattr__(self, 'aliases', frozenset(a for a in aliases if a.strip()))

        try:
            object.__setattr__(self, 'risk_category', RiskCategory(self.risk_category))
        except ValueError:
            raise BlockListValidationError(
                f"Entry {self.id} has unknown risk category: {self.risk_category!r}",
                entry_id=self.id
            )

        if self.entity_type not in ENTITY_TYPES:
            raise BlockListValidationError(
                f"Entry {self.id} has unknown entity type: {self.entity_type!r}",
                entry_id=self.id
            )
        if isinstance(self.severity, bool) or not isinstance(self.severity, int) \
                or not 1 <= self.severity <= 10:
            raise BlockListValidationError(
                f"Entry {self.id} severity must be an integer between 1 and 10",
                entry_id=self.id
            )
        object.__setattr__(self, 'active', bool(self.active))

    @property
    def all_names(self) -> Iterable[str]:
        """Canonical name first, then aliases in sorted order"""
        yield self.canonical_name
        yield from sorted(self.aliases)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'canonicalName': self.canonical_name,
            'aliases': sorted(self.aliases),
            'riskCategory': self.risk_category.value,
            'active': self.active,
            'entityType': self.entity_type,
            'reason': self.reason,
            'severity': self.severity,
            'notes': self.notes,
        }


@dataclass(frozen=True)
class BlockCheckRequest:
    """Input for a single screening decision

    ``context`` is opaque audit metadata and never influences scoring.
    """
    sender_name: str
    context: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class BlockResult:
    """Outcome of a screening decision

    ``matched_severity`` is the matched entry's severity, set only when the
    decision blocks.
    """
    is_blocked: bool
    block_reason: BlockReason
    similarity_score: float = 0.0
    matched_entity: Optional[str] = None
    matched_name: Optional[str] = None
    matched_severity: Optional[int] = None
    generation: Optional[int] = None

    @classmethod
    def invalid_input(cls) -> 'BlockResult':
        return cls(is_blocked=False, block_reason=BlockReason.INVALID_INPUT)

    @classmethod
    def no_match(cls, generation: Optional[int] = None) -> 'BlockResult':
        return cls(is_blocked=False, block_reason=BlockReason.NONE, generation=generation)

    def to_dict(self) -> Dict[str, Any]:
        """External response shape"""
        return {
            'isBlocked': self.is_blocked,
            'blockReason': self.block_reason.value,
            'similarityScore': self.similarity_score,
            'matchedEntity': self.matched_entity,
        }
