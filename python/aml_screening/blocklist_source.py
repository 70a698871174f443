"""
Blocklist sources

Loaders that produce BlockListEntry sequences for BlockListIndex.reload().
A source is any zero-argument callable returning entries; these two cover
files on disk and an in-process list managed by operators.
"""

import csv
import logging
import threading
import uuid
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import yaml

from aml_screening.models import BlockListEntry, BlockListValidationError, RiskCategory

logger = logging.getLogger(__name__)

# Accepted spellings per field, first match wins
_FIELD_KEYS = {
    'id': ('id',),
    'canonical_name': ('canonical_name', 'canonicalName', 'name'),
    'aliases': ('aliases',),
    'risk_category': ('risk_category', 'riskCategory', 'category'),
    'active': ('active', 'is_active', 'isActive'),
    'entity_type': ('entity_type', 'entityType', 'type'),
    'reason': ('reason',),
    'severity': ('severity',),
    'notes': ('notes',),
}

_TRUE_STRINGS = ('1', 'true', 'yes', 'y')
_FALSE_STRINGS = ('0', 'false', 'no', 'n')


class BlockListSourceError(Exception):
    """Raised when a blocklist source cannot be reached or read"""
    pass


def _pick(record: Mapping[str, Any], field_name: str) -> Any:
    for key in _FIELD_KEYS[field_name]:
        if key in record:
            return record[key]
    return None


def _parse_bool(value: Any, entry_id: str) -> bool:
    if value is None or (isinstance(value, str) and not value.strip()):
        return True
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    raise BlockListValidationError(f"Entry {entry_id}: invalid active flag {value!r}", entry_id=entry_id)


def entry_from_record(record: Mapping[str, Any]) -> BlockListEntry:
    """Build a BlockListEntry from a loosely-keyed mapping

    CSV values arrive as strings: aliases are '|'-separated and severity is
    converted to int.

    Raises:
        BlockListValidationError: If the record cannot form a valid entry
    """
    if not isinstance(record, Mapping):
        raise BlockListValidationError(f"Blocklist record must be a mapping, got {type(record).__name__}")

    entry_id = _pick(record, 'id')
    entry_id = str(entry_id).strip() if entry_id is not None else ''

    aliases = _pick(record, 'aliases') or []
    if isinstance(aliases, str):
        aliases = [a.strip() for a in aliases.split('|') if a.strip()]

    severity = _pick(record, 'severity')
    if severity in (None, ''):
        severity = 8
    elif isinstance(severity, str):
        try:
            severity = int(severity)
        except ValueError:
            raise BlockListValidationError(
                f"Entry {entry_id}: severity must be an integer, got {severity!r}", entry_id=entry_id
            )

    category = _pick(record, 'risk_category') or RiskCategory.SANCTIONED.value
    if isinstance(category, str):
        category = category.strip().lower()

    return BlockListEntry(
        id=entry_id,
        canonical_name=_pick(record, 'canonical_name'),
        aliases=aliases,
        risk_category=category,
        active=_parse_bool(_pick(record, 'active'), entry_id),
        entity_type=(_pick(record, 'entity_type') or 'person'),
        reason=_pick(record, 'reason') or '',
        severity=severity,
        notes=_pick(record, 'notes') or None,
    )


class FileBlockListSource:
    """Loads the blocklist from a YAML, JSON or CSV file

    YAML/JSON files hold a list of records or a mapping with an ``entries``
    list. CSV files need a header row using the same field names.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def __call__(self) -> List[BlockListEntry]:
        return self.load()

    def load(self) -> List[BlockListEntry]:
        """Read and parse the file

        Raises:
            BlockListSourceError: If the file is missing or unreadable
            BlockListValidationError: If the content is malformed
        """
        try:
            with open(self.path, 'r', encoding='utf-8', newline='') as f:
                if self.path.suffix.lower() == '.csv':
                    records = list(csv.DictReader(f))
                else:
                    records = self._parse_document(f)
        except OSError as e:
            raise BlockListSourceError(f"Cannot read blocklist {self.path}: {e}") from e
        except yaml.YAMLError as e:
            raise BlockListValidationError(f"Invalid blocklist document {self.path}: {e}") from e

        entries = [entry_from_record(record) for record in records]
        logger.info(f"✓ Read {len(entries)} blocklist entries from {self.path}")
        return entries

    def _parse_document(self, stream) -> List[Mapping[str, Any]]:
        document = yaml.safe_load(stream)
        if document is None:
            return []
        if isinstance(document, Mapping):
            document = document.get('entries', [])
        if not isinstance(document, list):
            raise BlockListValidationError(
                f"Blocklist {self.path} must contain a list of entries"
            )
        return document


class InMemoryBlockListSource:
    """Operator-managed blocklist held in process

    Additions and deactivations only reach screening on the next
    BlockListIndex.reload(), live generations never change.
    """

    def __init__(self, entries: Optional[Iterable[BlockListEntry]] = None):
        self._entries: Dict[str, BlockListEntry] = {}
        self._lock = threading.Lock()
        for entry in entries or []:
            if entry.id in self._entries:
                raise BlockListValidationError(f"Duplicate entry id: {entry.id}", entry_id=entry.id)
            self._entries[entry.id] = entry

    def __call__(self) -> List[BlockListEntry]:
        with self._lock:
            return list(self._entries.values())

    def add_entry(self, name: str, risk_category: Union[str, RiskCategory] = RiskCategory.SANCTIONED,
                  aliases: Iterable[str] = (), entity_type: str = 'person', reason: str = '',
                  severity: int = 8, notes: Optional[str] = None, entry_id: Optional[str] = None) -> str:
        """Add an entry and return its id

        Raises:
            BlockListValidationError: If the entry is invalid or the id exists
        """
        entry = BlockListEntry(
            id=entry_id or f"BL-{uuid.uuid4().hex[:12]}",
            canonical_name=name,
            aliases=aliases,
            risk_category=risk_category,
            entity_type=entity_type,
            reason=reason,
            severity=severity,
            notes=notes
        )
        with self._lock:
            if entry.id in self._entries:
                raise BlockListValidationError(f"Duplicate entry id: {entry.id}", entry_id=entry.id)
            self._entries[entry.id] = entry

        logger.info(f"Added to blocklist: {entry.id} ({entry.risk_category.value}, severity {severity})")
        return entry.id

    def deactivate_entry(self, entry_id: str) -> bool:
        """Mark an entry inactive, keeping it for audit

        Returns:
            True if the entry exists, False otherwise
        """
        with self._lock:
            entry = self._entries.get(entry_id)
            if entry is None:
                return False
            self._entries[entry_id] = replace(entry, active=False)

        logger.info(f"Deactivated blocklist entry: {entry_id}")
        return True

    def list_entries(self, active_only: bool = True) -> List[BlockListEntry]:
        """Entries sorted by id"""
        with self._lock:
            entries = list(self._entries.values())
        return sorted((e for e in entries if e.active or not active_only), key=lambda e: e.id)
