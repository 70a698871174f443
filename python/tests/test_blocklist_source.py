"""
Tests for blocklist file and in-memory sources
"""

from pathlib import Path

import pytest

from aml_screening.blocklist_source import (
    BlockListSourceError,
    FileBlockListSource,
    InMemoryBlockListSource,
    entry_from_record,
)
from aml_screening.models import BlockListEntry, BlockListValidationError, RiskCategory

SAMPLE_BLOCKLIST = Path(__file__).parent.parent / "sample_data" / "blocklist.yaml"


class TestRecords:
    """Building entries from loosely keyed records"""

    def test_snake_case_record(self):
        entry = entry_from_record({
            'id': 'E1',
            'canonical_name': 'John Smith',
            'aliases': ['Johnny Smith'],
            'risk_category': 'sanctioned',
            'severity': 10,
        })

        assert entry.id == 'E1'
        assert entry.aliases == frozenset({'Johnny Smith'})
        assert entry.risk_category == RiskCategory.SANCTIONED
        assert entry.active is True
        assert entry.severity == 10

    def test_camel_case_and_short_keys(self):
        entry = entry_from_record({
            'id': 7,
            'name': 'Acme Trading LLC',
            'riskCategory': 'WATCHLIST',
            'type': 'organization',
            'isActive': 'false',
        })

        assert entry.id == '7'
        assert entry.canonical_name == 'Acme Trading LLC'
        assert entry.risk_category == RiskCategory.WATCHLIST
        assert entry.entity_type == 'organization'
        assert entry.active is False

    def test_csv_style_strings(self):
        entry = entry_from_record({
            'id': 'E2',
            'canonical_name': 'Acme Trading LLC',
            'aliases': 'Acme Holdings| Acme Trade Co |',
            'category': 'watchlist',
            'active': '',
            'severity': '7',
            'notes': '',
        })

        assert entry.aliases == frozenset({'Acme Holdings', 'Acme Trade Co'})
        assert entry.active is True
        assert entry.severity == 7
        assert entry.notes is None

    def test_default_category_is_sanctioned(self):
        assert entry_from_record({'id': 'E1', 'name': 'John'}).risk_category == RiskCategory.SANCTIONED

    @pytest.mark.parametrize("record", [
        {'id': 'E1'},
        {'name': 'John Smith'},
        {'id': 'E1', 'name': 'John', 'category': 'terrorist'},
        {'id': 'E1', 'name': 'John', 'severity': 'high'},
        {'id': 'E1', 'name': 'John', 'severity': 11},
        {'id': 'E1', 'name': 'John', 'active': 'maybe'},
        {'id': 'E1', 'name': 'John', 'type': 'vessel'},
        "E1,John Smith",
    ])
    def test_invalid_records(self, record):
        with pytest.raises(BlockListValidationError):
            entry_from_record(record)


class TestFileSource:
    """YAML, JSON and CSV files"""

    def test_sample_blocklist(self):
        entries = FileBlockListSource(SAMPLE_BLOCKLIST)()
        by_id = {e.id: e for e in entries}

        assert sorted(by_id) == ['E1', 'E2', 'E3', 'E4']
        assert by_id['E2'].aliases == frozenset({'Acme Holdings', 'Acme Trade Co'})
        assert by_id['E3'].risk_category == RiskCategory.PEP
        assert by_id['E4'].active is False

    def test_plain_list_document(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- {id: E1, name: John Smith}\n- {id: E2, name: Jane Doe, category: pep}\n",
                        encoding='utf-8')

        assert [e.id for e in FileBlockListSource(path).load()] == ['E1', 'E2']

    def test_json_document(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text('{"entries": [{"id": "E1", "canonicalName": "John Smith"}]}', encoding='utf-8')

        assert FileBlockListSource(path).load()[0].canonical_name == 'John Smith'

    def test_csv(self, tmp_path):
        path = tmp_path / "list.csv"
        path.write_text(
            "id,canonical_name,aliases,risk_category,active\n"
            "E1,John Smith,Johnny Smith|J. Smith,sanctioned,true\n"
            "E2,Old Name,,watchlist,0\n",
            encoding='utf-8'
        )
        entries = FileBlockListSource(path).load()

        assert entries[0].aliases == frozenset({'Johnny Smith', 'J. Smith'})
        assert entries[1].active is False
        assert entries[1].aliases == frozenset()

    def test_empty_document(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding='utf-8')
        assert FileBlockListSource(path).load() == []

    def test_missing_file(self, tmp_path):
        with pytest.raises(BlockListSourceError):
            FileBlockListSource(tmp_path / "missing.yaml").load()

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("entries: [unclosed", encoding='utf-8')

        with pytest.raises(BlockListValidationError):
            FileBlockListSource(path).load()

    def test_scalar_document(self, tmp_path):
        path = tmp_path / "scalar.yaml"
        path.write_text("just a string\n", encoding='utf-8')

        with pytest.raises(BlockListValidationError):
            FileBlockListSource(path).load()


class TestInMemorySource:
    """Operator-managed blocklist"""

    def test_add_entry_generates_id(self):
        source = InMemoryBlockListSource()
        entry_id = source.add_entry("John Smith", risk_category="pep", aliases=["J Smith"])

        assert entry_id.startswith("BL-")
        assert len(entry_id) == 15
        entry = source.list_entries()[0]
        assert entry.risk_category == RiskCategory.PEP
        assert entry.aliases == frozenset({"J Smith"})

    def test_add_entry_with_id(self):
        source = InMemoryBlockListSource()
        assert source.add_entry("John Smith", entry_id="E1") == "E1"

        with pytest.raises(BlockListValidationError):
            source.add_entry("Someone Else", entry_id="E1")

    def test_invalid_entry_rejected(self):
        with pytest.raises(BlockListValidationError):
            InMemoryBlockListSource().add_entry("John Smith", severity=0)

    def test_duplicate_initial_entries(self, john_smith):
        with pytest.raises(BlockListValidationError):
            InMemoryBlockListSource([john_smith, john_smith])

    def test_deactivate_keeps_entry(self, sample_entries):
        source = InMemoryBlockListSource(sample_entries)

        assert source.deactivate_entry("E1") is True
        assert source.deactivate_entry("missing") is False
        assert [e.id for e in source.list_entries()] == ["E2", "E3"]
        assert [e.id for e in source.list_entries(active_only=False)] == ["E1", "E2", "E3", "E4"]

    def test_call_returns_snapshot(self, john_smith):
        source = InMemoryBlockListSource([john_smith])
        snapshot = source()
        source.add_entry("Jane Doe", entry_id="E2")

        assert [e.id for e in snapshot] == ["E1"]
        assert all(isinstance(e, BlockListEntry) for e in source())
