"""
Shared fixtures for the screening test suite
"""

import sys
from pathlib import Path
from typing import Any, Dict, Optional

import pytest
import yaml

sys.path.insert(0, str(Path(__file__).parent.parent))

from aml_screening.audit_logger import reset_audit_logger
from aml_screening.blocklist_index import BlockListIndex
from aml_screening.config_manager import ConfigManager
from aml_screening.engine import BlockDecisionEngine
from aml_screening.models import BlockListEntry, RiskCategory
from aml_screening.stats import StatsAggregator


def write_config(directory: Path, overrides: Optional[Dict[str, Any]] = None) -> Path:
    """Write a test config.yaml: no retry waits, no log files"""
    content: Dict[str, Any] = {
        'reload': {'max_attempts': 3, 'min_wait': 0, 'max_wait': 0},
        'audit': {'enabled': False, 'enable_file': False},
        'logging': {'file': None, 'console': False},
    }
    for key, value in (overrides or {}).items():
        if isinstance(value, dict) and isinstance(content.get(key), dict):
            content[key] = {**content[key], **value}
        else:
            content[key] = value
    path = directory / "config.yaml"
    path.write_text(yaml.safe_dump(content), encoding='utf-8')
    return path


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset global config and audit logger around each test"""
    ConfigManager.reset_instance()
    reset_audit_logger()
    yield
    ConfigManager.reset_instance()
    reset_audit_logger()


@pytest.fixture
def make_config(tmp_path):
    """Factory building a ConfigManager with overrides"""
    def _make(**overrides) -> ConfigManager:
        config_dir = tmp_path / f"cfg{len(list(tmp_path.glob('cfg*')))}"
        config_dir.mkdir()
        return ConfigManager(str(write_config(config_dir, overrides)))
    return _make


@pytest.fixture
def make_config_file(tmp_path):
    """Factory writing a config.yaml into tmp_path and returning its path"""
    def _make(**overrides) -> Path:
        return write_config(tmp_path, overrides)
    return _make


@pytest.fixture
def config(make_config) -> ConfigManager:
    return make_config()


@pytest.fixture
def john_smith() -> BlockListEntry:
    return BlockListEntry(id="E1", canonical_name="John Smith", risk_category=RiskCategory.SANCTIONED)


@pytest.fixture
def sample_entries(john_smith):
    return [
        john_smith,
        BlockListEntry(
            id="E2",
            canonical_name="Acme Trading LLC",
            aliases=frozenset({"Acme Holdings"}),
            risk_category=RiskCategory.WATCHLIST,
            entity_type="organization",
        ),
        BlockListEntry(
            id="E3",
            canonical_name="María José García",
            risk_category=RiskCategory.PEP,
        ),
        BlockListEntry(
            id="E4",
            canonical_name="Viktor Petrov",
            risk_category=RiskCategory.SANCTIONED,
            active=False,
        ),
    ]


@pytest.fixture
def index(config, sample_entries) -> BlockListIndex:
    idx = BlockListIndex(config)
    idx.load(sample_entries)
    return idx


@pytest.fixture
def stats() -> StatsAggregator:
    return StatsAggregator()


@pytest.fixture
def engine(index, config, stats) -> BlockDecisionEngine:
    return BlockDecisionEngine(index, config=config, stats=stats)
