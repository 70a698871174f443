"""
Configuration Management Module
Loads and validates configuration from config.yaml
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from aml_screening.models import RiskCategory

logger = logging.getLogger(__name__)


@dataclass
class ThresholdConfig:
    """Block thresholds per risk category (score >= threshold blocks)"""
    sanctioned: float = 0.85
    watchlist: float = 0.80
    pep: float = 0.75
    other: float = 0.85

    def for_category(self, category: RiskCategory) -> float:
        return getattr(self, RiskCategory(category).value)


@dataclass
class IndexConfig:
    """Candidate retrieval settings"""
    ngram_size: int = 3
    admission_floor: int = 1
    retained_generations: int = 3


@dataclass
class InputValidationConfig:
    """Name length limits for sender names and blocklist names"""
    max_name_length: int = 256
    max_entry_name_length: int = 1024


@dataclass
class ReloadConfig:
    """Retry policy for blocklist reloads"""
    max_attempts: int = 3
    min_wait: float = 0.5
    max_wait: float = 5.0


@dataclass
class BlockListConfig:
    """Blocklist source location"""
    path: Optional[str] = None


@dataclass
class PerformanceConfig:
    """Performance configuration"""
    max_threads: int = 4


@dataclass
class AuditConfig:
    """Decision audit trail"""
    enabled: bool = True
    log_dir: str = "logs"
    enable_file: bool = True
    enable_console: bool = False


@dataclass
class LoggingConfig:
    """Logging configuration"""
    level: str = "INFO"
    file: Optional[str] = "logs/screening.log"
    console: bool = True
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class AlgorithmConfig:
    """Algorithm version information"""
    version: str = "1.0.0"
    name: str = "Token-Jaccard Edit-Distance Blend"


class ConfigurationError(Exception):
    """Raised when configuration is invalid"""
    pass


class ConfigManager:
    """Manages system configuration"""

    _instance: Optional['ConfigManager'] = None

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration manager

        Args:
            config_path: Path to config.yaml file. An explicit path must exist;
                without one, the usual locations are searched and defaults
                are used when nothing is found.
        """
        self.config_path = Path(config_path) if config_path else self._find_config()
        self._raw_config: Dict[str, Any] = {}
        self.thresholds: ThresholdConfig = ThresholdConfig()
        self.index: IndexConfig = IndexConfig()
        self.input_validation: InputValidationConfig = InputValidationConfig()
        self.reload: ReloadConfig = ReloadConfig()
        self.blocklist: BlockListConfig = BlockListConfig()
        self.performance: PerformanceConfig = PerformanceConfig()
        self.audit: AuditConfig = AuditConfig()
        self.logging: LoggingConfig = LoggingConfig()
        self.algorithm: AlgorithmConfig = AlgorithmConfig()

        if config_path or (self.config_path and self.config_path.exists()):
            self.load()
        else:
            logger.warning(f"Config file not found at {self.config_path}, using defaults")

    def _find_config(self) -> Path:
        """Find config.yaml in common locations"""
        search_paths = [
            Path(__file__).parent / "config.yaml",
            Path.cwd() / "config.yaml",
            Path.cwd() / "python" / "config.yaml",
        ]

        for path in search_paths:
            if path.exists():
                return path

        return search_paths[0]

    def load(self) -> None:
        """Load configuration from YAML file"""
        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                self._raw_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file: {e}")
        except FileNotFoundError:
            raise ConfigurationError(f"Config file not found: {self.config_path}")

        if not isinstance(self._raw_config, dict):
            raise ConfigurationError("Config file must contain a mapping at the top level")

        self._parse_thresholds()
        self._parse_index()
        self._parse_input_validation()
        self._parse_reload()
        self._parse_blocklist()
        self._parse_performance()
        self._parse_audit()
        self._parse_logging()
        self._parse_algorithm()
        self._validate()

    def _section(self, name: str) -> Dict[str, Any]:
        cfg = self._raw_config.get(name) or {}
        if not isinstance(cfg, dict):
            raise ConfigurationError(f"'{name}' must be a mapping")
        return cfg

    def _parse_thresholds(self) -> None:
        """Parse per-category thresholds"""
        cfg = self._section('thresholds')
        defaults = ThresholdConfig()
        self.thresholds = ThresholdConfig(
            sanctioned=cfg.get('sanctioned', defaults.sanctioned),
            watchlist=cfg.get('watchlist', defaults.watchlist),
            pep=cfg.get('pep', defaults.pep),
            other=cfg.get('other', defaults.other)
        )

    def _parse_index(self) -> None:
        """Parse candidate retrieval settings"""
        cfg = self._raw_config
        self.index = IndexConfig(
            ngram_size=cfg.get('ngramSize', 3),
            admission_floor=cfg.get('admissionFloor', 1),
            retained_generations=cfg.get('retainedGenerations', 3)
        )

    def _parse_input_validation(self) -> None:
        """Parse input validation configuration"""
        self.input_validation = InputValidationConfig(
            max_name_length=self._raw_config.get('maxNameLength', 256),
            max_entry_name_length=self._raw_config.get('maxEntryNameLength', 1024)
        )

    def _parse_reload(self) -> None:
        """Parse reload retry policy"""
        cfg = self._section('reload')
        self.reload = ReloadConfig(
            max_attempts=cfg.get('max_attempts', 3),
            min_wait=cfg.get('min_wait', 0.5),
            max_wait=cfg.get('max_wait', 5.0)
        )

    def _parse_blocklist(self) -> None:
        """Parse blocklist source configuration"""
        cfg = self._section('blocklist')
        self.blocklist = BlockListConfig(path=cfg.get('path'))

    def _parse_performance(self) -> None:
        """Parse performance configuration"""
        cfg = self._section('performance')
        self.performance = PerformanceConfig(max_threads=cfg.get('max_threads', 4))

    def _parse_audit(self) -> None:
        """Parse audit trail configuration"""
        cfg = self._section('audit')
        self.audit = AuditConfig(
            enabled=cfg.get('enabled', True),
            log_dir=cfg.get('log_dir', 'logs'),
            enable_file=cfg.get('enable_file', True),
            enable_console=cfg.get('enable_console', False)
        )

    def _parse_logging(self) -> None:
        """Parse logging configuration"""
        cfg = self._section('logging')
        self.logging = LoggingConfig(
            level=cfg.get('level', 'INFO'),
            file=cfg.get('file', 'logs/screening.log'),
            console=cfg.get('console', True),
            format=cfg.get('format', LoggingConfig.format)
        )

    def _parse_algorithm(self) -> None:
        """Parse algorithm configuration"""
        cfg = self._section('algorithm')
        self.algorithm = AlgorithmConfig(
            version=str(cfg.get('version', '1.0.0')),
            name=cfg.get('name', 'Token-Jaccard Edit-Distance Blend')
        )

    @classmethod
    def get_instance(cls, config_path: Optional[str] = None) -> 'ConfigManager':
        """Get singleton instance of ConfigManager"""
        if cls._instance is None:
            cls._instance = ConfigManager(config_path)
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Reset singleton instance (useful for testing)"""
        cls._instance = None

    def to_dict(self) -> Dict[str, Any]:
        """Export configuration as dictionary"""
        return {
            'thresholds': {
                'sanctioned': self.thresholds.sanctioned,
                'watchlist': self.thresholds.watchlist,
                'pep': self.thresholds.pep,
                'other': self.thresholds.other
            },
            'ngramSize': self.index.ngram_size,
            'admissionFloor': self.index.admission_floor,
            'retainedGenerations': self.index.retained_generations,
            'maxNameLength': self.input_validation.max_name_length,
            'maxEntryNameLength': self.input_validation.max_entry_name_length,
            'reload': {
                'max_attempts': self.reload.max_attempts,
                'min_wait': self.reload.min_wait,
                'max_wait': self.reload.max_wait
            },
            'blocklist': {
                'path': self.blocklist.path
            },
            'performance': {
                'max_threads': self.performance.max_threads
            },
            'algorithm': {
                'version': self.algorithm.version,
                'name': self.algorithm.name
            }
        }

    def _validate(self) -> None:
        """Validate configuration values

        Raises:
            ConfigurationError: If any value is out of range
        """
        for category in RiskCategory:
            value = getattr(self.thresholds, category.value)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not 0.0 <= value <= 1.0:
                raise ConfigurationError(
                    f"thresholds.{category.value} must be a number between 0 and 1, got {value!r}"
                )
            setattr(self.thresholds, category.value, float(value))

        positive_ints = {
            'ngramSize': self.index.ngram_size,
            'admissionFloor': self.index.admission_floor,
            'retainedGenerations': self.index.retained_generations,
            'maxNameLength': self.input_validation.max_name_length,
            'maxEntryNameLength': self.input_validation.max_entry_name_length,
            'reload.max_attempts': self.reload.max_attempts,
            'performance.max_threads': self.performance.max_threads,
        }
        for key, value in positive_ints.items():
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ConfigurationError(f"{key} must be a positive integer, got {value!r}")

        for key in ('min_wait', 'max_wait'):
            value = getattr(self.reload, key)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
                raise ConfigurationError(f"reload.{key} must be a non-negative number, got {value!r}")
        if self.reload.min_wait > self.reload.max_wait:
            raise ConfigurationError("reload.min_wait must not exceed reload.max_wait")

        if self.logging.level.upper() not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            raise ConfigurationError(f"logging.level is not a valid level: {self.logging.level!r}")


def get_config(config_path: Optional[str] = None) -> ConfigManager:
    """Convenience function to get configuration instance"""
    return ConfigManager.get_instance(config_path)
