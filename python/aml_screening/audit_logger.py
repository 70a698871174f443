"""
Screening Audit Logging Module

Writes one structured JSON line per screening decision so that every
block or allow can be explained later:
- sanitized input and its normalized form
- decision, reason, score and matched entity/name
- blocklist generation and algorithm version used

Reload failures are recorded in the same trail.

SECURITY: All caller-supplied text is sanitized before logging.
"""

import json
import logging
import uuid
from dataclasses import dataclass, field as dataclass_field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from aml_screening.log_utils import sanitize_for_logging
from aml_screening.models import BlockCheckRequest, BlockResult
from aml_screening.normalizer import NormalizedName


@dataclass
class ScreeningAuditEvent:
    """Structured audit event"""
    event_type: str  # SCREENING_DECISION, RELOAD_FAILED
    severity: str = "INFO"
    request_id: str = ""
    sanitized_input: str = ""
    normalized_name: str = ""
    is_blocked: Optional[bool] = None
    block_reason: str = ""
    similarity_score: Optional[float] = None
    matched_entity: Optional[str] = None
    matched_name: Optional[str] = None
    matched_severity: Optional[int] = None
    generation: Optional[int] = None
    algorithm_version: str = ""
    context: Dict[str, Any] = dataclass_field(default_factory=dict)
    timestamp: str = dataclass_field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        return {
            'timestamp': self.timestamp,
            'event_type': self.event_type,
            'severity': self.severity,
            'request_id': self.request_id,
            'input': self.sanitized_input,
            'normalized': self.normalized_name,
            'is_blocked': self.is_blocked,
            'block_reason': self.block_reason,
            'similarity_score': self.similarity_score,
            'matched_entity': self.matched_entity,
            'matched_name': self.matched_name,
            'matched_severity': self.matched_severity,
            'generation': self.generation,
            'algorithm_version': self.algorithm_version,
            'context': self.context
        }

    def to_json(self) -> str:
        """Convert to JSON string"""
        return json.dumps(self.to_dict(), ensure_ascii=False)


class AuditLogger:
    """Writes screening audit events as JSON lines

    Features:
    - Separate audit.log file
    - JSON-formatted events for easy parsing
    - Automatic sanitization of caller input and context
    """

    LOGGER_NAME = 'aml_screening.audit'

    def __init__(
        self,
        log_dir: str = "logs",
        log_level: int = logging.INFO,
        enable_console: bool = False,
        enable_file: bool = True,
        algorithm_version: str = ""
    ):
        """Initialize audit logger

        Args:
            log_dir: Directory for log files
            log_level: Minimum log level to record
            enable_console: Also output to console
            enable_file: Write to audit.log file
            algorithm_version: Version stamped on every event
        """
        self.log_dir = Path(log_dir)
        self.algorithm_version = algorithm_version

        self.logger = logging.getLogger(self.LOGGER_NAME)
        self.logger.setLevel(log_level)
        self.logger.propagate = False
        for handler in list(self.logger.handlers):
            handler.close()
        self.logger.handlers.clear()

        formatter = logging.Formatter('%(message)s')

        if enable_file:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(self.log_dir / "audit.log", encoding='utf-8')
            file_handler.setLevel(log_level)
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)

        if enable_console:
            console_handler = logging.StreamHandler()
            console_handler.setLevel(log_level)
            console_handler.setFormatter(formatter)
            self.logger.addHandler(console_handler)

        if not self.logger.handlers:
            self.logger.addHandler(logging.NullHandler())

    def _sanitize_context(self, context: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        """Sanitize all values in a context mapping for safe logging"""
        if not context:
            return {}

        sanitized = {}
        for key, value in context.items():
            safe_key = sanitize_for_logging(str(key), max_length=100) or "unknown"
            if value is None or isinstance(value, (bool, int, float)):
                sanitized[safe_key] = value
            elif isinstance(value, Mapping):
                sanitized[safe_key] = self._sanitize_context(value)
            elif isinstance(value, (list, tuple)):
                sanitized[safe_key] = [
                    item if isinstance(item, (bool, int, float, type(None)))
                    else sanitize_for_logging(str(item), max_length=200)
                    for item in value
                ]
            else:
                sanitized[safe_key] = sanitize_for_logging(str(value), max_length=200)
        return sanitized

    def log_decision(
        self,
        request: BlockCheckRequest,
        result: BlockResult,
        normalized: Optional[NormalizedName] = None,
        request_id: Optional[str] = None
    ) -> ScreeningAuditEvent:
        """Record a screening decision"""
        event = ScreeningAuditEvent(
            event_type="SCREENING_DECISION",
            severity="WARNING" if result.is_blocked else "INFO",
            request_id=request_id or f"SCR-{uuid.uuid4().hex[:12]}",
            sanitized_input=sanitize_for_logging(
                request.sender_name if isinstance(request.sender_name, str) else repr(request.sender_name),
                max_length=300
            ),
            normalized_name=normalized.text if normalized is not None else "",
            is_blocked=result.is_blocked,
            block_reason=result.block_reason.value,
            similarity_score=result.similarity_score,
            matched_entity=result.matched_entity,
            matched_name=result.matched_name,
            matched_severity=result.matched_severity,
            generation=result.generation,
            algorithm_version=self.algorithm_version,
            context=self._sanitize_context(request.context)
        )

        if result.is_blocked:
            self.logger.warning(event.to_json())
        else:
            self.logger.info(event.to_json())
        return event

    def log_reload_failure(self, error: BaseException, kept_generation: Optional[int] = None) -> ScreeningAuditEvent:
        """Record a failed blocklist reload"""
        event = ScreeningAuditEvent(
            event_type="RELOAD_FAILED",
            severity="ERROR",
            generation=kept_generation,
            algorithm_version=self.algorithm_version,
            context={
                'error_type': type(error).__name__,
                'error': sanitize_for_logging(str(error), max_length=200)
            }
        )
        self.logger.error(event.to_json())
        return event

    def close(self) -> None:
        for handler in list(self.logger.handlers):
            handler.close()
            self.logger.removeHandler(handler)


# Global audit logger instance
_audit_logger: Optional[AuditLogger] = None


def get_audit_logger(
    log_dir: str = "logs",
    enable_console: bool = False,
    enable_file: bool = True,
    algorithm_version: str = ""
) -> AuditLogger:
    """Get or create the global audit logger instance"""
    global _audit_logger
    if _audit_logger is None:
        _audit_logger = AuditLogger(
            log_dir=log_dir,
            enable_console=enable_console,
            enable_file=enable_file,
            algorithm_version=algorithm_version
        )
    return _audit_logger


def reset_audit_logger() -> None:
    """Reset the global audit logger (for testing)"""
    global _audit_logger
    if _audit_logger is not None:
        _audit_logger.close()
    _audit_logger = None
