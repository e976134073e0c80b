"""
Screening Audit Event Logging Module

Provides structured logging for screening events:
- Completed screenings (hit counts, thresholds, lists scanned)
- Aborted scans and "no lists selected" requests
- Rejected queries
- Malformed subjects skipped during a scan

Each event is a single JSON line, so "nothing was searched" and
"searched, found nothing" remain distinguishable in the trail.

SECURITY: Ensures user-supplied text is sanitized before logging.
"""

import json
import logging
from dataclasses import dataclass, field as dataclass_field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from log_utils import sanitize_for_logging

AUDIT_LOGGER_NAME = 'screening.audit'


@dataclass
class ScreeningEvent:
    """Structured screening event for logging"""
    event_type: str  # e.g., SCREENING_COMPLETED, NO_LISTS_SELECTED, VALIDATION_FAILED
    severity: str  # INFO, WARNING, ERROR
    screening_id: str = ""
    sanitized_query: str = ""  # First 50 chars, sanitized
    field_name: str = ""
    error_code: str = ""
    additional_context: Dict[str, Any] = dataclass_field(default_factory=dict)
    timestamp: str = dataclass_field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        return {
            'timestamp': self.timestamp,
            'event_type': self.event_type,
            'severity': self.severity,
            'screening_id': self.screening_id,
            'query': self.sanitized_query,
            'field': self.field_name,
            'error_code': self.error_code,
            'context': self.additional_context
        }

    def to_json(self) -> str:
        """Convert to JSON string"""
        return json.dumps(self.to_dict(), ensure_ascii=False)


class AuditLogger:
    """Handles screening event logging with structured output

    Events go to the ``screening.audit`` logger and propagate to the
    application's handlers; an optional dedicated file can be added.
    """

    def __init__(self, log_file: Optional[str] = None, log_level: int = logging.INFO):
        """Initialize audit logger

        Args:
            log_file: Optional path of a dedicated audit log file
            log_level: Minimum log level to record
        """
        self.logger = logging.getLogger(AUDIT_LOGGER_NAME)
        self.logger.setLevel(log_level)

        if log_file:
            path = Path(log_file)
            path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(path, encoding='utf-8')
            file_handler.setLevel(log_level)
            file_handler.setFormatter(logging.Formatter('%(asctime)s - AUDIT - %(levelname)s - %(message)s'))
            self.logger.addHandler(file_handler)

    def _sanitize_input(self, text: str, max_length: int = 50) -> str:
        """Sanitize input for safe logging

        Args:
            text: Input text to sanitize
            max_length: Maximum length to include

        Returns:
            Sanitized text safe for logging
        """
        if not text:
            return ""
        sanitized = sanitize_for_logging(text)
        if len(sanitized) > max_length:
            return sanitized[:max_length] + "...(truncated)"
        return sanitized

    def _emit(self, event: ScreeningEvent) -> None:
        if event.severity == "ERROR":
            self.logger.error(event.to_json())
        elif event.severity == "WARNING":
            self.logger.warning(event.to_json())
        else:
            self.logger.info(event.to_json())

    def log_screening_completed(
        self,
        screening_id: str,
        query_text: str,
        threshold: int,
        target: str,
        countries: Iterable[str],
        hit_count: int,
        subjects_scanned: int,
        subjects_skipped: int = 0
    ) -> None:
        """Log a screening that ran to completion (with or without hits)"""
        self._emit(ScreeningEvent(
            event_type="SCREENING_COMPLETED",
            severity="INFO",
            screening_id=screening_id,
            sanitized_query=self._sanitize_input(query_text),
            additional_context={
                'threshold': threshold,
                'target': target,
                'countries': sorted(countries),
                'hit_count': hit_count,
                'subjects_scanned': subjects_scanned,
                'subjects_skipped': subjects_skipped
            }
        ))

    def log_screening_aborted(
        self,
        screening_id: str,
        query_text: str,
        subjects_scanned: int,
        partial_hit_count: int
    ) -> None:
        """Log a scan cancelled before every subject was scored"""
        self._emit(ScreeningEvent(
            event_type="SCREENING_ABORTED",
            severity="WARNING",
            screening_id=screening_id,
            sanitized_query=self._sanitize_input(query_text),
            additional_context={
                'subjects_scanned': subjects_scanned,
                'partial_hit_count': partial_hit_count
            }
        ))

    def log_no_lists_selected(self, screening_id: str, query_text: str) -> None:
        """Log a request that selected no country list: nothing was searched"""
        self._emit(ScreeningEvent(
            event_type="NO_LISTS_SELECTED",
            severity="WARNING",
            screening_id=screening_id,
            sanitized_query=self._sanitize_input(query_text),
            field_name="countries",
            error_code="NO_LISTS_SELECTED"
        ))

    def log_validation_failure(
        self,
        screening_id: str,
        field: str,
        error_code: str,
        input_value: Any
    ) -> None:
        """Log a rejected query

        Args:
            screening_id: Screening identifier
            field: Field name that failed validation
            error_code: Error code for the failure
            input_value: The input that failed (will be sanitized)
        """
        self._emit(ScreeningEvent(
            event_type="VALIDATION_FAILED",
            severity="WARNING",
            screening_id=screening_id,
            sanitized_query=self._sanitize_input(str(input_value) if input_value is not None else ""),
            field_name=field,
            error_code=error_code
        ))

    def log_subjects_skipped(self, screening_id: str, skipped: int) -> None:
        """Log malformed subjects left out of a scan"""
        self._emit(ScreeningEvent(
            event_type="SUBJECTS_SKIPPED",
            severity="WARNING",
            screening_id=screening_id,
            error_code="MALFORMED_SUBJECT",
            additional_context={'skipped': skipped}
        ))


# Global audit logger instance
_audit_logger: Optional[AuditLogger] = None


def get_audit_logger(log_file: Optional[str] = None) -> AuditLogger:
    """Get or create the global audit logger instance

    Args:
        log_file: Optional dedicated audit log file

    Returns:
        AuditLogger instance
    """
    global _audit_logger
    if _audit_logger is None:
        _audit_logger = AuditLogger(log_file=log_file)
    return _audit_logger


def reset_audit_logger() -> None:
    """Reset the global audit logger (for testing)"""
    global _audit_logger
    _audit_logger = None
