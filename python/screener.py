"""
Local Sanctions Screener
Fuzzy name screening against country sanctions lists

Features:
- Token-sorted Levenshtein similarity on primary names and aliases
- Person / entity / both target filtering and per-country list selection
- Inclusive threshold, stable descending ranking
- Optional sharded scan on a thread pool with cooperative cancellation
- Pass-through country name and list advisory annotation of results

SECURITY: Queries are validated before any scan and sanitized before logging.
"""

import logging
import threading
import unicodedata
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Iterator, List, Optional, Sequence, Union

from audit_logger import AuditLogger, get_audit_logger
from config_manager import ConfigManager, get_config
from log_utils import sanitize_for_logging
from name_matching import MatchedOn, best_match
from subjects import (
    ScreeningSubject, SubjectKind, SubjectLoader,
    get_country_name, get_list_advisory, is_designation_expired
)

logger = logging.getLogger(__name__)

DEFAULT_SHARD_SIZE = 500
# Control characters a typed name may legitimately contain
_ALLOWED_CONTROL_CHARS = frozenset('\t\n\r')


class TargetFilter(str, Enum):
    """Which subject variants a query screens"""
    PERSON = 'Person'
    ENTITY = 'Entity'
    BOTH = 'Both'

    @classmethod
    def parse(cls, value: Union[str, 'TargetFilter']) -> 'TargetFilter':
        """Accept enum members or case-insensitive names ('all' means both)"""
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        if text == 'all':
            return cls.BOTH
        for member in cls:
            if member.value.lower() == text:
                return member
        raise InvalidQueryError(
            f"Unknown target type '{value}'",
            field="target_filter",
            code="INVALID_TARGET",
            suggestion="Use one of: person, entity, both"
        )

    def accepts(self, kind: SubjectKind) -> bool:
        return self is TargetFilter.BOTH or self.value == kind.value


class ScreeningStatus(str, Enum):
    """How a screening call ended"""
    COMPLETED = 'COMPLETED'
    NO_LISTS_SELECTED = 'NO_LISTS_SELECTED'
    ABORTED = 'ABORTED'


class InvalidQueryError(ValueError):
    """Raised when a screening query is rejected before scanning

    Attributes:
        field: The field that failed validation
        code: Error code for programmatic handling
        message: Human-readable error message
        suggestion: Optional suggestion for fixing the error
    """
    def __init__(self, message: str, field: str = "unknown", code: str = "VALIDATION_ERROR", suggestion: str = ""):
        self.field = field
        self.code = code
        self.suggestion = suggestion
        super().__init__(message)


@dataclass(frozen=True)
class ScreeningQuery:
    """Input of one screening call"""
    query_text: str
    target_filter: TargetFilter = TargetFilter.BOTH
    country_filter: FrozenSet[str] = frozenset()
    threshold: int = 70

    def __post_init__(self):
        object.__setattr__(self, 'target_filter', TargetFilter.parse(self.target_filter))
        if isinstance(self.country_filter, str):
            # frozenset("BF") would be {'B', 'F'} and silently match nothing
            raise InvalidQueryError(
                f"Country filter must be a collection of codes, got the string {self.country_filter!r}",
                field="country_filter",
                code="INVALID_COUNTRY_FILTER",
                suggestion=f"Pass a list of codes, e.g. [{self.country_filter!r}]"
            )
        object.__setattr__(self, 'country_filter', frozenset(self.country_filter or ()))


@dataclass(frozen=True)
class MatchResult:
    """A subject that met the threshold; references the subject, never copies it"""
    subject: ScreeningSubject
    score: int
    matched_on: MatchedOn

    def to_dict(self, config: Optional[ConfigManager] = None, today: Optional[date] = None) -> Dict[str, Any]:
        """Render for reporting; with a config, add country/advisory annotations"""
        subject = self.subject
        result = {
            'type': subject.kind.value,
            'id': subject.id,
            'source_country': subject.source_country,
            'name': subject.primary_name,
            'aliases': list(subject.aliases),
            'score': self.score,
            'matched_on': self.matched_on.value,
            'details': dict(subject.details)
        }
        if config is not None:
            result['country_name'] = get_country_name(subject.source_country, config)
            result['list_advisory'] = get_list_advisory(subject.source_country, config)
            result['designation_expired'] = is_designation_expired(
                subject.details.get('end_date'), today
            )
        return result


@dataclass
class ScreeningOutcome:
    """Result of screen(): status, ranked matches and scan counters"""
    status: ScreeningStatus
    matches: List[MatchResult] = field(default_factory=list)
    subjects_scanned: int = 0
    subjects_skipped: int = 0

    @property
    def is_hit(self) -> bool:
        return bool(self.matches)

    @property
    def no_lists_selected(self) -> bool:
        return self.status is ScreeningStatus.NO_LISTS_SELECTED

    @property
    def aborted(self) -> bool:
        return self.status is ScreeningStatus.ABORTED

    def __iter__(self) -> Iterator[MatchResult]:
        return iter(self.matches)

    def __len__(self) -> int:
        return len(self.matches)


@dataclass
class _ShardResult:
    matches: List[MatchResult] = field(default_factory=list)
    scanned: int = 0
    skipped: int = 0
    aborted: bool = False


def validate_query(query: ScreeningQuery) -> None:
    """Reject queries that must never reach a scan

    Raises:
        InvalidQueryError: On blank query text or an out-of-range threshold
    """
    if not isinstance(query.query_text, str) or not query.query_text.strip():
        raise InvalidQueryError(
            "Query text is empty",
            field="query_text",
            code="EMPTY_QUERY",
            suggestion="Enter the name of a person or entity to screen"
        )

    threshold = query.threshold
    if isinstance(threshold, bool) or not isinstance(threshold, int) or not 0 <= threshold <= 100:
        raise InvalidQueryError(
            f"Threshold must be an integer between 0 and 100, got {threshold!r}",
            field="threshold",
            code="INVALID_THRESHOLD",
            suggestion="Use a whole percentage such as 70"
        )


def validate_query_text(text: str, config: Optional[ConfigManager] = None) -> None:
    """Input checks applied to user-supplied query text by SanctionsScreener

    Raises:
        InvalidQueryError: If the text is blank, too long or has control characters
    """
    config = config or get_config()
    max_length = config.input_validation.query_max_length

    if not text or not text.strip():
        raise InvalidQueryError(
            "Query text is empty",
            field="query_text",
            code="EMPTY_QUERY",
            suggestion="Enter the name of a person or entity to screen"
        )

    if len(text) > max_length:
        raise InvalidQueryError(
            f"Query too long ({len(text)} chars, maximum {max_length})",
            field="query_text",
            code="QUERY_TOO_LONG",
            suggestion=f"Shorten the name to {max_length} characters or less"
        )

    for char in text:
        if unicodedata.category(char).startswith('C') and char not in _ALLOWED_CONTROL_CHARS:
            logger.warning("SECURITY: Control character detected in query: %s",
                           sanitize_for_logging(text))
            raise InvalidQueryError(
                f"Query contains invalid control character (code: {ord(char)})",
                field="query_text",
                code="CONTROL_CHARACTER",
                suggestion="Remove invisible or control characters from the name"
            )


def _scan_shard(query: ScreeningQuery, shard: Sequence[ScreeningSubject],
                cancel_event: Optional[threading.Event]) -> _ShardResult:
    result = _ShardResult()
    for subject in shard:
        if cancel_event is not None and cancel_event.is_set():
            result.aborted = True
            break
        if subject.source_country not in query.country_filter:
            continue
        if not query.target_filter.accepts(subject.kind):
            continue
        if subject.is_malformed:
            result.skipped += 1
            logger.warning("Skipping malformed subject %s (%s): empty primary name",
                           subject.id, subject.source_country)
            continue

        result.scanned += 1
        match = best_match(query.query_text, subject.primary_name, subject.aliases)
        if match.score >= query.threshold:
            result.matches.append(MatchResult(subject, match.score, match.matched_on))
    return result


def screen(
    query: ScreeningQuery,
    subjects: Sequence[ScreeningSubject],
    *,
    cancel_event: Optional[threading.Event] = None,
    max_workers: int = 1,
    shard_size: int = DEFAULT_SHARD_SIZE
) -> ScreeningOutcome:
    """Screen a query against a subject set

    Args:
        query: Screening query
        subjects: Already-loaded subjects; never modified
        cancel_event: Checked before each subject; when set the scan stops
        max_workers: Threads used to score shards (1 means sequential)
        shard_size: Subjects per shard when scanning in parallel

    Returns:
        ScreeningOutcome whose matches are sorted by score descending,
        equal scores keeping their input order

    Raises:
        InvalidQueryError: If the query fails validation
    """
    validate_query(query)

    if not query.country_filter:
        return ScreeningOutcome(status=ScreeningStatus.NO_LISTS_SELECTED)

    subject_list = list(subjects)

    if max_workers > 1 and len(subject_list) > shard_size:
        shards = [subject_list[i:i + shard_size] for i in range(0, len(subject_list), shard_size)]
        logger.debug("Scanning %d subjects in %d shards on %d threads",
                     len(subject_list), len(shards), max_workers)
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            # map() yields in submission order, so concatenation keeps input order
            shard_results = list(pool.map(lambda s: _scan_shard(query, s, cancel_event), shards))
    else:
        shard_results = [_scan_shard(query, subject_list, cancel_event)]

    matches: List[MatchResult] = []
    for shard_result in shard_results:
        matches.extend(shard_result.matches)
    matches.sort(key=lambda m: m.score, reverse=True)

    aborted = any(r.aborted for r in shard_results)
    return ScreeningOutcome(
        status=ScreeningStatus.ABORTED if aborted else ScreeningStatus.COMPLETED,
        matches=matches,
        subjects_scanned=sum(r.scanned for r in shard_results),
        subjects_skipped=sum(r.skipped for r in shard_results)
    )


class SanctionsScreener:
    """Screener holding configuration and the loaded reference lists"""

    def __init__(self, config: Optional[ConfigManager] = None,
                 subjects: Optional[Iterable[ScreeningSubject]] = None,
                 audit: Optional[AuditLogger] = None):
        """Initialize screener

        Args:
            config: Configuration manager instance
            subjects: Preloaded subjects (use load() to read the JSON lists instead)
            audit: Audit logger (global instance when None)
        """
        self.config = config or get_config()
        self.subjects: List[ScreeningSubject] = list(subjects or [])
        self.audit = audit or get_audit_logger()

        logger.info("🔧 Screener initialized:")
        logger.info(f"   - Default threshold: {self.config.matching.default_threshold}%")
        logger.info(f"   - Country lists: {', '.join(sorted(self.config.countries))}")

    def load(self, data_dir: Optional[str] = None) -> int:
        """Load persons and entities from the configured data directory

        Returns:
            Number of subjects loaded
        """
        loader = SubjectLoader(data_dir, self.config)
        self.subjects = loader.load_all()
        return len(self.subjects)

    def build_query(
        self,
        name: str,
        target: Union[str, TargetFilter] = TargetFilter.BOTH,
        countries: Optional[Iterable[str]] = None,
        threshold: Optional[int] = None
    ) -> ScreeningQuery:
        """Build a query, filling defaults from configuration

        ``countries=None`` selects every configured list; an empty iterable
        selects none.
        """
        validate_query_text(name, self.config)

        if threshold is None:
            threshold = self.config.matching.default_threshold
        m = self.config.matching
        if isinstance(threshold, int) and not isinstance(threshold, bool) \
                and not m.min_threshold <= threshold <= m.max_threshold:
            raise InvalidQueryError(
                f"Threshold {threshold} outside configured range [{m.min_threshold}, {m.max_threshold}]",
                field="threshold",
                code="INVALID_THRESHOLD",
                suggestion=f"Use a value between {m.min_threshold} and {m.max_threshold}"
            )

        if countries is None:
            countries = self.config.countries.keys()

        return ScreeningQuery(
            query_text=name,
            target_filter=TargetFilter.parse(target),
            country_filter=countries,
            threshold=threshold
        )

    def screen_name(
        self,
        name: str,
        target: Union[str, TargetFilter] = TargetFilter.BOTH,
        countries: Optional[Iterable[str]] = None,
        threshold: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None
    ) -> Dict[str, Any]:
        """Screen a name with a complete, annotated result

        Returns:
            Screening result dictionary

        Raises:
            InvalidQueryError: If the query is rejected
        """
        screening_id = str(uuid.uuid4())
        screening_date = datetime.now()

        try:
            query = self.build_query(name, target, countries, threshold)
            perf = self.config.performance
            workers = perf.max_threads if len(self.subjects) >= perf.parallel_min_subjects else 1
            outcome = screen(query, self.subjects, cancel_event=cancel_event,
                             max_workers=workers, shard_size=perf.shard_size)
        except InvalidQueryError as e:
            values = {"threshold": threshold, "target_filter": target, "country_filter": countries}
            value = values.get(e.field, name)
            self.audit.log_validation_failure(screening_id, e.field, e.code, value)
            raise

        logger.info("Screening for: %s", sanitize_for_logging(name))

        if outcome.no_lists_selected:
            self.audit.log_no_lists_selected(screening_id, name)
        elif outcome.aborted:
            self.audit.log_screening_aborted(screening_id, name, outcome.subjects_scanned, len(outcome))
        else:
            self.audit.log_screening_completed(
                screening_id, name, query.threshold, query.target_filter.value,
                query.country_filter, len(outcome), outcome.subjects_scanned,
                outcome.subjects_skipped
            )
        if outcome.subjects_skipped:
            self.audit.log_subjects_skipped(screening_id, outcome.subjects_skipped)

        return {
            'screening_id': screening_id,
            'input': {
                'name': name,
                'target': query.target_filter.value,
                'countries': sorted(query.country_filter),
                'threshold': query.threshold
            },
            'screening_date': screening_date.isoformat(),
            'status': outcome.status.value,
            'is_hit': outcome.is_hit,
            'hit_count': len(outcome),
            'matches': [m.to_dict(self.config) for m in outcome],
            'subjects_scanned': outcome.subjects_scanned,
            'subjects_skipped': outcome.subjects_skipped,
            'algorithm_version': self.config.algorithm.version
        }
