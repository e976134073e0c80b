"""
Screening subjects and reference list loading

A subject is either a sanctioned person or a sanctioned entity. Both share
the matching surface (primary name, aliases, source country); everything
else is carried as an opaque ``details`` payload for downstream reporting.

The reference lists are JSON arrays of person and entity records, one file
each, validated with pydantic before they become subjects.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from config_manager import ConfigManager, get_config

logger = logging.getLogger(__name__)


class SubjectKind(str, Enum):
    """Subject variant tag"""
    PERSON = 'Person'
    ENTITY = 'Entity'


@dataclass(frozen=True)
class ScreeningSubject:
    """A screened record: shared matching fields plus opaque payload"""
    id: str
    kind: SubjectKind
    source_country: str
    primary_name: str
    aliases: Tuple[str, ...] = ()
    details: Dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def person(cls, subject_id: Union[str, int], source_country: str, full_name: str,
               aliases: Sequence[str] = (), **details: Any) -> 'ScreeningSubject':
        return cls(str(subject_id), SubjectKind.PERSON, source_country, full_name,
                   _clean_aliases(aliases), dict(details))

    @classmethod
    def entity(cls, subject_id: Union[str, int], source_country: str, name: str,
               aliases: Sequence[str] = (), **details: Any) -> 'ScreeningSubject':
        return cls(str(subject_id), SubjectKind.ENTITY, source_country, name,
                   _clean_aliases(aliases), dict(details))

    @property
    def is_malformed(self) -> bool:
        return not self.primary_name or not self.primary_name.strip()


def _clean_aliases(aliases: Optional[Sequence[str]]) -> Tuple[str, ...]:
    """Drop blank alias entries; an empty alias must never be matched"""
    if not aliases:
        return ()
    return tuple(a.strip() for a in aliases if isinstance(a, str) and a.strip())


class _SubjectRecord(BaseModel):
    """Fields common to both reference list schemas"""
    id: Union[int, str]
    source_country: str = Field(..., min_length=1)
    source_reference: Optional[str] = None
    aliases: List[str] = Field(default_factory=list)
    designation_date: Optional[str] = None
    end_date: Optional[str] = None

    @field_validator('aliases', mode='before')
    @classmethod
    def drop_blank_aliases(cls, v: Any) -> List[str]:
        """Null becomes an empty list, blank entries are removed"""
        if v is None:
            return []
        if not isinstance(v, list):
            raise ValueError("aliases must be a list of strings")
        return list(_clean_aliases(v))

    @field_validator('source_country')
    @classmethod
    def strip_country(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("source_country must not be blank")
        return v.strip()


def _none_to_list(v: Any) -> Any:
    return [] if v is None else v


class PersonRecord(_SubjectRecord):
    """Sanctioned person, as stored in the persons list"""
    source_id: Optional[str] = None
    last_name: Optional[str] = None
    first_name: Optional[str] = None
    full_name: str = Field(..., min_length=1)
    gender: Optional[str] = None
    date_of_birth: Optional[str] = None
    date_of_birth_approx: bool = False
    place_of_birth: Optional[str] = None
    nationality: Optional[str] = None
    profession: Optional[str] = None
    phone_numbers: List[str] = Field(default_factory=list)
    designation_reason: Optional[str] = None
    notes: Optional[str] = None

    @field_validator('phone_numbers', mode='before')
    @classmethod
    def null_phone_numbers(cls, v: Any) -> Any:
        return _none_to_list(v)

    @field_validator('full_name')
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("full_name must not be blank")
        return v

    def to_subject(self) -> ScreeningSubject:
        details = self.model_dump(exclude={'id', 'source_country', 'full_name', 'aliases'})
        return ScreeningSubject.person(self.id, self.source_country, self.full_name,
                                       self.aliases, **details)


class EntityRecord(_SubjectRecord):
    """Sanctioned entity (group, organisation), as stored in the entities list"""
    entity_type: Optional[str] = None
    name: str = Field(..., min_length=1)
    leader: Optional[str] = None
    deputy_leader: Optional[str] = None
    coordinator_burkina: Optional[str] = None
    creation_date: Optional[str] = None
    creation_place: Optional[str] = None
    bf_faction_leaders: List[str] = Field(default_factory=list)
    bf_zone_leaders: List[str] = Field(default_factory=list)
    affiliated_groups: List[str] = Field(default_factory=list)
    responsible_gourma_burkina: Optional[str] = None

    @field_validator('bf_faction_leaders', 'bf_zone_leaders', 'affiliated_groups', mode='before')
    @classmethod
    def null_name_lists(cls, v: Any) -> Any:
        return _none_to_list(v)

    @field_validator('name')
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("name must not be blank")
        return v

    def to_subject(self) -> ScreeningSubject:
        details = self.model_dump(exclude={'id', 'source_country', 'name', 'aliases'})
        return ScreeningSubject.entity(self.id, self.source_country, self.name,
                                       self.aliases, **details)


class DataLoadError(Exception):
    """Raised when a reference list cannot be loaded"""
    pass


class SubjectLoader:
    """Loads person and entity reference lists from JSON files"""

    def __init__(self, data_dir: Optional[str] = None, config: Optional[ConfigManager] = None):
        """Initialize loader

        Args:
            data_dir: Directory containing the list files (config default when None)
            config: Configuration manager instance
        """
        self.config = config or get_config()
        self.data_dir = Path(data_dir or self.config.data.data_directory)
        self.subjects: List[ScreeningSubject] = []
        self.malformed_records = 0

    def load_persons(self) -> int:
        """Load the persons list

        Returns:
            Number of persons loaded
        """
        return self._load_file(self.data_dir / self.config.data.persons_file, PersonRecord)

    def load_entities(self) -> int:
        """Load the entities list

        Returns:
            Number of entities loaded
        """
        return self._load_file(self.data_dir / self.config.data.entities_file, EntityRecord)

    def load_all(self) -> List[ScreeningSubject]:
        """Load both lists and return every subject, persons first"""
        persons = self.load_persons()
        entities = self.load_entities()
        logger.info(f"Total subjects loaded: {persons + entities} "
                    f"({persons} persons, {entities} entities, {self.malformed_records} malformed)")
        return self.subjects

    def _load_file(self, path: Path, schema: Type[_SubjectRecord]) -> int:
        if not path.exists():
            logger.warning(f"⚠ Reference list not found: {path}")
            return 0

        try:
            with open(path, 'r', encoding='utf-8') as f:
                rows = json.load(f)
        except json.JSONDecodeError as e:
            raise DataLoadError(f"Invalid JSON in {path}: {e}") from e
        except OSError as e:
            raise DataLoadError(f"Cannot read {path}: {e}") from e

        if not isinstance(rows, list):
            raise DataLoadError(f"{path} must contain a JSON array of records")

        loaded: List[ScreeningSubject] = []
        malformed = 0
        for idx, row in enumerate(rows):
            try:
                record = schema.model_validate(row)
            except ValidationError as e:
                malformed += 1
                logger.warning("Skipping malformed record #%d in %s: %d validation error(s)",
                               idx, path.name, e.error_count())
                continue
            loaded.append(record.to_subject())

        if rows:
            malformed_pct = malformed / len(rows) * 100
            if malformed_pct > self.config.data.malformed_record_threshold:
                raise DataLoadError(
                    f"{malformed} of {len(rows)} records in {path.name} are malformed "
                    f"({malformed_pct:.1f}% > {self.config.data.malformed_record_threshold}%)"
                )

        self.subjects.extend(loaded)
        self.malformed_records += malformed
        logger.info(f"✓ Loaded {len(loaded)} records from {path.name}")
        return len(loaded)


def get_country_name(code: str, config: Optional[ConfigManager] = None) -> str:
    """Display name of a country list, falling back to the code itself"""
    config = config or get_config()
    country = config.countries.get(code)
    return country.name if country else code


def get_list_advisory(code: str, config: Optional[ConfigManager] = None) -> Optional[str]:
    """Staleness advisory for a country list, if any"""
    config = config or get_config()
    country = config.countries.get(code)
    return country.advisory if country else None


def is_designation_expired(end_date: Optional[str], today: Optional[date] = None) -> bool:
    """Check whether a designation end date (ISO format) is in the past

    Missing or unparseable dates are treated as not expired.
    """
    if not end_date:
        return False
    try:
        end = date.fromisoformat(end_date.strip()[:10])
    except ValueError:
        logger.debug("Unparseable designation end date: %r", end_date)
        return False
    return end < (today or date.today())
