"""
Configuration Management Module
Loads and validates configuration from config.yaml
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Any, Optional

import yaml

logger = logging.getLogger(__name__)

VALID_LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


@dataclass
class CountryConfig:
    """A screened country list: display name and optional staleness advisory"""
    name: str
    advisory: Optional[str] = None


def _default_countries() -> Dict[str, CountryConfig]:
    return {
        'CI': CountryConfig(name="Côte d'Ivoire"),
        'BF': CountryConfig(
            name="Burkina Faso",
            advisory="Arrêté potentiellement expiré (~Mai 2025). "
                     "Vérifier renouvellement auprès de la CENTIF-BF."
        ),
        'ML': CountryConfig(
            name="Mali",
            advisory="Arrêté expiré (07/09/25). "
                     "Vérifier renouvellement auprès de la DG Trésor/CENTIF-ML."
        ),
        'NE': CountryConfig(name="Niger"),
    }


@dataclass
class MatchingConfig:
    """Matching configuration parameters"""
    default_threshold: int = 70
    min_threshold: int = 0
    max_threshold: int = 100


@dataclass
class DataConfig:
    """Reference list location"""
    data_directory: str = "sanctions_data"
    persons_file: str = "sanctions-persons.json"
    entities_file: str = "sanctions-entities.json"
    malformed_record_threshold: float = 10.0  # percent of records per file


@dataclass
class InputValidationConfig:
    """Input validation configuration for user-provided queries"""
    query_max_length: int = 200


@dataclass
class LoggingConfig:
    """Logging configuration"""
    level: str = "INFO"
    file: Optional[str] = None
    console: bool = True
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class PerformanceConfig:
    """Performance configuration"""
    max_threads: int = 4
    shard_size: int = 500
    parallel_min_subjects: int = 2000


@dataclass
class AlgorithmConfig:
    """Algorithm version information"""
    version: str = "1.0.0"
    name: str = "Token-Sorted Levenshtein Matcher"


class ConfigurationError(Exception):
    """Raised when configuration is invalid"""
    pass


class ConfigManager:
    """Manages system configuration"""

    _instance: Optional['ConfigManager'] = None

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration manager

        Args:
            config_path: Path to config.yaml file
        """
        self.config_path = Path(config_path) if config_path else self._find_config()
        self._raw_config: Dict[str, Any] = {}
        self.matching: MatchingConfig = MatchingConfig()
        self.countries: Dict[str, CountryConfig] = _default_countries()
        self.data: DataConfig = DataConfig()
        self.input_validation: InputValidationConfig = InputValidationConfig()
        self.logging: LoggingConfig = LoggingConfig()
        self.performance: PerformanceConfig = PerformanceConfig()
        self.algorithm: AlgorithmConfig = AlgorithmConfig()

        if self.config_path and self.config_path.exists():
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

        self._parse_matching()
        self._parse_countries()
        self._parse_data()
        self._parse_input_validation()
        self._parse_logging()
        self._parse_performance()
        self._parse_algorithm()
        self._validate()

    def _parse_matching(self) -> None:
        """Parse matching configuration"""
        cfg = self._raw_config.get('matching') or {}
        self.matching = MatchingConfig(
            default_threshold=cfg.get('default_threshold', 70),
            min_threshold=cfg.get('min_threshold', 0),
            max_threshold=cfg.get('max_threshold', 100)
        )

    def _parse_countries(self) -> None:
        """Parse the country directory

        Each entry is either a plain display name or a mapping with
        ``name`` and optional ``advisory``.
        """
        cfg = self._raw_config.get('countries')
        if cfg is None:
            return
        if not isinstance(cfg, dict):
            raise ConfigurationError("'countries' must be a mapping of country code to settings")

        countries: Dict[str, CountryConfig] = {}
        for code, entry in cfg.items():
            if isinstance(entry, str):
                countries[str(code)] = CountryConfig(name=entry)
            elif isinstance(entry, dict):
                countries[str(code)] = CountryConfig(
                    name=entry.get('name', str(code)),
                    advisory=entry.get('advisory')
                )
            else:
                raise ConfigurationError(f"Invalid settings for country '{code}'")
        self.countries = countries

    def _parse_data(self) -> None:
        """Parse data configuration"""
        cfg = self._raw_config.get('data') or {}
        self.data = DataConfig(
            data_directory=cfg.get('data_directory', 'sanctions_data'),
            persons_file=cfg.get('persons_file', 'sanctions-persons.json'),
            entities_file=cfg.get('entities_file', 'sanctions-entities.json'),
            malformed_record_threshold=cfg.get('malformed_record_threshold', 10.0)
        )

    def _parse_input_validation(self) -> None:
        """Parse input validation configuration"""
        cfg = self._raw_config.get('input_validation') or {}
        self.input_validation = InputValidationConfig(
            query_max_length=cfg.get('query_max_length', 200)
        )

    def _parse_logging(self) -> None:
        """Parse logging configuration"""
        cfg = self._raw_config.get('logging') or {}
        self.logging = LoggingConfig(
            level=str(cfg.get('level', 'INFO')).upper(),
            file=cfg.get('file'),
            console=cfg.get('console', True),
            format=cfg.get('format', self.logging.format)
        )

    def _parse_performance(self) -> None:
        """Parse performance configuration"""
        cfg = self._raw_config.get('performance') or {}
        self.performance = PerformanceConfig(
            max_threads=cfg.get('max_threads', 4),
            shard_size=cfg.get('shard_size', 500),
            parallel_min_subjects=cfg.get('parallel_min_subjects', 2000)
        )

    def _parse_algorithm(self) -> None:
        """Parse algorithm configuration"""
        cfg = self._raw_config.get('algorithm') or {}
        self.algorithm = AlgorithmConfig(
            version=cfg.get('version', '1.0.0'),
            name=cfg.get('name', 'Token-Sorted Levenshtein Matcher')
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
            'matching': {
                'default_threshold': self.matching.default_threshold,
                'min_threshold': self.matching.min_threshold,
                'max_threshold': self.matching.max_threshold
            },
            'countries': {
                code: {'name': country.name, 'advisory': country.advisory}
                for code, country in self.countries.items()
            },
            'data': {
                'data_directory': self.data.data_directory,
                'persons_file': self.data.persons_file,
                'entities_file': self.data.entities_file,
                'malformed_record_threshold': self.data.malformed_record_threshold
            },
            'input_validation': {
                'query_max_length': self.input_validation.query_max_length
            },
            'logging': {
                'level': self.logging.level,
                'file': self.logging.file,
                'console': self.logging.console,
                'format': self.logging.format
            },
            'performance': {
                'max_threads': self.performance.max_threads,
                'shard_size': self.performance.shard_size,
                'parallel_min_subjects': self.performance.parallel_min_subjects
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
        m = self.matching
        for name in ('default_threshold', 'min_threshold', 'max_threshold'):
            value = getattr(m, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigurationError(f"matching.{name} must be an integer, got {value!r}")
        if not 0 <= m.min_threshold <= m.max_threshold <= 100:
            raise ConfigurationError(
                f"Thresholds must satisfy 0 <= min ({m.min_threshold}) <= max ({m.max_threshold}) <= 100"
            )
        if not m.min_threshold <= m.default_threshold <= m.max_threshold:
            raise ConfigurationError(
                f"matching.default_threshold ({m.default_threshold}) must be within "
                f"[{m.min_threshold}, {m.max_threshold}]"
            )

        if not self.countries:
            raise ConfigurationError("At least one country list must be configured")

        if not 0 <= self.data.malformed_record_threshold <= 100:
            raise ConfigurationError("data.malformed_record_threshold must be a percentage (0-100)")

        if self.input_validation.query_max_length < 1:
            raise ConfigurationError("input_validation.query_max_length must be positive")

        if self.logging.level not in VALID_LOG_LEVELS:
            raise ConfigurationError(
                f"logging.level must be one of {', '.join(VALID_LOG_LEVELS)}, got '{self.logging.level}'"
            )

        p = self.performance
        if p.max_threads < 1 or p.shard_size < 1 or p.parallel_min_subjects < 0:
            raise ConfigurationError(
                "performance.max_threads and performance.shard_size must be positive, "
                "performance.parallel_min_subjects must not be negative"
            )


def get_config(config_path: Optional[str] = None) -> ConfigManager:
    """Convenience function to get configuration instance"""
    return ConfigManager.get_instance(config_path)
