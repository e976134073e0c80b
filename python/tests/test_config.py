"""
Unit tests for configuration management
"""

import pytest
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from config_manager import (
    ConfigManager, ConfigurationError, get_config,
    MatchingConfig, PerformanceConfig
)


@pytest.fixture(autouse=True)
def reset_config():
    """Reset config singleton before each test"""
    ConfigManager.reset_instance()
    yield
    ConfigManager.reset_instance()


def write_config(tmp_path, content):
    config_file = tmp_path / "config.yaml"
    config_file.write_text(content, encoding="utf-8")
    return str(config_file)


class TestConfigManager:
    """Tests for configuration management"""

    def test_default_config_values(self, tmp_path):
        """Test that default values are set correctly"""
        config = ConfigManager(str(tmp_path / "missing.yaml"))

        assert config.matching == MatchingConfig()
        assert config.matching.default_threshold == 70
        assert config.performance == PerformanceConfig()
        assert set(config.countries) == {"CI", "BF", "ML", "NE"}
        assert config.countries["BF"].advisory
        assert config.countries["CI"].advisory is None

    def test_shipped_config_matches_defaults(self, tmp_path):
        """The bundled config.yaml must agree with the dataclass defaults"""
        shipped = Path(__file__).parent.parent / "config.yaml"
        defaults = ConfigManager(str(tmp_path / "missing.yaml"))
        assert ConfigManager(str(shipped)).to_dict() == defaults.to_dict()

    def test_config_loads_from_yaml(self, tmp_path):
        """Test loading configuration from YAML file"""
        path = write_config(tmp_path, """
matching:
  default_threshold: 80
  min_threshold: 50
countries:
  BF: "Burkina Faso"
  SN:
    name: "Sénégal"
    advisory: "Liste non officielle"
performance:
  max_threads: 2
logging:
  level: debug
""")
        config = ConfigManager(path)

        assert config.matching.default_threshold == 80
        assert config.matching.min_threshold == 50
        assert config.matching.max_threshold == 100
        assert set(config.countries) == {"BF", "SN"}
        assert config.countries["BF"].advisory is None
        assert config.countries["SN"].advisory == "Liste non officielle"
        assert config.performance.max_threads == 2
        assert config.performance.shard_size == 500
        assert config.logging.level == "DEBUG"
        assert config.to_dict()["logging"]["level"] == "DEBUG"

    def test_empty_file_uses_defaults(self, tmp_path):
        config = ConfigManager(write_config(tmp_path, ""))
        assert config.matching.default_threshold == 70

    def test_invalid_yaml(self, tmp_path):
        with pytest.raises(ConfigurationError):
            ConfigManager(write_config(tmp_path, "matching: [unclosed"))

    @pytest.mark.parametrize("content", [
        "matching:\n  default_threshold: 40\n  min_threshold: 50\n",
        "matching:\n  min_threshold: 90\n  max_threshold: 80\n",
        "matching:\n  max_threshold: 120\n",
        "matching:\n  default_threshold: 'high'\n",
        "countries: {}\n",
        "countries: [BF, ML]\n",
        "countries:\n  BF: 12\n",
        "logging:\n  level: LOUD\n",
        "performance:\n  max_threads: 0\n",
        "data:\n  malformed_record_threshold: 150\n",
        "input_validation:\n  query_max_length: 0\n",
        "- just\n- a list\n",
    ])
    def test_invalid_values_rejected(self, tmp_path, content):
        with pytest.raises(ConfigurationError):
            ConfigManager(write_config(tmp_path, content))

    def test_config_to_dict(self, tmp_path):
        """Test exporting configuration to dictionary"""
        config_dict = ConfigManager(str(tmp_path / "missing.yaml")).to_dict()

        assert set(config_dict) == {
            'matching', 'countries', 'data', 'input_validation', 'logging', 'performance', 'algorithm'
        }
        assert config_dict['input_validation'] == {'query_max_length': 200}
        assert config_dict['logging']['level'] == 'INFO'
        assert config_dict['logging']['file'] is None
        assert config_dict['countries']['NE'] == {'name': 'Niger', 'advisory': None}

    def test_singleton(self):
        first = get_config()
        assert get_config() is first
        ConfigManager.reset_instance()
        assert get_config() is not first
