"""Tests for parser configuration."""

import pydantic
import pytest

from codecontext_mcp.parser import (
    ParserConfig,
    development_config,
    load_config,
    production_config,
    testing_config,
)
from codecontext_mcp.parser.config import MAX_AST_DEPTH
from codecontext_mcp.parser.errors import ConfigValidationError, ValidationError


def test_defaults():
    """Test documented defaults."""
    config = ParserConfig()
    assert config.cache.enabled is True
    assert config.cache.max_size == 1000
    assert config.cache.ttl == 3600
    assert config.performance.streaming_threshold == 200 * 1024
    assert config.performance.limited_threshold == 50 * 1024
    assert config.performance.max_symbols == 10000
    assert config.cpp.max_nesting_depth == 100
    assert config.cpp.max_file_size == 10 * 1024 * 1024
    assert config.cpp.parse_timeout == 30
    assert config.cpp.strict_timeout_enforcement is False
    assert config.dart.enable_flutter_detection is True
    assert config.logging.level == "info"


def test_non_positive_values_reset_to_defaults():
    """Test reset-to-default rules for non-positive values."""
    config = load_config({
        "cache": {"max_size": 0, "ttl": -5},
        "performance": {"max_symbols": 0},
        "cpp": {"max_file_size": 0, "parse_timeout": 0, "max_nesting_depth": -1},
        "dart": {"max_file_size": -1},
    })
    assert config.cache.max_size == 1000
    assert config.cache.ttl == 3600
    assert config.performance.max_symbols == 10000
    assert config.cpp.max_file_size == 10 * 1024 * 1024
    assert config.cpp.parse_timeout == 30
    assert config.cpp.max_nesting_depth == 100
    assert config.dart.max_file_size == 10 * 1024 * 1024


def test_inverted_thresholds_reset_both():
    """Test that streaming <= limited resets both thresholds."""
    config = load_config({"performance": {"streaming_threshold": 1000, "limited_threshold": 5000}})
    assert config.performance.streaming_threshold == 200 * 1024
    assert config.performance.limited_threshold == 50 * 1024

    config = load_config({"performance": {"streaming_threshold": 4000, "limited_threshold": 1000}})
    assert config.performance.streaming_threshold == 4000
    assert config.performance.limited_threshold == 1000


def test_nesting_depth_hard_cap():
    """Test the nesting depth never exceeds the internal cap."""
    config = load_config({"cpp": {"max_nesting_depth": 5000}})
    assert config.cpp.max_nesting_depth == MAX_AST_DEPTH


def test_invalid_value_raises_config_error():
    """Test wrongly typed settings fail as validation errors."""
    with pytest.raises(ConfigValidationError) as exc_info:
        load_config({"logging": {"level": "verbose"}})
    assert isinstance(exc_info.value, ValidationError)
    assert exc_info.value.field == "logging.level"


def test_config_is_frozen():
    """Test configs cannot be mutated in place."""
    config = ParserConfig()
    with pytest.raises(pydantic.ValidationError):
        config.cache.max_size = 5


def test_with_overrides():
    """Test partial group overrides return a new config."""
    config = ParserConfig()
    strict = config.with_overrides(cpp={"strict_timeout_enforcement": True})
    assert strict.cpp.strict_timeout_enforcement is True
    assert strict.cpp.max_nesting_depth == config.cpp.max_nesting_depth
    assert config.cpp.strict_timeout_enforcement is False


def test_presets():
    """Test production, development and testing presets."""
    prod = production_config()
    assert prod.cache.max_size == 5000
    assert prod.cache.ttl == 7200
    assert prod.logging.level == "warn"

    dev = development_config()
    assert dev.cache.ttl == 1800
    assert dev.logging.level == "debug"
    assert dev.logging.enable_profiling is True

    test = testing_config()
    assert test.cache.enabled is False
    assert test.cache.max_size == 100
    assert test.performance.max_symbols == 1000
    assert test.dart.enable_async_analysis is False
    assert test.logging.level == "error"
