"""Parser configuration: size thresholds, caps, cache and per-language toggles."""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from .errors import ConfigValidationError


KB = 1024
MB = 1024 * KB

STREAMING_THRESHOLD_BYTES = 200 * KB
LIMITED_THRESHOLD_BYTES = 50 * KB
STREAMING_CHUNK_SIZE = 100 * KB
MAX_SYMBOLS_PER_FILE = 10000
LIMITED_MAX_SYMBOLS = 5000
MAX_NESTING_DEPTH = 100
MAX_AST_DEPTH = 1000                 # Hard cap for CST conversion
MAX_FILE_SIZE = 10 * MB
DEFAULT_CACHE_MAX_SIZE = 1000
DEFAULT_CACHE_TTL = 3600.0           # Seconds
DEFAULT_PARSE_TIMEOUT = 30.0         # Seconds

LogLevel = Literal["debug", "info", "warn", "error"]


class _Settings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class CacheConfig(_Settings):
    """AST cache settings."""

    enabled: bool = Field(default=True, description="Master switch for the AST cache")
    max_size: int = Field(default=DEFAULT_CACHE_MAX_SIZE, description="Maximum cached ASTs")
    ttl: float = Field(default=DEFAULT_CACHE_TTL, description="Entry lifetime in seconds")

    @field_validator("max_size")
    @classmethod
    def _default_max_size(cls, v: int) -> int:
        return v if v > 0 else DEFAULT_CACHE_MAX_SIZE

    @field_validator("ttl")
    @classmethod
    def _default_ttl(cls, v: float) -> float:
        return v if v > 0 else DEFAULT_CACHE_TTL


class PerformanceConfig(_Settings):
    """Size tiers and symbol caps for the regex parsers."""

    streaming_threshold: int = Field(
        default=STREAMING_THRESHOLD_BYTES,
        description="Bytes above which chunked streaming extraction is used",
    )
    limited_threshold: int = Field(
        default=LIMITED_THRESHOLD_BYTES,
        description="Bytes above which limited extraction is used",
    )
    max_symbols: int = Field(default=MAX_SYMBOLS_PER_FILE, description="Hard cap per file")
    enable_caching: bool = Field(default=True, description="Per-parse cache toggle")

    @model_validator(mode="before")
    @classmethod
    def _default_thresholds(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        streaming = data.get("streaming_threshold", STREAMING_THRESHOLD_BYTES)
        limited = data.get("limited_threshold", LIMITED_THRESHOLD_BYTES)
        if isinstance(streaming, int) and isinstance(limited, int) and streaming <= limited:
            data["streaming_threshold"] = STREAMING_THRESHOLD_BYTES
            data["limited_threshold"] = LIMITED_THRESHOLD_BYTES
        return data

    @field_validator("max_symbols")
    @classmethod
    def _default_max_symbols(cls, v: int) -> int:
        return v if v > 0 else MAX_SYMBOLS_PER_FILE


class CppConfig(_Settings):
    """C++ parser settings."""

    max_nesting_depth: int = MAX_NESTING_DEPTH
    max_template_depth: int = 20
    max_classes_per_file: int = 1000
    max_methods_per_class: int = 500
    max_file_size: int = MAX_FILE_SIZE
    enable_virtual_detection: bool = True
    parse_timeout: float = DEFAULT_PARSE_TIMEOUT
    strict_timeout_enforcement: bool = False

    @field_validator("max_nesting_depth")
    @classmethod
    def _clamp_depth(cls, v: int) -> int:
        if v <= 0:
            return MAX_NESTING_DEPTH
        return min(v, MAX_AST_DEPTH)

    @field_validator("max_file_size")
    @classmethod
    def _default_file_size(cls, v: int) -> int:
        return v if v > 0 else MAX_FILE_SIZE

    @field_validator("parse_timeout")
    @classmethod
    def _default_timeout(cls, v: float) -> float:
        return v if v > 0 else DEFAULT_PARSE_TIMEOUT


class DartConfig(_Settings):
    """Dart parser settings."""

    enable_flutter_detection: bool = True
    max_file_size: int = MAX_FILE_SIZE
    enable_async_analysis: bool = True

    @field_validator("max_file_size")
    @classmethod
    def _default_file_size(cls, v: int) -> int:
        return v if v > 0 else MAX_FILE_SIZE


class LoggingConfig(_Settings):
    """Sink-side logging controls."""

    level: LogLevel = "info"
    enable_metrics: bool = True
    enable_profiling: bool = False


class ParserConfig(_Settings):
    """Immutable per-run parser settings."""

    cache: CacheConfig = Field(default_factory=CacheConfig)
    performance: PerformanceConfig = Field(default_factory=PerformanceConfig)
    cpp: CppConfig = Field(default_factory=CppConfig)
    dart: DartConfig = Field(default_factory=DartConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def with_overrides(self, **groups: dict) -> "ParserConfig":
        """Return a copy with the given groups partially overridden.

        Example: ``config.with_overrides(cpp={"strict_timeout_enforcement": True})``
        """
        data = self.model_dump()
        for group, values in groups.items():
            data[group].update(values)
        return ParserConfig.model_validate(data)


def load_config(settings: Optional[dict] = None) -> ParserConfig:
    """Build a ParserConfig from a neutral settings mapping.

    Args:
        settings: Nested dict keyed by group name (cache, performance,
            cpp, dart, logging). Missing keys take defaults.

    Returns:
        Validated ParserConfig

    Raises:
        ConfigValidationError: If a value has the wrong type or is not allowed.
    """
    try:
        return ParserConfig.model_validate(settings or {})
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(p) for p in first["loc"])
        raise ConfigValidationError(field, first.get("input"), first["msg"]) from e


def production_config() -> ParserConfig:
    return load_config({
        "cache": {"max_size": 5000, "ttl": 2 * 3600},
        "logging": {"level": "warn"},
    })


def development_config() -> ParserConfig:
    return load_config({
        "cache": {"max_size": 1000, "ttl": 30 * 60},
        "logging": {"level": "debug", "enable_profiling": True},
    })


def testing_config() -> ParserConfig:
    return load_config({
        "cache": {"enabled": False, "max_size": 100, "ttl": 60},
        "performance": {"max_symbols": 1000},
        "dart": {"enable_async_analysis": False},
        "logging": {"level": "error"},
    })
