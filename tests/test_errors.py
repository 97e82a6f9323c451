"""Tests for error kinds, path sanitization and panic recovery."""

import pytest

from codecontext_mcp.parser import (
    InvalidFilePathError,
    PanicHandler,
    PanicRecoveredError,
    ParseContext,
    ParserError,
    ParsingError,
    ValidationError,
    validate_file_path,
)
from codecontext_mcp.parser.errors import CacheError, MAX_PATH_LENGTH


def test_valid_paths_pass():
    """Test ordinary and empty paths are accepted unchanged."""
    assert validate_file_path("") == ""
    assert validate_file_path("src/main.cpp") == "src/main.cpp"
    assert validate_file_path("/abs/path/file.dart") == "/abs/path/file.dart"
    assert validate_file_path("a/../b.swift") == "a/../b.swift"


def test_null_byte_rejected():
    """Test NUL bytes are rejected."""
    with pytest.raises(InvalidFilePathError) as exc_info:
        validate_file_path("src/ma\x00in.cpp")
    assert str(exc_info.value) == "invalid_file_path: null bytes"
    assert exc_info.value.kind == "invalid_file_path"


def test_long_path_rejected():
    """Test the length limit is inclusive."""
    assert validate_file_path("a" * MAX_PATH_LENGTH)
    with pytest.raises(InvalidFilePathError) as exc_info:
        validate_file_path("a" * (MAX_PATH_LENGTH + 1))
    assert str(exc_info.value) == "invalid_file_path: too long"


def test_traversal_rejected():
    """Test paths escaping upward after cleaning are rejected."""
    for path in ("../../../etc/passwd", "src/../../secret.h", "..\\windows\\x.cpp"):
        with pytest.raises(InvalidFilePathError) as exc_info:
            validate_file_path(path)
        assert "path traversal detected" in str(exc_info.value)


def test_error_message_formats():
    """Test op/path/language message formats."""
    err = ParsingError("parse", cause="boom", path="a.cpp", language="cpp")
    assert str(err) == "parse a.cpp (cpp): boom"

    err = ValidationError("parse", cause="bad", language="dart")
    assert str(err) == "parse (dart): bad"

    err = CacheError("set", "a.cpp", cause="full")
    assert str(err) == "cache set a.cpp: full"
    assert err.kind == "cache"


def test_recover_passes_results_and_parser_errors():
    """Test recover returns values and re-raises ParserErrors unchanged."""
    handler = PanicHandler()
    assert handler.recover("op", lambda: 42) == 42

    original = ValidationError("op", cause="nope")

    def fail():
        raise original

    with pytest.raises(ValidationError) as exc_info:
        handler.recover("op", fail)
    assert exc_info.value is original


def test_recover_converts_unexpected_exceptions():
    """Test unexpected exceptions become PanicRecoveredError with context."""
    handler = PanicHandler()
    ctx = ParseContext(request_id="req-1", file_path="lib/a.dart", language="dart")

    def fail():
        raise KeyError("missing")

    with pytest.raises(PanicRecoveredError) as exc_info:
        handler.recover("extract", fail, ctx)

    err = exc_info.value
    assert isinstance(err, ParserError)
    assert err.op == "extract[req-1]"
    assert err.path == "lib/a.dart"
    assert err.language == "dart"
    assert "KeyError" in err.stack
    assert "panic recovered" in str(err)
    assert isinstance(err.__cause__, KeyError)


def test_recovered_panic_is_logged(caplog):
    """Test recovered panics are logged with structured fields."""
    from codecontext_mcp.parser import ParserLogger

    handler = PanicHandler(ParserLogger())
    with caplog.at_level("ERROR", logger="codecontext_mcp"):
        handler.to_error("step", ValueError("bad value"))

    record = caplog.records[-1]
    assert record.getMessage().startswith("panic recovered")
    assert record.fields["operation"] == "step"
    assert record.fields["has_stack"] is True
    assert record.fields["panic_recovered"] is True


def test_parse_context_cancellation():
    """Test explicit cancellation and deadlines."""
    ctx = ParseContext()
    assert ctx.is_cancelled() is False
    ctx.cancel()
    assert ctx.is_cancelled() is True

    expired = ParseContext.with_timeout(-1.0)
    assert expired.is_cancelled() is True
    assert ParseContext.with_timeout(60.0).is_cancelled() is False
