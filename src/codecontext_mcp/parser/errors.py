"""Error kinds raised by the parsing pipeline."""

import os
import posixpath
from typing import Any, Optional


MAX_PATH_LENGTH = 4096


class ParserError(Exception):
    """Base error carrying an operation tag, optional path/language and cause."""

    kind = "parser"

    def __init__(
        self,
        op: str,
        cause: Any = None,
        path: str = "",
        language: str = "",
        stack: str = "",
    ):
        self.op = op
        self.cause = cause
        self.path = path
        self.language = language
        self.stack = stack
        super().__init__(self._format())

    def _format(self) -> str:
        if self.path:
            return f"{self.op} {self.path} ({self.language}): {self.cause}"
        return f"{self.op} ({self.language}): {self.cause}"


class InitializationError(ParserError):
    """A grammar or parser handle could not be created."""
    kind = "initialization"


class ValidationError(ParserError):
    """Nil receiver, empty content or configuration-violating input."""
    kind = "validation"


class InvalidFilePathError(ParserError):
    """File path failed sanitization."""
    kind = "invalid_file_path"

    def __init__(self, reason: str, path: str = ""):
        self.reason = reason
        super().__init__("validate_file_path", cause=reason, path=path)

    def _format(self) -> str:
        return f"invalid_file_path: {self.cause}"


class ParsingError(ParserError):
    """Grammar failure, pre-parse cancellation or strict timeout."""
    kind = "parsing"


class UnsupportedLanguageError(ParserError):
    """No registered language matches."""
    kind = "unsupported_language"

    def __init__(self, language: str, path: str = ""):
        super().__init__("classify", cause=f"unsupported language: {language}",
                         path=path, language=language)


class CacheError(ParserError):
    """Cache get/set/invalidate failure. Never fatal to a parse."""
    kind = "cache"

    def __init__(self, op: str, key: str, cause: Any = None):
        self.key = key
        super().__init__(op, cause=cause, path=key)

    def _format(self) -> str:
        return f"cache {self.op} {self.key}: {self.cause}"


class ASTError(ParserError):
    """Structural failure while walking an AST."""
    kind = "ast"


class PanicRecoveredError(ParserError):
    """An unexpected exception converted into an error with a stack snapshot."""
    kind = "panic_recovered"

    def _format(self) -> str:
        return f"{self.op} {self.path} ({self.language}): panic recovered: {self.cause}"


class ConfigValidationError(ValidationError):
    """A configuration field holds a value that cannot be used."""

    def __init__(self, field: str, value: Any, reason: str):
        self.field = field
        self.value = value
        super().__init__("validate_config", cause=f"{field}={value!r}: {reason}")


def validate_file_path(path: str) -> str:
    """Sanitize a file path before any cache lookup or parse.

    Args:
        path: File path supplied by the caller. Empty is accepted.

    Returns:
        The path unchanged.

    Raises:
        InvalidFilePathError: For NUL bytes, excessive length or
            ``..`` segments remaining after normalization.
    """
    if not path:
        return path
    if "\x00" in path:
        raise InvalidFilePathError("null bytes")
    if len(path) > MAX_PATH_LENGTH:
        raise InvalidFilePathError("too long")

    cleaned = posixpath.normpath(path.replace("\\", "/"))
    if ".." in cleaned.split("/"):
        raise InvalidFilePathError(f"path traversal detected in: {path}", path=path)
    if os.sep != "/" and ".." in os.path.normpath(path).split(os.sep):
        raise InvalidFilePathError(f"path traversal detected in: {path}", path=path)
    return path
