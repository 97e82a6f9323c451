"""Language registry and file classification."""

import posixpath
from dataclasses import dataclass

from .errors import UnsupportedLanguageError


@dataclass
class Language:
    """Descriptor for a supported language."""
    name: str                       # Canonical name used for dispatch
    display_name: str
    extensions: list[str]
    parser: str                     # "tree-sitter" | "regex"
    enabled: bool = True

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "display_name": self.display_name,
            "extensions": list(self.extensions),
            "parser": self.parser,
        }


@dataclass
class FileClassification:
    """Result of classifying a file path."""
    file_path: str
    language: Language
    file_type: str = "source"
    is_generated: bool = False
    is_test: bool = False


CPP = Language(
    name="cpp",
    display_name="C++",
    extensions=[".cpp", ".cc", ".cxx", ".c++", ".hpp", ".hh", ".hxx", ".h++", ".h"],
    parser="tree-sitter",
)

DART = Language(
    name="dart",
    display_name="Dart",
    extensions=[".dart"],
    parser="regex",
)

SWIFT = Language(
    name="swift",
    display_name="Swift",
    extensions=[".swift"],
    parser="regex",
)

LANGUAGE_REGISTRY: dict[str, Language] = {
    CPP.name: CPP,
    DART.name: DART,
    SWIFT.name: SWIFT,
}

# File extension to language mapping
LANGUAGE_EXTENSIONS: dict[str, str] = {
    ext: lang.name for lang in LANGUAGE_REGISTRY.values() for ext in lang.extensions
}

GENERATED_SUFFIXES = (
    ".g.dart", ".freezed.dart", ".gr.dart", ".config.dart", ".mocks.dart",
    ".pb.h", ".pb.cc", ".generated.swift",
)

TEST_SUFFIXES = ("_test.dart", "_test.cpp", "_test.cc", "_unittest.cc", "tests.swift")


def get_language(name: str) -> Language:
    """Look up a registered language by canonical name."""
    lang = LANGUAGE_REGISTRY.get(name)
    if lang is None or not lang.enabled:
        raise UnsupportedLanguageError(name)
    return lang


def classify_file(path: str) -> FileClassification:
    """Classify a file by its final extension.

    Args:
        path: File path (only the final extension selects the language)

    Returns:
        FileClassification with language and generated/test heuristics

    Raises:
        UnsupportedLanguageError: If no registered language matches.
    """
    basename = posixpath.basename(path.replace("\\", "/"))
    _, ext = posixpath.splitext(basename)
    name = LANGUAGE_EXTENSIONS.get(ext.lower())
    if name is None:
        raise UnsupportedLanguageError(ext or basename, path=path)

    lower = basename.lower()
    normalized = "/" + path.replace("\\", "/").lower()
    is_generated = lower.endswith(GENERATED_SUFFIXES) or "/generated/" in normalized
    is_test = (
        lower.endswith(TEST_SUFFIXES)
        or lower.startswith("test_")
        or "/test/" in normalized
        or "/tests/" in normalized
    )

    lang = LANGUAGE_REGISTRY[name]
    return FileClassification(
        file_path=path,
        language=lang,
        file_type="test" if is_test else "source",
        is_generated=is_generated,
        is_test=is_test,
    )
