"""Parser package for extracting symbols from C++, Dart and Swift source."""

from .symbols import AST, ASTNode, FileLocation, Symbol, SymbolKind, content_hash, make_symbol_id
from .languages import Language, FileClassification, LANGUAGE_REGISTRY, LANGUAGE_EXTENSIONS, classify_file
from .errors import (
    ParserError,
    InitializationError,
    ValidationError,
    InvalidFilePathError,
    ParsingError,
    UnsupportedLanguageError,
    CacheError,
    ASTError,
    PanicRecoveredError,
    validate_file_path,
)
from .config import ParserConfig, load_config, production_config, development_config, testing_config
from .logger import ParserLogger, NopLogger
from .recovery import ParseContext, PanicHandler
from .hierarchy import SymbolNode, build_symbol_tree

__all__ = [
    "AST",
    "ASTNode",
    "FileLocation",
    "Symbol",
    "SymbolKind",
    "content_hash",
    "make_symbol_id",
    "Language",
    "FileClassification",
    "LANGUAGE_REGISTRY",
    "LANGUAGE_EXTENSIONS",
    "classify_file",
    "ParserError",
    "InitializationError",
    "ValidationError",
    "InvalidFilePathError",
    "ParsingError",
    "UnsupportedLanguageError",
    "CacheError",
    "ASTError",
    "PanicRecoveredError",
    "validate_file_path",
    "ParserConfig",
    "load_config",
    "production_config",
    "development_config",
    "testing_config",
    "ParserLogger",
    "NopLogger",
    "ParseContext",
    "PanicHandler",
    "SymbolNode",
    "build_symbol_tree",
]
