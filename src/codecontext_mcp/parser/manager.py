"""Parser manager: classification, cached parsing and symbol extraction dispatch."""

import os
import time
from pathlib import Path
from typing import Optional, Union

from ..storage.cache import ASTCache, CacheEntry
from .config import ParserConfig, development_config, production_config, testing_config
from .cpp import CppParser
from .dart import DartParser
from .errors import CacheError, UnsupportedLanguageError, ValidationError, validate_file_path
from .languages import LANGUAGE_REGISTRY, FileClassification, Language, classify_file, get_language
from .logger import NopLogger
from .recovery import PanicHandler, ParseContext
from .swift import SwiftParser
from .symbols import AST, Symbol, content_hash


class ParserManager:
    """Entry point of the parsing pipeline.

    Classifies files, parses content with the per-language parser (through
    the AST cache) and extracts symbols. Language dispatch is table-driven:
    ``cpp``, ``dart`` and ``swift`` are registered at construction.
    """

    def __init__(
        self,
        config: Optional[ParserConfig] = None,
        logger=None,
        cache: Optional[ASTCache] = None,
        project_root: Optional[str] = None,
    ):
        self.config = config or ParserConfig()
        self.logger = logger or NopLogger()
        if cache is None:
            cache = ASTCache(self.config.cache.max_size, self.config.cache.ttl)
        self._cache = cache
        self.project_root = project_root
        self.panic_handler = PanicHandler(self.logger)
        self._parsers = {
            "cpp": CppParser(self.config, self.logger),
            "dart": DartParser(self.config, self.logger, cache=self._cache),
            "swift": SwiftParser(self.config, self.logger),
        }

    @property
    def cache(self) -> ASTCache:
        return self._cache

    def register_parser(self, name: str, parser) -> None:
        """Replace the parser used for language ``name``.

        ``parser`` needs ``parse(content, file_path, ctx)`` and
        ``extract_symbols(ast)``.
        """
        if name not in LANGUAGE_REGISTRY:
            raise UnsupportedLanguageError(name)
        self._parsers[name] = parser

    def supported_languages(self) -> list[Language]:
        return [
            lang for lang in LANGUAGE_REGISTRY.values()
            if lang.enabled and lang.name in self._parsers
        ]

    def classify(self, path: str) -> FileClassification:
        """Classify ``path`` by extension.

        Raises:
            InvalidFilePathError: If the path fails sanitization.
            UnsupportedLanguageError: If no registered language matches.
        """
        validate_file_path(path)
        return classify_file(path)

    def resolve_path(self, path: str) -> str:
        """Join a relative ``path`` onto the project root, when one is set."""
        validate_file_path(path)
        if self.project_root and not os.path.isabs(path):
            return os.path.join(self.project_root, path)
        return path

    def parse(
        self,
        content: str,
        language: Union[str, Language],
        path: str = "",
        ctx: Optional[ParseContext] = None,
    ) -> AST:
        """Parse ``content`` as ``language``, going through the cache.

        Args:
            content: Source text
            language: Canonical language name or descriptor
            path: File path; sanitized before any cache access
            ctx: Ambient context; a fresh one is created when omitted

        Returns:
            The parsed (or cached) AST

        Raises:
            InvalidFilePathError: If the path fails sanitization.
            UnsupportedLanguageError: If no parser handles ``language``.
            ParserError: Whatever the language parser raises; unexpected
                exceptions arrive as PanicRecoveredError.
        """
        validate_file_path(path)
        name = language.name if isinstance(language, Language) else get_language(language).name
        parser = self._parsers.get(name)
        if parser is None:
            raise UnsupportedLanguageError(name, path=path)
        if ctx is None:
            ctx = ParseContext(file_path=path, language=name)

        digest = content_hash(content)
        key = path or digest
        use_cache = self.config.cache.enabled and self.config.performance.enable_caching
        cache_error = None

        if use_cache:
            try:
                entry = self._cache.get(key)
                if entry is not None:
                    if entry.content_hash == digest and entry.ast.language == name:
                        self.logger.debug("cache hit", file_path=path, language=name)
                        return entry.ast
                    self._cache.invalidate(key)
                self.logger.debug("cache miss", file_path=path, language=name)
            except Exception as e:
                cache_error = CacheError("get", key, e)
                self.logger.error("cache read failed", cache_error, file_path=path)

        start = time.perf_counter()
        ast = self.panic_handler.recover(
            f"parse_{name}", lambda: parser.parse(content, path, ctx), ctx
        )
        duration = time.perf_counter() - start

        if use_cache:
            try:
                self._cache.set(key, CacheEntry(ast=ast, content_hash=digest))
            except Exception as e:
                cache_error = CacheError("set", key, e)
                self.logger.error("cache write failed", cache_error, file_path=path)
        if cache_error is not None:
            ast.root.metadata["cache_error"] = str(cache_error)

        self.logger.info(
            "parse complete",
            language=name,
            file_path=path,
            duration_ms=round(duration * 1000, 2),
            node_count=sum(1 for _ in ast.root.walk()),
        )
        return ast

    def parse_file(
        self,
        path: str,
        content: Optional[str] = None,
        language: Optional[str] = None,
    ) -> AST:
        """Parse a file, reading it from disk when ``content`` is omitted.

        The language defaults to the one ``path`` classifies as.
        """
        if language is None:
            language = self.classify(path).language.name
        if content is None:
            content = Path(self.resolve_path(path)).read_text(encoding="utf-8", errors="replace")
        return self.parse(content, language, path)

    def extract_symbols(self, ast: Optional[AST]) -> list[Symbol]:
        """Extract symbols from ``ast`` in pre-order.

        Raises:
            ValidationError: If ``ast`` or its root is missing.
            UnsupportedLanguageError: If no parser handles ``ast.language``.
        """
        if ast is None or ast.root is None:
            raise ValidationError("extract_symbols", cause="ast or ast root is nil")
        parser = self._parsers.get(ast.language)
        if parser is None:
            raise UnsupportedLanguageError(ast.language, path=ast.file_path)
        ctx = ParseContext(file_path=ast.file_path, language=ast.language)
        return self.panic_handler.recover(
            f"extract_symbols_{ast.language}", lambda: parser.extract_symbols(ast), ctx
        )


class ManagerBuilder:
    """Fluent construction of a ParserManager."""

    def __init__(self, config: Optional[ParserConfig] = None):
        self._config = config or ParserConfig()
        self._logger = None
        self._cache: Optional[ASTCache] = None
        self._project_root: Optional[str] = None

    @classmethod
    def for_production(cls) -> "ManagerBuilder":
        return cls(production_config())

    @classmethod
    def for_development(cls) -> "ManagerBuilder":
        return cls(development_config())

    @classmethod
    def for_testing(cls) -> "ManagerBuilder":
        return cls(testing_config())

    def with_logger(self, logger) -> "ManagerBuilder":
        self._logger = logger
        return self

    def with_cache(self, cache: ASTCache) -> "ManagerBuilder":
        self._cache = cache
        return self

    def with_config(self, config: ParserConfig) -> "ManagerBuilder":
        self._config = config
        return self

    def with_project_root(self, project_root: str) -> "ManagerBuilder":
        self._project_root = project_root
        return self

    def build(self) -> ParserManager:
        """Create the manager, applying the configured cache size and TTL."""
        logger = self._logger or NopLogger()
        cache_cfg = self._config.cache
        cache = self._cache if self._cache is not None else ASTCache(cache_cfg.max_size, cache_cfg.ttl)
        cache.set_max_size(cache_cfg.max_size)
        cache.set_ttl(cache_cfg.ttl)

        manager = ParserManager(
            config=self._config,
            logger=logger,
            cache=cache,
            project_root=self._project_root,
        )
        logger.info(
            "parser manager initialized",
            languages=",".join(lang.name for lang in manager.supported_languages()),
            cache_enabled=cache_cfg.enabled,
            cache_max_size=cache_cfg.max_size,
            cache_ttl=cache_cfg.ttl,
            project_root=self._project_root or "",
        )
        return manager
