"""Tests for ParserManager and ManagerBuilder."""

import logging

import pytest

from codecontext_mcp.parser import (
    AST,
    ASTNode,
    FileLocation,
    InvalidFilePathError,
    PanicRecoveredError,
    ParserConfig,
    ParserLogger,
    SymbolKind,
    UnsupportedLanguageError,
    ValidationError,
    content_hash,
    testing_config,
)
from codecontext_mcp.parser.manager import ManagerBuilder, ParserManager
from codecontext_mcp.storage.cache import ASTCache


class CountingParser:
    """Parser double that records how often it is invoked."""

    def __init__(self, language="dart"):
        self.language = language
        self.calls = 0

    def parse(self, content, file_path, ctx=None):
        self.calls += 1
        root = ASTNode(
            id="root",
            type="compilation_unit",
            value=content,
            location=FileLocation(file_path=file_path),
        )
        return AST(
            language=self.language,
            content=content,
            hash=content_hash(content),
            root=root,
            file_path=file_path,
        )

    def extract_symbols(self, ast):
        return []


class ExplodingParser(CountingParser):
    def parse(self, content, file_path, ctx=None):
        self.calls += 1
        raise RuntimeError("grammar exploded")


class FailingCache(ASTCache):
    def get(self, key, version=None):
        raise RuntimeError("cache offline")

    def set(self, key, entry):
        raise RuntimeError("cache offline")


@pytest.fixture
def manager():
    return ParserManager()


@pytest.fixture
def counting(manager):
    parser = CountingParser()
    manager.register_parser("dart", parser)
    return parser


@pytest.mark.parametrize("path", [
    "../etc/passwd.dart",
    "lib/../../secret.dart",
    "lib\\..\\..\\secret.dart",
    "lib/a\x00b.dart",
    "lib/" + "a" * 5000 + ".dart",
])
def test_invalid_paths_never_reach_parser_or_cache(manager, counting, path):
    with pytest.raises(InvalidFilePathError):
        manager.parse("class A {}", "dart", path)
    assert counting.calls == 0
    assert manager.cache.size() == 0
    assert manager.cache.stats().misses == 0


def test_cache_hit_skips_parser(manager, counting):
    first = manager.parse("class A {}", "dart", "lib/a.dart")
    second = manager.parse("class A {}", "dart", "lib/a.dart")

    assert counting.calls == 1
    assert second is first
    assert manager.cache.stats().hits == 1


def test_changed_content_is_reparsed(manager, counting):
    manager.parse("class A {}", "dart", "lib/a.dart")
    ast = manager.parse("class B {}", "dart", "lib/a.dart")

    assert counting.calls == 2
    assert ast.content == "class B {}"
    assert manager.cache.size() == 1


def test_empty_path_keys_on_content(manager, counting):
    manager.parse("class A {}", "dart")
    manager.parse("class A {}", "dart")

    assert counting.calls == 1
    assert content_hash("class A {}") in manager.cache


def test_disabled_cache_always_parses():
    manager = ParserManager(config=testing_config())
    counting = CountingParser()
    manager.register_parser("dart", counting)

    manager.parse("class A {}", "dart", "lib/a.dart")
    manager.parse("class A {}", "dart", "lib/a.dart")
    assert counting.calls == 2
    assert manager.cache.size() == 0


def test_unexpected_exception_is_recovered(manager):
    manager.register_parser("dart", ExplodingParser())
    with pytest.raises(PanicRecoveredError) as exc_info:
        manager.parse("class A {}", "dart", "lib/a.dart")

    err = exc_info.value
    assert err.path == "lib/a.dart"
    assert err.language == "dart"
    assert "grammar exploded" in str(err)
    assert "RuntimeError" in err.stack
    assert manager.cache.size() == 0


def test_cache_failure_is_not_fatal():
    manager = ParserManager(cache=FailingCache())
    ast = manager.parse("class A {}\n", "dart", "lib/a.dart")

    assert "cache_error" in ast.root.metadata
    assert "cache offline" in ast.root.metadata["cache_error"]
    assert [s.name for s in manager.extract_symbols(ast)] == ["A"]


def test_unsupported_language(manager):
    with pytest.raises(UnsupportedLanguageError):
        manager.parse("print(1)", "python", "main.py")
    with pytest.raises(UnsupportedLanguageError):
        manager.classify("main.py")
    with pytest.raises(UnsupportedLanguageError):
        manager.register_parser("python", CountingParser("python"))


def test_classify(manager):
    result = manager.classify("lib/models/user.g.dart")
    assert result.language.name == "dart"
    assert result.is_generated is True

    with pytest.raises(InvalidFilePathError):
        manager.classify("../x.cpp")


def test_supported_languages(manager):
    assert [lang.name for lang in manager.supported_languages()] == ["cpp", "dart", "swift"]


def test_extract_symbols_requires_ast(manager):
    with pytest.raises(ValidationError):
        manager.extract_symbols(None)


def test_cpp_symbols_reference_their_file(manager):
    content = "class Calculator {\npublic:\n    int add(int a, int b);\n};\n"
    ast = manager.parse(content, "cpp", "src/calc.hpp")
    symbols = manager.extract_symbols(ast)

    assert [(s.name, s.kind) for s in symbols] == [
        ("Calculator", SymbolKind.CLASS),
        ("add", SymbolKind.METHOD),
    ]
    for symbol in symbols:
        assert symbol.location.file_path == "src/calc.hpp"
        assert symbol.language == "cpp"
        assert 1 <= symbol.location.line <= 4
    assert symbols[0].id == "class-src/calc.hpp-1"


def test_parse_file_reads_from_project_root(tmp_path):
    source = tmp_path / "Sources" / "Model.swift"
    source.parent.mkdir()
    source.write_text("struct Model {\n    let id: Int\n}\n")

    manager = ParserManager(project_root=str(tmp_path))
    ast = manager.parse_file("Sources/Model.swift")

    assert ast.language == "swift"
    assert ast.file_path == "Sources/Model.swift"
    assert [s.name for s in manager.extract_symbols(ast)] == ["Model", "id"]


def test_parse_file_with_inline_content(manager):
    ast = manager.parse_file("lib/main.dart", content="void main() {}\n")
    assert [s.name for s in manager.extract_symbols(ast)] == ["main"]


def test_parse_logs_completion(caplog):
    caplog.set_level(logging.DEBUG, logger="codecontext_mcp")
    manager = ParserManager(logger=ParserLogger())
    manager.parse("class A {}\n", "dart", "lib/a.dart")

    records = [r for r in caplog.records if r.getMessage().startswith("parse complete")]
    assert len(records) == 1
    assert records[0].fields["language"] == "dart"
    assert records[0].fields["file_path"] == "lib/a.dart"
    assert any(r.getMessage().startswith("cache miss") for r in caplog.records)


def test_builder_presets():
    production = ManagerBuilder.for_production().build()
    assert production.cache.max_size == 5000
    assert production.cache.ttl == 7200

    development = ManagerBuilder.for_development().build()
    assert development.config.logging.level == "debug"
    assert development.cache.ttl == 1800

    testing = ManagerBuilder.for_testing().build()
    assert testing.config.cache.enabled is False
    assert testing.config.performance.max_symbols == 1000


def test_builder_applies_config_to_supplied_cache(tmp_path):
    cache = ASTCache(max_size=10, ttl=5)
    config = ParserConfig().with_overrides(cache={"max_size": 3, "ttl": 60})
    manager = (
        ManagerBuilder()
        .with_config(config)
        .with_cache(cache)
        .with_project_root(str(tmp_path))
        .build()
    )

    assert manager.cache is cache
    assert cache.max_size == 3
    assert cache.ttl == 60
    assert manager.project_root == str(tmp_path)


def test_builder_logs_initialization(caplog):
    caplog.set_level(logging.INFO, logger="codecontext_mcp")
    ManagerBuilder().with_logger(ParserLogger()).build()

    record = [r for r in caplog.records if r.getMessage().startswith("parser manager initialized")][0]
    assert record.fields["languages"] == "cpp,dart,swift"
    assert record.fields["cache_enabled"] is True
