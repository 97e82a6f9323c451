"""Tests for the regex-based Dart parser."""

import pytest

from codecontext_mcp.parser import ParserConfig, SymbolKind, ValidationError
from codecontext_mcp.parser import dart as dart_module
from codecontext_mcp.parser.dart import DartParser, analyze_language_features
from codecontext_mcp.storage.cache import ASTCache, CacheEntry


FLUTTER_PAGE = """import 'package:flutter/material.dart';

class MyPage extends StatefulWidget {
  const MyPage({super.key});

  @override
  State<MyPage> createState() => _MyPageState();
}

class _MyPageState extends State<MyPage> {
  int _count = 0;

  @override
  void initState() {
    super.initState();
  }

  void _increment() {
    setState(() {
      _count++;
    });
  }

  @override
  Widget build(BuildContext context) {
    return Scaffold(body: Text('$_count'));
  }
}
"""

ASYNC_CODE = """Future<void> load() async {
  try {
    await fetch();
  } catch (e) {
    rethrow;
  }
}

Stream<int> count() async* {
  yield 1;
}
"""

DECLARATIONS = """mixin Logging on Object {
  void log(String m) {}
}

extension StringX on String {
  bool get isBlank => trim().isEmpty;
}

typedef Json = Map<String, dynamic>;
typedef int Compare(int a, int b);

final String appName = 'demo';
"""


def _parse(content, config=None, cache=None, path="lib/sample.dart"):
    parser = DartParser(config or ParserConfig(), cache=cache)
    return parser, parser.parse(content, path)


def _symbols_by_name(parser, ast):
    return {s.name: s for s in parser.extract_symbols(ast)}


def test_flutter_widget_and_state_class():
    """Test widget, state class and Flutter method kinds."""
    parser, ast = _parse(FLUTTER_PAGE)
    symbols = _symbols_by_name(parser, ast)

    assert symbols["MyPage"].kind == SymbolKind.WIDGET
    assert symbols["MyPage"].visibility == "public"
    assert symbols["MyPage"].metadata["widget_type"] == "stateful"

    state = symbols["_MyPageState"]
    assert state.kind == SymbolKind.STATE_CLASS
    assert state.visibility == "private"
    assert state.metadata["has_lifecycle_methods"] is True
    assert state.metadata["has_build_method"] is True

    assert symbols["initState"].kind == SymbolKind.LIFECYCLE_METHOD
    assert symbols["initState"].metadata["lifecycle_stage"] == "initialization"
    assert symbols["build"].kind == SymbolKind.BUILD_METHOD
    assert symbols["_increment"].kind == SymbolKind.METHOD
    assert symbols["_count"].kind == SymbolKind.VARIABLE
    assert "setState" not in symbols

    imp = symbols["package:flutter/material.dart"]
    assert imp.kind == SymbolKind.IMPORT
    assert imp.visibility is None


def test_flutter_root_metadata():
    """Test Flutter analysis lands on the root metadata."""
    _, ast = _parse(FLUTTER_PAGE)
    meta = ast.root.metadata

    assert meta["parser"] == "regex"
    assert meta["strategy"] == "full"
    assert meta["has_flutter"] is True
    assert meta["flutter_framework"] == "material"
    assert meta["state_management"] == "setState"

    analysis = meta["flutter_analysis"]
    assert {w["name"] for w in analysis["widgets"]} == {"MyPage", "_MyPageState"}
    assert analysis["lifecycle_methods"] == ["initState"]
    assert analysis["composition_depth"] == 1


def test_flutter_detection_disabled():
    """Test no Flutter metadata when detection is off."""
    config = ParserConfig().with_overrides(dart={"enable_flutter_detection": False})
    _, ast = _parse(FLUTTER_PAGE, config)
    assert ast.root.metadata["has_flutter"] is False
    assert "flutter_analysis" not in ast.root.metadata


def test_enum_values():
    """Test enum values become children of the enum node."""
    parser, ast = _parse("enum Color { red, green, blue }\n")
    enum_node = ast.root.children[0]

    assert enum_node.type == "enum_declaration"
    assert [c.metadata["enum_value"] for c in enum_node.children] == ["red", "green", "blue"]
    assert enum_node.metadata["value_count"] == 3
    assert enum_node.metadata["is_enhanced"] is False

    symbols = parser.extract_symbols(ast)
    assert [(s.name, s.kind) for s in symbols] == [("Color", SymbolKind.ENUM)]


def test_enhanced_enum():
    """Test enums with constructors are marked enhanced."""
    content = """enum Planet {
  mercury(3.3),
  venus(4.8);

  const Planet(this.mass);
  final double mass;
}
"""
    _, ast = _parse(content)
    enum_node = ast.root.children[0]
    assert enum_node.metadata["is_enhanced"] is True
    assert [c.metadata["enum_value"] for c in enum_node.children] == ["mercury", "venus"]


def test_mixins_extensions_and_typedefs():
    """Test the remaining top-level declaration kinds."""
    parser, ast = _parse(DECLARATIONS)
    symbols = _symbols_by_name(parser, ast)

    assert symbols["Logging"].kind == SymbolKind.MIXIN
    assert symbols["Logging"].metadata["constraint_type"] == "Object"
    assert symbols["StringX"].kind == SymbolKind.EXTENSION
    assert symbols["StringX"].metadata["extends_type"] == "String"
    assert symbols["Json"].kind == SymbolKind.TYPEDEF
    assert symbols["Json"].metadata["is_function_type"] is False
    assert symbols["Compare"].kind == SymbolKind.TYPEDEF
    assert symbols["Compare"].metadata["is_function_type"] is True
    assert symbols["appName"].kind == SymbolKind.VARIABLE
    assert symbols["appName"].metadata["is_final"] is True


def test_malformed_part_of_is_skipped():
    """Test a broken directive does not disturb later declarations."""
    parser, ast = _parse("part of ;\n\nclass Valid {\n  void run() {}\n}\n")
    symbols = parser.extract_symbols(ast)

    assert [(s.name, s.kind) for s in symbols] == [
        ("Valid", SymbolKind.CLASS),
        ("run", SymbolKind.METHOD),
    ]
    assert ast.root.metadata["has_errors"] is False


def test_part_directives():
    """Test part and part-of directives."""
    parser, ast = _parse("part 'src/a.dart';\npart of 'main.dart';\n")
    symbols = parser.extract_symbols(ast)
    assert [(s.name, s.kind) for s in symbols] == [
        ("src/a.dart", SymbolKind.DIRECTIVE),
        ("main.dart", SymbolKind.DIRECTIVE),
    ]


def test_async_features():
    """Test async functions, generators and feature counts."""
    parser, ast = _parse(ASYNC_CODE)
    symbols = _symbols_by_name(parser, ast)

    assert symbols["load"].kind == SymbolKind.FUNCTION
    assert symbols["load"].metadata["async_type"] == "function"
    assert symbols["load"].metadata["return_type"] == "Future"
    assert symbols["count"].metadata["async_type"] == "generator"
    assert symbols["count"].metadata["return_type"] == "Stream"

    meta = ast.root.metadata
    assert meta["has_async"] is True
    assert meta["has_streams"] is True
    assert meta["has_error_handling"] is True
    assert meta["await_count"] == 1
    assert meta["rethrow_count"] == 1
    assert "has_futures" not in meta


def test_async_analysis_disabled():
    """Test feature counts are omitted when async analysis is off."""
    config = ParserConfig().with_overrides(dart={"enable_async_analysis": False})
    _, ast = _parse(ASYNC_CODE, config)
    assert "has_async" not in ast.root.metadata


def test_language_features_only_report_present_groups():
    assert analyze_language_features("void main() {}") == {}
    features = analyze_language_features("switch (x) { case (1, 2): break; }")
    assert features["has_pattern_matching"] is True
    assert features["pattern_case_count"] == 1


def test_strategy_selection():
    """Test the size tiers pick full, limited and streaming."""
    config = ParserConfig().with_overrides(
        performance={"limited_threshold": 10, "streaming_threshold": 20}
    )
    parser = DartParser(config)
    assert parser.strategy_for(10) == "full"
    assert parser.strategy_for(11) == "limited"
    assert parser.strategy_for(20) == "limited"
    assert parser.strategy_for(21) == "streaming"


def test_limited_strategy_skips_members():
    """Test limited extraction keeps top-level declarations only."""
    config = ParserConfig().with_overrides(
        performance={"limited_threshold": 10, "streaming_threshold": 100000}
    )
    parser, ast = _parse("class A {\n  void m() {}\n}\n\nvoid main() {}\n", config)

    assert ast.root.metadata["parse_quality"] == "limited"
    assert [s.name for s in parser.extract_symbols(ast)] == ["A", "main"]


def test_streaming_strategy():
    """Test streaming extraction over chunks keeps source order."""
    config = ParserConfig().with_overrides(
        performance={"limited_threshold": 10, "streaming_threshold": 20}
    )
    content = "void main() {}\n\nclass A {}\n\nclass B {}\n"
    parser, ast = _parse(content, config)

    assert ast.root.metadata["strategy"] == "streaming"
    assert [s.name for s in parser.extract_symbols(ast)] == ["main", "A", "B"]


def test_failed_step_is_recorded(monkeypatch):
    """Test a failing extraction step leaves the rest of the AST intact."""
    def boom(self, *args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(dart_module._DartExtraction, "extract_enums", boom)
    parser, ast = _parse("enum E { a }\n\nclass Kept {}\n")
    meta = ast.root.metadata

    assert meta["has_errors"] is True
    assert meta["error_count"] == 1
    assert meta["extraction_errors"][0].startswith("extract_enums:")
    assert [s.name for s in parser.extract_symbols(ast)] == ["Kept"]


def test_failed_stream_chunk_invalidates_cache(monkeypatch):
    """Test a failing chunk drops the cached AST for the file."""
    config = ParserConfig().with_overrides(
        performance={"limited_threshold": 10, "streaming_threshold": 20}
    )
    cache = ASTCache()
    path = "lib/big.dart"
    _, previous = _parse("class Old {}\n", cache=cache, path=path)
    cache.set(path, CacheEntry(ast=previous, content_hash=previous.hash))

    def boom(self, start, end):
        raise RuntimeError("chunk failed")

    monkeypatch.setattr(dart_module._DartExtraction, "_stream_chunk", boom)
    _, ast = _parse("class A {}\n\nclass B {}\n\nclass C {}\n", config, cache=cache, path=path)

    assert ast.root.metadata["has_errors"] is True
    assert cache.get(path) is None


def test_file_too_large():
    """Test the Dart size limit."""
    config = ParserConfig().with_overrides(dart={"max_file_size": 10})
    with pytest.raises(ValidationError) as exc_info:
        _parse("class Foo {}\n", config)
    assert "file too large" in str(exc_info.value)


def test_symbol_limit():
    """Test extraction stops at max_symbols."""
    config = ParserConfig().with_overrides(performance={"max_symbols": 2})
    parser, ast = _parse("class A {}\nclass B {}\nclass C {}\n", config)
    assert len(parser.extract_symbols(ast)) == 2


def test_symbol_locations():
    """Test symbol lines and paths point into the parsed file."""
    parser, ast = _parse(FLUTTER_PAGE)
    line_count = FLUTTER_PAGE.count("\n") + 1
    for symbol in parser.extract_symbols(ast):
        assert symbol.location.file_path == "lib/sample.dart"
        assert 1 <= symbol.location.line <= line_count

    build = [s for s in parser.extract_symbols(ast) if s.name == "build"][0]
    assert build.location.line == FLUTTER_PAGE.splitlines().index(
        "  Widget build(BuildContext context) {"
    ) + 1


def _many_classes(count):
    return "".join(f"class C{i:05d} {{}}\n" for i in range(count))


def test_streaming_stops_at_default_symbol_cap():
    """Test streaming extraction over a large file yields at most 10000 symbols."""
    content = _many_classes(15000)
    parser, ast = _parse(content)

    assert ast.root.metadata["strategy"] == "streaming"
    symbols = parser.extract_symbols(ast)
    assert len(symbols) == 10000
    assert symbols[0].name == "C00000"
    assert symbols[-1].name == "C09999"


def test_limited_strategy_applies_per_kind_caps():
    """Test the default limited tiers keep at most 1000 classes."""
    parser, ast = _parse(_many_classes(6000))

    assert ast.root.metadata["strategy"] == "limited"
    assert len(parser.extract_symbols(ast)) == 1000


def test_limited_strategy_stops_at_global_cap(monkeypatch):
    """Test the limited strategy never yields more than 5000 symbols."""
    monkeypatch.setattr(dart_module, "LIMITED_PRIORITY", (("class", 10000),))
    parser, ast = _parse(_many_classes(6000))

    assert ast.root.metadata["strategy"] == "limited"
    assert len(parser.extract_symbols(ast)) == 5000
