"""Tests for tools module."""

import pytest

from codecontext_mcp.parser import SymbolKind, build_symbol_tree
from codecontext_mcp.parser.manager import ParserManager
from codecontext_mcp.tools.classify_file import classify_file
from codecontext_mcp.tools.get_file_features import get_file_features
from codecontext_mcp.tools.get_file_outline import get_file_outline
from codecontext_mcp.tools.list_languages import list_languages


CPP_SOURCE = """#include <string>

namespace geo {

class Shape {
public:
    virtual double area() const = 0;
private:
    std::string name;
};

}

int main() { return 0; }
"""


@pytest.fixture
def manager():
    return ParserManager()


def test_list_languages(manager):
    result = list_languages(manager=manager)

    assert result["count"] == 3
    by_name = {lang["name"]: lang for lang in result["languages"]}
    assert by_name["cpp"]["parser"] == "tree-sitter"
    assert ".hpp" in by_name["cpp"]["extensions"]
    assert by_name["dart"]["extensions"] == [".dart"]
    assert by_name["swift"]["display_name"] == "Swift"


def test_classify_file(manager):
    result = classify_file("test/widget_test.dart", manager=manager)
    assert result["language"] == "dart"
    assert result["parser"] == "regex"
    assert result["is_test"] is True
    assert result["is_generated"] is False


def test_classify_file_errors(manager):
    assert "error" in classify_file("README.md", manager=manager)
    assert "invalid_file_path" in classify_file("../src/a.cpp", manager=manager)["error"]


def test_get_file_outline_nests_members(manager):
    result = get_file_outline("src/shape.hpp", content=CPP_SOURCE, manager=manager)

    assert result["language"] == "cpp"
    assert result["symbol_count"] == 6
    top = [(s["name"], s["kind"]) for s in result["symbols"]]
    assert top == [("<string>", "import"), ("geo", "namespace"), ("main", "function")]

    geo = result["symbols"][1]
    shape = geo["children"][0]
    assert shape["name"] == "Shape"
    members = {c["name"]: c for c in shape["children"]}
    assert members["area"]["visibility"] == "public"
    assert "[virtual, pure virtual]" in members["area"]["signature"]
    assert members["name"]["visibility"] == "private"


def test_get_file_outline_reads_file(tmp_path, manager):
    source = tmp_path / "main.dart"
    source.write_text("class App {\n  void run() {}\n}\n")

    result = get_file_outline(str(source), manager=manager)

    assert result["symbol_count"] == 2
    app = result["symbols"][0]
    assert app["kind"] == "class"
    assert app["children"][0]["name"] == "run"


def test_get_file_outline_missing_file(tmp_path, manager):
    result = get_file_outline(str(tmp_path / "missing.swift"), manager=manager)
    assert "Could not read file" in result["error"]


def test_get_file_outline_language_override(manager):
    result = get_file_outline("notes.txt", content="struct S {}\n", language="swift", manager=manager)
    assert result["symbols"][0]["kind"] == "struct"


def test_get_file_features(manager):
    result = get_file_features("src/shape.hpp", content=CPP_SOURCE, manager=manager)

    features = result["features"]
    assert features["parser"] == "tree-sitter"
    assert features["has_namespaces"] is True
    assert features["has_stl"] is True
    assert len(result["hash"]) == 64


def test_get_file_features_unsupported(manager):
    result = get_file_features("main.rs", content="fn main() {}", manager=manager)
    assert "unsupported language" in result["error"]


def test_symbol_tree_nests_by_span(manager):
    ast = manager.parse(CPP_SOURCE, "cpp", "src/shape.hpp")
    symbols = manager.extract_symbols(ast)
    tree = build_symbol_tree(symbols)

    depths = {}
    stack = [(node, 0) for node in reversed(tree)]
    while stack:
        node, depth = stack.pop()
        depths[node.symbol.name] = depth
        stack.extend((child, depth + 1) for child in reversed(node.children))
    assert depths == {"<string>": 0, "geo": 0, "Shape": 1, "area": 2, "name": 2, "main": 0}

    shape = tree[1].children[0]
    assert shape.symbol.kind == SymbolKind.CLASS
    assert "children" in shape.to_dict()
