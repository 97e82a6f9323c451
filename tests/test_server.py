"""End-to-end server tests."""

import json

import pytest

from codecontext_mcp import server as server_module
from codecontext_mcp.parser.manager import ParserManager
from codecontext_mcp.server import call_tool, list_tools


@pytest.fixture(autouse=True)
def fresh_manager(monkeypatch):
    monkeypatch.setattr(server_module, "_manager", ParserManager())


@pytest.mark.asyncio
async def test_server_lists_four_tools():
    """Test that server lists all 4 tools."""
    tools = await list_tools()

    assert len(tools) == 4
    names = {t.name for t in tools}
    assert names == {"list_languages", "classify_file", "get_file_outline", "get_file_features"}


@pytest.mark.asyncio
async def test_outline_tool_schema():
    """Test get_file_outline tool has correct schema."""
    tools = await list_tools()

    outline = next(t for t in tools if t.name == "get_file_outline")
    props = outline.inputSchema["properties"]
    assert "file_path" in props
    assert "content" in props
    assert set(props["language"]["enum"]) == {"cpp", "dart", "swift"}
    assert outline.inputSchema["required"] == ["file_path"]


@pytest.mark.asyncio
async def test_call_outline_with_content():
    result = await call_tool("get_file_outline", {
        "file_path": "Sources/Point.swift",
        "content": "struct Point {\n    var x: Double\n}\n",
    })

    payload = json.loads(result[0].text)
    assert payload["language"] == "swift"
    point = payload["symbols"][0]
    assert point["name"] == "Point"
    assert point["children"][0]["name"] == "x"


@pytest.mark.asyncio
async def test_call_list_languages():
    result = await call_tool("list_languages", {})
    assert json.loads(result[0].text)["count"] == 3


@pytest.mark.asyncio
async def test_call_unknown_tool():
    result = await call_tool("index_repo", {})
    assert json.loads(result[0].text) == {"error": "Unknown tool: index_repo"}


@pytest.mark.asyncio
async def test_call_missing_argument():
    result = await call_tool("classify_file", {})
    assert "error" in json.loads(result[0].text)


def test_get_manager_uses_profile(monkeypatch, tmp_path):
    monkeypatch.setattr(server_module, "_manager", None)
    monkeypatch.setenv("CODECONTEXT_PROFILE", "testing")
    monkeypatch.setenv("CODECONTEXT_PROJECT_ROOT", str(tmp_path))

    manager = server_module.get_manager()
    assert manager.config.cache.enabled is False
    assert manager.project_root == str(tmp_path)
    assert server_module.get_manager() is manager
