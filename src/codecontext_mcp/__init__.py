"""Multi-language symbol extraction for C++, Dart and Swift, served over MCP."""

__version__ = "0.1.0"
