"""AST and Symbol dataclasses and utility functions."""

import hashlib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


AST_VERSION = "1.0"


class SymbolKind(str, Enum):
    """Kinds of symbols produced by the language walkers."""

    CLASS = "class"
    STRUCT = "struct"
    INTERFACE = "interface"
    ENUM = "enum"
    NAMESPACE = "namespace"
    FUNCTION = "function"
    METHOD = "method"
    CONSTRUCTOR = "constructor"
    DESTRUCTOR = "destructor"
    OPERATOR = "operator"
    VARIABLE = "variable"
    TYPE = "type"
    TEMPLATE = "template"
    IMPORT = "import"
    DIRECTIVE = "directive"
    MIXIN = "mixin"
    EXTENSION = "extension"
    TYPEDEF = "typedef"
    WIDGET = "widget"
    STATE_CLASS = "state_class"
    BUILD_METHOD = "build_method"
    LIFECYCLE_METHOD = "lifecycle_method"


# Prefix used in symbol IDs for each kind
_ID_PREFIXES = {
    SymbolKind.CLASS: "class",
    SymbolKind.STRUCT: "struct",
    SymbolKind.INTERFACE: "protocol",
    SymbolKind.ENUM: "enum",
    SymbolKind.NAMESPACE: "namespace",
    SymbolKind.FUNCTION: "func",
    SymbolKind.METHOD: "method",
    SymbolKind.CONSTRUCTOR: "ctor",
    SymbolKind.DESTRUCTOR: "dtor",
    SymbolKind.OPERATOR: "operator",
    SymbolKind.VARIABLE: "field",
    SymbolKind.TYPE: "type",
    SymbolKind.TEMPLATE: "template",
    SymbolKind.IMPORT: "include",
    SymbolKind.DIRECTIVE: "directive",
    SymbolKind.MIXIN: "mixin",
    SymbolKind.EXTENSION: "extension",
    SymbolKind.TYPEDEF: "typedef",
    SymbolKind.WIDGET: "widget",
    SymbolKind.STATE_CLASS: "state-class",
    SymbolKind.BUILD_METHOD: "build",
    SymbolKind.LIFECYCLE_METHOD: "lifecycle",
}


@dataclass
class FileLocation:
    """A span in a source file (1-indexed lines and columns)."""
    file_path: str
    line: int = 1
    column: int = 1
    end_line: int = 1
    end_column: int = 1


@dataclass
class ASTNode:
    """A language-agnostic tree node."""
    id: str                         # Stable ID, e.g. "node-12-48"
    type: str                       # Node type tag, e.g. "class_specifier"
    value: str                      # Verbatim source slice covered by the node
    location: FileLocation
    children: list["ASTNode"] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    def find_child(self, *types: str) -> Optional["ASTNode"]:
        """Return the first direct child whose type is one of ``types``."""
        for child in self.children:
            if child.type in types:
                return child
        return None

    def walk(self):
        """Yield this node and its descendants in pre-order."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))


@dataclass
class AST:
    """Per-file parse result."""
    language: str
    content: str
    hash: str
    root: ASTNode
    file_path: str = ""
    version: str = AST_VERSION
    parsed_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc), compare=False
    )


@dataclass
class Symbol:
    """A named entity extracted from an AST."""
    id: str                         # "{kind-prefix}-{file_path}-{line}"
    name: str
    kind: SymbolKind
    location: FileLocation
    language: str
    signature: Optional[str] = None
    visibility: Optional[str] = None  # "public" | "private" | "protected"
    hash: str = ""                  # Hash of the declaration text
    last_modified: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc), compare=False
    )
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Serialize to a plain dict for tool output."""
        result = {
            "id": self.id,
            "name": self.name,
            "kind": self.kind.value,
            "language": self.language,
            "line": self.location.line,
            "end_line": self.location.end_line,
        }
        if self.signature:
            result["signature"] = self.signature
        if self.visibility:
            result["visibility"] = self.visibility
        if self.metadata:
            result["metadata"] = dict(self.metadata)
        return result


def content_hash(text: str) -> str:
    """Return the hex SHA-256 digest of ``text``."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def make_symbol_id(kind: SymbolKind, file_path: str, line: int) -> str:
    """Generate a deterministic symbol ID.

    Format: {kind-prefix}-{file_path}-{line}
    Example: class-src/calc.hpp-3
    """
    return f"{_ID_PREFIXES[kind]}-{file_path}-{line}"


def make_symbol(
    node: ASTNode,
    name: str,
    kind: SymbolKind,
    file_path: str,
    language: str,
    signature: Optional[str] = None,
    visibility: Optional[str] = None,
    metadata: Optional[dict] = None,
) -> Symbol:
    """Build a Symbol located at ``node`` inside ``file_path``."""
    loc = node.location
    return Symbol(
        id=make_symbol_id(kind, file_path, loc.line),
        name=name,
        kind=kind,
        location=FileLocation(
            file_path=file_path,
            line=loc.line,
            column=loc.column,
            end_line=loc.end_line,
            end_column=loc.end_column,
        ),
        language=language,
        signature=signature,
        visibility=visibility,
        hash=content_hash(node.value),
        metadata=dict(metadata) if metadata else {},
    )
