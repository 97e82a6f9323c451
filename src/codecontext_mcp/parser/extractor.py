"""Shared machinery for the regex-based parsers: node building, guarded steps, symbol walk."""

import re
from typing import Callable, Optional

from .recovery import PanicHandler, ParseContext
from .scope import BraceMap, LineIndex
from .symbols import AST, ASTNode, FileLocation, Symbol, SymbolKind, make_symbol


_WHITESPACE = re.compile(r"\s+")

# Node metadata keys that are not copied onto symbols
_NODE_ONLY_KEYS = ("name", "signature", "visibility")


def collapse(text: str) -> str:
    """Collapse runs of whitespace to single spaces."""
    return _WHITESPACE.sub(" ", text).strip()


class RegexExtraction:
    """State for one regex-driven parse of a file.

    Holds the line index and brace map, collects declaration nodes and
    records failures of individual steps without aborting the parse.
    """

    def __init__(
        self,
        content: str,
        file_path: str,
        limit: int,
        panic_handler: PanicHandler,
        ctx: Optional[ParseContext] = None,
    ):
        self.content = content
        self.file_path = file_path
        self.limit = limit
        self.panic_handler = panic_handler
        self.ctx = ctx
        self.index = LineIndex(content)
        self.braces = BraceMap(content)
        self.nodes: list[ASTNode] = []
        self.errors: list[str] = []
        self.count = 0              # Symbols produced so far, nested ones included
        self._seen: set[tuple[str, int]] = set()

    @property
    def full(self) -> bool:
        return self.count >= self.limit

    def run_step(self, name: str, step: Callable[[], None]) -> bool:
        """Run one extraction step; a failure is logged and recorded, never raised."""
        try:
            step()
            return True
        except Exception as e:
            err = self.panic_handler.to_error(name, e, self.ctx)
            self.errors.append(f"{name}: {err}")
            return False

    def claim(self, name: str, offset: int) -> bool:
        """Reserve (name, line) so overlapping patterns do not emit duplicates."""
        key = (name, self.index.line_of(offset))
        if key in self._seen:
            return False
        self._seen.add(key)
        return True

    def node(
        self,
        node_type: str,
        start: int,
        end: int,
        metadata: Optional[dict] = None,
        value: Optional[str] = None,
        children: Optional[list[ASTNode]] = None,
    ) -> ASTNode:
        """Build a node spanning content[start:end] (leading whitespace skipped)."""
        text = self.content[start:end]
        start += len(text) - len(text.lstrip())
        line, column = self.index.position(start)
        end_line, end_column = self.index.position(max(start, end - 1))
        return ASTNode(
            id=f"{node_type}-{line}-{column}",
            type=node_type,
            value=value if value is not None else self.content[start:end],
            location=FileLocation(
                file_path=self.file_path,
                line=line,
                column=column,
                end_line=end_line,
                end_column=end_column + 1,
            ),
            children=children or [],
            metadata=metadata or {},
        )

    def add(self, node: ASTNode) -> bool:
        """Append a top-level node if the symbol limit allows it."""
        if self.full:
            return False
        self.nodes.append(node)
        self.count += 1 + len(node.children)
        return True

    def make_root(self, root_id: str, metadata: dict) -> ASTNode:
        end_line, end_column = self.index.position(len(self.content))
        return ASTNode(
            id=root_id,
            type="compilation_unit",
            value=self.content,
            location=FileLocation(
                file_path=self.file_path,
                line=1,
                column=1,
                end_line=end_line,
                end_column=end_column,
            ),
            children=sorted(self.nodes, key=lambda n: (n.location.line, n.location.column)),
            metadata=metadata,
        )


def count_features(content: str, patterns: dict, groups: dict) -> dict:
    """Occurrence counts grouped under ``has_*`` flags.

    A group's flag and its non-zero member counts (``{member}_count``) are
    written only when at least one member matched.
    """
    counts = {name: sum(1 for _ in p.finditer(content)) for name, p in patterns.items()}
    result = {}
    for flag, members in groups.items():
        present = [(m, counts[m]) for m in members if counts[m]]
        if present:
            result[flag] = True
            result.update((f"{m}_count", c) for m, c in present)
    return result


def visibility_for(name: str) -> str:
    """Dart-style privacy: a leading underscore means library-private."""
    return "private" if name.startswith("_") else "public"


def walk_symbols(
    ast: AST,
    resolve_kind: Callable[[ASTNode], Optional[SymbolKind]],
    resolve_visibility: Callable[[ASTNode], Optional[str]],
) -> list[Symbol]:
    """Produce symbols for every named node, in pre-order.

    Args:
        ast: Parsed AST
        resolve_kind: Maps a node to its SymbolKind, or None to skip it
        resolve_visibility: Maps a node to its visibility (or None)

    Returns:
        Symbols in pre-order, parent before child
    """
    symbols = []
    for node in ast.root.walk():
        name = node.metadata.get("name")
        if not name:
            continue
        kind = resolve_kind(node)
        if kind is None:
            continue
        extra = {k: v for k, v in node.metadata.items() if k not in _NODE_ONLY_KEYS}
        symbols.append(make_symbol(
            node, name, kind, ast.file_path, ast.language,
            signature=node.metadata.get("signature"),
            visibility=resolve_visibility(node),
            metadata=extra,
        ))
    return symbols
