"""Build symbol tree hierarchy for file outlines."""

from dataclasses import dataclass, field

from .symbols import Symbol, SymbolKind


# Kinds whose span can hold other declarations
CONTAINER_KINDS = frozenset({
    SymbolKind.CLASS,
    SymbolKind.STRUCT,
    SymbolKind.INTERFACE,
    SymbolKind.ENUM,
    SymbolKind.NAMESPACE,
    SymbolKind.TEMPLATE,
    SymbolKind.MIXIN,
    SymbolKind.EXTENSION,
    SymbolKind.WIDGET,
    SymbolKind.STATE_CLASS,
})


@dataclass
class SymbolNode:
    """A node in the symbol tree with children."""
    symbol: Symbol
    children: list["SymbolNode"] = field(default_factory=list)

    def to_dict(self) -> dict:
        result = self.symbol.to_dict()
        if self.children:
            result["children"] = [child.to_dict() for child in self.children]
        return result


def _start(symbol: Symbol) -> tuple[int, int]:
    return symbol.location.line, symbol.location.column


def _end(symbol: Symbol) -> tuple[int, int]:
    return symbol.location.end_line, symbol.location.end_column


def _contains(outer: Symbol, inner: Symbol) -> bool:
    return _start(outer) <= _start(inner) and _end(inner) <= _end(outer)


def build_symbol_tree(symbols: list[Symbol]) -> list[SymbolNode]:
    """Build a hierarchical tree from a flat, pre-ordered symbol list.

    A symbol becomes a child of the nearest preceding container symbol
    (class, namespace, enum, ...) whose span encloses it.
    Returns top-level symbols.
    """
    roots: list[SymbolNode] = []
    stack: list[SymbolNode] = []

    for symbol in symbols:
        node = SymbolNode(symbol=symbol)
        while stack and not _contains(stack[-1].symbol, symbol):
            stack.pop()

        if stack:
            stack[-1].children.append(node)
        else:
            roots.append(node)

        if symbol.kind in CONTAINER_KINDS:
            stack.append(node)

    return roots

