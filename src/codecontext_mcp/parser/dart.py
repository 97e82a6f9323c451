"""Regex-based Dart parser with size-tiered extraction and Flutter integration."""

import re
from typing import Optional

from .config import LIMITED_MAX_SYMBOLS, STREAMING_CHUNK_SIZE, ParserConfig
from .errors import ValidationError
from .extractor import RegexExtraction, collapse, count_features, visibility_for, walk_symbols
from .flutter import analyze_flutter, integrate_flutter_analysis
from .logger import NopLogger
from .recovery import PanicHandler, ParseContext
from .scope import last_brace_cut
from .symbols import AST, ASTNode, Symbol, SymbolKind, content_hash


M = re.MULTILINE

# A name followed by a parameter list and a body: the shape shared by
# top-level functions and methods. Return-type tokens are space separated.
_CALLABLE = (
    r"(?P<prefix>(?:[\w<>\[\]?,.]+[ \t]+)*?)"
    r"(?P<name>\w+)[ \t]*(?:<[^>(\n]*>)?[ \t]*\((?P<params>[^)]*)\)[ \t]*"
    r"(?P<modifier>async\*|async|sync\*)?[ \t]*(?P<body>\{|=>)"
)

DART_PATTERNS = {
    "import": re.compile(
        r"""^[ \t]*import[ \t]+['"](?P<path>[^'"]+)['"](?:[ \t]+deferred)?"""
        r"""(?:[ \t]+as[ \t]+(?P<alias>\w+))?(?:[ \t]+(?:show|hide)[ \t]+[\w \t,]+)*[ \t]*;""",
        M,
    ),
    "class": re.compile(
        r"^(?P<abstract>abstract[ \t]+)?(?:(?P<modifier>sealed|final|base|interface)[ \t]+)?"
        r"(?P<mixin>mixin[ \t]+)?class[ \t]+(?P<name>\w+)(?:<[^{\n]*?>)?"
        r"(?:\s+extends\s+(?P<extends>[\w<>?, .]+?))?"
        r"(?:\s+with\s+(?P<with>[\w<>?, .]+?))?"
        r"(?:\s+implements\s+(?P<implements>[\w<>?, .]+?))?\s*\{",
        M,
    ),
    "mixin": re.compile(
        r"^(?:base[ \t]+)?mixin[ \t]+(?P<name>\w+)(?:<[^{\n]*?>)?"
        r"(?:\s+on\s+(?P<on>[\w<>?, .]+?))?(?:\s+implements\s+[\w<>?, .]+?)?\s*\{",
        M,
    ),
    "extension": re.compile(
        r"^extension(?:[ \t]+(?P<name>\w+))?(?:<[^{\n]*?>)?[ \t]+on[ \t]+(?P<on>[\w<>?\[\], .]+?)\s*\{",
        M,
    ),
    "enum": re.compile(
        r"^enum[ \t]+(?P<name>\w+)(?:<[^{\n]*?>)?"
        r"(?:\s+with\s+[\w<>?, .]+?)?(?:\s+implements\s+[\w<>?, .]+?)?\s*\{",
        M,
    ),
    "typedef": re.compile(
        r"^typedef[ \t]+(?P<name>\w+)(?P<generic><[^=\n]*?>)?[ \t]*=[ \t]*(?P<target>[^;]+);",
        M,
    ),
    "function_typedef": re.compile(
        r"^typedef[ \t]+(?P<ret>[\w<>?, ]+?)[ \t]+(?P<name>\w+)[ \t]*\((?P<params>[^)]*)\)[ \t]*;",
        M,
    ),
    "function": re.compile(r"^" + _CALLABLE, M),
    "method": re.compile(
        r"(?:^|(?<=[{};]))[ \t]*(?P<override>@override\s+)?"
        r"(?P<static>(?:(?:static|external|abstract)[ \t]+)*)" + _CALLABLE,
        M,
    ),
    "variable": re.compile(
        r"^[ \t]*(?P<mods>(?:(?:static|late|final|const|var|external)[ \t]+)*)"
        r"(?:(?P<type>[\w<>\[\]?,.]+(?:[ \t]+[\w<>\[\]?,.]+)*?)[ \t]+)?"
        r"(?P<name>\w+)[ \t]*(?P<end>=(?![=>])|;)",
        M,
    ),
    "part": re.compile(r"""^part[ \t]+['"](?P<path>[^'"]+)['"][ \t]*;""", M),
    "part_of": re.compile(
        r"""^part[ \t]+of[ \t]+(?:['"](?P<path>[^'"]+)['"]|(?P<library>\w+(?:\.\w+)*))[ \t]*;""",
        M,
    ),
}

STATE_BASE = re.compile(r"^(?:Consumer)?State<")
WIDGET_BASES = {
    "StatelessWidget": "stateless",
    "StatefulWidget": "stateful",
    "ConsumerWidget": "consumer",
    "ConsumerStatefulWidget": "consumer",
    "HookWidget": "hook",
    "HookConsumerWidget": "hook",
}
BUILD_SIGNATURE = re.compile(r"Widget\s+build\s*\(\s*BuildContext\s+\w+\s*\)")
LIFECYCLE_STAGES = {
    "initState": "initialization",
    "didChangeDependencies": "initialization",
    "didUpdateWidget": "update",
    "dispose": "disposal",
}
HIGHER_ORDER_NAMES = frozenset({
    "map", "filter", "reduce", "compose", "curry", "memoize", "pipe", "asyncMap", "asyncFilter",
})
CONTROL_KEYWORDS = frozenset({
    "if", "else", "for", "while", "do", "switch", "case", "break", "continue",
    "return", "throw", "try", "catch", "finally",
    # Extended for other statement shapes that look like calls
    "on", "await", "yield", "assert", "new", "super", "this", "when", "rethrow",
})
DECLARATION_KEYWORDS = frozenset({
    "return", "throw", "await", "yield", "else", "case", "new", "assert",
    "import", "export", "part", "library", "typedef",
})

ASYNC_FEATURES = {
    "async_function": re.compile(r"\)\s*async\s*(?:\{|=>)"),
    "async_generator": re.compile(r"\)\s*async\*\s*\{"),
    "await": re.compile(r"\bawait\b"),
    "yield": re.compile(r"\byield\*?\s"),
    "stream_controller": re.compile(r"\bStreamController\b"),
    "future_builder": re.compile(r"\bFutureBuilder\b"),
    "stream_builder": re.compile(r"\bStreamBuilder\b"),
    "stream_subscription": re.compile(r"\bStreamSubscription\b"),
    "try": re.compile(r"\btry\s*\{"),
    "catch": re.compile(r"\bcatch\s*\(|\bon\s+\w+(?:<[^>]*>)?\s+catch\b|\bon\s+\w+\s*\{"),
    "finally": re.compile(r"\bfinally\s*\{"),
    "throw": re.compile(r"\bthrow\b"),
    "rethrow": re.compile(r"\brethrow\b"),
    "switch": re.compile(r"\bswitch\s*\("),
    "pattern_case": re.compile(r"\bcase\s+(?:final\b|var\b|const\b|\(|\[|\{|\w+\s*\(|[^:]*\bwhen\b)"),
    "record": re.compile(r"\(\s*[\w<>?]+\s*,\s*[\w<>?]+(?:\s*,\s*[\w<>?]+)*\s*\)\s+\w+\s*[=;(]"),
}
# Summary flags over ASYNC_FEATURES counters
FEATURE_GROUPS = {
    "has_async": ("async_function", "async_generator", "await"),
    "has_streams": ("async_generator", "yield", "stream_controller", "stream_builder", "stream_subscription"),
    "has_futures": ("future_builder",),
    "has_error_handling": ("try", "catch", "finally", "throw", "rethrow"),
    "has_pattern_matching": ("pattern_case",),
    "has_records": ("record",),
}

# Limited strategy: (pattern, per-kind cap) in priority order
LIMITED_PRIORITY = (
    ("import", 50),
    ("class", 1000),
    ("function", 500),
    ("mixin", 100),
    ("extension", 100),
    ("enum", 100),
    ("typedef", 100),
)
ASYNC_CAPS = {"async_generator": 100, "async_function": 200}
STREAMING_PRIORITY = ("class", "mixin", "extension", "enum", "function", "typedef", "import")

NODE_KINDS = {
    "class_declaration": SymbolKind.CLASS,
    "state_class_declaration": SymbolKind.STATE_CLASS,
    "mixin_declaration": SymbolKind.MIXIN,
    "extension_declaration": SymbolKind.EXTENSION,
    "enum_declaration": SymbolKind.ENUM,
    "typedef_declaration": SymbolKind.TYPEDEF,
    "function_typedef": SymbolKind.TYPEDEF,
    "function_declaration": SymbolKind.FUNCTION,
    "async_function": SymbolKind.FUNCTION,
    "async_generator": SymbolKind.FUNCTION,
    "higher_order_function": SymbolKind.METHOD,
    "closure_factory": SymbolKind.METHOD,
    "method_declaration": SymbolKind.METHOD,
    "async_method": SymbolKind.METHOD,
    "higher_order_method": SymbolKind.METHOD,
    "build_method": SymbolKind.BUILD_METHOD,
    "lifecycle_method": SymbolKind.LIFECYCLE_METHOD,
    "variable_declaration": SymbolKind.VARIABLE,
    "import_statement": SymbolKind.IMPORT,
    "part_directive": SymbolKind.DIRECTIVE,
    "part_of_directive": SymbolKind.DIRECTIVE,
}


def _split_list(text: str) -> list[tuple[int, str]]:
    """Split on top-level commas; returns (offset, item) pairs."""
    items = []
    depth = 0
    start = 0
    for i, ch in enumerate(text):
        if ch in "([{<":
            depth += 1
        elif ch in ")]}>":
            depth -= 1
        elif ch == "," and depth == 0:
            items.append((start, text[start:i]))
            start = i + 1
    items.append((start, text[start:]))
    return items


_COMMENT = re.compile(r"//[^\n]*|/\*.*?\*/", re.DOTALL)
_ENUM_VALUE = re.compile(r"^\s*(?:@\w+(?:\([^)]*\))?\s+)*(?P<name>\w+)\s*(?:<[^>]*>)?\s*(?:\(|$)", re.DOTALL)


class _DartExtraction(RegexExtraction):
    """One Dart parse: declaration steps over the whole file or over chunks."""

    def __init__(self, parser: "DartParser", content: str, file_path: str, ctx, limit: int):
        super().__init__(content, file_path, limit, parser.panic_handler, ctx)
        self.parser = parser

    # -- full strategy ------------------------------------------------------

    def run_full(self) -> None:
        steps = (
            ("extract_imports", self.extract_imports),
            ("extract_classes", self.extract_classes),
            ("extract_mixins", self.extract_mixins),
            ("extract_extensions", self.extract_extensions),
            ("extract_enums", self.extract_enums),
            ("extract_typedefs", self.extract_typedefs),
            ("extract_functions", self.extract_functions),
            ("extract_variables", self.extract_variables),
            ("extract_part_directives", self.extract_part_directives),
        )
        for name, step in steps:
            if self.full:
                break
            self.run_step(name, step)

    def extract_imports(self, start: int = 0, end: Optional[int] = None, cap: Optional[int] = None) -> None:
        for i, m in enumerate(DART_PATTERNS["import"].finditer(self.content, start, self._end(end))):
            if cap is not None and i >= cap:
                break
            meta = {"name": m.group("path"), "signature": collapse(m.group())}
            if m.group("alias"):
                meta["alias"] = m.group("alias")
            if not self.add(self.node("import_statement", m.start(), m.end(), meta)):
                break

    def extract_classes(
        self, start: int = 0, end: Optional[int] = None, cap: Optional[int] = None, members: bool = True
    ) -> None:
        for i, m in enumerate(DART_PATTERNS["class"].finditer(self.content, start, self._end(end))):
            if cap is not None and i >= cap:
                break
            if not self.add(self._class_node(m, members)):
                break

    def _class_node(self, m: re.Match, members: bool) -> ASTNode:
        name = m.group("name")
        extends = (m.group("extends") or "").strip()
        open_brace = m.end() - 1
        close = self.braces.block_end(open_brace)
        end = close + 1 if close != -1 else len(self.content)

        meta = {"name": name, "signature": collapse(m.group()[:-1])}
        modifiers = [g.strip() for g in (m.group("abstract"), m.group("modifier"), m.group("mixin")) if g]
        if modifiers:
            meta["modifiers"] = modifiers
        if extends:
            meta["extends"] = extends
        if m.group("with"):
            meta["mixins"] = [p.strip() for p in m.group("with").split(",")]
        if m.group("implements"):
            meta["implements"] = [p.strip() for p in m.group("implements").split(",")]

        children = self._class_members(name, open_brace, end) if members else []
        has_build = any(c.type == "build_method" for c in children)

        if STATE_BASE.match(extends):
            node_type = "state_class_declaration"
            meta["flutter_type"] = "state_class"
            meta["has_lifecycle_methods"] = any(c.type == "lifecycle_method" for c in children)
            meta["has_build_method"] = has_build
        else:
            node_type = "class_declaration"
            base = extends.split("<", 1)[0].strip()
            if base in WIDGET_BASES:
                meta["flutter_type"] = "widget"
                meta["widget_type"] = WIDGET_BASES[base]
                meta["has_build_method"] = has_build
        return self.node(node_type, m.start(), end, meta, children=children)

    def _class_members(self, class_name: str, open_brace: int, end: int) -> list[ASTNode]:
        body_depth = self.braces.depth_at(open_brace) + 1
        members = []

        for m in DART_PATTERNS["method"].finditer(self.content, open_brace + 1, end):
            pos = m.start("name")
            name = m.group("name")
            if self.braces.depth_at(pos) != body_depth:
                continue
            if name == class_name or name in CONTROL_KEYWORDS:
                continue
            if name[0].isupper() and self.content[m.end("name"):m.end("name") + 1] == "(":
                continue
            members.append(self._method_node(m))

        for m in DART_PATTERNS["variable"].finditer(self.content, open_brace + 1, end):
            if self.braces.depth_at(m.start("name")) != body_depth:
                continue
            node = self._variable_node(m)
            if node is not None:
                members.append(node)

        members.sort(key=lambda n: (n.location.line, n.location.column))
        return members

    def _method_node(self, m: re.Match) -> ASTNode:
        name = m.group("name")
        prefix = collapse(m.group("prefix"))
        modifier = m.group("modifier") or ""
        signature = collapse(self.content[m.start("prefix"):m.start("body")])
        meta = {"name": name, "signature": signature}
        if m.group("override"):
            meta["is_override"] = True
        if m.group("static").strip():
            meta["is_static"] = True

        if name == "build" and BUILD_SIGNATURE.search(m.group()):
            node_type = "build_method"
            meta["flutter_type"] = "build_method"
        elif name in LIFECYCLE_STAGES and prefix.endswith("void"):
            node_type = "lifecycle_method"
            meta["lifecycle_stage"] = LIFECYCLE_STAGES[name]
        elif modifier.startswith("async"):
            node_type = "async_method"
            meta["async_type"] = "generator" if modifier == "async*" else "method"
            meta["return_type"] = prefix.split("<", 1)[0] or "Future"
        elif name in HIGHER_ORDER_NAMES:
            node_type = "higher_order_method"
            meta["is_higher_order"] = True
        else:
            node_type = "method_declaration"
        return self.node(node_type, m.start("prefix"), m.end(), meta)

    def _variable_node(self, m: re.Match) -> Optional[ASTNode]:
        mods = m.group("mods").split()
        var_type = m.group("type") or ""
        name = m.group("name")
        if not mods and not var_type:
            return None
        if name in DECLARATION_KEYWORDS or var_type.split(" ", 1)[0] in DECLARATION_KEYWORDS:
            return None
        line_end = self.content.find("\n", m.end())
        text = self.content[m.start():line_end if line_end != -1 else len(self.content)]
        meta = {"name": name, "signature": collapse(text.split("=", 1)[0].rstrip(";"))}
        if var_type:
            meta["type"] = var_type.strip()
        for mod in ("late", "final", "const", "static"):
            if mod in mods:
                meta[f"is_{mod}"] = True
        return self.node("variable_declaration", m.start(), m.end(), meta)

    def extract_mixins(self, start: int = 0, end: Optional[int] = None, cap: Optional[int] = None) -> None:
        for i, m in enumerate(DART_PATTERNS["mixin"].finditer(self.content, start, self._end(end))):
            if cap is not None and i >= cap:
                break
            close = self.braces.block_end(m.end() - 1)
            constraint = (m.group("on") or "").strip()
            meta = {
                "name": m.group("name"),
                "signature": collapse(m.group()[:-1]),
                "dart_type": "mixin",
                "has_constraint": bool(constraint),
            }
            if constraint:
                meta["constraint_type"] = constraint
            block_end = close + 1 if close != -1 else m.end()
            if not self.add(self.node("mixin_declaration", m.start(), block_end, meta)):
                break

    def extract_extensions(self, start: int = 0, end: Optional[int] = None, cap: Optional[int] = None) -> None:
        for i, m in enumerate(DART_PATTERNS["extension"].finditer(self.content, start, self._end(end))):
            if cap is not None and i >= cap:
                break
            name = m.group("name")
            is_unnamed = not name
            if is_unnamed:
                name = f"Extension{self.index.line_of(m.start())}"
            close = self.braces.block_end(m.end() - 1)
            meta = {
                "name": name,
                "signature": collapse(m.group()[:-1]),
                "extends_type": m.group("on").strip(),
                "is_unnamed": is_unnamed,
            }
            block_end = close + 1 if close != -1 else m.end()
            if not self.add(self.node("extension_declaration", m.start(), block_end, meta)):
                break

    def extract_enums(self, start: int = 0, end: Optional[int] = None, cap: Optional[int] = None) -> None:
        for i, m in enumerate(DART_PATTERNS["enum"].finditer(self.content, start, self._end(end))):
            if cap is not None and i >= cap:
                break
            if not self.add(self._enum_node(m)):
                break

    def _enum_node(self, m: re.Match) -> ASTNode:
        open_brace = m.end() - 1
        close = self.braces.block_end(open_brace)
        body_end = close if close != -1 else len(self.content)
        body = self.content[open_brace + 1:body_end]

        semicolon = body.find(";")
        head = body if semicolon == -1 else body[:semicolon]
        values = []
        for offset, item in _split_list(head):
            value = _ENUM_VALUE.match(_COMMENT.sub(lambda c: " " * len(c.group()), item))
            if not value:
                continue
            value_start = open_brace + 1 + offset + value.start("name")
            values.append(self.node(
                "enum_value", value_start, value_start + len(value.group("name")),
                {"enum_value": value.group("name")},
            ))

        rest = body[semicolon + 1:] if semicolon != -1 else ""
        meta = {
            "name": m.group("name"),
            "signature": collapse(m.group()[:-1]),
            "is_enhanced": semicolon != -1 or "(" in head,
            "value_count": len(values),
            "has_methods": bool(DART_PATTERNS["method"].search(rest)),
        }
        end = close + 1 if close != -1 else len(self.content)
        return self.node("enum_declaration", m.start(), end, meta, children=values)

    def extract_typedefs(self, start: int = 0, end: Optional[int] = None, cap: Optional[int] = None) -> None:
        count = 0
        for m in DART_PATTERNS["typedef"].finditer(self.content, start, self._end(end)):
            if cap is not None and count >= cap:
                return
            target = collapse(m.group("target"))
            is_function = "Function" in target
            meta = {
                "name": m.group("name"),
                "signature": target,
                "target_type": target,
                "is_function_type": is_function,
                "is_generic": bool(m.group("generic")),
            }
            node_type = "function_typedef" if is_function else "typedef_declaration"
            if not self.add(self.node(node_type, m.start(), m.end(), meta)):
                return
            count += 1

        for m in DART_PATTERNS["function_typedef"].finditer(self.content, start, self._end(end)):
            if cap is not None and count >= cap:
                return
            signature = f"{collapse(m.group('ret'))} Function({collapse(m.group('params'))})"
            meta = {
                "name": m.group("name"),
                "signature": signature,
                "target_type": signature,
                "is_function_type": True,
                "is_generic": False,
            }
            if not self.add(self.node("function_typedef", m.start(), m.end(), meta)):
                return
            count += 1

    def extract_functions(
        self, start: int = 0, end: Optional[int] = None, caps: Optional[dict] = None
    ) -> None:
        counts: dict[str, int] = {}
        for m in DART_PATTERNS["function"].finditer(self.content, start, self._end(end)):
            name = m.group("name")
            pos = m.start("name")
            if name in CONTROL_KEYWORDS or self.braces.depth_at(pos) != 0:
                continue
            prefix = collapse(m.group("prefix"))
            if prefix.split(" ", 1)[0] in DECLARATION_KEYWORDS:
                continue

            node = self._function_node(m, prefix)
            if caps is not None:
                bucket = node.type if node.type in ASYNC_CAPS else "function"
                limit = caps.get(bucket)
                if limit is not None and counts.get(bucket, 0) >= limit:
                    continue
                counts[bucket] = counts.get(bucket, 0) + 1
            if not self.claim(name, pos):
                continue
            if not self.add(node):
                return

    def _function_node(self, m: re.Match, prefix: str) -> ASTNode:
        name = m.group("name")
        modifier = m.group("modifier") or ""
        meta = {"name": name, "signature": collapse(self.content[m.start():m.start("body")])}

        if modifier == "async*":
            node_type = "async_generator"
            meta["async_type"] = "generator"
            meta["return_type"] = prefix.split("<", 1)[0] or "Stream"
        elif modifier == "async":
            node_type = "async_function"
            meta["async_type"] = "function"
            meta["return_type"] = prefix.split("<", 1)[0] or "Future"
        elif "Function" in prefix and name.startswith("create"):
            node_type = "closure_factory"
            meta["is_closure_factory"] = True
        elif name in HIGHER_ORDER_NAMES:
            node_type = "higher_order_function"
            meta["is_higher_order"] = True
        else:
            node_type = "function_declaration"

        end = m.end()
        if m.group("body") == "{":
            close = self.braces.block_end(m.end() - 1)
            if close != -1:
                end = close + 1
        return self.node(node_type, m.start(), end, meta)

    def extract_variables(self) -> None:
        for m in DART_PATTERNS["variable"].finditer(self.content):
            if self.braces.depth_at(m.start("name")) != 0:
                continue
            node = self._variable_node(m)
            if node is None:
                continue
            if not self.add(node):
                return

    def extract_part_directives(self) -> None:
        for m in DART_PATTERNS["part"].finditer(self.content):
            meta = {"name": m.group("path"), "signature": collapse(m.group()), "directive": "part"}
            if not self.add(self.node("part_directive", m.start(), m.end(), meta)):
                return
        for m in DART_PATTERNS["part_of"].finditer(self.content):
            target = m.group("path") or m.group("library")
            if not target:
                continue
            meta = {"name": target, "signature": collapse(m.group()), "directive": "part_of"}
            if not self.add(self.node("part_of_directive", m.start(), m.end(), meta)):
                return

    # -- limited and streaming strategies -----------------------------------

    def run_limited(self) -> None:
        for kind, cap in LIMITED_PRIORITY:
            if self.full:
                break
            self._run_kind(kind, 0, None, cap)

    def run_streaming(self) -> None:
        start = 0
        total = len(self.content)
        while start < total and not self.full:
            end = last_brace_cut(self.content, start, STREAMING_CHUNK_SIZE)
            chunk_name = f"stream_chunk_{start}"
            if not self.run_step(chunk_name, lambda s=start, e=end: self._stream_chunk(s, e)):
                self.parser.invalidate_cached(self.file_path)
            start = end

    def _stream_chunk(self, start: int, end: int) -> None:
        for kind in STREAMING_PRIORITY:
            if self.full:
                return
            self._run_kind(kind, start, end, None)

    def _run_kind(self, kind: str, start: int, end: Optional[int], cap: Optional[int]) -> None:
        if kind == "import":
            self.extract_imports(start, end, cap)
        elif kind == "class":
            self.extract_classes(start, end, cap, members=False)
        elif kind == "mixin":
            self.extract_mixins(start, end, cap)
        elif kind == "extension":
            self.extract_extensions(start, end, cap)
        elif kind == "enum":
            self.extract_enums(start, end, cap)
        elif kind == "typedef":
            self.extract_typedefs(start, end, cap)
        elif kind == "function":
            caps = dict(ASYNC_CAPS)
            if cap is not None:
                caps["function"] = cap
            self.extract_functions(start, end, caps)

    def _end(self, end: Optional[int]) -> int:
        return len(self.content) if end is None else end


class DartParser:
    """Regex-based Dart parser producing the shared AST and symbol shapes."""

    language = "dart"

    def __init__(self, config: Optional[ParserConfig] = None, logger=None, cache=None):
        self.config = config or ParserConfig()
        self.logger = logger or NopLogger()
        self.panic_handler = PanicHandler(self.logger)
        self.cache = cache

    def strategy_for(self, size: int) -> str:
        """Pick the extraction strategy for content of ``size`` bytes."""
        perf = self.config.performance
        if size > perf.streaming_threshold:
            return "streaming"
        if size > perf.limited_threshold:
            return "limited"
        return "full"

    def parse(self, content: str, file_path: str = "", ctx: Optional[ParseContext] = None) -> AST:
        """Parse Dart source into an AST.

        Malformed declarations are skipped; a failing extraction step is
        recorded under the root's ``extraction_errors`` metadata.

        Raises:
            ValidationError: If the content exceeds the Dart max file size.
        """
        size = len(content.encode("utf-8"))
        if size > self.config.dart.max_file_size:
            raise ValidationError(
                "parse_dart",
                cause=f"file too large: {size} > {self.config.dart.max_file_size} bytes",
                path=file_path,
                language=self.language,
            )

        strategy = self.strategy_for(size)
        limit = self.config.performance.max_symbols
        if strategy == "limited":
            limit = min(limit, LIMITED_MAX_SYMBOLS)

        extraction = _DartExtraction(self, content, file_path, ctx, limit)
        if strategy == "full":
            extraction.run_full()
        elif strategy == "limited":
            extraction.run_limited()
        else:
            extraction.run_streaming()

        if extraction.full:
            self.logger.info("symbol limit reached", file_path=file_path, limit=limit, strategy=strategy)

        metadata = {
            "parser": "regex",
            "parse_quality": strategy,
            "strategy": strategy,
            "has_flutter": False,
            "has_errors": bool(extraction.errors),
            "error_count": len(extraction.errors),
        }
        if extraction.errors:
            metadata["extraction_errors"] = list(extraction.errors)
        if self.config.dart.enable_async_analysis:
            metadata.update(analyze_language_features(content))

        root = extraction.make_root("root", metadata)
        if self.config.dart.enable_flutter_detection:
            self._integrate_flutter(root, content, file_path, ctx)

        return AST(
            language=self.language,
            content=content,
            hash=content_hash(content),
            root=root,
            file_path=file_path,
        )

    def _integrate_flutter(self, root: ASTNode, content: str, file_path: str, ctx) -> None:
        try:
            integrate_flutter_analysis(root, analyze_flutter(content))
        except Exception as e:
            err = self.panic_handler.to_error("flutter_integration", e, ctx)
            root.metadata["flutter_integration_error"] = str(err)
            self.logger.error("flutter integration failed", err, file_path=file_path)

    def invalidate_cached(self, file_path: str) -> None:
        if self.cache is not None:
            self.cache.invalidate(file_path)

    def extract_symbols(self, ast: AST) -> list[Symbol]:
        return walk_symbols(ast, self._kind_for, self._visibility_for)

    @staticmethod
    def _kind_for(node: ASTNode) -> Optional[SymbolKind]:
        kind = NODE_KINDS.get(node.type)
        if kind is SymbolKind.CLASS and node.metadata.get("flutter_type") == "widget":
            return SymbolKind.WIDGET
        return kind

    @staticmethod
    def _visibility_for(node: ASTNode) -> Optional[str]:
        if node.type in ("import_statement", "part_directive", "part_of_directive"):
            return None
        return visibility_for(node.metadata["name"])


def analyze_language_features(content: str) -> dict:
    """Counts of async, stream, error-handling, pattern and record usage (non-zero only)."""
    return count_features(content, ASYNC_FEATURES, FEATURE_GROUPS)
