"""Regex-based Swift parser: declarations, member scoping and feature flags."""

import re
from typing import Optional

from .config import ParserConfig
from .extractor import RegexExtraction, collapse, count_features, walk_symbols
from .logger import NopLogger
from .recovery import PanicHandler, ParseContext
from .symbols import AST, ASTNode, Symbol, SymbolKind, content_hash


M = re.MULTILINE

_ATTRIBUTES = r"(?:@\w+(?:\([^)\n]*\))?\s+)*"
_MODIFIERS = (
    r"(?:(?:public|private|internal|fileprivate|open|package|static|class|override|final|"
    r"mutating|nonmutating|nonisolated|convenience|required|optional|dynamic|lazy|weak|"
    r"unowned|indirect)(?:\(set\))?[ \t]+)*"
)
_PARAMS = r"\((?P<params>[^()]*(?:\([^()]*\)[^()]*)*)\)"
_EFFECTS = r"(?P<effects>(?:[ \t]+(?:async|throws\(\w+\)|throws|rethrows))*)"
_OPERATOR_CHARS = r"[-+*/%=!<>&|^~?.]+"

SWIFT_PATTERNS = {
    "type": re.compile(
        r"(?:^|(?<=[{};]))[ \t]*(?P<attrs>" + _ATTRIBUTES + r")(?P<mods>" + _MODIFIERS + r")"
        r"(?P<kind>class|struct|protocol|enum|actor|extension)[ \t]+(?P<name>\w+(?:\.\w+)*)"
        r"(?P<generic><[^{\n]*?>)?(?:[ \t]*:[ \t]*(?P<inherits>[^{\n]+?))?"
        r"(?:[ \t]+where[ \t]+[^{\n]+?)?\s*\{",
        M,
    ),
    "function": re.compile(
        r"(?<![\w.@])(?P<attrs>" + _ATTRIBUTES + r")(?P<mods>" + _MODIFIERS + r")"
        r"func[ \t]+(?P<name>\w+|" + _OPERATOR_CHARS + r")[ \t]*(?P<generic><[^(\n]*>)?[ \t]*"
        + _PARAMS + _EFFECTS +
        r"(?:[ \t]*->[ \t]*(?P<ret>[^{\n;]+?))?[ \t]*(?=\{|$|;|\bwhere\b)",
        M,
    ),
    "init": re.compile(
        r"(?<![\w.@])(?P<attrs>" + _ATTRIBUTES + r")(?P<mods>" + _MODIFIERS + r")"
        r"init(?P<failable>[?!])?[ \t]*(?:<[^(\n]*>)?" + _PARAMS + _EFFECTS,
        M,
    ),
    "deinit": re.compile(r"(?<![\w.])deinit[ \t]*\{", M),
    "property": re.compile(
        r"(?<![\w.@])(?P<attrs>" + _ATTRIBUTES + r")(?P<mods>" + _MODIFIERS + r")"
        r"(?P<binding>let|var)[ \t]+(?P<name>\w+)[ \t]*(?::[ \t]*(?P<type>[^={\n;]+?))?"
        r"[ \t]*(?P<end>=|\{|;|\}|$)",
        M,
    ),
    "typealias": re.compile(
        r"(?<![\w.])(?P<mods>" + _MODIFIERS + r")typealias[ \t]+(?P<name>\w+)"
        r"(?P<generic><[^=\n]*>)?[ \t]*=[ \t]*(?P<target>[^\n;]+)",
        M,
    ),
    "associatedtype": re.compile(
        r"(?<![\w.])associatedtype[ \t]+(?P<name>\w+)(?:[ \t]*:[ \t]*(?P<constraint>[^\n=;}]+?))?"
        r"(?:[ \t]*=[ \t]*[^\n;}]+?)?[ \t]*(?:$|;|(?=\}))",
        M,
    ),
    "subscript": re.compile(
        r"(?<![\w.])(?P<mods>" + _MODIFIERS + r")subscript[ \t]*(?:<[^(\n]*>)?" + _PARAMS +
        r"[ \t]*->[ \t]*(?P<ret>[^{\n]+?)[ \t]*(?:\{|$)",
        M,
    ),
    "operator_decl": re.compile(
        r"^[ \t]*(?P<fixity>prefix|postfix|infix)[ \t]+operator[ \t]+(?P<name>" + _OPERATOR_CHARS + r")"
        r"(?:[ \t]*:[ \t]*(?P<group>\w+))?",
        M,
    ),
    "macro": re.compile(
        r"@(?P<role>freestanding|attached)\s*\([^)]*\)\s*(?:" + _ATTRIBUTES + r")"
        r"(?:(?:public|package|internal)[ \t]+)?macro[ \t]+(?P<name>\w+)",
        M,
    ),
    "import": re.compile(
        r"^[ \t]*(?:@\w+(?:\([^)\n]*\))?[ \t]+)*import[ \t]+"
        r"(?:(?:typealias|struct|class|enum|protocol|let|var|func)[ \t]+)?(?P<name>\w+(?:\.\w+)*)",
        M,
    ),
}

# Bindings introduced by control flow are not declarations
_CONTROL_BINDING = re.compile(r"\b(?:if|guard|while|case|for|catch)\b")
_OBSERVERS = re.compile(r"\{\s*(?:willSet|didSet)\b")
_RESULT_BUILDER_ATTRS = ("@resultBuilder", "@_functionBuilder")

TYPE_NODES = {
    "class": "class_declaration",
    "struct": "struct_declaration",
    "protocol": "protocol_declaration",
    "enum": "enum_declaration",
    "actor": "actor_declaration",
    "extension": "extension_declaration",
}

NODE_KINDS = {
    "class_declaration": SymbolKind.CLASS,
    "actor_declaration": SymbolKind.CLASS,
    "struct_declaration": SymbolKind.STRUCT,
    "protocol_declaration": SymbolKind.INTERFACE,
    "enum_declaration": SymbolKind.ENUM,
    "extension_declaration": SymbolKind.NAMESPACE,
    "function_declaration": SymbolKind.FUNCTION,
    "method_declaration": SymbolKind.METHOD,
    "operator_function": SymbolKind.OPERATOR,
    "init_declaration": SymbolKind.CONSTRUCTOR,
    "deinit_declaration": SymbolKind.DESTRUCTOR,
    "property_declaration": SymbolKind.VARIABLE,
    "subscript_declaration": SymbolKind.OPERATOR,
    "operator_declaration": SymbolKind.OPERATOR,
    "typealias_declaration": SymbolKind.TYPE,
    "associatedtype_declaration": SymbolKind.TYPE,
    "macro_declaration": SymbolKind.FUNCTION,
    "import_declaration": SymbolKind.IMPORT,
}

FRAMEWORK_IMPORTS = {
    "has_swiftui": ("SwiftUI",),
    "has_uikit": ("UIKit",),
    "has_vapor": ("Vapor",),
    "has_combine": ("Combine",),
    "has_swiftdata": ("SwiftData",),
    "has_swift_testing": ("Testing",),
    "has_tca": ("ComposableArchitecture", "TCA"),
    "has_foundation": ("Foundation",),
}

SWIFT_FEATURES = {
    "closure": re.compile(r"\{\s*(?:\[[^\]\n]*\]\s*)?(?:\([^)\n]*\)|\w+(?:\s*,\s*\w+)*)\s*(?:->\s*[\w?]+\s*)?in\b"),
    "trailing_closure": re.compile(
        r"(?:\.\w+|^[ \t]*(?!(?:if|guard|while|for|switch|repeat|do|defer|catch|else|init|deinit|"
        r"get|set|willSet|didSet|return)\b)[A-Za-z_]\w*)[ \t]*(?:\([^()\n]*\))?[ \t]*\{",
        M,
    ),
    "escaping_closure": re.compile(r"@escaping\b"),
    "async_function": re.compile(r"\bfunc\s+\w+\s*(?:<[^>\n]*>)?\s*\([^)]*\)\s*async\b"),
    "async_property": re.compile(r"\bvar\s+\w+\s*:\s*[^{\n]+\{\s*get\s+async\b"),
    "await_call": re.compile(r"\bawait\s+\w"),
    "optional_chaining": re.compile(r"[\w)\]]\?\.\w"),
    "optional_binding": re.compile(r"\b(?:if|guard|while)\s+(?:let|var)\s+\w+"),
    "nil_coalescing": re.compile(r"\?\?"),
    "force_unwrap": re.compile(r"[\w)\]]!(?![=\w])"),
    "guard_statement": re.compile(r"\bguard\b[^{]*?\belse\s*\{"),
    "defer_statement": re.compile(r"\bdefer\s*\{"),
    "subscript": SWIFT_PATTERNS["subscript"],
    "operator_function": re.compile(r"\bfunc\s+" + _OPERATOR_CHARS + r"\s*[(<]"),
    "operator_declaration": SWIFT_PATTERNS["operator_decl"],
    "async_sequence": re.compile(r"\bfor\s+(?:try\s+)?await\s+\w+\s+in\b"),
    "async_iterator": re.compile(r":\s*AsyncSequence\b|\bAsync(?:Throwing)?Stream\s*<"),
    "result_builder": re.compile(r"@resultBuilder\b"),
    "view_builder": re.compile(r"@ViewBuilder\b"),
    "function_builder": re.compile(r"@_functionBuilder\b"),
    "macro_declaration": SWIFT_PATTERNS["macro"],
    "macro_usage": re.compile(
        r"#(?!(?:if|elseif|else|endif|available|unavailable|selector|keyPath|sourceLocation|"
        r"warning|error|colorLiteral|imageLiteral|fileLiteral)\b)[A-Za-z_]\w*"
    ),
}
FEATURE_GROUPS = {
    "has_closures": ("closure", "trailing_closure", "escaping_closure"),
    "has_async_await": ("async_function", "async_property", "await_call"),
    "has_optionals": ("optional_chaining", "optional_binding", "nil_coalescing", "force_unwrap"),
    "has_control_flow": ("guard_statement", "defer_statement"),
    "has_subscripts": ("subscript",),
    "has_operators": ("operator_function", "operator_declaration"),
    "has_async_sequences": ("async_sequence", "async_iterator"),
    "has_result_builders": ("result_builder", "view_builder", "function_builder"),
    "has_macros": ("macro_declaration", "macro_usage"),
}


ACCESS_LEVELS = ("open", "public", "package", "internal", "fileprivate", "private")

# Swift access levels that have a symbol visibility counterpart
VISIBILITY_FOR_ACCESS = {
    "open": "public",
    "public": "public",
    "fileprivate": "private",
    "private": "private",
}


def _access_level(mods: str) -> str:
    words = set(re.findall(r"\w+", mods))
    for level in ACCESS_LEVELS:
        if level in words:
            return level
    return "internal"


def _visibility(mods: str) -> Optional[str]:
    return VISIBILITY_FOR_ACCESS.get(_access_level(mods))


def _attribute_names(attrs: str) -> list[str]:
    return re.findall(r"@\w+", attrs)


class _TypeScope:
    """A type body that members can belong to."""

    __slots__ = ("node", "open", "close", "depth")

    def __init__(self, node: ASTNode, open_brace: int, close: int, depth: int):
        self.node = node
        self.open = open_brace
        self.close = close
        self.depth = depth              # Brace depth inside the body

    def contains(self, offset: int) -> bool:
        return self.open < offset and (self.close == -1 or offset < self.close)


class _SwiftExtraction(RegexExtraction):
    """One Swift parse. Type bodies are found first so members nest under them."""

    def __init__(self, content: str, file_path: str, limit: int, panic_handler: PanicHandler, ctx):
        super().__init__(content, file_path, limit, panic_handler, ctx)
        self.scopes: list[_TypeScope] = []

    def run(self) -> None:
        steps = (
            ("extract_types", self.extract_types),
            ("extract_imports", self.extract_imports),
            ("extract_functions", self.extract_functions),
            ("extract_initializers", self.extract_initializers),
            ("extract_deinitializers", self.extract_deinitializers),
            ("extract_properties", self.extract_properties),
            ("extract_typealiases", self.extract_typealiases),
            ("extract_associated_types", self.extract_associated_types),
            ("extract_subscripts", self.extract_subscripts),
            ("extract_operators", self.extract_operators),
            ("extract_macros", self.extract_macros),
        )
        for name, step in steps:
            if self.full:
                break
            self.run_step(name, step)
        for node in self.nodes:
            for inner in node.walk():
                inner.children.sort(key=lambda n: (n.location.line, n.location.column))

    def scope_of(self, offset: int) -> tuple[bool, Optional[_TypeScope]]:
        """(is_declaration_level, enclosing type) for a declaration at ``offset``.

        Declarations at depth 0 are top-level; deeper ones count only when the
        innermost brace is a type body (locals inside functions are skipped).
        """
        depth = self.braces.depth_at(offset)
        if depth == 0:
            return True, None
        for scope in self.scopes:
            if scope.depth == depth and scope.contains(offset):
                return True, scope
        return False, None

    def place(self, node: ASTNode, offset: int) -> bool:
        """Attach ``node`` under its enclosing type, or at top level."""
        if self.full:
            return False
        ok, scope = self.scope_of(offset)
        if not ok:
            return True
        if scope is None:
            self.nodes.append(node)
        else:
            scope.node.children.append(node)
        self.count += 1
        return True

    def extract_types(self) -> None:
        pending = []
        for m in SWIFT_PATTERNS["type"].finditer(self.content):
            kind = m.group("kind")
            name = m.group("name")
            open_brace = m.end() - 1
            close = self.braces.block_end(open_brace)
            end = close + 1 if close != -1 else len(self.content)

            attrs = _attribute_names(m.group("attrs"))
            meta = {
                "name": name,
                "signature": collapse(self.content[m.start("mods"):open_brace]),
                "type_kind": kind,
                "visibility": _visibility(m.group("mods")),
                "access_level": _access_level(m.group("mods")),
            }
            if m.group("inherits"):
                meta["inherits"] = [p.strip() for p in m.group("inherits").split(",")]
            if m.group("generic"):
                meta["generic_parameters"] = m.group("generic")
            if kind == "actor":
                meta["is_actor"] = True
            if any(a in _RESULT_BUILDER_ATTRS for a in attrs):
                meta["is_result_builder"] = True
            if "final" in m.group("mods").split():
                meta["is_final"] = True
            if attrs:
                meta["attributes"] = attrs

            node = self.node(TYPE_NODES[kind], m.start("attrs"), end, meta)
            self.scopes.append(_TypeScope(node, open_brace, close, self.braces.depth_at(open_brace) + 1))
            pending.append((node, m.start("kind")))

        # Placement needs every scope known, outer types included
        for node, offset in pending:
            if not self.place(node, offset):
                return

    def extract_imports(self) -> None:
        for m in SWIFT_PATTERNS["import"].finditer(self.content):
            meta = {"name": m.group("name"), "signature": collapse(m.group())}
            if not self.place(self.node("import_declaration", m.start(), m.end(), meta), m.start("name")):
                return

    def extract_functions(self) -> None:
        for m in SWIFT_PATTERNS["function"].finditer(self.content):
            name = m.group("name")
            pos = m.start("name")
            ok, scope = self.scope_of(pos)
            if not ok:
                continue
            effects = m.group("effects").split()
            mods = m.group("mods")
            meta = {
                "name": name,
                "signature": collapse(self.content[m.start("mods"):m.end()]),
                "visibility": _visibility(mods),
                "access_level": _access_level(mods),
            }
            if m.group("ret"):
                meta["return_type"] = collapse(m.group("ret"))
            if "async" in effects:
                meta["is_async"] = True
            if any(e.startswith("throws") or e == "rethrows" for e in effects):
                meta["throws"] = True
            for mod in ("static", "override", "mutating", "class"):
                if mod in mods.split():
                    meta[f"is_{mod}"] = True
            if m.group("generic"):
                meta["generic_parameters"] = m.group("generic")
            attrs = _attribute_names(m.group("attrs"))
            if "@ViewBuilder" in attrs:
                meta["is_view_builder"] = True

            if not name[0].isalnum() and name[0] != "_":
                node_type = "operator_function"
                meta["operator_symbol"] = name
            elif scope is not None:
                node_type = "method_declaration"
            else:
                node_type = "function_declaration"

            end = self._body_end(m.end())
            if not self.place(self.node(node_type, m.start("mods"), end, meta), pos):
                return

    def extract_initializers(self) -> None:
        for m in SWIFT_PATTERNS["init"].finditer(self.content):
            pos = m.start("mods") + len(m.group("mods"))
            ok, scope = self.scope_of(pos)
            if not ok or scope is None:
                continue
            mods = m.group("mods").split()
            meta = {
                "name": "init",
                "signature": collapse(self.content[m.start("mods"):m.end()]),
                "visibility": _visibility(m.group("mods")),
                "access_level": _access_level(m.group("mods")),
                "is_failable": bool(m.group("failable")),
            }
            if "convenience" in mods:
                meta["is_convenience"] = True
            if "required" in mods:
                meta["is_required"] = True
            if "async" in m.group("effects"):
                meta["is_async"] = True
            end = self._body_end(m.end())
            if not self.place(self.node("init_declaration", m.start("mods"), end, meta), pos):
                return

    def extract_deinitializers(self) -> None:
        for m in SWIFT_PATTERNS["deinit"].finditer(self.content):
            ok, scope = self.scope_of(m.start())
            if not ok or scope is None:
                continue
            close = self.braces.block_end(m.end() - 1)
            end = close + 1 if close != -1 else m.end()
            meta = {"name": "deinit", "signature": "deinit", "access_level": "internal"}
            if not self.place(self.node("deinit_declaration", m.start(), end, meta), m.start()):
                return

    def extract_properties(self) -> None:
        for m in SWIFT_PATTERNS["property"].finditer(self.content):
            pos = m.start("binding")
            line_start = self.content.rfind("\n", 0, pos) + 1
            if _CONTROL_BINDING.search(self.content, line_start, pos):
                continue
            ok, _ = self.scope_of(pos)
            if not ok:
                continue

            binding = m.group("binding")
            var_type = collapse(m.group("type") or "")
            end_token = m.group("end")
            is_computed = (
                end_token == "{"
                and binding == "var"
                and not _OBSERVERS.match(self.content, m.end() - 1)
            )
            signature = f"{binding} {m.group('name')}" + (f": {var_type}" if var_type else "")
            meta = {
                "name": m.group("name"),
                "signature": signature,
                "visibility": _visibility(m.group("mods")),
                "access_level": _access_level(m.group("mods")),
                "binding": binding,
                "is_computed": is_computed,
                "is_stored": not is_computed,
            }
            if var_type:
                meta["type"] = var_type
            for mod in ("static", "lazy", "weak"):
                if mod in m.group("mods").split():
                    meta[f"is_{mod}"] = True
            attrs = _attribute_names(m.group("attrs"))
            if attrs:
                wrapper = attrs[0]
                meta["wrapper"] = wrapper
                meta["is_wrapped"] = True
                meta["has_wrapper_args"] = bool(re.search(re.escape(wrapper) + r"\(", m.group("attrs")))

            end = m.end()
            if is_computed:
                close = self.braces.block_end(m.end() - 1)
                if close != -1:
                    end = close + 1
            if not self.place(self.node("property_declaration", m.start("mods"), end, meta), pos):
                return

    def extract_typealiases(self) -> None:
        for m in SWIFT_PATTERNS["typealias"].finditer(self.content):
            target = collapse(m.group("target"))
            meta = {
                "name": m.group("name"),
                "signature": target,
                "target_type": target,
                "visibility": _visibility(m.group("mods")),
                "access_level": _access_level(m.group("mods")),
                "is_generic": bool(m.group("generic")),
            }
            if not self.place(self.node("typealias_declaration", m.start("mods"), m.end(), meta), m.start("name")):
                return

    def extract_associated_types(self) -> None:
        for m in SWIFT_PATTERNS["associatedtype"].finditer(self.content):
            meta = {
                "name": m.group("name"),
                "signature": collapse(m.group()).rstrip(";"),
                "is_associated_type": True,
            }
            if m.group("constraint"):
                meta["constraint"] = collapse(m.group("constraint"))
            if not self.place(self.node("associatedtype_declaration", m.start(), m.end(), meta), m.start()):
                return

    def extract_subscripts(self) -> None:
        for m in SWIFT_PATTERNS["subscript"].finditer(self.content):
            pos = m.start("mods") + len(m.group("mods"))
            signature = collapse(self.content[m.start("mods"):m.end()]).rstrip("{").strip()
            meta = {
                "name": "subscript",
                "signature": signature,
                "visibility": _visibility(m.group("mods")),
                "access_level": _access_level(m.group("mods")),
                "return_type": collapse(m.group("ret")),
            }
            end = self._body_end(m.end() - 1) if m.group().endswith("{") else m.end()
            if not self.place(self.node("subscript_declaration", m.start("mods"), end, meta), pos):
                return

    def extract_operators(self) -> None:
        for m in SWIFT_PATTERNS["operator_decl"].finditer(self.content):
            meta = {
                "name": m.group("name"),
                "signature": collapse(m.group()),
                "operator_symbol": m.group("name"),
                "fixity": m.group("fixity"),
            }
            if m.group("group"):
                meta["precedence_group"] = m.group("group")
            if not self.place(self.node("operator_declaration", m.start(), m.end(), meta), m.start("fixity")):
                return

    def extract_macros(self) -> None:
        for m in SWIFT_PATTERNS["macro"].finditer(self.content):
            meta = {
                "name": m.group("name"),
                "signature": collapse(m.group()),
                "is_macro": True,
                "macro_role": m.group("role"),
            }
            if not self.place(self.node("macro_declaration", m.start(), m.end(), meta), m.start()):
                return

    def _body_end(self, offset: int) -> int:
        """End of the ``{...}`` block starting at ``offset`` (after spaces), else ``offset``."""
        brace = offset
        while brace < len(self.content) and self.content[brace] in " \t":
            brace += 1
        if brace < len(self.content) and self.content[brace] == "{":
            close = self.braces.block_end(brace)
            if close != -1:
                return close + 1
        return offset


class SwiftParser:
    """Regex-based Swift parser producing the shared AST and symbol shapes."""

    language = "swift"

    def __init__(self, config: Optional[ParserConfig] = None, logger=None):
        self.config = config or ParserConfig()
        self.logger = logger or NopLogger()
        self.panic_handler = PanicHandler(self.logger)

    def parse(self, content: str, file_path: str = "", ctx: Optional[ParseContext] = None) -> AST:
        """Parse Swift source into an AST.

        Args:
            content: Source text
            file_path: Path recorded on the AST and node locations
            ctx: Ambient context for recovered-error reporting

        Returns:
            AST whose root metadata holds framework flags and feature counts
        """
        limit = self.config.performance.max_symbols
        extraction = _SwiftExtraction(content, file_path, limit, self.panic_handler, ctx)
        extraction.run()
        if extraction.full:
            self.logger.info("symbol limit reached", file_path=file_path, limit=limit)

        metadata = {
            "parser": "regex",
            "has_errors": bool(extraction.errors),
            "error_count": len(extraction.errors),
        }
        try:
            metadata.update(detect_frameworks(content))
            metadata.update(count_features(content, SWIFT_FEATURES, FEATURE_GROUPS))
        except Exception as e:
            err = self.panic_handler.to_error("detect_swift_features", e, ctx)
            extraction.errors.append(f"detect_swift_features: {err}")
            metadata["has_errors"] = True
            metadata["error_count"] = len(extraction.errors)
        if extraction.errors:
            metadata["extraction_errors"] = list(extraction.errors)

        return AST(
            language=self.language,
            content=content,
            hash=content_hash(content),
            root=extraction.make_root("swift-root", metadata),
            file_path=file_path,
        )

    def extract_symbols(self, ast: AST) -> list[Symbol]:
        return walk_symbols(ast, self._kind_for, self._visibility_for)

    @staticmethod
    def _kind_for(node: ASTNode) -> Optional[SymbolKind]:
        return NODE_KINDS.get(node.type)

    @staticmethod
    def _visibility_for(node: ASTNode) -> Optional[str]:
        return node.metadata.get("visibility")


def detect_frameworks(content: str) -> dict:
    """Framework flags from import statements. SwiftUI and SwiftData imply Foundation."""
    imported = {m.group("name").split(".", 1)[0] for m in SWIFT_PATTERNS["import"].finditer(content)}
    flags = {flag: any(module in imported for module in modules) for flag, modules in FRAMEWORK_IMPORTS.items()}
    if flags["has_swiftui"] or flags["has_swiftdata"]:
        flags["has_foundation"] = True
    return flags
