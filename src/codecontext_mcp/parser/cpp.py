"""C++ parser backed by the tree-sitter C++ grammar."""

import threading
import time
from dataclasses import dataclass, replace
from typing import Callable, Optional

from tree_sitter_language_pack import get_parser

from .config import MAX_AST_DEPTH, ParserConfig
from .cpp_features import detect_cpp_features
from .errors import ASTError, InitializationError, ParserError, ParsingError, ValidationError
from .logger import NopLogger
from .recovery import PanicHandler, ParseContext
from .symbols import AST, ASTNode, FileLocation, Symbol, SymbolKind, content_hash, make_symbol


class CppParserError(ParserError):
    """C++ parser failure: ``C++ parser {kind}: {message}``."""

    def __init__(self, message: str, cause=None, path: str = ""):
        self.message = message
        super().__init__(f"cpp_{self.kind}", cause=cause, path=path, language="cpp")

    def _format(self) -> str:
        text = f"C++ parser {self.kind}: {self.message}"
        if self.cause is not None:
            text += f" (caused by: {self.cause})"
        return text


class CppInitializationError(CppParserError, InitializationError):
    pass


class CppValidationError(CppParserError, ValidationError):
    pass


class CppParsingError(CppParserError, ParsingError):
    pass


class CppASTError(CppParserError, ASTError):
    pass


FUNCTION_NODES = ("function_definition", "function_declaration", "declaration")
CLASS_BODY_MEMBERS = FUNCTION_NODES + ("field_declaration", "template_declaration")
_DECLARATOR_WRAPPERS = (
    "pointer_declarator", "reference_declarator", "attributed_declarator",
    "parenthesized_declarator",
)
_ACCESS_LABELS = ("public", "private", "protected")


@dataclass(frozen=True)
class ParentContext:
    """Enclosing scope carried by value through the symbol walk."""
    in_class: bool = False
    class_name: str = ""
    current_access: str = "public"
    in_namespace: bool = False
    namespace_name: str = ""
    template_depth: int = 0


def _access_label(node: ASTNode) -> str:
    label = node.value.strip().rstrip(":").strip()
    return label if label in _ACCESS_LABELS else ""


def _find_function_declarator(node: ASTNode) -> Optional[ASTNode]:
    """Follow the declarator chain (through pointers/references) to a function_declarator."""
    for child in node.children:
        if child.type == "function_declarator":
            return child
        if child.type in _DECLARATOR_WRAPPERS:
            found = _find_function_declarator(child)
            if found is not None:
                return found
    return None


def _find_field_identifier(node: ASTNode) -> Optional[ASTNode]:
    for child in node.children:
        if child.type == "field_identifier":
            return child
        if child.type in _DECLARATOR_WRAPPERS + ("array_declarator", "init_declarator"):
            found = _find_field_identifier(child)
            if found is not None:
                return found
    return None


def _function_name(declarator: ASTNode) -> str:
    for child in declarator.children:
        if child.type in ("identifier", "field_identifier", "operator_name", "destructor_name"):
            return child.value
        if child.type == "qualified_identifier":
            return child.value.rsplit("::", 1)[-1].strip()
        if child.type == "template_function":
            ident = child.find_child("identifier")
            return ident.value if ident is not None else child.value.split("<", 1)[0]
    return _generic_name(declarator)


def _generic_name(node: ASTNode) -> str:
    for child in node.children:
        if child.type in ("identifier", "type_identifier", "field_identifier", "namespace_identifier"):
            return child.value
    words = node.value.split()
    return words[0] if words else "unknown"


def _type_name(node: ASTNode) -> str:
    name = node.find_child("type_identifier")
    if name is not None:
        return name.value
    templ = node.find_child("template_type")
    if templ is not None:
        inner = templ.find_child("type_identifier")
        return inner.value if inner is not None else templ.value.split("<", 1)[0]
    return ""


def _first_line(text: str) -> str:
    return text.strip().split("\n", 1)[0].strip()


class CppParser:
    """Converts the tree-sitter CST into an AST and extracts symbols with scope awareness."""

    language = "cpp"

    def __init__(
        self,
        config: Optional[ParserConfig] = None,
        logger=None,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self.config = config or ParserConfig()
        self.logger = logger or NopLogger()
        self.panic_handler = PanicHandler(self.logger)
        self._clock = clock
        # tree-sitter parser handles are not shared across threads
        self._local = threading.local()

    def _ts_parser(self):
        parser = getattr(self._local, "parser", None)
        if parser is None:
            try:
                parser = get_parser("cpp")
            except Exception as e:
                raise CppInitializationError("failed to load tree-sitter C++ grammar", cause=e) from e
            self._local.parser = parser
        return parser

    def parse(self, content: str, file_path: str = "", ctx: Optional[ParseContext] = None) -> AST:
        """Parse C++ source into an AST.

        Args:
            content: Source text
            file_path: Path recorded on the AST and every node location
            ctx: Ambient context; checked for cancellation before parsing

        Returns:
            AST whose root metadata holds the feature flags

        Raises:
            CppValidationError: Missing parser handle, empty or oversized content.
            CppParsingError: Cancelled context, strict timeout or no tree.
        """
        cfg = self.config.cpp
        parser = self._ts_parser()
        if parser is None:
            raise CppValidationError("tree-sitter parser is nil", path=file_path)
        if not content:
            raise CppValidationError("content is empty", path=file_path)

        source_bytes = content.encode("utf-8")
        if len(source_bytes) > cfg.max_file_size:
            raise CppValidationError(
                f"file too large: {len(source_bytes)} > {cfg.max_file_size} bytes", path=file_path
            )
        if ctx is not None and ctx.is_cancelled():
            raise CppParsingError("parsing cancelled before start", path=file_path)

        start = self._clock()
        tree = parser.parse(source_bytes)
        elapsed = self._clock() - start

        if elapsed > cfg.parse_timeout:
            self.logger.info(
                "parsing exceeded timeout",
                file_path=file_path,
                elapsed=round(elapsed, 3),
                timeout=cfg.parse_timeout,
                strict=cfg.strict_timeout_enforcement,
            )
            if cfg.strict_timeout_enforcement:
                raise CppParsingError("parsing exceeded timeout", path=file_path)

        if tree is None or tree.root_node is None:
            raise CppParsingError("failed to parse content with tree-sitter", path=file_path)

        root, node_count = self._convert(tree.root_node, source_bytes, file_path)
        has_syntax_errors = tree.root_node.has_error
        # Everything needed has been copied out of the tree
        del tree

        root.metadata.update({
            "parser": "tree-sitter",
            "node_count": node_count,
            "has_syntax_errors": has_syntax_errors,
        })
        try:
            root.metadata.update(
                detect_cpp_features(root, content, max_classes=cfg.max_classes_per_file)
            )
        except Exception as e:
            err = self.panic_handler.to_error("detect_cpp_features", e, ctx)
            root.metadata["feature_detection_error"] = str(err)

        return AST(
            language=self.language,
            content=content,
            hash=content_hash(content),
            root=root,
            file_path=file_path,
        )

    def _convert(self, ts_root, source_bytes: bytes, file_path: str) -> tuple[ASTNode, int]:
        """Depth-first CST conversion, cut off at MAX_AST_DEPTH. Iterative to stay off the call stack."""
        cap = MAX_AST_DEPTH
        size = len(source_bytes)
        root = self._make_node(ts_root, source_bytes, size, file_path)
        count = 1

        stack = [(child, 1, root) for child in reversed(ts_root.children)]
        while stack:
            ts_node, depth, parent = stack.pop()
            if depth >= cap:
                node = ASTNode(
                    id=f"truncated-node-{ts_node.start_byte}-{ts_node.end_byte}",
                    type=f"{ts_node.type}_truncated",
                    value=f"// Truncated at depth {depth}",
                    location=FileLocation(file_path=file_path),
                )
                parent.children.append(node)
                count += 1
                continue

            node = self._make_node(ts_node, source_bytes, size, file_path)
            parent.children.append(node)
            count += 1
            for child in reversed(ts_node.children):
                stack.append((child, depth + 1, node))
        return root, count

    @staticmethod
    def _make_node(ts_node, source_bytes: bytes, size: int, file_path: str) -> ASTNode:
        start, end = ts_node.start_byte, ts_node.end_byte
        if 0 <= start <= end <= size:
            value = source_bytes[start:end].decode("utf-8", errors="replace")
        else:
            value = ""
        return ASTNode(
            id=f"node-{start}-{end}",
            type=ts_node.type,
            value=value,
            location=FileLocation(
                file_path=file_path,
                line=ts_node.start_point[0] + 1,
                column=ts_node.start_point[1] + 1,
                end_line=ts_node.end_point[0] + 1,
                end_column=ts_node.end_point[1] + 1,
            ),
        )

    def extract_symbols(self, ast: AST) -> list[Symbol]:
        """Walk the AST in pre-order and build symbols.

        Raises:
            CppASTError: If a nil node is encountered.
        """
        limit = self.config.performance.max_symbols
        symbols: list[Symbol] = []
        stack: list[tuple[ASTNode, ParentContext]] = [(ast.root, ParentContext())]

        while stack:
            node, ctx = stack.pop()
            if node is None:
                raise CppASTError("nil node encountered during symbol walk", path=ast.file_path)

            if node.type == "field_declaration_list":
                stack.extend(reversed(self._class_body(node, ctx)))
                continue

            ctx = self._enter(node, ctx)
            if node.type != "access_specifier":
                symbol = self.node_to_symbol(node, ctx, ast.file_path)
                if symbol is not None:
                    symbols.append(symbol)
                    if len(symbols) >= limit:
                        self.logger.info("symbol limit reached", file_path=ast.file_path, limit=limit)
                        break
            stack.extend((child, ctx) for child in reversed(node.children))

        return symbols

    def _class_body(self, body: ASTNode, ctx: ParentContext) -> list[tuple[ASTNode, ParentContext]]:
        """Pair each class-body child with the access level in force at that point."""
        access = ctx.current_access
        result = []
        for child in body.children:
            if child.type == "access_specifier":
                access = _access_label(child) or access
                continue
            result.append((child, replace(ctx, current_access=access)))
        return result

    def _enter(self, node: ASTNode, ctx: ParentContext) -> ParentContext:
        if node.type == "class_specifier":
            return replace(ctx, in_class=True, class_name=_type_name(node), current_access="private")
        if node.type == "struct_specifier":
            return replace(ctx, in_class=True, class_name=_type_name(node), current_access="public")
        if node.type == "namespace_definition":
            return replace(ctx, in_namespace=True, namespace_name=self._namespace_name(node))
        if node.type == "template_declaration":
            return replace(ctx, template_depth=ctx.template_depth + 1)
        if node.type == "access_specifier" and ctx.in_class:
            label = _access_label(node)
            if label:
                return replace(ctx, current_access=label)
        return ctx

    def node_to_symbol(self, node: ASTNode, ctx: ParentContext, file_path: str) -> Optional[Symbol]:
        """Map a single node to a Symbol, or None when it declares nothing."""
        kind = node.type
        if kind in ("class_specifier", "struct_specifier"):
            return self._class_symbol(node, ctx, file_path)
        if kind == "namespace_definition":
            name = self._namespace_name(node)
            if not name:
                return None
            return make_symbol(node, name, SymbolKind.NAMESPACE, file_path, self.language,
                               signature=f"namespace {name}")
        if kind in FUNCTION_NODES:
            declarator = _find_function_declarator(node)
            if declarator is None:
                return None
            return self._function_symbol(node, declarator, ctx, file_path)
        if kind == "field_declaration":
            declarator = _find_function_declarator(node)
            if declarator is not None:
                return self._function_symbol(node, declarator, ctx, file_path)
            ident = _find_field_identifier(node)
            if ident is None:
                return None
            return make_symbol(node, ident.value, SymbolKind.VARIABLE, file_path, self.language,
                               signature=node.value.strip().rstrip(";").strip(),
                               visibility=ctx.current_access)
        if kind == "template_declaration":
            return self._template_symbol(node, file_path)
        if kind == "preproc_include":
            path = node.find_child("string_literal", "system_lib_string")
            if path is None:
                return None
            return make_symbol(node, path.value, SymbolKind.IMPORT, file_path, self.language,
                               signature=_first_line(node.value))
        return None

    def _class_symbol(self, node: ASTNode, ctx: ParentContext, file_path: str) -> Optional[Symbol]:
        if node.find_child("field_declaration_list") is None:
            return None  # Forward declaration or elaborated type
        name = _type_name(node)
        if not name:
            return None
        is_struct = node.type == "struct_specifier"
        metadata = {}
        bases = node.find_child("base_class_clause")
        if bases is not None:
            metadata["bases"] = bases.value.lstrip(":").strip()
        if is_struct:
            metadata["is_struct"] = True
        keyword = "struct" if is_struct else "class"
        return make_symbol(
            node, name, SymbolKind.CLASS, file_path, self.language,
            signature=f"{keyword} {name}",
            visibility="public" if is_struct else ctx.current_access,
            metadata=metadata,
        )

    def _function_symbol(
        self, node: ASTNode, declarator: ASTNode, ctx: ParentContext, file_path: str
    ) -> Symbol:
        name = _function_name(declarator)
        kind, visibility = self.classify_function(name, ctx)
        signature = declarator.value.strip() or _first_line(node.value)
        if self.config.cpp.enable_virtual_detection:
            qualifiers = self._qualifiers(node, declarator)
            if qualifiers:
                signature = f"{signature} [{', '.join(qualifiers)}]"
        return make_symbol(node, name, kind, file_path, self.language,
                           signature=signature, visibility=visibility)

    @staticmethod
    def classify_function(name: str, ctx: Optional[ParentContext]) -> tuple[SymbolKind, str]:
        """Return (kind, visibility) for a function named ``name`` in ``ctx``."""
        if ctx is None or not ctx.in_class:
            return SymbolKind.FUNCTION, "public"
        if name == ctx.class_name:
            return SymbolKind.CONSTRUCTOR, ctx.current_access
        if name.startswith("~"):
            return SymbolKind.DESTRUCTOR, ctx.current_access
        if "operator" in name:
            return SymbolKind.OPERATOR, ctx.current_access
        return SymbolKind.METHOD, ctx.current_access

    @staticmethod
    def _qualifiers(node: ASTNode, declarator: ASTNode) -> list[str]:
        qualifiers = []
        if node.find_child("virtual", "virtual_function_specifier") is not None:
            qualifiers.append("virtual")

        specifiers = [c for c in declarator.children if c.type == "virtual_specifier"]
        specifiers += [c for c in node.children if c.type == "virtual_specifier"]
        tokens = set()
        for specifier in specifiers:
            tokens.update(c.type for c in specifier.children)
            tokens.update(specifier.value.split())
        if "override" in tokens:
            qualifiers.append("override")
        if "final" in tokens:
            qualifiers.append("final")

        children = node.children
        for i, child in enumerate(children):
            if child.type == "pure_virtual_clause":
                qualifiers.append("pure virtual")
                break
            if (child.type == "=" and i + 1 < len(children)
                    and children[i + 1].type == "number_literal"
                    and children[i + 1].value.strip() == "0"):
                qualifiers.append("pure virtual")
                break
        return qualifiers

    def _template_symbol(self, node: ASTNode, file_path: str) -> Symbol:
        name = "template"
        specialization = ""
        for child in node.children:
            if child.type in ("class_specifier", "struct_specifier"):
                templ = child.find_child("template_type")
                if templ is not None:
                    specialization = templ.value
                name = _type_name(child) or name
                break
            if child.type in FUNCTION_NODES:
                declarator = _find_function_declarator(child)
                if declarator is not None:
                    name = _function_name(declarator)
                    break

        params = node.find_child("template_parameter_list")
        signature = params.value if params is not None else "template<>"
        if specialization:
            signature += f" (specialization: {specialization})"
        return make_symbol(node, name, SymbolKind.TEMPLATE, file_path, self.language,
                           signature=signature)

    @staticmethod
    def _namespace_name(node: ASTNode) -> str:
        ident = node.find_child("namespace_identifier", "identifier")
        return ident.value if ident is not None else ""
