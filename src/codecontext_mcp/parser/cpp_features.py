"""C++ feature flags: AST node types first, then a pattern pass over the source."""

import re
from typing import Iterable

from .symbols import ASTNode


CORE_FEATURES = (
    "has_classes", "has_structs", "has_functions", "has_namespaces",
    "has_constructors", "has_destructors", "has_inheritance", "has_includes",
)
P1_FEATURES = (
    "has_templates", "has_auto_keyword", "has_lambdas", "has_range_for",
    "has_smart_pointers", "has_constexpr", "has_operator_overload",
)
P2_FEATURES = (
    "has_concepts", "has_structured_binding", "has_if_constexpr",
    "has_coroutines", "has_modules",
)
FRAMEWORK_FEATURES = ("has_qt", "has_boost", "has_opencv", "has_unreal", "has_stl")
SPECIAL_MEMBER_FEATURES = (
    "has_copy_constructor", "has_move_constructor", "has_copy_assignment",
    "has_move_assignment", "has_default_constructor", "has_explicit_constructor",
    "has_constexpr_constructor",
)

ALL_FEATURES = (
    CORE_FEATURES + P1_FEATURES + P2_FEATURES + FRAMEWORK_FEATURES + SPECIAL_MEMBER_FEATURES
)

# Node type -> flag set directly by the AST pass
_NODE_FLAGS = {
    "class_specifier": "has_classes",
    "struct_specifier": "has_structs",
    "function_definition": "has_functions",
    "namespace_definition": "has_namespaces",
    "preproc_include": "has_includes",
    "template_declaration": "has_templates",
    "base_class_clause": "has_inheritance",
    "lambda_expression": "has_lambdas",
    "for_range_loop": "has_range_for",
    "operator_name": "has_operator_overload",
    "concept_definition": "has_concepts",
    "structured_binding_declarator": "has_structured_binding",
    "co_await_expression": "has_coroutines",
    "co_return_statement": "has_coroutines",
    "co_yield_statement": "has_coroutines",
}

_FRAMEWORK_TOKENS = {
    "has_qt": ("#include <Q", "QObject", "Q_OBJECT", "SIGNAL(", "SLOT("),
    "has_boost": ("#include <boost/", "boost::", "BOOST_"),
    "has_opencv": ("#include <opencv2/", "cv::"),
    "has_unreal": ("UCLASS(", "UFUNCTION(", "UPROPERTY(", '#include "CoreMinimal.h"'),
    "has_stl": (
        "std::", "#include <vector>", "#include <string>", "#include <memory>",
        "#include <map>", "#include <algorithm>",
    ),
}

_SMART_POINTERS = ("unique_ptr", "shared_ptr", "weak_ptr", "make_unique", "make_shared")

_DESTRUCTOR_CANDIDATE = re.compile(r"~\s*\w+\s*\(")
_MODULE_DECL = re.compile(r"^\s*(?:export\s+)?module\s+[\w.:]+\s*;", re.MULTILINE)
_MODULE_IMPORT = re.compile(r"^\s*(?:export\s+)?import\s+[\w.:<\"]", re.MULTILINE)
_STRUCTURED_BINDING = re.compile(r"\bauto\s*&{0,2}\s*\[[\w\s,]+\]\s*[=:]")


class PatternValidator:
    """Line filter built from include and exclude substrings.

    A line is rejected if it starts with ``//`` or ``#`` or contains any
    exclude substring; otherwise it is accepted if it contains any include
    substring.
    """

    def __init__(self, include: Iterable[str], exclude: Iterable[str] = ()):
        self.include = tuple(include)
        self.exclude = tuple(exclude)

    def validate_line(self, line: str) -> bool:
        stripped = line.strip()
        if not stripped or stripped.startswith("//") or stripped.startswith("#"):
            return False
        if any(pattern in stripped for pattern in self.exclude):
            return False
        return any(pattern in stripped for pattern in self.include)

    def validate_lines(self, lines: Iterable[str]) -> bool:
        return any(self.validate_line(line) for line in lines)


CONSTRUCTOR_VALIDATOR = PatternValidator(
    include=[" : ", "{}", "= default", "= delete", "explicit ", "constexpr ", "noexcept", "[["],
    exclude=[
        "return ", "if (", "while (", "for (", "switch (", "sizeof(", "typeof(",
        "decltype(", "#define", "#include", "new ",
    ],
)

DESTRUCTOR_VALIDATOR = PatternValidator(
    include=["virtual ~", "~", "= default", "= delete", "noexcept"],
    exclude=[
        "return ", "if (", "while (", "for (", "switch (",
        "& ~", "| ~", "^ ~", "= ~", "( ~",
    ],
)


def _code_lines(content: str) -> list[str]:
    """Source lines that are not comments or preprocessor directives."""
    result = []
    for line in content.splitlines():
        stripped = line.strip()
        if stripped and not stripped.startswith("//") and not stripped.startswith("#"):
            result.append(stripped)
    return result


def _scan_ast(
    root: ASTNode,
    features: dict,
    class_names: list[str],
    declarator_names: list[str],
    max_classes: int,
) -> None:
    for node in root.walk():
        flag = _NODE_FLAGS.get(node.type)
        if flag:
            features[flag] = True

        if node.type in ("class_specifier", "struct_specifier"):
            if node.find_child("field_declaration_list") is not None:
                name = node.find_child("type_identifier")
                if name is not None and len(class_names) < max_classes:
                    class_names.append(name.value)
        elif node.type == "function_declarator" and node.children:
            declarator_names.append(node.children[0].value.rsplit("::", 1)[-1])
        elif node.type == "destructor_name":
            features["has_destructors"] = True
        elif node.type == "if_statement":
            if node.find_child("constexpr") is not None:
                features["has_if_constexpr"] = True
        elif node.type in ("auto", "placeholder_type_specifier"):
            features["has_auto_keyword"] = True


def _scan_constructors(content: str, lines: list[str], class_names: list[str], features: dict) -> None:
    for cls in class_names:
        name = re.escape(cls)
        call = re.compile(rf"(?<![\w~:.>]){name}\s*\(")
        candidates = [ln for ln in lines if "~" not in ln and call.search(ln)]
        if candidates and CONSTRUCTOR_VALIDATOR.validate_lines(candidates):
            features["has_constructors"] = True

        checks = {
            "has_copy_constructor": rf"\b{name}\s*\(\s*const\s+{name}\s*&(?!&)",
            "has_move_constructor": rf"\b{name}\s*\(\s*{name}\s*&&",
            "has_copy_assignment": rf"\boperator\s*=\s*\(\s*const\s+{name}\s*&(?!&)",
            "has_move_assignment": rf"\boperator\s*=\s*\(\s*{name}\s*&&",
            "has_default_constructor": rf"^\s*(?:(?:explicit|constexpr|inline)\s+)*{name}\s*\(\s*\)",
            "has_explicit_constructor": rf"\bexplicit\s+(?:constexpr\s+)?{name}\s*\(",
            "has_constexpr_constructor": rf"\bconstexpr\s+(?:explicit\s+)?{name}\s*\(",
        }
        for flag, pattern in checks.items():
            if not features[flag] and re.search(pattern, content, re.MULTILINE):
                features[flag] = True

    if features["has_copy_constructor"] or features["has_move_constructor"]:
        features["has_constructors"] = True


def _scan_patterns(content: str, lines: list[str], features: dict) -> None:
    if not features["has_destructors"]:
        candidates = [ln for ln in lines if _DESTRUCTOR_CANDIDATE.search(ln)]
        features["has_destructors"] = DESTRUCTOR_VALIDATOR.validate_lines(candidates)

    if not features["has_inheritance"]:
        features["has_inheritance"] = any(
            " : " in ln and ("class " in ln or "struct " in ln) for ln in lines
        )
    if not features["has_auto_keyword"]:
        features["has_auto_keyword"] = any(re.search(r"\bauto\b", ln) for ln in lines)
    if not features["has_constexpr"]:
        features["has_constexpr"] = any("constexpr" in ln for ln in lines)
    if not features["has_operator_overload"]:
        features["has_operator_overload"] = any(
            re.search(r"\boperator\s*(?:[^\w\s]+|\(\)|\[\]|new\b|delete\b)\s*\(", ln) for ln in lines
        )
    if not features["has_lambdas"]:
        features["has_lambdas"] = any(
            "[" in ln and "](" in ln and ("{" in ln or "->" in ln) for ln in lines
        )
    if not features["has_range_for"]:
        features["has_range_for"] = any(
            "for (" in ln and " : " in ln and "for (;;" not in ln for ln in lines
        )
    features["has_smart_pointers"] = any(ptr in content for ptr in _SMART_POINTERS)

    if not features["has_concepts"]:
        features["has_concepts"] = any(
            "concept " in ln
            and ("requires" in ln or "std::integral" in ln or "std::floating_point" in ln or "= " in ln)
            for ln in lines
        )
    if not features["has_structured_binding"]:
        features["has_structured_binding"] = any(
            ("auto [" in ln and "] =" in ln) or _STRUCTURED_BINDING.search(ln) for ln in lines
        )
    if not features["has_if_constexpr"]:
        features["has_if_constexpr"] = any("if constexpr" in ln for ln in lines)
    if not features["has_coroutines"]:
        features["has_coroutines"] = any(re.search(r"\bco_(?:await|return|yield)\b", ln) for ln in lines)

    features["has_modules"] = bool(_MODULE_DECL.search(content)) or (
        "#include" not in content and bool(_MODULE_IMPORT.search(content))
    )

    for flag, tokens in _FRAMEWORK_TOKENS.items():
        features[flag] = any(token in content for token in tokens)


def detect_cpp_features(root: ASTNode, content: str, max_classes: int = 1000) -> dict[str, bool]:
    """Compute the C++ feature flags for a converted AST.

    Args:
        root: Root of the converted AST
        content: Original source
        max_classes: Upper bound on class names used for constructor heuristics

    Returns:
        Dict of every flag in ALL_FEATURES
    """
    features = {name: False for name in ALL_FEATURES}
    class_names: list[str] = []
    declarator_names: list[str] = []
    _scan_ast(root, features, class_names, declarator_names, max_classes)
    if set(class_names) & set(declarator_names):
        features["has_constructors"] = True

    lines = _code_lines(content)
    _scan_constructors(content, lines, class_names, features)
    _scan_patterns(content, lines, features)
    return features
