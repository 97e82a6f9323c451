"""Flutter analysis of Dart source: widgets, state management and lifecycle usage."""

import math
import re
from dataclasses import asdict, dataclass, field

from .symbols import ASTNode


FLUTTER_IMPORT = re.compile(r"""import\s+['"]package:flutter/""")
UI_FRAMEWORK_IMPORTS = (
    ("material", re.compile(r"""import\s+['"]package:flutter/material\.dart['"]""")),
    ("cupertino", re.compile(r"""import\s+['"]package:flutter/cupertino\.dart['"]""")),
    ("widgets", re.compile(r"""import\s+['"]package:flutter/widgets\.dart['"]""")),
)

# Widget kinds in reporting order
WIDGET_PATTERNS = (
    ("stateless", re.compile(r"class\s+(\w+)\s+extends\s+StatelessWidget\b")),
    ("consumer", re.compile(r"class\s+(\w+)\s+extends\s+Consumer(?:Stateful)?Widget\b")),
    ("hook", re.compile(r"class\s+(\w+)\s+extends\s+Hook(?:Consumer)?Widget\b")),
    ("stateful", re.compile(r"class\s+(\w+)\s+extends\s+StatefulWidget\b")),
    ("state", re.compile(r"class\s+(\w+)\s+extends\s+(?:Consumer)?State<")),
)
BUILD_METHOD = re.compile(r"@override\s+Widget\s+build\s*\(\s*BuildContext\s+\w+\s*\)")
BUILD_METHOD_SIMPLE = re.compile(r"Widget\s+build\s*\(\s*BuildContext\s+\w+\s*\)")
BUILD_HELPER = re.compile(r"Widget\s+(_\w+)\s*\([^)]*\)\s*(?:\{|=>)")
OVERRIDE = re.compile(r"@override\b")

LIFECYCLE_PATTERNS = (
    ("initState", re.compile(r"\bvoid\s+initState\s*\(")),
    ("didChangeDependencies", re.compile(r"\bvoid\s+didChangeDependencies\s*\(")),
    ("didUpdateWidget", re.compile(r"\bvoid\s+didUpdateWidget\s*\(")),
    ("dispose", re.compile(r"\bvoid\s+dispose\s*\(")),
)

FEATURE_WIDGETS = (
    "MaterialApp", "CupertinoApp", "Scaffold", "AppBar", "FloatingActionButton",
    "Container", "Column", "Row", "Text", "ElevatedButton", "TextButton", "ListView",
)
NAVIGATION = re.compile(r"\bNavigator\.\w+|\bpushNamed\s*\(|\bGoRouter\b|\bcontext\.go\s*\(")

# Checked in priority order
STATE_MANAGEMENT = (
    ("riverpod", re.compile(r"""import\s+['"]package:(?:flutter_|hooks_)?riverpod/""")),
    ("bloc", re.compile(r"""import\s+['"]package:(?:flutter_)?bloc/""")),
    ("provider", re.compile(r"""import\s+['"]package:provider/""")),
    ("getx", re.compile(r"""import\s+['"]package:get/""")),
)


@dataclass
class FlutterWidget:
    """A widget or state class found in the source."""
    name: str
    type: str                       # "stateless" | "stateful" | "state" | "consumer" | "hook"
    has_build_method: bool = False


@dataclass
class FlutterAnalysis:
    """Result of analyze_flutter()."""
    is_flutter: bool = False
    framework: str = "none"         # "flutter" | "none"
    ui_framework: str = "none"      # "material" | "cupertino" | "widgets" | "none"
    widgets: list[FlutterWidget] = field(default_factory=list)
    state_management: str = "none"
    features: list[str] = field(default_factory=list)
    has_navigation: bool = False
    lifecycle_methods: list[str] = field(default_factory=list)
    composition_depth: int = 0
    build_helpers: list[str] = field(default_factory=list)
    has_override: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


def analyze_flutter(content: str) -> FlutterAnalysis:
    """Analyze Dart source for Flutter usage.

    Returns an analysis with ``is_flutter`` False when the file does not
    import a ``package:flutter/`` library.
    """
    analysis = FlutterAnalysis()
    if not FLUTTER_IMPORT.search(content):
        return analysis

    analysis.is_flutter = True
    analysis.framework = "flutter"
    for name, pattern in UI_FRAMEWORK_IMPORTS:
        if pattern.search(content):
            analysis.ui_framework = name
            break

    has_build = bool(BUILD_METHOD.search(content) or BUILD_METHOD_SIMPLE.search(content))
    seen = set()
    for kind, pattern in WIDGET_PATTERNS:
        for match in pattern.finditer(content):
            name = match.group(1)
            if name in seen:
                continue
            seen.add(name)
            analysis.widgets.append(FlutterWidget(
                name=name,
                type=kind,
                has_build_method=has_build and kind != "stateful",
            ))

    analysis.state_management = detect_state_management(content)
    analysis.features = [w for w in FEATURE_WIDGETS if re.search(rf"\b{w}\s*\(", content)]
    analysis.has_navigation = bool(NAVIGATION.search(content))
    analysis.lifecycle_methods = [
        name for name, pattern in LIFECYCLE_PATTERNS if pattern.search(content)
    ]
    if analysis.widgets:
        analysis.composition_depth = max(1, math.ceil(len(analysis.widgets) / 3))
    analysis.build_helpers = BUILD_HELPER.findall(content)
    analysis.has_override = bool(OVERRIDE.search(content))
    return analysis


def detect_state_management(content: str) -> str:
    """Return the first state-management approach found, by priority."""
    for name, pattern in STATE_MANAGEMENT:
        if pattern.search(content):
            return name
    if "setState(" in content or "setState (" in content:
        return "setState"
    return "none"


def integrate_flutter_analysis(root: ASTNode, analysis: FlutterAnalysis) -> None:
    """Write the analysis onto the AST root metadata (Flutter files only)."""
    if not analysis.is_flutter:
        return
    root.metadata["flutter_analysis"] = analysis.to_dict()
    root.metadata["has_flutter"] = True
    root.metadata["flutter_framework"] = analysis.ui_framework
    root.metadata["state_management"] = analysis.state_management
    root.metadata["has_navigation"] = analysis.has_navigation
