"""Get file outline - symbols in a specific file."""

from typing import Optional

from ..parser.errors import ParserError
from ..parser.hierarchy import build_symbol_tree
from ..parser.manager import ParserManager


def get_file_outline(
    file_path: str,
    content: Optional[str] = None,
    language: Optional[str] = None,
    manager: Optional[ParserManager] = None,
) -> dict:
    """Get symbols in a file with hierarchical structure.

    Args:
        file_path: Path to the file (read from disk unless content is given)
        content: Source text to parse instead of the file on disk
        language: Language name; defaults to the file's classification
        manager: Parser manager to use (a default one when omitted)

    Returns:
        Dict with symbols outline, or error
    """
    manager = manager or ParserManager()
    try:
        ast = manager.parse_file(file_path, content=content, language=language)
        symbols = manager.extract_symbols(ast)
    except ParserError as e:
        return {"error": str(e)}
    except OSError as e:
        return {"error": f"Could not read file: {e}"}

    tree = build_symbol_tree(symbols)
    return {
        "file": file_path,
        "language": ast.language,
        "symbol_count": len(symbols),
        "symbols": [node.to_dict() for node in tree],
    }
