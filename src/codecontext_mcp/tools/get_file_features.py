"""Get the feature flags and analysis recorded on a parsed file."""

from typing import Optional

from ..parser.errors import ParserError
from ..parser.manager import ParserManager


def get_file_features(
    file_path: str,
    content: Optional[str] = None,
    language: Optional[str] = None,
    manager: Optional[ParserManager] = None,
) -> dict:
    """Parse a file and return its root metadata.

    Covers C++ feature flags, Dart strategy/async/Flutter analysis and
    Swift framework flags and feature counts.

    Args:
        file_path: Path to the file (read from disk unless content is given)
        content: Source text to parse instead of the file on disk
        language: Language name; defaults to the file's classification
        manager: Parser manager to use (a default one when omitted)

    Returns:
        Dict with the root metadata, or error
    """
    manager = manager or ParserManager()
    try:
        ast = manager.parse_file(file_path, content=content, language=language)
    except ParserError as e:
        return {"error": str(e)}
    except OSError as e:
        return {"error": f"Could not read file: {e}"}

    return {
        "file": file_path,
        "language": ast.language,
        "hash": ast.hash,
        "features": dict(ast.root.metadata),
    }
