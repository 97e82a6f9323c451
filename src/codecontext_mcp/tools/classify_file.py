"""Classify a file path by language."""

from typing import Optional

from ..parser.errors import ParserError
from ..parser.manager import ParserManager


def classify_file(file_path: str, manager: Optional[ParserManager] = None) -> dict:
    """Classify a file by extension, with generated/test heuristics.

    Args:
        file_path: Path of the file (it does not need to exist)
        manager: Parser manager to use (a default one when omitted)

    Returns:
        Dict with classification, or error
    """
    manager = manager or ParserManager()
    try:
        result = manager.classify(file_path)
    except ParserError as e:
        return {"error": str(e)}

    return {
        "file": file_path,
        "language": result.language.name,
        "display_name": result.language.display_name,
        "parser": result.language.parser,
        "file_type": result.file_type,
        "is_generated": result.is_generated,
        "is_test": result.is_test,
    }
