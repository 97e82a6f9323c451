"""List the languages the parser manager can handle."""

from typing import Optional

from ..parser.manager import ParserManager


def list_languages(manager: Optional[ParserManager] = None) -> dict:
    """List registered languages with their extensions.

    Args:
        manager: Parser manager to query (a default one when omitted)

    Returns:
        Dict with count and language descriptors
    """
    manager = manager or ParserManager()
    languages = [lang.to_dict() for lang in manager.supported_languages()]
    return {
        "count": len(languages),
        "languages": languages,
    }
