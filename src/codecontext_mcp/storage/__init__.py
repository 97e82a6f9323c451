"""Storage package for the in-memory AST cache."""

from .cache import ASTCache, CacheEntry, CacheStats

__all__ = ["ASTCache", "CacheEntry", "CacheStats"]
