"""Merchant text categorization."""

from pocketledger.categorization.categorizer import (
    DEFAULT_RULES,
    UNCATEGORIZED,
    CategorySuggestion,
    KeywordCategorizer,
    KeywordRule,
)

__all__ = [
    "DEFAULT_RULES",
    "UNCATEGORIZED",
    "CategorySuggestion",
    "KeywordCategorizer",
    "KeywordRule",
]
