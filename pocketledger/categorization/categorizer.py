"""
Merchant Categorizer

Suggests a category for a transaction from its merchant text using ordered
keyword rules. The first rule whose keyword appears (case-insensitively)
anywhere in the text wins.

DESIGN DECISION: This is a pure function of the text and the rule list.
No I/O, no learning, no state. The same input always gives the same
suggestion, so it is safe to call on every keystroke.
"""

from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


UNCATEGORIZED = "Uncategorized"

DEFAULT_CONFIDENCE = 0.75


class KeywordRule(BaseModel):
    """Merchant text containing `keyword` suggests `category_name`."""
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    keyword: str = Field(..., min_length=1)
    category_name: str = Field(..., min_length=1)
    confidence: float = Field(default=DEFAULT_CONFIDENCE, ge=0.0, le=1.0)

    @field_validator('keyword')
    @classmethod
    def lower_keyword(cls, v: str) -> str:
        return v.casefold()


class CategorySuggestion(BaseModel):
    """Categorizer's suggestion for a merchant."""
    model_config = ConfigDict(frozen=True)

    category_name: str
    confidence: float = Field(ge=0.0, le=1.0)
    matched_keyword: Optional[str] = None
    reasoning: str = ""

    @property
    def is_uncategorized(self) -> bool:
        return self.category_name == UNCATEGORIZED


def _rules(category_name: str, *keywords: str) -> list[KeywordRule]:
    return [KeywordRule(keyword=k, category_name=category_name) for k in keywords]


DEFAULT_RULES: list[KeywordRule] = [
    *_rules("Food & Dining", "restaurant", "cafe", "pizza", "burger"),
    *_rules("Transportation", "uber", "lyft", "gas", "shell"),
    *_rules("Shopping", "amazon", "walmart", "target", "store"),
    *_rules("Entertainment", "netflix", "spotify", "movie", "theater"),
]


class KeywordCategorizer:
    """
    Ordered keyword matcher.

    Example:
        >>> KeywordCategorizer().suggest("Joe's Pizza").category_name
        'Food & Dining'
    """

    def __init__(self, rules: Optional[Iterable[KeywordRule]] = None):
        self._rules = tuple(DEFAULT_RULES if rules is None else rules)

    @property
    def rules(self) -> tuple[KeywordRule, ...]:
        return self._rules

    def suggest(self, merchant_text: str) -> CategorySuggestion:
        text = (merchant_text or "").casefold()
        if text.strip():
            for rule in self._rules:
                if rule.keyword in text:
                    return CategorySuggestion(
                        category_name=rule.category_name,
                        confidence=rule.confidence,
                        matched_keyword=rule.keyword,
                        reasoning=f"Merchant contains '{rule.keyword}'",
                    )

        return CategorySuggestion(
            category_name=UNCATEGORIZED,
            confidence=0.0,
            reasoning="No keyword matched",
        )
