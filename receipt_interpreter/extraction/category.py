"""
Category Classifier

Suggests a spending category from keywords in the receipt text.

DESIGN DECISION: We use simple keyword matching rather than ML because:
1. More transparent to user
2. Easier to debug
3. User confirms anyway

Each row of the table scores matched / total keywords x base confidence,
with a x1.2 bonus when more than one keyword matched. Rows are kept
short so a handful of strong words is enough to clear the threshold;
a category may have several rows.
"""

import re
from typing import NamedTuple, Optional

from receipt_interpreter.config import ExtractionSettings, get_settings
from receipt_interpreter.models.receipt import CategoryMatch, ExpenseCategory


MULTI_MATCH_BONUS = 1.2


class CategoryRule(NamedTuple):
    keywords: tuple[str, ...]
    category: ExpenseCategory
    base_confidence: float


CATEGORY_RULES: list[CategoryRule] = [
    # Food & Dining (highest priority for common terms)
    CategoryRule(
        ("kfc", "mcdonalds", "subway", "dominos", "burger", "pizza", "lunch", "dinner", "breakfast"),
        ExpenseCategory.FOOD_AND_DINING,
        0.9,
    ),
    CategoryRule(
        ("restaurant", "cafe", "food", "dining", "meal", "coffee", "tea", "bakery", "hotel", "bar"),
        ExpenseCategory.FOOD_AND_DINING,
        0.9,
    ),
    # Transportation
    CategoryRule(
        ("taxi", "uber", "pickme", "bus", "train", "transport", "parking", "toll"),
        ExpenseCategory.TRANSPORTATION,
        0.85,
    ),
    CategoryRule(
        ("fuel", "petrol", "diesel", "ceypetco", "ioc", "litres", "pump"),
        ExpenseCategory.TRANSPORTATION,
        0.85,
    ),
    # Shopping
    CategoryRule(
        ("mall", "shop", "store", "market", "supermarket", "purchase", "shopping"),
        ExpenseCategory.SHOPPING,
        0.8,
    ),
    CategoryRule(
        ("keells", "cargills", "arpico", "food city", "glomark", "laugfs"),
        ExpenseCategory.SHOPPING,
        0.8,
    ),
    # Utilities
    CategoryRule(
        ("electricity", "water", "internet", "utility", "ceb", "broadband"),
        ExpenseCategory.UTILITIES,
        0.85,
    ),
    CategoryRule(
        ("dialog", "mobitel", "hutch", "airtel", "reload", "mobile bill"),
        ExpenseCategory.UTILITIES,
        0.85,
    ),
    # Healthcare
    CategoryRule(
        ("hospital", "pharmacy", "doctor", "medical", "clinic", "medicine", "osusala", "health", "prescription"),
        ExpenseCategory.HEALTHCARE,
        0.85,
    ),
    # Entertainment
    CategoryRule(
        ("cinema", "movie", "theater", "theatre", "game", "entertainment", "majestic", "scope", "ticket"),
        ExpenseCategory.ENTERTAINMENT,
        0.8,
    ),
    # Education
    CategoryRule(
        ("school", "college", "university", "education", "book", "course", "tuition", "fees"),
        ExpenseCategory.EDUCATION,
        0.8,
    ),
]


def _keyword_pattern(keyword: str) -> re.Pattern:
    """Whole-word pattern; spaces in a phrase match any whitespace run."""
    body = r"\s+".join(re.escape(part) for part in keyword.split())
    return re.compile(rf"(?<!\w){body}(?!\w)")


_COMPILED_RULES = [
    (rule, [_keyword_pattern(keyword) for keyword in rule.keywords])
    for rule in CATEGORY_RULES
]


class CategoryClassifier:
    """Deterministic keyword-table classifier."""

    def __init__(self, settings: Optional[ExtractionSettings] = None):
        self._settings = settings or get_settings().extraction

    @staticmethod
    def score(text: str, rule: CategoryRule, patterns: list[re.Pattern]) -> float:
        """Score one rule against already-lowercased text."""
        matched = sum(1 for pattern in patterns if pattern.search(text))
        if matched == 0:
            return 0.0

        score = matched / len(rule.keywords) * rule.base_confidence
        if matched > 1:
            score *= MULTI_MATCH_BONUS
        return score

    def classify(self, text: str) -> CategoryMatch:
        """
        Suggest a category for the text.

        Returns a CategoryMatch with category None when the best score
        does not clear category_min_confidence.
        """
        lowered = text.lower()

        best_rule: Optional[CategoryRule] = None
        best_score = 0.0
        for rule, patterns in _COMPILED_RULES:
            score = self.score(lowered, rule, patterns)
            if score > best_score:
                best_rule, best_score = rule, score

        if best_rule is None or best_score <= self._settings.category_min_confidence:
            return CategoryMatch(category=None, confidence=0.0)

        return CategoryMatch(category=best_rule.category, confidence=min(best_score, 1.0))
