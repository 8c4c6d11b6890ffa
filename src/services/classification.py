# --------------------------- src/services/classification.py ----------------------------
"""
Inquiry Router · Product Category Classifier

OVERVIEW:
Maps an inquiry's subject line and sender company to one of a fixed set of
product/service categories using ordered keyword tables.

CLASSIFICATION ORDER:
1. First category in the subject table with a keyword found in the subject
2. First category in the industry table with a keyword found in the company
3. The default category ("General Inquiry")

The keyword tables are configuration data (config/product_categories.json),
so adding a category does not require a code change. Matching is plain
lower-cased substring search: deterministic, no I/O.
"""

from typing import Dict, List, Optional

from config import settings

KeywordTable = Dict[str, List[str]]


class CategoryClassifier:
    def __init__(self, subject_keywords: KeywordTable, industry_keywords: KeywordTable,
                 default_category: str = "General Inquiry"):
        self.subject_keywords = subject_keywords
        self.industry_keywords = industry_keywords
        self.default_category = default_category

    @classmethod
    def from_settings(cls, categories: Optional[dict] = None) -> "CategoryClassifier":
        categories = categories or settings.PRODUCT_CATEGORIES
        return cls(
            subject_keywords=categories.get("subject_keywords", {}),
            industry_keywords=categories.get("industry_keywords", {}),
            default_category=categories.get("default_category", settings.DEFAULT_PRODUCT_CATEGORY),
        )

    @property
    def categories(self) -> List[str]:
        return list(self.subject_keywords)

    @staticmethod
    def _first_match(text: str, table: KeywordTable) -> Optional[str]:
        for category, keywords in table.items():
            if any(keyword in text for keyword in keywords):
                return category
        return None

    def determine_product_category(self, subject: str, company_name: str) -> str:
        return (
            self._first_match((subject or "").lower(), self.subject_keywords)
            or self._first_match((company_name or "").lower(), self.industry_keywords)
            or self.default_category
        )
