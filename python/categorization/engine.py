"""
Categorization Engine Module

Classifies merchant names and transaction descriptions using a
confidence-weighted rule set.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

import yaml

from receipt_processor.extractor import UNKNOWN_MERCHANT, Receipt
from statement_processor.base import BankTransaction

from .rules import Category, CategoryRule, EmptyRuleSetError, RuleStore

logger = logging.getLogger(__name__)


@dataclass
class CategorizationMatch:
    """Winning rule for a piece of text."""

    category: Category
    confidence: float
    rule: CategoryRule
    method: str  # 'pattern' or 'keyword'
    source: str = "text"  # 'merchant', 'description' or 'text'

    def to_dict(self) -> dict:
        return {
            "category": self.category.value,
            "confidence": round(self.confidence, 4),
            "rule_id": self.rule.id,
            "rule_name": self.rule.name,
            "method": self.method,
            "source": self.source,
        }


class CategorizationEngine:
    """Rule-based categorizer with a minimum-confidence floor."""

    # Below this confidence no category is returned
    MIN_CONFIDENCE = 0.5
    # Keyword hits never exceed this share of the rule confidence
    KEYWORD_WEIGHT = 0.7

    def __init__(self, config_dir: Path | str | None = None):
        """Initialize the engine.

        Args:
            config_dir: Path to configuration directory
        """
        self.config_dir = Path(config_dir) if config_dir else Path(__file__).parent.parent.parent / "config"
        self._load_config()

    def _load_config(self) -> None:
        """Load engine thresholds."""
        config_file = self.config_dir / "category_rules.yaml"
        if not config_file.exists():
            return

        with open(config_file) as f:
            config = yaml.safe_load(f) or {}

        settings = config.get("engine") or {}
        self.MIN_CONFIDENCE = settings.get("min_confidence", self.MIN_CONFIDENCE)
        self.KEYWORD_WEIGHT = settings.get("keyword_weight", self.KEYWORD_WEIGHT)

    def score_rule(self, text: str, rule: CategoryRule) -> tuple[float, str] | None:
        """Score one rule against normalized text.

        A pattern hit yields the rule confidence. Otherwise keyword hits
        scale with density and are capped below the pattern confidence.

        Returns:
            (confidence, method) or None if nothing hit
        """
        if any(p and p.lower() in text for p in rule.patterns):
            return rule.confidence, "pattern"

        hits = sum(1 for k in rule.keywords if k and k.lower() in text)
        if hits:
            confidence = min(
                rule.confidence * self.KEYWORD_WEIGHT,
                hits / len(rule.keywords) * rule.confidence
            )
            return confidence, "keyword"

        return None

    def categorize(
        self,
        text: str,
        rules: RuleStore | Iterable[CategoryRule]
    ) -> CategorizationMatch | None:
        """Categorize a merchant name or description.

        Args:
            text: Merchant name or transaction description
            rules: Rule set to evaluate (first rule wins ties)

        Returns:
            CategorizationMatch, or None below the confidence floor

        Raises:
            EmptyRuleSetError: If the rule set is empty
        """
        rules = list(rules)
        if not rules:
            raise EmptyRuleSetError("Cannot categorize without any rules")

        normalized = (text or "").lower().strip()
        if not normalized:
            return None

        best: CategorizationMatch | None = None
        for rule in rules:
            scored = self.score_rule(normalized, rule)
            if scored is None:
                continue
            confidence, method = scored
            if best is None or confidence > best.confidence:
                best = CategorizationMatch(
                    category=rule.category,
                    confidence=confidence,
                    rule=rule,
                    method=method,
                )

        if best and best.confidence >= self.MIN_CONFIDENCE:
            return best
        return None

    def categorize_pair(
        self,
        transaction: BankTransaction,
        receipt: Receipt | None,
        rules: RuleStore | Iterable[CategoryRule]
    ) -> CategorizationMatch | None:
        """Categorize a transaction, preferring its receipt's merchant.

        The receipt merchant and the transaction description are scored
        separately and the more confident result is kept (merchant on ties).

        Returns:
            CategorizationMatch or None
        """
        rules = list(rules)
        candidates = []

        if receipt and receipt.merchant and receipt.merchant != UNKNOWN_MERCHANT:
            candidates.append(("merchant", receipt.merchant))
        candidates.append(("description", transaction.description))

        best: CategorizationMatch | None = None
        for source, text in candidates:
            match = self.categorize(text, rules)
            if match and (best is None or match.confidence > best.confidence):
                match.source = source
                best = match

        if best:
            logger.debug(
                f"Categorized {transaction.id} as {best.category.value} "
                f"({best.confidence:.2f} via {best.rule.name})"
            )
        return best
