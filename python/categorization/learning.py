"""
Rule Learning Module

Creates and strengthens user rules from reviewer-approved categorizations,
and weakens user rules that a correction contradicts.
"""

import logging
import re
from dataclasses import dataclass, replace
from datetime import datetime
from pathlib import Path

import yaml

from receipt_processor.extractor import UNKNOWN_MERCHANT, Receipt
from statement_processor.base import BankTransaction

from .rules import (
    Category,
    CategoryRule,
    ConfidenceLevel,
    RuleMetadata,
    RuleOrigin,
    RuleStore,
    new_rule_id,
)

logger = logging.getLogger(__name__)


@dataclass
class TrainingOptions:
    """Reviewer choices that accompany an approval."""

    create_rule: bool = True
    bulk_training: bool = False
    recurring: bool = False
    apply_to_similar: bool = False
    confidence_level: ConfidenceLevel = ConfidenceLevel.MEDIUM

    def to_dict(self) -> dict:
        return {
            "create_rule": self.create_rule,
            "bulk_training": self.bulk_training,
            "recurring": self.recurring,
            "apply_to_similar": self.apply_to_similar,
            "confidence_level": self.confidence_level.value,
        }


class RuleLearner:
    """Learns user rules from approved matches."""

    BASE_CONFIDENCE = {
        ConfidenceLevel.LOW: 0.5,
        ConfidenceLevel.MEDIUM: 0.7,
        ConfidenceLevel.HIGH: 0.9,
    }
    RECURRING_BOOST = 0.1
    BULK_SIMILAR_BOOST = 0.05
    MAX_CONFIDENCE = 0.95

    CORRECTION_PENALTY = 0.1
    MIN_CONFIDENCE = 0.3

    MIN_WORD_LENGTH = 4
    MAX_NOTE_WORDS = 3
    MAX_KEYWORDS = 15
    MAX_PATTERNS = 10
    MAX_NEW_RULE_KEYWORDS = 10
    MAX_NAME_LENGTH = 50
    MAX_NOTES_LENGTH = 200

    NOISE_WORDS = {"training", "system", "transaction", "payment"}

    def __init__(self, config_dir: Path | str | None = None):
        """Initialize the learner.

        Args:
            config_dir: Path to configuration directory
        """
        self.config_dir = Path(config_dir) if config_dir else Path(__file__).parent.parent.parent / "config"
        self.noise_words = set(self.NOISE_WORDS)
        self._load_config()

    def _load_config(self) -> None:
        """Load learning settings."""
        config_file = self.config_dir / "category_rules.yaml"
        if not config_file.exists():
            return

        with open(config_file) as f:
            config = yaml.safe_load(f) or {}

        settings = config.get("learning") or {}
        self.CORRECTION_PENALTY = settings.get("correction_penalty", self.CORRECTION_PENALTY)
        self.MIN_CONFIDENCE = settings.get("min_confidence", self.MIN_CONFIDENCE)
        self.MAX_CONFIDENCE = settings.get("max_confidence", self.MAX_CONFIDENCE)
        self.noise_words |= {w.lower() for w in settings.get("noise_words") or []}

    def learn(
        self,
        transaction: BankTransaction,
        receipt: Receipt | None,
        approved_category: Category | str,
        rules: RuleStore,
        notes: str | None = None,
        options: TrainingOptions | None = None,
        now: datetime | None = None
    ) -> RuleStore:
        """Update the rule set from an approved categorization.

        Args:
            transaction: Approved bank transaction (with its prior category)
            receipt: Matched receipt, if any
            approved_category: Category chosen by the reviewer
            rules: Current rule store
            notes: Free-text reviewer notes
            options: Training options
            now: Timestamp to record (defaults to now)

        Returns:
            New RuleStore, or ``rules`` itself when nothing changed
        """
        options = options or TrainingOptions()
        now = now or datetime.now()
        category = Category.from_value(approved_category)

        merchant = self._merchant_name(receipt)
        keywords = self.extract_keywords(merchant, transaction.description, notes)

        updated = list(rules)
        changed = False

        if options.create_rule and (keywords or merchant):
            confidence = self.training_confidence(options)
            existing = self._find_user_rule(updated, category, keywords, merchant)

            if existing:
                enhanced = self._enhance_rule(existing, keywords, merchant, confidence, notes, options, now)
                updated = [enhanced if r.id == existing.id else r for r in updated]
                logger.info(f"Enhanced user rule {enhanced.name!r} (usage {enhanced.usage_count})")
            else:
                created = self._create_rule(category, keywords, merchant, confidence, notes, options, now)
                updated.append(created)
                logger.info(f"Created user rule {created.name!r}")
            changed = True

        previous = transaction.category or (receipt.category if receipt else None)
        if previous and previous != category:
            penalized = self._penalize(updated, previous, keywords, merchant, now)
            if penalized is not None:
                updated = penalized
                changed = True

        return rules.replace_rules(updated) if changed else rules

    def training_confidence(self, options: TrainingOptions) -> float:
        """Compute the confidence for a rule learned with these options."""
        confidence = self.BASE_CONFIDENCE[options.confidence_level]
        if options.recurring:
            confidence += self.RECURRING_BOOST
        if options.bulk_training and options.apply_to_similar:
            confidence += self.BULK_SIMILAR_BOOST
        return round(min(self.MAX_CONFIDENCE, confidence), 4)

    def extract_keywords(self, merchant: str, description: str, notes: str | None = None) -> list[str]:
        """Collect evidence words from merchant, description and notes.

        Words shorter than MIN_WORD_LENGTH and noise words are dropped; at
        most MAX_NOTE_WORDS come from the notes.
        """
        words = [
            w for w in f"{merchant} {description}".lower().split()
            if len(w) >= self.MIN_WORD_LENGTH
        ]
        if notes:
            note_words = [
                w.strip(".,;:!?\"'()") for w in notes.lower().split()
            ]
            words += [w for w in note_words if len(w) >= self.MIN_WORD_LENGTH][:self.MAX_NOTE_WORDS]

        keywords = []
        for word in words:
            if word not in keywords and word not in self.noise_words:
                keywords.append(word)
        return keywords

    @staticmethod
    def shares_evidence(rule: CategoryRule, keywords: list[str], merchant: str) -> bool:
        """Check whether a rule already covers any of the evidence."""
        for keyword in keywords:
            if keyword in rule.keywords or any(keyword in p for p in rule.patterns):
                return True
        if merchant:
            merchant = merchant.lower()
            return any(merchant in p for p in rule.patterns)
        return False

    def _merchant_name(self, receipt: Receipt | None) -> str:
        if receipt is None or receipt.merchant == UNKNOWN_MERCHANT:
            return ""
        return re.sub(r'\s+', ' ', receipt.merchant).strip()

    def _find_user_rule(
        self,
        rules: list[CategoryRule],
        category: Category,
        keywords: list[str],
        merchant: str
    ) -> CategoryRule | None:
        for rule in rules:
            if rule.is_user and rule.category == category and self.shares_evidence(rule, keywords, merchant):
                return rule
        return None

    def _enhance_rule(
        self,
        rule: CategoryRule,
        keywords: list[str],
        merchant: str,
        confidence: float,
        notes: str | None,
        options: TrainingOptions,
        now: datetime
    ) -> CategoryRule:
        merged_keywords = rule.keywords + [k for k in keywords if k not in rule.keywords]
        patterns = list(rule.patterns)
        if merchant and merchant.lower() not in patterns:
            patterns.append(merchant.lower())

        name = rule.name
        if options.recurring:
            name = _tag(name, "(Recurring)")
        elif options.bulk_training:
            name = _tag(name, "(Bulk Enhanced)")

        metadata = replace(
            rule.metadata,
            is_recurring=options.recurring,
            apply_to_similar=options.apply_to_similar,
            is_bulk_trained=options.bulk_training,
            notes=notes[:self.MAX_NOTES_LENGTH] if notes else rule.metadata.notes,
            last_training_update=now,
        )

        return replace(
            rule,
            name=name,
            keywords=merged_keywords[:self.MAX_KEYWORDS],
            patterns=patterns[:self.MAX_PATTERNS],
            usage_count=rule.usage_count + 1,
            last_used=now,
            confidence=min(self.MAX_CONFIDENCE, max(rule.confidence, confidence)),
            metadata=metadata,
        )

    def _create_rule(
        self,
        category: Category,
        keywords: list[str],
        merchant: str,
        confidence: float,
        notes: str | None,
        options: TrainingOptions,
        now: datetime
    ) -> CategoryRule:
        if options.bulk_training:
            name = f"Bulk Rule - {category.value} ({merchant or 'Multiple'})"
        elif options.recurring:
            name = f"Recurring {category.value} - {merchant or 'User Rule'}"
        else:
            name = f"User Rule - {category.value} ({merchant or 'Custom'})"

        return CategoryRule(
            id=new_rule_id(),
            name=name[:self.MAX_NAME_LENGTH],
            category=category,
            patterns=[merchant.lower()] if merchant else [],
            keywords=keywords[:self.MAX_NEW_RULE_KEYWORDS],
            confidence=confidence,
            created_by=RuleOrigin.USER,
            usage_count=1,
            last_used=now,
            metadata=RuleMetadata(
                is_recurring=options.recurring,
                apply_to_similar=options.apply_to_similar,
                is_bulk_trained=options.bulk_training,
                confidence_level=options.confidence_level,
                notes=notes[:self.MAX_NOTES_LENGTH] if notes else None,
                created_from_training=True,
            ),
        )

    def _penalize(
        self,
        rules: list[CategoryRule],
        previous_category: str,
        keywords: list[str],
        merchant: str,
        now: datetime
    ) -> list[CategoryRule] | None:
        """Lower the confidence of user rules behind a corrected category.

        Returns:
            Updated rule list, or None when no rule was affected
        """
        try:
            previous = Category.from_value(previous_category)
        except ValueError:
            return None

        penalized = 0
        result = []
        for rule in rules:
            if rule.is_user and rule.category == previous and self.shares_evidence(rule, keywords, merchant):
                rule = replace(
                    rule,
                    confidence=round(max(self.MIN_CONFIDENCE, rule.confidence - self.CORRECTION_PENALTY), 4),
                    metadata=replace(
                        rule.metadata,
                        correction_count=rule.metadata.correction_count + 1,
                        last_corrected=now,
                    ),
                )
                penalized += 1
            result.append(rule)

        if not penalized:
            return None

        logger.info(f"Penalized {penalized} {previous.value} rule(s) after correction")
        return result


def _tag(name: str, tag: str) -> str:
    return name if tag in name else f"{name} {tag}"
