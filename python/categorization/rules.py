"""
Category Rules Module

Category enumeration, categorization rules and the immutable RuleStore that
holds them. System rules ship in config/category_rules.yaml; user rules are
added by reviewers or learned from approved matches.
"""

import logging
import uuid
from collections import Counter
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Iterator

import yaml

logger = logging.getLogger(__name__)


class Category(str, Enum):
    """Spending categories."""
    FOOD_AND_DINING = "Food & Dining"
    TRAVEL_AND_TRANSPORT = "Travel & Transport"
    UTILITIES_AND_BILLS = "Utilities & Bills"
    SHOPPING = "Shopping"
    ENTERTAINMENT = "Entertainment"
    HEALTHCARE = "Healthcare"
    EDUCATION = "Education"
    MISCELLANEOUS = "Miscellaneous"

    @classmethod
    def from_value(cls, value: "Category | str") -> "Category":
        """Resolve a category from its display name or enum name.

        Raises:
            ValueError: If the value names no category
        """
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        for category in cls:
            if text.lower() in (category.value.lower(), category.name.lower()):
                return category
        raise ValueError(f"Unknown category: {value!r}")


class RuleOrigin(str, Enum):
    """Who created a rule."""
    SYSTEM = "system"
    USER = "user"


class ConfidenceLevel(str, Enum):
    """Reviewer-stated confidence in a training decision."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ProtectedRuleError(ValueError):
    """Raised when a system rule would be removed or re-owned."""


class EmptyRuleSetError(ValueError):
    """Raised when categorization is requested without any rules."""


class StaleRuleStoreError(ValueError):
    """Raised when a rule update is based on an outdated RuleStore version."""


@dataclass
class RuleMetadata:
    """Learning provenance for a rule."""

    is_recurring: bool = False
    apply_to_similar: bool = False
    is_bulk_trained: bool = False
    confidence_level: ConfidenceLevel | None = None
    correction_count: int = 0
    last_corrected: datetime | None = None
    notes: str | None = None
    created_from_training: bool = False
    last_training_update: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "is_recurring": self.is_recurring,
            "apply_to_similar": self.apply_to_similar,
            "is_bulk_trained": self.is_bulk_trained,
            "confidence_level": self.confidence_level.value if self.confidence_level else None,
            "correction_count": self.correction_count,
            "last_corrected": self.last_corrected.isoformat() if self.last_corrected else None,
            "notes": self.notes,
            "created_from_training": self.created_from_training,
            "last_training_update": (
                self.last_training_update.isoformat() if self.last_training_update else None
            ),
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "RuleMetadata":
        data = data or {}
        level = data.get("confidence_level")
        return cls(
            is_recurring=bool(data.get("is_recurring", False)),
            apply_to_similar=bool(data.get("apply_to_similar", False)),
            is_bulk_trained=bool(data.get("is_bulk_trained", False)),
            confidence_level=ConfidenceLevel(level) if level else None,
            correction_count=int(data.get("correction_count", 0)),
            last_corrected=_parse_timestamp(data.get("last_corrected")),
            notes=data.get("notes"),
            created_from_training=bool(data.get("created_from_training", False)),
            last_training_update=_parse_timestamp(data.get("last_training_update")),
        )


@dataclass
class CategoryRule:
    """A categorization rule.

    Patterns are high-precision substrings (typically merchant names);
    keywords are lower-precision substrings whose hit density scales the
    confidence. Both are matched case-insensitively.
    """

    id: str
    name: str
    category: Category
    patterns: list[str] = field(default_factory=list)
    keywords: list[str] = field(default_factory=list)
    confidence: float = 0.8
    created_by: RuleOrigin = RuleOrigin.SYSTEM
    usage_count: int = 0
    last_used: datetime | None = None
    metadata: RuleMetadata = field(default_factory=RuleMetadata)

    @property
    def is_system(self) -> bool:
        return self.created_by == RuleOrigin.SYSTEM

    @property
    def is_user(self) -> bool:
        return self.created_by == RuleOrigin.USER

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category.value,
            "patterns": list(self.patterns),
            "keywords": list(self.keywords),
            "confidence": self.confidence,
            "created_by": self.created_by.value,
            "usage_count": self.usage_count,
            "last_used": self.last_used.isoformat() if self.last_used else None,
            "metadata": self.metadata.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict, default_origin: RuleOrigin = RuleOrigin.USER) -> "CategoryRule":
        return cls(
            id=str(data.get("id") or new_rule_id()),
            name=str(data["name"]),
            category=Category.from_value(data["category"]),
            patterns=[str(p).lower() for p in data.get("patterns") or []],
            keywords=[str(k).lower() for k in data.get("keywords") or []],
            confidence=float(data.get("confidence", 0.8)),
            created_by=RuleOrigin(data.get("created_by") or default_origin.value),
            usage_count=int(data.get("usage_count", 0)),
            last_used=_parse_timestamp(data.get("last_used")),
            metadata=RuleMetadata.from_dict(data.get("metadata")),
        )


@dataclass
class CategorizationStats:
    """Rule set statistics."""

    total_rules: int = 0
    system_rules: int = 0
    user_rules: int = 0
    most_used: list[CategoryRule] = field(default_factory=list)
    category_distribution: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "total_rules": self.total_rules,
            "system_rules": self.system_rules,
            "user_rules": self.user_rules,
            "most_used": [
                {"id": r.id, "name": r.name, "usage_count": r.usage_count}
                for r in self.most_used
            ],
            "category_distribution": self.category_distribution,
        }


@dataclass(frozen=True)
class RuleStore:
    """Immutable, versioned collection of categorization rules.

    Every change returns a new store with ``version + 1``. Callers that
    apply updates from several reviewers compare versions to detect a
    store that changed underneath them.
    """

    rules: tuple[CategoryRule, ...] = ()
    version: int = 0

    # Default confidence for manually added user rules
    USER_RULE_CONFIDENCE = 0.8

    def __len__(self) -> int:
        return len(self.rules)

    def __iter__(self) -> Iterator[CategoryRule]:
        return iter(self.rules)

    def __bool__(self) -> bool:
        return bool(self.rules)

    @property
    def system_rules(self) -> list[CategoryRule]:
        return [r for r in self.rules if r.is_system]

    @property
    def user_rules(self) -> list[CategoryRule]:
        return [r for r in self.rules if r.is_user]

    def get(self, rule_id: str) -> CategoryRule | None:
        for rule in self.rules:
            if rule.id == rule_id:
                return rule
        return None

    def by_category(self, category: Category | str) -> list[CategoryRule]:
        category = Category.from_value(category)
        return [r for r in self.rules if r.category == category]

    def check_version(self, expected_version: int | None) -> None:
        """Ensure the store is still at the version an update was based on.

        Raises:
            StaleRuleStoreError: If the versions differ
        """
        if expected_version is not None and expected_version != self.version:
            raise StaleRuleStoreError(
                f"Rule store is at version {self.version}, update was based on {expected_version}"
            )

    def replace_rules(self, rules: list[CategoryRule]) -> "RuleStore":
        """Return a new store holding the given rules.

        Raises:
            ProtectedRuleError: If a system rule would be dropped or re-owned
        """
        by_id = {r.id: r for r in rules}
        for rule in self.system_rules:
            kept = by_id.get(rule.id)
            if kept is None or not kept.is_system:
                raise ProtectedRuleError(f"System rule cannot be removed or re-owned: {rule.id}")
        return RuleStore(rules=tuple(rules), version=self.version + 1)

    def add_rule(self, rule: CategoryRule) -> "RuleStore":
        if self.get(rule.id):
            raise ValueError(f"Duplicate rule id: {rule.id}")
        return self.replace_rules([*self.rules, rule])

    def replace_rule(self, rule: CategoryRule) -> "RuleStore":
        """Replace the rule sharing ``rule.id``.

        Raises:
            KeyError: If no rule has that id
        """
        if not self.get(rule.id):
            raise KeyError(rule.id)
        return self.replace_rules([rule if r.id == rule.id else r for r in self.rules])

    def remove_rule(self, rule_id: str) -> "RuleStore":
        """Remove a user rule.

        Raises:
            KeyError: If no rule has that id
            ProtectedRuleError: If the rule is a system rule
        """
        rule = self.get(rule_id)
        if rule is None:
            raise KeyError(rule_id)
        if rule.is_system:
            raise ProtectedRuleError(f"System rule cannot be removed: {rule.name}")

        logger.info(f"Removed user rule {rule.name!r}")
        return self.replace_rules([r for r in self.rules if r.id != rule_id])

    def add_user_rule(
        self,
        name: str,
        category: Category | str,
        patterns: list[str] | None = None,
        keywords: list[str] | None = None,
        confidence: float | None = None,
        notes: str | None = None
    ) -> "RuleStore":
        """Add a manually defined user rule.

        Args:
            name: Rule name
            category: Target category
            patterns: Merchant-name substrings
            keywords: Description substrings
            confidence: Rule confidence (defaults to USER_RULE_CONFIDENCE)
            notes: Free-text notes stored in the rule metadata

        Returns:
            New RuleStore
        """
        patterns = [p.strip().lower() for p in patterns or [] if p.strip()]
        keywords = [k.strip().lower() for k in keywords or [] if k.strip()]
        if not patterns and not keywords:
            raise ValueError("A rule needs at least one pattern or keyword")

        confidence = self.USER_RULE_CONFIDENCE if confidence is None else confidence
        if not 0.0 <= confidence <= 1.0:
            raise ValueError(f"Rule confidence must be between 0 and 1: {confidence}")

        rule = CategoryRule(
            id=new_rule_id(),
            name=name.strip()[:50],
            category=Category.from_value(category),
            patterns=patterns,
            keywords=keywords,
            confidence=confidence,
            created_by=RuleOrigin.USER,
            metadata=RuleMetadata(notes=notes[:200] if notes else None),
        )
        logger.info(f"Added user rule {rule.name!r} for {rule.category.value}")
        return self.add_rule(rule)

    def record_usage(self, rule_id: str, when: datetime | None = None) -> "RuleStore":
        """Increment a rule's usage count and refresh its last-used time."""
        rule = self.get(rule_id)
        if rule is None:
            logger.warning(f"Usage recorded for unknown rule {rule_id}")
            return self

        updated = replace(rule, usage_count=rule.usage_count + 1, last_used=when or datetime.now())
        return self.replace_rule(updated)

    def stats(self) -> CategorizationStats:
        """Summarize the rule set."""
        distribution = Counter(r.category.value for r in self.rules)
        return CategorizationStats(
            total_rules=len(self.rules),
            system_rules=len(self.system_rules),
            user_rules=len(self.user_rules),
            most_used=sorted(self.rules, key=lambda r: r.usage_count, reverse=True)[:5],
            category_distribution=dict(distribution),
        )

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "rules": [r.to_dict() for r in self.rules],
        }

    @classmethod
    def from_dict(cls, data: dict | list) -> "RuleStore":
        """Rebuild a store from ``to_dict`` output or a bare list of rules."""
        if isinstance(data, list):
            data = {"rules": data}
        rules = tuple(CategoryRule.from_dict(r) for r in data.get("rules") or [])
        return cls(rules=rules, version=int(data.get("version", 0)))

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.to_dict(), sort_keys=False, allow_unicode=True)

    def save(self, file_path: Path | str) -> None:
        """Write the store to a YAML file."""
        with open(file_path, "w") as f:
            f.write(self.to_yaml())

    @classmethod
    def load(cls, file_path: Path | str) -> "RuleStore":
        """Load a store written by ``save``."""
        with open(file_path) as f:
            data = yaml.safe_load(f) or {}
        return cls.from_dict(data)

    @classmethod
    def with_defaults(cls, config_dir: Path | str | None = None) -> "RuleStore":
        """Load the default system rules.

        Args:
            config_dir: Path to configuration directory

        Returns:
            RuleStore of system rules (empty if the config file is missing)
        """
        config_dir = Path(config_dir) if config_dir else Path(__file__).parent.parent.parent / "config"
        rules_file = config_dir / "category_rules.yaml"

        if not rules_file.exists():
            logger.warning(f"Category rules file not found: {rules_file}")
            return cls()

        with open(rules_file) as f:
            data = yaml.safe_load(f) or {}

        rules = tuple(
            CategoryRule.from_dict({**r, "created_by": RuleOrigin.SYSTEM.value})
            for r in data.get("rules") or []
        )
        logger.info(f"Loaded {len(rules)} system category rules")
        return cls(rules=rules)


def new_rule_id() -> str:
    return f"rule_{uuid.uuid4().hex[:12]}"


def _parse_timestamp(value: Any) -> datetime | None:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))
