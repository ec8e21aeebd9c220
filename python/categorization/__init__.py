"""
Categorization Module

Rule-based spending categorization with a learning loop driven by reviewer
approvals.
"""

from .engine import CategorizationEngine, CategorizationMatch
from .learning import RuleLearner, TrainingOptions
from .rules import (
    Category,
    CategoryRule,
    CategorizationStats,
    ConfidenceLevel,
    EmptyRuleSetError,
    ProtectedRuleError,
    RuleMetadata,
    RuleOrigin,
    RuleStore,
    StaleRuleStoreError,
)

__all__ = [
    # Rules
    "Category",
    "CategoryRule",
    "CategorizationStats",
    "ConfidenceLevel",
    "RuleMetadata",
    "RuleOrigin",
    "RuleStore",
    # Errors
    "EmptyRuleSetError",
    "ProtectedRuleError",
    "StaleRuleStoreError",
    # Engine
    "CategorizationEngine",
    "CategorizationMatch",
    # Learning
    "RuleLearner",
    "TrainingOptions",
]
