"""
API Schemas

Pydantic request/response models and their conversion to domain records.
"""

from datetime import date
from typing import Any

from pydantic import BaseModel, Field

from categorization.learning import TrainingOptions
from categorization.rules import ConfidenceLevel, RuleStore
from receipt_processor.extractor import Receipt
from reconciliation.matcher import MatchStatus, TransactionMatch
from statement_processor.base import BankTransaction


class TransactionModel(BaseModel):
    """Bank transaction."""

    id: str
    date: date
    amount: float = Field(gt=0)
    description: str = ""
    utr: str | None = None
    vpa: str | None = None
    city: str | None = None
    category: str | None = None
    matched: bool = False
    matched_receipt_id: str | None = None

    def to_domain(self) -> BankTransaction:
        return BankTransaction.from_dict(self.model_dump(mode="json"))


class ExtractedDataModel(BaseModel):
    """OCR provenance."""

    confidence: float = Field(0.0, ge=0, le=1)
    raw_text: str = ""


class ReceiptModel(BaseModel):
    """Payment receipt."""

    id: str
    date: date
    amount: float = Field(0.0, ge=0)
    merchant: str = "Unknown Merchant"
    utr: str | None = None
    category: str | None = None
    matched: bool = False
    extracted_data: ExtractedDataModel = Field(default_factory=ExtractedDataModel)

    def to_domain(self) -> Receipt:
        return Receipt.from_dict(self.model_dump(mode="json"))


class MatchModel(BaseModel):
    """Suggested or reviewed match."""

    id: str | None = None
    bank_transaction: TransactionModel
    suggested_receipt: ReceiptModel | None = None
    match_score: int = Field(0, ge=0)
    match_reasons: list[str] = Field(default_factory=list)
    status: MatchStatus = MatchStatus.PENDING
    suggested_category: str | None = None
    category_confidence: float = 0.0

    def to_domain(self) -> TransactionMatch:
        return TransactionMatch.from_dict(self.model_dump(mode="json"))


class RuleSetModel(BaseModel):
    """Serialized RuleStore."""

    version: int = 0
    rules: list[dict[str, Any]] = Field(default_factory=list)

    def to_domain(self) -> RuleStore:
        return RuleStore.from_dict(self.model_dump())


class TrainingOptionsModel(BaseModel):
    """Reviewer training choices."""

    create_rule: bool = True
    bulk_training: bool = False
    recurring: bool = False
    apply_to_similar: bool = False
    confidence_level: ConfidenceLevel = ConfidenceLevel.MEDIUM

    def to_domain(self) -> TrainingOptions:
        return TrainingOptions(**self.model_dump())


def rules_or_defaults(rules: RuleSetModel | None, pipeline) -> RuleStore:
    """Use the posted rule set, or the default system rules."""
    return rules.to_domain() if rules is not None else pipeline.default_rules()
