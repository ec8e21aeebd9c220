"""
Transaction Matching Module

Pairs bank statement transactions with payment receipts using a weighted
multi-criterion score and greedy, first-seen-wins selection.
"""

import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from pathlib import Path

import yaml

from receipt_processor.extractor import UNKNOWN_MERCHANT, Receipt
from statement_processor.base import BankTransaction

logger = logging.getLogger(__name__)


NO_MATCH_REASON = "No suitable match found"
UTR_MATCH_REASON = "UTR match"


class MatchStatus(str, Enum):
    """Review status of a suggested match."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass
class TransactionMatch:
    """A bank transaction and its suggested receipt."""

    bank_transaction: BankTransaction
    suggested_receipt: Receipt | None = None
    match_score: int = 0
    match_reasons: list[str] = field(default_factory=list)
    status: MatchStatus = MatchStatus.PENDING
    suggested_category: str | None = None
    category_confidence: float = 0.0

    @property
    def id(self) -> str:
        return self.bank_transaction.id

    @property
    def is_pending(self) -> bool:
        return self.status == MatchStatus.PENDING

    @property
    def has_receipt(self) -> bool:
        return self.suggested_receipt is not None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "bank_transaction": self.bank_transaction.to_dict(),
            "suggested_receipt": self.suggested_receipt.to_dict() if self.suggested_receipt else None,
            "match_score": self.match_score,
            "match_reasons": list(self.match_reasons),
            "status": self.status.value,
            "suggested_category": self.suggested_category,
            "category_confidence": self.category_confidence,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TransactionMatch":
        receipt = data.get("suggested_receipt")
        return cls(
            bank_transaction=BankTransaction.from_dict(data["bank_transaction"]),
            suggested_receipt=Receipt.from_dict(receipt) if receipt else None,
            match_score=int(data.get("match_score", 0)),
            match_reasons=list(data.get("match_reasons") or []),
            status=MatchStatus(data.get("status", MatchStatus.PENDING.value)),
            suggested_category=data.get("suggested_category"),
            category_confidence=float(data.get("category_confidence", 0.0)),
        )


class MatchingEngine:
    """Greedy receipt matcher for bank transactions."""

    # Score weights
    WEIGHTS = {
        "exact_amount": 50,
        "utr": 40,
        "same_date": 30,
        "adjacent_date": 20,
        "merchant": 15,
    }

    # Minimum score for a receipt to be suggested
    MIN_SCORE = 40
    AMOUNT_TOLERANCE = Decimal("0.01")
    MIN_WORD_LENGTH = 4

    def __init__(self, config_dir: Path | str | None = None):
        """Initialize the matching engine.

        Args:
            config_dir: Path to configuration directory
        """
        self.config_dir = Path(config_dir) if config_dir else Path(__file__).parent.parent.parent / "config"
        self.weights = dict(self.WEIGHTS)
        self._load_config()

    def _load_config(self) -> None:
        """Load matching weights and threshold."""
        config_file = self.config_dir / "matching_rules.yaml"
        if not config_file.exists():
            logger.warning(f"Matching rules file not found: {config_file}")
            return

        with open(config_file) as f:
            config = yaml.safe_load(f) or {}

        self.weights.update(config.get("weights") or {})
        self.MIN_SCORE = config.get("min_score", self.MIN_SCORE)
        self.AMOUNT_TOLERANCE = Decimal(str(config.get("amount_tolerance", self.AMOUNT_TOLERANCE)))
        self.MIN_WORD_LENGTH = config.get("min_word_length", self.MIN_WORD_LENGTH)

    def match(
        self,
        transactions: list[BankTransaction],
        receipts: list[Receipt],
        existing_matches: list[TransactionMatch] | None = None
    ) -> list[TransactionMatch]:
        """Suggest a receipt for every open transaction.

        Transactions are processed in input order. Each takes the
        highest-scoring receipt at or above MIN_SCORE (the first one seen
        on ties), and that receipt is unavailable to later transactions.

        Args:
            transactions: Bank transactions
            receipts: Receipts
            existing_matches: Matches from a previous pass; approved or
                rejected transactions are not matched again, and receipts
                of approved matches stay consumed

        Returns:
            One TransactionMatch per open transaction, by descending score
        """
        decided_ids = set()
        consumed_ids = set()
        for existing in existing_matches or []:
            if existing.is_pending:
                continue
            decided_ids.add(existing.id)
            if existing.status == MatchStatus.APPROVED and existing.suggested_receipt:
                consumed_ids.add(existing.suggested_receipt.id)

        available = [r for r in receipts if not r.matched and r.id not in consumed_ids]
        matches = []

        for txn in transactions:
            if txn.matched or txn.id in decided_ids:
                continue

            best: tuple[int, list[str], Receipt] | None = None
            for receipt in available:
                if receipt.id in consumed_ids:
                    continue
                score, reasons = self.score_pair(txn, receipt)
                # Receipts without a readable amount match on UTR alone
                if receipt.amount <= 0 and UTR_MATCH_REASON not in reasons:
                    continue
                if score >= self.MIN_SCORE and (best is None or score > best[0]):
                    best = (score, reasons, receipt)

            if best:
                score, reasons, receipt = best
                consumed_ids.add(receipt.id)
                matches.append(TransactionMatch(
                    bank_transaction=txn,
                    suggested_receipt=receipt,
                    match_score=score,
                    match_reasons=reasons,
                ))
            else:
                matches.append(TransactionMatch(
                    bank_transaction=txn,
                    match_reasons=[NO_MATCH_REASON],
                ))

        matches.sort(key=lambda m: m.match_score, reverse=True)

        suggested = sum(1 for m in matches if m.has_receipt)
        logger.info(f"Matched {suggested} of {len(matches)} transactions against {len(receipts)} receipts")
        return matches

    def score_pair(self, txn: BankTransaction, receipt: Receipt) -> tuple[int, list[str]]:
        """Score a transaction/receipt pair.

        Returns:
            (score, reasons) with reasons in scoring order
        """
        score = 0
        reasons = []

        if abs(txn.amount - receipt.amount) < self.AMOUNT_TOLERANCE:
            score += self.weights["exact_amount"]
            reasons.append("Exact amount match")

        if txn.utr and receipt.utr and txn.utr.strip() == receipt.utr.strip():
            score += self.weights["utr"]
            reasons.append(UTR_MATCH_REASON)

        date_diff = abs((txn.date - receipt.date).days)
        if date_diff == 0:
            score += self.weights["same_date"]
            reasons.append("Same date")
        elif date_diff == 1:
            score += self.weights["adjacent_date"]
            reasons.append("Date within 1 day")

        if self.merchant_overlaps(txn.description, receipt.merchant):
            score += self.weights["merchant"]
            reasons.append("Merchant match")

        return score, reasons

    def merchant_overlaps(self, description: str, merchant: str) -> bool:
        """Check for a shared word between a description and a merchant.

        Words shorter than MIN_WORD_LENGTH are ignored; a word matches when
        either contains the other.
        """
        if not merchant or merchant == UNKNOWN_MERCHANT:
            return False

        description_words = self._words(description)
        merchant_words = self._words(merchant)

        return any(
            m in d or d in m
            for m in merchant_words
            for d in description_words
        )

    def _words(self, text: str) -> list[str]:
        return [
            w for w in re.split(r'[^a-z0-9]+', (text or "").lower())
            if len(w) >= self.MIN_WORD_LENGTH
        ]
