"""
Reconciliation Reporting Module

Summary statistics and a plain-text report over a set of reviewed matches.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from .export import UNCATEGORIZED
from .matcher import MatchStatus, TransactionMatch

logger = logging.getLogger(__name__)


# Score at or above which a suggestion counts as high confidence
HIGH_CONFIDENCE_SCORE = 80
# Pending suggestions below this score need manual training
NEEDS_TRAINING_SCORE = 60


@dataclass
class ReconciliationSummary:
    """Summary of a reconciliation session."""

    total_transactions: int = 0
    with_receipt: int = 0
    approved: int = 0
    rejected: int = 0
    pending: int = 0
    categorized: int = 0
    high_confidence: int = 0
    needs_training: int = 0
    approved_amount: Decimal = Decimal("0")
    category_breakdown: dict[str, Decimal] = field(default_factory=dict)
    generated_at: datetime = field(default_factory=datetime.now)

    @property
    def match_rate(self) -> float:
        """Share of transactions with a suggested receipt, as a percentage."""
        if self.total_transactions == 0:
            return 0.0
        return self.with_receipt / self.total_transactions * 100

    @property
    def categorization_rate(self) -> float:
        """Share of approved transactions carrying a category, as a percentage."""
        if self.approved == 0:
            return 0.0
        return self.categorized / self.approved * 100

    def to_dict(self) -> dict:
        return {
            "total_transactions": self.total_transactions,
            "with_receipt": self.with_receipt,
            "approved": self.approved,
            "rejected": self.rejected,
            "pending": self.pending,
            "categorized": self.categorized,
            "high_confidence": self.high_confidence,
            "needs_training": self.needs_training,
            "match_rate": round(self.match_rate, 2),
            "categorization_rate": round(self.categorization_rate, 2),
            "approved_amount": float(self.approved_amount),
            "category_breakdown": {k: float(v) for k, v in self.category_breakdown.items()},
            "generated_at": self.generated_at.isoformat(),
        }


def summarize(matches: list[TransactionMatch]) -> ReconciliationSummary:
    """Compute summary statistics for a set of matches.

    Args:
        matches: Matches from one or more passes

    Returns:
        ReconciliationSummary
    """
    summary = ReconciliationSummary(total_transactions=len(matches))
    breakdown: dict[str, Decimal] = defaultdict(Decimal)

    for match in matches:
        if match.has_receipt:
            summary.with_receipt += 1
            if match.match_score >= HIGH_CONFIDENCE_SCORE:
                summary.high_confidence += 1

        if match.status == MatchStatus.APPROVED:
            summary.approved += 1
            txn = match.bank_transaction
            summary.approved_amount += txn.amount
            if txn.category:
                summary.categorized += 1
            breakdown[txn.category or UNCATEGORIZED] += txn.amount
        elif match.status == MatchStatus.REJECTED:
            summary.rejected += 1
        else:
            summary.pending += 1
            if match.match_score < NEEDS_TRAINING_SCORE:
                summary.needs_training += 1

    summary.category_breakdown = dict(
        sorted(breakdown.items(), key=lambda item: item[1], reverse=True)
    )
    return summary


def spending_by_month(matches: list[TransactionMatch]) -> dict[str, dict]:
    """Approved spending per calendar month.

    Returns:
        Mapping of ``YYYY-MM`` (ascending) to total and per-category amounts
    """
    months: dict[str, dict] = {}

    for match in matches:
        if match.status != MatchStatus.APPROVED:
            continue
        txn = match.bank_transaction
        key = txn.date.strftime("%Y-%m")
        month = months.setdefault(key, {"total": Decimal("0"), "categories": defaultdict(Decimal)})
        month["total"] += txn.amount
        month["categories"][txn.category or UNCATEGORIZED] += txn.amount

    return {
        key: {"total": months[key]["total"], "categories": dict(months[key]["categories"])}
        for key in sorted(months)
    }


def format_report(summary: ReconciliationSummary, monthly: dict[str, dict] | None = None) -> str:
    """Render a summary as a plain-text report.

    Args:
        summary: Summary to render
        monthly: Optional output of spending_by_month

    Returns:
        Report text
    """
    currency = "₹{:,.2f}"
    lines = []

    lines.append("UPI Reconciliation Report")
    lines.append("=" * 40)
    lines.append(f"Transactions: {summary.total_transactions}")
    lines.append(f"With receipt: {summary.with_receipt} ({summary.match_rate:.1f}%)")
    lines.append(f"High confidence: {summary.high_confidence}")
    lines.append(f"Approved: {summary.approved}  Rejected: {summary.rejected}  Pending: {summary.pending}")
    lines.append(f"Needs training: {summary.needs_training}")
    lines.append(f"Approved amount: {currency.format(summary.approved_amount)}")
    lines.append(f"Categorized: {summary.categorization_rate:.1f}%")

    if summary.category_breakdown:
        lines.append("")
        lines.append("By category:")
        for category, amount in summary.category_breakdown.items():
            lines.append(f"  {category}: {currency.format(amount)}")

    if monthly:
        lines.append("")
        lines.append("By month:")
        for month, data in monthly.items():
            lines.append(f"  {month}: {currency.format(data['total'])}")

    lines.append("")
    lines.append(f"Generated: {summary.generated_at.strftime('%Y-%m-%d %H:%M')}")
    return "\n".join(lines)
