"""
Reconciliation Module

Matches bank transactions to receipts, drives the review workflow, and
exports and reports on the results.
"""

from .export import EXPORT_COLUMNS, export_rows, to_csv, to_excel
from .matcher import NO_MATCH_REASON, MatchingEngine, MatchStatus, TransactionMatch
from .pipeline import (
    ApprovalOutcome,
    MatchGroup,
    MatchingResult,
    OcrJob,
    ReceiptLoadResult,
    ReconciliationPipeline,
    StatementFileResult,
    StatementLoadResult,
)
from .reporting import ReconciliationSummary, format_report, spending_by_month, summarize
from .review import (
    InvalidMatchTransition,
    apply_matches,
    approve_match,
    find_match,
    reject_match,
)

__all__ = [
    # Matching
    "NO_MATCH_REASON",
    "MatchingEngine",
    "MatchStatus",
    "TransactionMatch",
    # Review
    "InvalidMatchTransition",
    "apply_matches",
    "approve_match",
    "find_match",
    "reject_match",
    # Pipeline
    "ApprovalOutcome",
    "MatchGroup",
    "MatchingResult",
    "OcrJob",
    "ReceiptLoadResult",
    "ReconciliationPipeline",
    "StatementFileResult",
    "StatementLoadResult",
    # Export and reporting
    "EXPORT_COLUMNS",
    "export_rows",
    "to_csv",
    "to_excel",
    "ReconciliationSummary",
    "format_report",
    "spending_by_month",
    "summarize",
]
