"""
Match Review Module

Approval and rejection of suggested matches. Only a pending match may
change state; approved and rejected are terminal.
"""

import logging
from dataclasses import replace

from receipt_processor.extractor import Receipt
from statement_processor.base import BankTransaction

from .matcher import MatchStatus, TransactionMatch

logger = logging.getLogger(__name__)


class InvalidMatchTransition(ValueError):
    """Raised when a non-pending match is approved or rejected."""


def approve_match(match: TransactionMatch, category: str | None = None) -> TransactionMatch:
    """Approve a pending match.

    The category applied is the explicit one, else the transaction's, else
    the receipt's, else the suggested category. Transaction and receipt
    are marked as consumed by each other; a match without a receipt is
    only categorized.

    Args:
        match: Pending match
        category: Category chosen by the reviewer

    Returns:
        New approved TransactionMatch

    Raises:
        InvalidMatchTransition: If the match is not pending
    """
    _require_pending(match, "approve")

    receipt = match.suggested_receipt
    category = (
        category
        or match.bank_transaction.category
        or (receipt.category if receipt else None)
        or match.suggested_category
    )

    if receipt:
        txn = replace(
            match.bank_transaction,
            category=category,
            matched=True,
            matched_receipt_id=receipt.id,
        )
        receipt = replace(receipt, category=category or receipt.category, matched=True)
    else:
        txn = replace(match.bank_transaction, category=category)

    logger.info(f"Approved match {match.id} ({category or 'uncategorized'})")
    return replace(
        match,
        bank_transaction=txn,
        suggested_receipt=receipt,
        status=MatchStatus.APPROVED,
    )


def reject_match(match: TransactionMatch) -> TransactionMatch:
    """Reject a pending match.

    Raises:
        InvalidMatchTransition: If the match is not pending
    """
    _require_pending(match, "reject")
    logger.info(f"Rejected match {match.id}")
    return replace(match, status=MatchStatus.REJECTED)


def apply_matches(
    matches: list[TransactionMatch],
    transactions: list[BankTransaction],
    receipts: list[Receipt]
) -> tuple[list[BankTransaction], list[Receipt]]:
    """Propagate approved matches onto the caller's collections.

    Args:
        matches: Reviewed matches
        transactions: Current transactions
        receipts: Current receipts

    Returns:
        (transactions, receipts) as new lists, approved records replaced
    """
    approved = [m for m in matches if m.status == MatchStatus.APPROVED]
    txn_updates = {m.bank_transaction.id: m.bank_transaction for m in approved}
    receipt_updates = {
        m.suggested_receipt.id: m.suggested_receipt
        for m in approved
        if m.suggested_receipt
    }

    return (
        [txn_updates.get(t.id, t) for t in transactions],
        [receipt_updates.get(r.id, r) for r in receipts],
    )


def find_match(matches: list[TransactionMatch], match_id: str) -> TransactionMatch:
    """Look up a match by id.

    Raises:
        KeyError: If no match has that id
    """
    for match in matches:
        if match.id == match_id:
            return match
    raise KeyError(match_id)


def _require_pending(match: TransactionMatch, action: str) -> None:
    if match.status != MatchStatus.PENDING:
        raise InvalidMatchTransition(
            f"Cannot {action} match {match.id}: already {match.status.value}"
        )
