"""
Base Statement Module

Canonical bank transaction record and the helpers shared by statement readers.
"""

import hashlib
import math
import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

from .date_parser import parse_date


@dataclass
class BankTransaction:
    """A normalized transaction from a bank statement.

    Amounts are absolute values; the debit/credit direction of the source
    row is not preserved.
    """

    id: str
    date: date
    amount: Decimal
    description: str = ""
    utr: str | None = None
    vpa: str | None = None
    city: str | None = None
    category: str | None = None
    matched: bool = False
    matched_receipt_id: str | None = None
    raw_data: dict = field(default_factory=dict)

    @property
    def hash(self) -> str:
        """Generate a hash for duplicate detection."""
        data = f"{self.date.isoformat()}|{self.description}|{self.amount}|{self.utr}"
        return hashlib.sha256(data.encode()).hexdigest()[:16]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "amount": float(self.amount),
            "description": self.description,
            "utr": self.utr,
            "vpa": self.vpa,
            "city": self.city,
            "category": self.category,
            "matched": self.matched,
            "matched_receipt_id": self.matched_receipt_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BankTransaction":
        return cls(
            id=str(data["id"]),
            date=parse_date(data["date"]),
            amount=Decimal(str(data["amount"])),
            description=data.get("description") or "",
            utr=data.get("utr"),
            vpa=data.get("vpa"),
            city=data.get("city"),
            category=data.get("category"),
            matched=bool(data.get("matched", False)),
            matched_receipt_id=data.get("matched_receipt_id"),
        )


@dataclass
class NormalizationResult:
    """Result of normalizing one statement."""

    transactions: list[BankTransaction] = field(default_factory=list)
    column_mapping: dict[str, int | None] = field(default_factory=dict)
    header_row_index: int = 0
    skipped_rows: int = 0
    warnings: list[str] = field(default_factory=list)

    @property
    def transaction_count(self) -> int:
        return len(self.transactions)

    @property
    def total_amount(self) -> Decimal:
        return sum((t.amount for t in self.transactions), Decimal("0"))


class MalformedStatementError(ValueError):
    """Raised when a statement has no usable header row at all."""


class UnsupportedFileError(ValueError):
    """Raised for statement files in a format no reader handles."""


def parse_amount(value: Any) -> Decimal | None:
    """Parse an amount cell to Decimal.

    Args:
        value: Cell value (number, or string with currency symbols, commas,
            parentheses or CR/DR suffixes)

    Returns:
        Parsed Decimal, or None when the cell is blank or unparseable
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float, Decimal)):
        if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
            return None
        amount = Decimal(str(value))
        return amount if amount.is_finite() else None

    cleaned = str(value).strip()
    if not cleaned:
        return None

    # Remove currency markers and whitespace
    cleaned = re.sub(r'(₹|INR|Rs\.?|\s)', '', cleaned, flags=re.IGNORECASE)

    is_negative = False
    if cleaned.startswith('(') and cleaned.endswith(')'):
        cleaned = cleaned[1:-1]
        is_negative = True
    elif cleaned.upper().endswith(('CR', 'DR')):
        cleaned = cleaned[:-2]
    if cleaned.startswith('-'):
        cleaned = cleaned[1:]
        is_negative = True

    # Remove thousand separators
    cleaned = cleaned.replace(',', '')

    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        return None

    if not amount.is_finite():
        return None
    return -amount if is_negative else amount


def cell_text(value: Any) -> str:
    """Render a cell as stripped text, treating None and NaN as blank."""
    if value is None:
        return ""
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
    return str(value).strip()
