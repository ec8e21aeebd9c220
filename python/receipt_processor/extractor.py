"""
Receipt Text Extractor

Parses OCR text from UPI payment app receipts (screenshots/PDFs) into
canonical Receipt records. Text recognition itself happens upstream; this
module only sees the raw text and the OCR confidence.
"""

import logging
import re
import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path

from statement_processor.date_parser import DateParser, parse_date

from .merchant_aliases import MerchantAliases

logger = logging.getLogger(__name__)


UNKNOWN_MERCHANT = "Unknown Merchant"


@dataclass
class ExtractedData:
    """OCR provenance kept alongside a receipt."""

    confidence: float = 0.0
    raw_text: str = ""

    def to_dict(self) -> dict:
        return {"confidence": self.confidence, "raw_text": self.raw_text}


@dataclass
class Receipt:
    """A payment receipt extracted from OCR text."""

    id: str
    date: date
    amount: Decimal = Decimal("0")
    merchant: str = UNKNOWN_MERCHANT
    utr: str | None = None
    category: str | None = None
    matched: bool = False
    extracted_data: ExtractedData = field(default_factory=ExtractedData)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "amount": float(self.amount),
            "merchant": self.merchant,
            "utr": self.utr,
            "category": self.category,
            "matched": self.matched,
            "extracted_data": self.extracted_data.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Receipt":
        extracted = data.get("extracted_data") or {}
        return cls(
            id=str(data["id"]),
            date=parse_date(data["date"]),
            amount=Decimal(str(data.get("amount") or 0)),
            merchant=data.get("merchant") or UNKNOWN_MERCHANT,
            utr=data.get("utr"),
            category=data.get("category"),
            matched=bool(data.get("matched", False)),
            extracted_data=ExtractedData(
                confidence=float(extracted.get("confidence", 0.0)),
                raw_text=extracted.get("raw_text", ""),
            ),
        )


@dataclass
class ReceiptFields:
    """Fields pulled out of one receipt's text; absent values stay None."""

    amount: Decimal = Decimal("0")
    utr: str | None = None
    date: "date | None" = None
    merchant: str = UNKNOWN_MERCHANT
    merchant_found: bool = False

    @property
    def amount_found(self) -> bool:
        return self.amount > 0


class ReceiptTextExtractor:
    """Extracts amount, reference, date and merchant from receipt text."""

    # Issuing app whose name appears as receipt boilerplate
    APP_NAME = "phonepe"

    AMOUNT_PATTERNS = [
        re.compile(r'₹\s*([\d,]+(?:\.\d{1,2})?)'),
        re.compile(r'(?:Amount|Paid|Rs\.?|INR)\s*:?\s*₹?\s*([\d,]+(?:\.\d{1,2})?)', re.IGNORECASE),
        re.compile(r'(?:Total|Amount)\s+₹\s*([\d,]+(?:\.\d{1,2})?)', re.IGNORECASE),
    ]

    UTR_PATTERNS = [
        re.compile(
            r'(?:UPI Transaction ID|Transaction ID|Txn ID|UTR|Ref(?:erence)?\s*No\.?|Reference)'
            r'\s*:?\s*(\d{12})(?!\d)',
            re.IGNORECASE
        ),
        re.compile(r'(?<!\d)(\d{12})(?!\d)'),
    ]

    DATE_PATTERNS = [
        re.compile(r'(?<!\d)(\d{1,2}/\d{1,2}/\d{4})(?!\d)'),
        re.compile(r'(?<!\d)(\d{1,2}-\d{1,2}-\d{4})(?!\d)'),
        re.compile(r'(?<!\d)(\d{4}-\d{1,2}-\d{1,2})(?!\d)'),
        re.compile(
            r'(?<!\d)(\d{1,2}(?:st|nd|rd|th)?\s+'
            r'(?:jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\.?,?\s+\d{4})',
            re.IGNORECASE
        ),
    ]

    MERCHANT_PATTERNS = [
        re.compile(r"^\s*(?:Paid to|To|Merchant)\b\s*:?\s*([A-Za-z0-9 &.'-]+)$", re.IGNORECASE | re.MULTILINE),
        re.compile(r"^([A-Za-z][A-Za-z0-9 &.'-]{2,30})$", re.MULTILINE),
    ]

    MERCHANT_LINE_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9\s&.'-]{2,}$")

    STOP_WORDS = [
        "payment", "successful", "paid", "amount", "total", "transaction",
        "upi", "date", "from", "via", "receipt", "id", "ref",
    ]

    def __init__(
        self,
        config_dir: Path | str | None = None,
        date_parser: DateParser | None = None,
        aliases: MerchantAliases | None = None,
        app_name: str | None = None
    ):
        """Initialize the extractor.

        Args:
            config_dir: Path to configuration directory
            date_parser: DateParser to use
            aliases: Merchant alias table (loaded from config_dir if omitted)
            app_name: Payment app name treated as boilerplate
        """
        self.date_parser = date_parser or DateParser()
        self.aliases = aliases or MerchantAliases(config_dir)
        self.app_name = (app_name or self.APP_NAME).lower()
        self.stop_words = self.STOP_WORDS + [self.app_name]

    def extract(self, raw_text: str) -> ReceiptFields:
        """Extract receipt fields from OCR text.

        Args:
            raw_text: Text recognized from the receipt image

        Returns:
            ReceiptFields (defaults where nothing was found)
        """
        fields = ReceiptFields()
        if not raw_text or not raw_text.strip():
            return fields

        fields.amount = self._extract_amount(raw_text)
        fields.utr = self._extract_utr(raw_text)
        fields.date = self._extract_date(raw_text)

        merchant = self._extract_merchant(raw_text)
        merchant = self.aliases.normalize(merchant) if merchant else ""
        if merchant:
            fields.merchant = merchant
            fields.merchant_found = True

        return fields

    def build_receipt(
        self,
        raw_text: str,
        confidence: float = 0.0,
        receipt_id: str | None = None
    ) -> Receipt:
        """Build a Receipt from OCR output.

        Args:
            raw_text: Text recognized from the receipt image
            confidence: OCR confidence (0-1, or 0-100 percent)
            receipt_id: Id to assign (generated if omitted)

        Returns:
            Receipt, with placeholder values for anything not found
        """
        fields = self.extract(raw_text)
        receipt = Receipt(
            id=receipt_id or f"receipt_{uuid.uuid4().hex[:12]}",
            date=fields.date or self.date_parser.parse(None),
            amount=fields.amount,
            merchant=fields.merchant,
            utr=fields.utr,
            extracted_data=ExtractedData(
                confidence=normalize_confidence(confidence),
                raw_text=raw_text or "",
            ),
        )

        if not fields.amount_found:
            logger.info(f"No amount found on receipt {receipt.id}; only a UTR can match it")
        return receipt

    def _extract_amount(self, text: str) -> Decimal:
        """Return the largest currency-marked amount in the text."""
        amount = Decimal("0")
        for pattern in self.AMOUNT_PATTERNS:
            for match in pattern.finditer(text):
                try:
                    value = Decimal(match.group(1).replace(',', ''))
                except InvalidOperation:
                    continue
                if value > amount:
                    amount = value
        return amount

    def _extract_utr(self, text: str) -> str | None:
        for pattern in self.UTR_PATTERNS:
            match = pattern.search(text)
            if match:
                return match.group(1)
        return None

    def _extract_date(self, text: str) -> date | None:
        for pattern in self.DATE_PATTERNS:
            match = pattern.search(text)
            if match:
                return self.date_parser.parse(match.group(1))
        return None

    def _extract_merchant(self, text: str) -> str:
        """Find the merchant line, falling back to labeled patterns."""
        lines = [line.strip() for line in text.split('\n') if line.strip()]

        for line in lines:
            if self._is_merchant_line(line):
                return line

        for pattern in self.MERCHANT_PATTERNS:
            match = pattern.search(text)
            if match:
                candidate = match.group(1).strip()
                if 2 < len(candidate) < 50:
                    return candidate

        return ""

    def _is_merchant_line(self, line: str) -> bool:
        if len(line) < 3 or len(line) > 50:
            return False

        lowered = line.lower()
        if any(word in lowered for word in self.stop_words):
            return False
        if re.search(r'[₹@]', lowered):
            return False
        if re.search(r'\d{6,}', lowered):
            return False

        return bool(self.MERCHANT_LINE_PATTERN.match(line))


def normalize_confidence(confidence: float) -> float:
    """Clamp OCR confidence to [0, 1], accepting 0-100 percentages."""
    confidence = float(confidence or 0.0)
    if 1.0 < confidence <= 100.0:
        confidence /= 100.0
    return max(0.0, min(1.0, confidence))
