"""
Receipt Processor Module

Extracts canonical receipts from the OCR text of UPI payment app receipts.
"""

from .extractor import (
    ExtractedData,
    Receipt,
    ReceiptFields,
    ReceiptTextExtractor,
    UNKNOWN_MERCHANT,
    normalize_confidence,
)
from .merchant_aliases import MerchantAliases, title_case

__all__ = [
    # Records
    "ExtractedData",
    "Receipt",
    "ReceiptFields",
    "UNKNOWN_MERCHANT",
    # Extraction
    "ReceiptTextExtractor",
    "normalize_confidence",
    # Aliases
    "MerchantAliases",
    "title_case",
]
