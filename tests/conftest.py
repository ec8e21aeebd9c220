"""
Pytest configuration and fixtures for UPI reconciliation tests.
"""

import sys
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "python"))

from categorization import RuleStore  # noqa: E402
from receipt_processor import ExtractedData, Receipt  # noqa: E402
from statement_processor import BankTransaction, DateParser  # noqa: E402

FIXED_TODAY = date(2024, 6, 30)


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def config_dir() -> Path:
    """Return the config directory path."""
    return PROJECT_ROOT / "config"


@pytest.fixture
def date_parser() -> DateParser:
    """Return a DateParser whose fallback date is fixed."""
    return DateParser(today=lambda: FIXED_TODAY)


@pytest.fixture
def default_rules(config_dir: Path) -> RuleStore:
    """Load the default system rules."""
    return RuleStore.with_defaults(config_dir)


@pytest.fixture
def sample_rows() -> list[list[str]]:
    """Return statement rows with a header, as read from a CSV export."""
    return [
        ["Date", "Narration", "Withdrawal Amt", "Deposit Amt", "UTR No"],
        ["15/01/2024", "UPI-SWIGGY-MERCHANT@PAYTM", "1,250.00", "", "432109876543"],
        ["16/01/2024", "UPI/401612345678/DR/UBER INDIA/HDFC/uber@axisbank/Bengaluru", "350.00", "", ""],
        ["17/01/2024", "NEFT SALARY CREDIT", "", "85,000.00", ""],
        ["", "Closing balance", "", "", ""],
    ]


@pytest.fixture
def sample_csv_content() -> str:
    """Return sample CSV content with a preamble above the header."""
    return (
        "Account Statement,,,,\n"
        "Account No: XXXX1234,,,,\n"
        "Txn Date,Description,Debit,Credit,Ref No\n"
        "15/01/2024,UPI-SWIGGY-MERCHANT@PAYTM,1250.00,,432109876543\n"
        "16-Jan-2024,POS AMAZON PAY INDIA,2499.00,,\n"
        "17/01/2024,INTEREST CREDIT,,12.50,\n"
    )


@pytest.fixture
def swiggy_receipt_text() -> str:
    """Return OCR text of a PhonePe receipt."""
    return (
        "PhonePe\n"
        "Payment Successful\n"
        "₹1,250.00\n"
        "To: Swiggy\n"
        "UPI Transaction ID: 432109876543\n"
        "Date: 15/01/2024\n"
        "From: your-account@paytm\n"
    )


@pytest.fixture
def make_transaction():
    """Return a factory for bank transactions."""
    def _make(
        id: str = "bank_1",
        amount: str = "1250.00",
        txn_date: date = date(2024, 1, 15),
        description: str = "UPI-SWIGGY-MERCHANT@PAYTM",
        utr: str | None = None,
        **kwargs
    ) -> BankTransaction:
        return BankTransaction(
            id=id,
            date=txn_date,
            amount=Decimal(amount),
            description=description,
            utr=utr,
            **kwargs
        )
    return _make


@pytest.fixture
def make_receipt():
    """Return a factory for receipts."""
    def _make(
        id: str = "receipt_1",
        amount: str = "1250.00",
        receipt_date: date = date(2024, 1, 15),
        merchant: str = "Swiggy",
        utr: str | None = None,
        **kwargs
    ) -> Receipt:
        return Receipt(
            id=id,
            date=receipt_date,
            amount=Decimal(amount),
            merchant=merchant,
            utr=utr,
            extracted_data=ExtractedData(confidence=0.9, raw_text=""),
            **kwargs
        )
    return _make
