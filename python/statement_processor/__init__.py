"""
Statement Processor Module

Handles date parsing, CSV/Excel reading, and normalization of bank statement
rows into canonical transactions.
"""

from .base import (
    BankTransaction,
    NormalizationResult,
    MalformedStatementError,
    UnsupportedFileError,
    parse_amount,
)
from .date_parser import DateParser, parse_date
from .normalizer import StatementNormalizer, extract_upi_details
from .readers import (
    read_csv_rows,
    read_excel_rows,
    read_statement_content,
    read_statement_file,
)

__all__ = [
    # Records
    "BankTransaction",
    "NormalizationResult",
    "MalformedStatementError",
    "UnsupportedFileError",
    "parse_amount",
    # Dates
    "DateParser",
    "parse_date",
    # Normalization
    "StatementNormalizer",
    "extract_upi_details",
    # Readers
    "read_csv_rows",
    "read_excel_rows",
    "read_statement_content",
    "read_statement_file",
]
