"""
Statement Normalizer

Maps raw tabular rows from any bank export into canonical BankTransaction
records: header inference, amount resolution and UPI narration extraction.
"""

import logging
import re
import uuid
from collections.abc import Mapping, Sequence
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from .base import (
    BankTransaction,
    MalformedStatementError,
    NormalizationResult,
    cell_text,
    parse_amount,
)
from .date_parser import DateParser

logger = logging.getLogger(__name__)


# UPI/<ref>/<DR|CR>/<merchant>/<bank code>/<vpa>[/<city>]
UPI_NARRATION_PATTERN = re.compile(
    r'UPI/(\d{8,18})/(DR|CR)/([^/]*)/([^/]*)/([^/\s]+)(?:/([^/]+))?',
    re.IGNORECASE
)
VPA_PATTERN = re.compile(r'\b([\w.\-]+@[A-Za-z][\w.]*)', re.IGNORECASE)

ROLES = ("date", "amount", "debit", "credit", "description", "utr")


class StatementNormalizer:
    """Normalizes bank statement rows using header-name heuristics."""

    # Ordered header candidates per column role
    COLUMN_CANDIDATES: dict[str, list[str]] = {
        "date": [
            "date", "transaction date", "txn date", "tran date",
            "value date", "posting date", "value dt",
        ],
        "amount": [
            "amount", "transaction amount", "txn amount", "amount (inr)", "amt",
        ],
        "debit": [
            "debit", "withdrawal", "withdrawal amt", "withdrawal amount",
            "debit amount", "paid out",
        ],
        "credit": [
            "credit", "deposit", "deposit amt", "deposit amount",
            "credit amount", "paid in",
        ],
        "description": [
            "description", "narration", "particulars", "transaction details",
            "details", "remarks",
        ],
        "utr": [
            "utr", "utr number", "utr no", "upi ref no", "reference number",
            "ref no", "reference", "chq/ref no", "transaction id",
        ],
    }

    # Rows scanned when looking for the header below a preamble
    HEADER_SEARCH_ROWS = 25

    def __init__(
        self,
        config_dir: Path | str | None = None,
        date_parser: DateParser | None = None
    ):
        """Initialize the normalizer.

        Args:
            config_dir: Path to configuration directory
            date_parser: DateParser to use (defaults to a new instance)
        """
        self.config_dir = Path(config_dir) if config_dir else Path(__file__).parent.parent.parent / "config"
        self.date_parser = date_parser or DateParser()
        self.column_candidates = {role: list(c) for role, c in self.COLUMN_CANDIDATES.items()}
        self._load_config()

    def _load_config(self) -> None:
        """Load header candidate overrides."""
        config_file = self.config_dir / "statement_columns.yaml"
        if not config_file.exists():
            return

        with open(config_file) as f:
            config = yaml.safe_load(f) or {}

        for role, candidates in (config.get("columns") or {}).items():
            if role in self.column_candidates and candidates:
                self.column_candidates[role] = [normalize_header(c) for c in candidates]
        self.HEADER_SEARCH_ROWS = config.get("header_search_rows", self.HEADER_SEARCH_ROWS)

    def normalize(self, rows: Sequence[Any]) -> list[BankTransaction]:
        """Normalize statement rows into bank transactions.

        Args:
            rows: Header row followed by data rows (lists or dicts)

        Returns:
            List of BankTransaction
        """
        return self.normalize_rows(rows).transactions

    def normalize_rows(self, rows: Sequence[Any]) -> NormalizationResult:
        """Normalize statement rows, reporting mapping and skipped rows.

        Args:
            rows: Header row followed by data rows (lists or dicts)

        Returns:
            NormalizationResult

        Raises:
            MalformedStatementError: If there is no header row at all
        """
        header, data_rows, header_index = self._split_header(rows)
        mapping = self.detect_columns(header)

        result = NormalizationResult(column_mapping=mapping, header_row_index=header_index)

        if mapping["date"] is None:
            result.warnings.append("Could not detect date column")
            result.skipped_rows = len(data_rows)
            return result

        if all(mapping[role] is None for role in ("amount", "debit", "credit")):
            result.warnings.append("Could not detect amount, debit or credit column")
            result.skipped_rows = len(data_rows)
            return result

        if mapping["description"] is None:
            result.warnings.append("Could not detect description column")

        run_token = uuid.uuid4().hex[:8]
        header_labels = [cell_text(h) for h in header]

        for row_num, row in enumerate(data_rows, start=header_index + 2):
            transaction = self._parse_row(row, mapping, header_labels, f"bank_{run_token}_{row_num}")
            if transaction:
                result.transactions.append(transaction)
            else:
                result.skipped_rows += 1
                logger.debug(f"Skipped statement row {row_num}")

        logger.info(
            f"Normalized {result.transaction_count} transactions "
            f"({result.skipped_rows} rows skipped)"
        )
        return result

    def detect_columns(self, header: Sequence[Any]) -> dict[str, int | None]:
        """Map column roles to header indexes.

        For each role the first exact candidate match wins, then the first
        candidate contained in a header, else the role stays unresolved.

        Args:
            header: Header row

        Returns:
            Dictionary mapping role to column index (or None)
        """
        headers = [normalize_header(h) for h in header]
        mapping: dict[str, int | None] = {}

        for role in ROLES:
            candidates = self.column_candidates[role]
            mapping[role] = _find_exact(headers, candidates)
            if mapping[role] is None:
                mapping[role] = _find_contains(headers, candidates)

        return mapping

    def locate_header(self, rows: Sequence[Sequence[Any]]) -> int:
        """Find the header row index below any preamble lines.

        Args:
            rows: Raw rows

        Returns:
            Index of the first row resolving a date column and an amount,
            debit or credit column; 0 if none does
        """
        for index, row in enumerate(rows[:self.HEADER_SEARCH_ROWS]):
            mapping = self.detect_columns(row)
            if mapping["date"] is not None and any(
                mapping[role] is not None for role in ("amount", "debit", "credit")
            ):
                return index
        return 0

    def _split_header(self, rows: Sequence[Any]) -> tuple[list[Any], list[Sequence[Any]], int]:
        """Separate the header from data rows, converting dict rows."""
        if not rows:
            raise MalformedStatementError("Statement has no rows")

        if isinstance(rows[0], Mapping):
            header = list(rows[0].keys())
            if not header:
                raise MalformedStatementError("Statement has no header row")
            data_rows = [[row.get(h) for h in header] for row in rows]
            return header, data_rows, 0

        tabular = [list(row) for row in rows]
        header_index = self.locate_header(tabular)
        header = tabular[header_index]

        if not any(cell_text(h) for h in header):
            raise MalformedStatementError("Statement has no header row")

        return header, tabular[header_index + 1:], header_index

    def _parse_row(
        self,
        row: Sequence[Any],
        mapping: dict[str, int | None],
        header_labels: list[str],
        transaction_id: str
    ) -> BankTransaction | None:
        """Parse a single row using the detected column mapping."""
        date_value = _cell(row, mapping["date"])
        if date_value is None or cell_text(date_value) == "":
            return None

        # Text without any digit (totals, footers) is not a date
        if isinstance(date_value, str) and not _looks_like_date(date_value):
            return None
        txn_date = self.date_parser.parse(date_value)

        amount = self.resolve_amount(
            _cell(row, mapping["amount"]),
            _cell(row, mapping["credit"]),
            _cell(row, mapping["debit"]),
        )
        if amount is None or amount <= 0:
            return None

        description = cell_text(_cell(row, mapping["description"]))

        utr, vpa, city = extract_upi_details(description)
        utr_cell = cell_text(_cell(row, mapping["utr"]))
        if utr_cell and utr_cell not in ("-", "nan"):
            utr = utr_cell

        raw_data = {
            label or f"column_{i}": value
            for i, (label, value) in enumerate(zip(header_labels, row))
        }

        return BankTransaction(
            id=transaction_id,
            date=txn_date,
            amount=amount,
            description=description,
            utr=utr,
            vpa=vpa,
            city=city,
            raw_data=raw_data,
        )

    @staticmethod
    def resolve_amount(amount_value: Any, credit_value: Any, debit_value: Any) -> Decimal | None:
        """Resolve the row amount.

        A non-zero amount column wins, then a non-zero credit, then a
        non-zero debit. The absolute value is returned.

        Returns:
            Positive Decimal, or None if nothing usable is present
        """
        for value in (amount_value, credit_value, debit_value):
            amount = parse_amount(value)
            if amount is not None and amount != 0:
                return abs(amount)
        return None


def extract_upi_details(description: str) -> tuple[str | None, str | None, str | None]:
    """Extract (utr, vpa, city) from a UPI narration.

    Falls back to a bare payment handle for the VPA when the structured
    narration is absent.
    """
    if not description:
        return None, None, None

    match = UPI_NARRATION_PATTERN.search(description)
    if match:
        city = match.group(6).strip() if match.group(6) else None
        return match.group(1), match.group(5).strip().lower(), city or None

    vpa_match = VPA_PATTERN.search(description)
    if vpa_match:
        return None, vpa_match.group(1).lower(), None

    return None, None, None


def normalize_header(value: Any) -> str:
    """Trim, lowercase and collapse whitespace in a header cell."""
    return re.sub(r'\s+', ' ', cell_text(value).lower()).strip()


def _find_exact(headers: list[str], candidates: list[str]) -> int | None:
    for candidate in candidates:
        if candidate in headers:
            return headers.index(candidate)
    return None


def _find_contains(headers: list[str], candidates: list[str]) -> int | None:
    for candidate in candidates:
        for index, header in enumerate(headers):
            if header and candidate in header:
                return index
    return None


def _cell(row: Sequence[Any], index: int | None) -> Any:
    if index is None or index >= len(row):
        return None
    return row[index]


def _looks_like_date(text: str) -> bool:
    return bool(re.search(r'\d', text))
