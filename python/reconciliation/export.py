"""
Match Export Module

Flattens approved matches into tabular rows and writes them as CSV or Excel.
"""

import csv
import logging
from datetime import date
from io import StringIO
from pathlib import Path

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from .matcher import MatchStatus, TransactionMatch

logger = logging.getLogger(__name__)


EXPORT_COLUMNS = [
    "Date",
    "Amount",
    "UTR",
    "Merchant",
    "VPA",
    "City",
    "Category",
    "Bank Description",
    "Receipt",
    "Match Score",
    "Notes",
]

UNCATEGORIZED = "Uncategorized"

COLUMN_WIDTHS = {
    "Date": 12,
    "Amount": 14,
    "UTR": 16,
    "Merchant": 24,
    "VPA": 26,
    "City": 14,
    "Category": 20,
    "Bank Description": 44,
    "Receipt": 9,
    "Match Score": 12,
    "Notes": 50,
}


def export_rows(matches: list[TransactionMatch]) -> list[dict]:
    """Flatten approved matches into export rows.

    Args:
        matches: Reviewed matches (non-approved ones are skipped)

    Returns:
        List of dicts keyed by EXPORT_COLUMNS
    """
    rows = []
    for match in matches:
        if match.status != MatchStatus.APPROVED:
            continue

        txn = match.bank_transaction
        receipt = match.suggested_receipt
        rows.append({
            "Date": txn.date.isoformat(),
            "Amount": txn.amount,
            "UTR": txn.utr or (receipt.utr if receipt else None) or "",
            "Merchant": receipt.merchant if receipt else "",
            "VPA": txn.vpa or "",
            "City": txn.city or "",
            "Category": txn.category or UNCATEGORIZED,
            "Bank Description": txn.description,
            "Receipt": "Yes" if receipt else "No",
            "Match Score": match.match_score,
            "Notes": "; ".join(match.match_reasons),
        })
    return rows


def to_csv(matches: list[TransactionMatch]) -> str:
    """Render approved matches as CSV text with a header row."""
    output = StringIO()
    writer = csv.DictWriter(output, fieldnames=EXPORT_COLUMNS, lineterminator="\n")
    writer.writeheader()
    for row in export_rows(matches):
        writer.writerow({**row, "Amount": f"{row['Amount']:.2f}"})
    return output.getvalue()


def to_excel(matches: list[TransactionMatch], output_path: Path | str | None = None) -> Path:
    """Write approved matches to an Excel workbook.

    Args:
        matches: Reviewed matches
        output_path: Output file path (generated if None)

    Returns:
        Path to the written workbook
    """
    rows = export_rows(matches)
    output_path = Path(output_path) if output_path else Path(
        f"upi-transactions-{date.today().isoformat()}.xlsx"
    )

    wb = Workbook()
    ws = wb.active
    ws.title = "Transactions"

    header_font = Font(name="Arial", size=11, bold=True)
    header_fill = PatternFill(start_color="D9E1F2", end_color="D9E1F2", fill_type="solid")
    normal_font = Font(name="Arial", size=10)

    for col, name in enumerate(EXPORT_COLUMNS, start=1):
        cell = ws.cell(row=1, column=col, value=name)
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = Alignment(horizontal="center", vertical="center")
        ws.column_dimensions[get_column_letter(col)].width = COLUMN_WIDTHS.get(name, 15)

    for row_num, row in enumerate(rows, start=2):
        for col, name in enumerate(EXPORT_COLUMNS, start=1):
            value = row[name]
            if name == "Amount":
                value = float(value)
            cell = ws.cell(row=row_num, column=col, value=value)
            cell.font = normal_font
            if name == "Amount":
                cell.number_format = "#,##0.00"

    ws.freeze_panes = "A2"

    output_path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(output_path)
    logger.info(f"Exported {len(rows)} approved matches to {output_path}")

    return output_path
