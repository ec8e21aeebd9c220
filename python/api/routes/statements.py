"""
Statements API Routes

Upload and normalization of bank statement exports.
"""

from fastapi import APIRouter, Depends, File, UploadFile
from pydantic import BaseModel

from reconciliation.pipeline import ReconciliationPipeline

from ..dependencies import get_pipeline, http_error
from ..schemas import TransactionModel

router = APIRouter(prefix="/statements", tags=["statements"])


class NormalizeResponse(BaseModel):
    """Normalized statement."""

    file_name: str
    transactions: list[TransactionModel]
    column_mapping: dict[str, int | None]
    header_row_index: int
    skipped_rows: int
    warnings: list[str]
    total_amount: float


@router.post("/normalize", response_model=NormalizeResponse)
async def normalize_statement(
    file: UploadFile = File(...),
    pipeline: ReconciliationPipeline = Depends(get_pipeline),
) -> NormalizeResponse:
    """Normalize an uploaded CSV or Excel statement.

    Args:
        file: Statement export
        pipeline: Reconciliation pipeline

    Returns:
        Transactions plus the detected column mapping
    """
    content = await file.read()
    try:
        result = pipeline.normalize_content(file.filename or "", content)
    except ValueError as e:
        raise http_error(e)

    return NormalizeResponse(
        file_name=file.filename or "",
        transactions=[TransactionModel(**t.to_dict()) for t in result.transactions],
        column_mapping=result.column_mapping,
        header_row_index=result.header_row_index,
        skipped_rows=result.skipped_rows,
        warnings=result.warnings,
        total_amount=float(result.total_amount),
    )
