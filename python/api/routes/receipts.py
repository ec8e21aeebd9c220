"""
Receipts API Routes

Receipt extraction from OCR text.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from reconciliation.pipeline import OcrJob, ReconciliationPipeline

from ..dependencies import get_pipeline
from ..schemas import ReceiptModel

router = APIRouter(prefix="/receipts", tags=["receipts"])


class ExtractRequest(BaseModel):
    """OCR output for one receipt."""

    raw_text: str
    confidence: float = Field(0.0, ge=0, le=100)
    receipt_id: str | None = None


class BatchExtractRequest(BaseModel):
    """OCR output for several receipts."""

    items: list[ExtractRequest]


class BatchExtractResponse(BaseModel):
    """Extracted receipts and per-item failures."""

    receipts: list[ReceiptModel]
    errors: list[str]


@router.post("/extract", response_model=ReceiptModel)
async def extract_receipt(
    request: ExtractRequest,
    pipeline: ReconciliationPipeline = Depends(get_pipeline),
) -> ReceiptModel:
    """Build a receipt from OCR text.

    Confidence may be given as a fraction or a percentage.
    """
    receipt = pipeline.extractor.build_receipt(
        request.raw_text, request.confidence, request.receipt_id
    )
    return ReceiptModel(**receipt.to_dict())


@router.post("/extract/batch", response_model=BatchExtractResponse)
async def extract_receipts(
    request: BatchExtractRequest,
    pipeline: ReconciliationPipeline = Depends(get_pipeline),
) -> BatchExtractResponse:
    """Build receipts from several OCR results."""
    result = pipeline.extract_receipts([
        OcrJob(raw_text=item.raw_text, confidence=item.confidence, receipt_id=item.receipt_id)
        for item in request.items
    ])
    return BatchExtractResponse(
        receipts=[ReceiptModel(**r.to_dict()) for r in result.receipts],
        errors=result.errors,
    )
