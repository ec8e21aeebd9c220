"""
Exports API Routes

Downloads of approved matches.
"""

from datetime import date

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from reconciliation.export import to_csv

from ..schemas import MatchModel

router = APIRouter(prefix="/exports", tags=["exports"])


class ExportRequest(BaseModel):
    """Matches to export (only approved ones are written)."""

    matches: list[MatchModel]


@router.post("/csv", response_class=PlainTextResponse)
async def export_csv(request: ExportRequest) -> PlainTextResponse:
    """Export approved matches as CSV."""
    content = to_csv([m.to_domain() for m in request.matches])
    file_name = f"upi-transactions-{date.today().isoformat()}.csv"

    return PlainTextResponse(
        content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{file_name}"'},
    )
