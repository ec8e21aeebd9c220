"""
Matches API Routes

Matching, review and summary endpoints. The API holds no state: callers
post the current transactions, receipts, matches and rules and receive the
updated versions back.
"""

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from reconciliation.pipeline import ReconciliationPipeline
from reconciliation.reporting import format_report, spending_by_month, summarize

from ..dependencies import get_pipeline, http_error
from ..schemas import (
    MatchModel,
    ReceiptModel,
    RuleSetModel,
    TrainingOptionsModel,
    TransactionModel,
    rules_or_defaults,
)

router = APIRouter(prefix="/matches", tags=["matches"])


class MatchRequest(BaseModel):
    """Inputs for a matching pass."""

    transactions: list[TransactionModel]
    receipts: list[ReceiptModel]
    rules: RuleSetModel | None = None
    existing_matches: list[MatchModel] = Field(default_factory=list)
    categorize: bool = True


class MatchResponse(BaseModel):
    """Matches and the rule set with usage recorded."""

    matches: list[MatchModel]
    rules: RuleSetModel | None = None


class ApproveRequest(BaseModel):
    """Approval of one match."""

    matches: list[MatchModel]
    match_id: str
    category: str | None = None
    notes: str | None = None
    options: TrainingOptionsModel = Field(default_factory=TrainingOptionsModel)
    rules: RuleSetModel | None = None
    expected_version: int | None = None


class BulkApproveRequest(BaseModel):
    """Approval of every high-scoring pending match."""

    matches: list[MatchModel]
    min_score: int = Field(80, ge=0)
    category: str | None = None
    notes: str | None = None
    options: TrainingOptionsModel = Field(
        default_factory=lambda: TrainingOptionsModel(bulk_training=True)
    )
    rules: RuleSetModel | None = None


class ApproveResponse(BaseModel):
    """Updated matches and rules after approval."""

    approved: list[MatchModel]
    matches: list[MatchModel]
    rules: RuleSetModel


class RejectRequest(BaseModel):
    """Rejection of one match."""

    matches: list[MatchModel]
    match_id: str


class MatchesRequest(BaseModel):
    """A set of matches."""

    matches: list[MatchModel]


class SummaryResponse(BaseModel):
    """Reconciliation summary."""

    summary: dict[str, Any]
    by_month: dict[str, dict[str, Any]]
    report: str


class SimilarGroup(BaseModel):
    """Pending matches sharing a payee."""

    key: str
    match_ids: list[str]


def _match_models(matches) -> list[MatchModel]:
    return [MatchModel(**m.to_dict()) for m in matches]


@router.post("", response_model=MatchResponse)
async def run_matching(
    request: MatchRequest,
    pipeline: ReconciliationPipeline = Depends(get_pipeline),
) -> MatchResponse:
    """Match transactions to receipts and suggest categories."""
    try:
        rules = rules_or_defaults(request.rules, pipeline) if request.categorize else None
        result = pipeline.run_matching(
            [t.to_domain() for t in request.transactions],
            [r.to_domain() for r in request.receipts],
            rules,
            [m.to_domain() for m in request.existing_matches],
        )
    except ValueError as e:
        raise http_error(e)

    return MatchResponse(
        matches=_match_models(result.matches),
        rules=RuleSetModel(**result.rules.to_dict()) if result.rules is not None else None,
    )


@router.post("/approve", response_model=ApproveResponse)
async def approve(
    request: ApproveRequest,
    pipeline: ReconciliationPipeline = Depends(get_pipeline),
) -> ApproveResponse:
    """Approve a pending match and learn from the chosen category."""
    try:
        outcome = pipeline.approve(
            [m.to_domain() for m in request.matches],
            request.match_id,
            rules_or_defaults(request.rules, pipeline),
            category=request.category,
            notes=request.notes,
            options=request.options.to_domain(),
            expected_version=request.expected_version,
        )
    except (KeyError, ValueError) as e:
        raise http_error(e)

    return ApproveResponse(
        approved=_match_models(outcome.approved),
        matches=_match_models(outcome.matches),
        rules=RuleSetModel(**outcome.rules.to_dict()),
    )


@router.post("/bulk-approve", response_model=ApproveResponse)
async def bulk_approve(
    request: BulkApproveRequest,
    pipeline: ReconciliationPipeline = Depends(get_pipeline),
) -> ApproveResponse:
    """Approve all pending matches with a receipt at or above min_score."""
    try:
        outcome = pipeline.bulk_approve(
            [m.to_domain() for m in request.matches],
            rules_or_defaults(request.rules, pipeline),
            min_score=request.min_score,
            category=request.category,
            notes=request.notes,
            options=request.options.to_domain(),
        )
    except ValueError as e:
        raise http_error(e)

    return ApproveResponse(
        approved=_match_models(outcome.approved),
        matches=_match_models(outcome.matches),
        rules=RuleSetModel(**outcome.rules.to_dict()),
    )


@router.post("/reject", response_model=list[MatchModel])
async def reject(
    request: RejectRequest,
    pipeline: ReconciliationPipeline = Depends(get_pipeline),
) -> list[MatchModel]:
    """Reject a pending match."""
    try:
        matches = pipeline.reject([m.to_domain() for m in request.matches], request.match_id)
    except (KeyError, ValueError) as e:
        raise http_error(e)
    return _match_models(matches)


@router.post("/similar", response_model=list[SimilarGroup])
async def similar_groups(
    request: MatchesRequest,
    pipeline: ReconciliationPipeline = Depends(get_pipeline),
) -> list[SimilarGroup]:
    """Group pending matches by payee for bulk training."""
    groups = pipeline.group_similar([m.to_domain() for m in request.matches])
    return [SimilarGroup(key=g.key, match_ids=[m.id for m in g.matches]) for g in groups]


@router.post("/summary", response_model=SummaryResponse)
async def summary(request: MatchesRequest) -> SummaryResponse:
    """Summarize reviewed matches."""
    matches = [m.to_domain() for m in request.matches]
    result = summarize(matches)
    monthly = spending_by_month(matches)

    return SummaryResponse(
        summary=result.to_dict(),
        by_month={
            month: {
                "total": float(data["total"]),
                "categories": {k: float(v) for k, v in data["categories"].items()},
            }
            for month, data in monthly.items()
        },
        report=format_report(result, monthly),
    )
