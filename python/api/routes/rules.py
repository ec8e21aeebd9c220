"""
Rules API Routes

Category rule inspection, categorization and manual rule management.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from reconciliation.pipeline import ReconciliationPipeline

from ..dependencies import get_pipeline, http_error
from ..schemas import RuleSetModel, rules_or_defaults

router = APIRouter(prefix="/rules", tags=["rules"])


class CategorizeRequest(BaseModel):
    """Text to categorize."""

    text: str
    rules: RuleSetModel | None = None


class CategorizeResponse(BaseModel):
    """Winning category, if any."""

    category: str | None
    confidence: float
    rule_id: str | None = None
    rule_name: str | None = None
    method: str | None = None


class AddRuleRequest(BaseModel):
    """Manually defined user rule."""

    name: str
    category: str
    patterns: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    confidence: float | None = Field(None, ge=0, le=1)
    notes: str | None = None
    rules: RuleSetModel | None = None


class RemoveRuleRequest(BaseModel):
    """Removal of a user rule."""

    rule_id: str
    rules: RuleSetModel


@router.get("/defaults", response_model=RuleSetModel)
async def default_rules(
    pipeline: ReconciliationPipeline = Depends(get_pipeline),
) -> RuleSetModel:
    """Get the default system rules."""
    return RuleSetModel(**pipeline.default_rules().to_dict())


@router.post("/categorize", response_model=CategorizeResponse)
async def categorize(
    request: CategorizeRequest,
    pipeline: ReconciliationPipeline = Depends(get_pipeline),
) -> CategorizeResponse:
    """Categorize a merchant name or description."""
    try:
        match = pipeline.categorizer.categorize(
            request.text, rules_or_defaults(request.rules, pipeline)
        )
    except ValueError as e:
        raise http_error(e)

    if match is None:
        return CategorizeResponse(category=None, confidence=0.0)

    return CategorizeResponse(
        category=match.category.value,
        confidence=round(match.confidence, 4),
        rule_id=match.rule.id,
        rule_name=match.rule.name,
        method=match.method,
    )


@router.post("/add", response_model=RuleSetModel)
async def add_rule(
    request: AddRuleRequest,
    pipeline: ReconciliationPipeline = Depends(get_pipeline),
) -> RuleSetModel:
    """Add a user rule to the posted (or default) rule set."""
    try:
        rules = rules_or_defaults(request.rules, pipeline).add_user_rule(
            name=request.name,
            category=request.category,
            patterns=request.patterns,
            keywords=request.keywords,
            confidence=request.confidence,
            notes=request.notes,
        )
    except ValueError as e:
        raise http_error(e)
    return RuleSetModel(**rules.to_dict())


@router.post("/remove", response_model=RuleSetModel)
async def remove_rule(request: RemoveRuleRequest) -> RuleSetModel:
    """Remove a user rule. System rules cannot be removed."""
    try:
        rules = request.rules.to_domain().remove_rule(request.rule_id)
    except (KeyError, ValueError) as e:
        raise http_error(e)
    return RuleSetModel(**rules.to_dict())


@router.post("/stats")
async def rule_stats(
    rules: RuleSetModel | None = None,
    pipeline: ReconciliationPipeline = Depends(get_pipeline),
) -> dict:
    """Get rule set statistics."""
    return rules_or_defaults(rules, pipeline).stats().to_dict()
