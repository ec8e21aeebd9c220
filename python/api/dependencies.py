"""
API Dependencies

Shared pipeline instance and the mapping from domain errors to HTTP errors.
"""

import logging
import os

from fastapi import HTTPException, status

from categorization.rules import ProtectedRuleError, StaleRuleStoreError
from reconciliation.pipeline import ReconciliationPipeline
from reconciliation.review import InvalidMatchTransition

logger = logging.getLogger(__name__)


pipeline = ReconciliationPipeline(
    config_dir=os.getenv("RECONCILER_CONFIG_DIR") or None,
    max_workers=int(os.getenv("RECONCILER_MAX_WORKERS", "4")),
)


def get_pipeline() -> ReconciliationPipeline:
    """Get the shared reconciliation pipeline."""
    return pipeline


def http_error(error: Exception) -> HTTPException:
    """Translate a domain error into an HTTPException.

    Conflicting state (terminal matches, stale or protected rules) maps to
    409, unknown ids to 404, other invalid input to 400.
    """
    if isinstance(error, (InvalidMatchTransition, StaleRuleStoreError, ProtectedRuleError)):
        code = status.HTTP_409_CONFLICT
    elif isinstance(error, KeyError):
        code = status.HTTP_404_NOT_FOUND
        return HTTPException(status_code=code, detail=f"Not found: {error.args[0]}")
    else:
        code = status.HTTP_400_BAD_REQUEST

    logger.info(f"Request rejected ({code}): {error}")
    return HTTPException(status_code=code, detail=str(error))
