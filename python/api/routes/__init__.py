"""
API Routes Package

Contains all route modules for the reconciliation API.
"""

from .statements import router as statements_router
from .receipts import router as receipts_router
from .matches import router as matches_router
from .rules import router as rules_router
from .exports import router as exports_router

__all__ = [
    "statements_router",
    "receipts_router",
    "matches_router",
    "rules_router",
    "exports_router",
]
