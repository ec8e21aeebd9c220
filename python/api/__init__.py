"""
FastAPI Backend for UPI Reconciliation

Stateless REST API over the reconciliation pipeline.
"""

from .main import app

__all__ = ["app"]
