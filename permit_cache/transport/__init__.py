"""
Decision backend transport.

This module is part of PERMIT_CACHE.
"""

from .fetcher import DecisionFetcher, HttpDecisionFetcher
from .schemas import BulkCheckResponse, SingleCheckResponse

__all__ = [
    "DecisionFetcher",
    "HttpDecisionFetcher",
    "SingleCheckResponse",
    "BulkCheckResponse",
]
