"""API module for the retrieval engine."""

from .models import DocumentIn, HealthResponse, RetrieveRequest, RetrieveResponse
from .app import create_app

__all__ = [
    "DocumentIn",
    "HealthResponse",
    "RetrieveRequest",
    "RetrieveResponse",
    "create_app",
]
