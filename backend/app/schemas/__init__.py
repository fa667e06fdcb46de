"""Pydantic schemas for the E/M Level Service."""

from app.schemas.em import (
    CalculationSource,
    ComplexityOptionsResponse,
    EMCalculateRequest,
    EMCalculateResponse,
    EMLevelResponse,
    EMRanks,
)

__all__ = [
    "CalculationSource",
    "ComplexityOptionsResponse",
    "EMCalculateRequest",
    "EMCalculateResponse",
    "EMLevelResponse",
    "EMRanks",
]
