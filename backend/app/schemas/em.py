"""Pydantic schemas for E/M level calculation."""

from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from app.services.em_classifier import normalize_complexity


class CalculationSource(str, Enum):
    """Where the complexity ratings came from."""

    MANUAL = "manual"  # Supplied by the caller
    AI = "ai"  # Inferred from documentation by the language model


class EMCalculateRequest(BaseModel):
    """Request to calculate an E/M level.

    Supply all three complexities for a deterministic result. If any is missing
    and clinical documentation is present, the complexities are inferred.
    """

    model_config = ConfigDict(populate_by_name=True)

    history: str | None = Field(
        None,
        validation_alias=AliasChoices("history", "history_complexity"),
        description="History complexity (problem-focused .. comprehensive)",
    )
    exam: str | None = Field(
        None,
        validation_alias=AliasChoices("exam", "exam_complexity"),
        description="Exam complexity (problem-focused .. comprehensive)",
    )
    mdm: str | None = Field(
        None,
        validation_alias=AliasChoices("mdm", "mdm_complexity"),
        description="Medical decision making complexity (straightforward .. high)",
    )
    strict: bool | None = Field(
        None,
        description="Reject unrecognized complexity values instead of treating them as the lowest rank",
    )

    # Clinical documentation for inference
    encounter_id: str | None = Field(None, description="Encounter being coded (for audit)")
    transcript: str | None = Field(None, max_length=200000, description="Visit transcript")
    soap_note: dict[str, Any] | str | None = Field(None, description="SOAP note")
    encounter_type: str | None = Field(None, description="Encounter type (e.g., follow_up)")
    chief_complaint: str | None = Field(None, description="Chief complaint")
    vitals: dict[str, Any] | None = Field(None, description="Vital signs")
    patient_age: int | str | None = Field(None, description="Patient age")

    def supplied_complexities(self) -> dict[str, str]:
        """Axes given with a non-blank value, keyed by axis name."""
        values = {"history": self.history, "exam": self.exam, "mdm": self.mdm}
        return {axis: value for axis, value in values.items() if normalize_complexity(value)}

    def has_all_complexities(self) -> bool:
        return len(self.supplied_complexities()) == 3


class EMRanks(BaseModel):
    """Resolved rank (1-4) per axis."""

    history: int = Field(..., ge=1, le=4)
    exam: int = Field(..., ge=1, le=4)
    mdm: int = Field(..., ge=1, le=4)


class EMCalculateResponse(BaseModel):
    """Calculated E/M level with the ranks that produced it."""

    model_config = ConfigDict(protected_namespaces=())

    code: str = Field(..., description="E/M code (99212-99215)")
    name: str = Field(..., description="Level name")
    description: str = Field(..., description="Documentation requirement")
    ranks: EMRanks = Field(..., description="Ranks used for the decision")
    determining_rank: int = Field(..., ge=1, le=4, description="Second-highest rank")
    unrecognized: list[str] = Field(
        default_factory=list,
        description="Axes whose input was not recognized and was treated as the lowest rank",
    )
    reasoning: str = Field(..., description="Explanation of the selected level")
    source: CalculationSource = Field(..., description="Origin of the complexity ratings")
    details: dict[str, Any] = Field(default_factory=dict, description="Complexities and supporting points")
    model_suggested_code: str | None = Field(
        None, description="Code the language model proposed, when inferred"
    )


class EMLevelResponse(BaseModel):
    """Reference metadata for an E/M code."""

    code: str
    name: str
    description: str
    work_rvu: float
    assignable: bool = Field(..., description="Whether the 2-of-3 rule can produce this code")


class ComplexityOptionsResponse(BaseModel):
    """Accepted complexity values per axis, lowest first."""

    history: list[str]
    exam: list[str]
    mdm: list[str]
