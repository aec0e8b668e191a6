"""Pydantic schemas for the paddy treatment advisor API."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class SubmitInputRequest(BaseModel):
    """Farmer submission. All fields optional here so missing ones map to 400, not 422."""
    model_config = ConfigDict(populate_by_name=True)

    disease: Optional[str] = None
    # Raw value, validated by the session loader (numbers and numeric strings)
    budget: Any = None
    location: Optional[str] = None
    control_method: Optional[str] = Field(None, alias="controlMethod")

    def missing_fields(self) -> list[str]:
        missing = []
        if not self.disease:
            missing.append("disease")
        if self.budget is None or self.budget == "":
            missing.append("budget")
        if not self.location:
            missing.append("location")
        return missing


class SubmitInputResponse(BaseModel):
    success: bool
    instance: str


class PurgeResponse(BaseModel):
    success: bool
    instance: str


class ErrorResponse(BaseModel):
    error: str
    kind: str


class HealthResponse(BaseModel):
    status: str
    backend: str
    connected: bool


class VocabularyResponse(BaseModel):
    tenant: str
    diseases: list[str] = Field(default_factory=list)
    locations: list[str] = Field(default_factory=list)
