"""
Pydantic models for remote service responses.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class AssignmentEntryResponse(BaseModel):
    """One risk class row (bbtezu) of a calculation."""
    model_config = ConfigDict(extra="ignore")

    type: str = Field("", description="Assignment type (HZ, NZ)")
    klasse: Optional[str] = Field(None, description="Risk class, e.g. A0")
    anteil: Optional[float] = Field(None, description="Class portion in percent")
    ukt: Optional[str] = Field(None, description="Subclass part")


class CalculatedBBResponse(BaseModel):
    """Result of the technical assignment calculation (calculateFuvBB)."""
    model_config = ConfigDict(extra="ignore")

    basisstufe: Optional[int] = Field(None, description="Base level")
    nettopraemiensatz: Optional[float] = Field(None, description="Net premium rate")
    bruttopraemiensatz: Optional[float] = Field(None, description="Gross premium rate")
    vksatz: Optional[float] = Field(None, description="Admin cost rate in percent")
    agenturkompetenz: Optional[Any] = Field(None, description="Agency competence code or number")
    bbtezu: list[AssignmentEntryResponse] = Field(default_factory=list)


class BonitySearchResponse(BaseModel):
    """Person lookup result of the bonity bureau."""
    model_config = ConfigDict(extra="ignore")

    report_id: Optional[Any] = Field(None, description="Bureau report id")
    bonitaet: Optional[str] = Field(None, description="Traffic light colour, e.g. GREEN")
    bonitaet_kommentar: Optional[str] = Field(None, description="Rating comment")
    audit_flag: bool = Field(False, description="Audit required")
