"""Blueprint request schema.

Validates the payload a visitor submits to receive a generated blueprint:
lead contact details plus the blueprint content produced by the AI service.
"""

from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel as PydanticBaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

Level = Literal["low", "medium", "high"]


class ArchitectureLayer(PydanticBaseModel):
    """One layer of the proposed architecture."""

    name: str
    components: list[str] | None = None
    technologies: list[str] | None = None
    responsibilities: list[str] | None = None


class TechnologyChoice(PydanticBaseModel):
    """A selected technology with its alternatives."""

    category: str
    selected: str
    alternatives: list[str] | None = None
    rationale: str | None = None
    risk_level: Level | None = None


class TimelinePhase(PydanticBaseModel):
    """An implementation phase."""

    phase: str
    duration: str
    deliverables: list[str] | None = None
    dependencies: list[str] | None = None


class RiskMitigation(PydanticBaseModel):
    """A risk and how to mitigate it."""

    risk: str
    probability: Level | None = None
    impact: Level | None = None
    mitigation_strategy: str | None = None


class SuccessMetric(PydanticBaseModel):
    """A measurable success criterion."""

    metric: str
    baseline: str | None = None
    target: str | None = None
    measurement_method: str | None = None


class BlueprintContent(PydanticBaseModel):
    """Generated blueprint document."""

    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(..., min_length=1, description="Blueprint title")
    executive_summary: str = Field(..., min_length=10)
    problem_statement: str = Field(..., min_length=10)
    current_state_analysis: str | None = None
    proposed_solution: str | None = None
    architecture_layers: list[ArchitectureLayer] = Field(..., min_length=1)
    technology_stack: list[TechnologyChoice] | None = None
    implementation_timeline: list[TimelinePhase] | None = None
    risks_and_mitigations: list[RiskMitigation] | None = None
    success_metrics: list[SuccessMetric] | None = None
    technical_architecture: str | None = Field(None, alias="technicalArchitecture")


class SaveBlueprintRequest(PydanticBaseModel):
    """Request to save a blueprint and deliver it to a lead."""

    session_id: UUID
    user_id: UUID | None = None
    email: EmailStr
    name: str = Field(..., min_length=1, description="Lead name")
    phone: str | None = None
    company: str | None = None
    role: str | None = None
    blueprint: BlueprintContent
    language: Literal["en", "pt-BR"] = "en"

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Normalize email to lowercase for consistent lookups."""
        return v.strip().lower()

    @property
    def email_domain(self) -> str:
        return self.email.rsplit("@", 1)[1]


def validate_blueprint(data: Any) -> tuple[SaveBlueprintRequest | None, list[dict]]:
    """Validate a raw blueprint payload.

    Returns:
        Tuple of (request, errors). ``request`` is None when ``errors`` is
        non-empty; each error is a dict with ``field`` and ``message``.
    """
    try:
        return SaveBlueprintRequest.model_validate(data), []
    except PydanticValidationError as e:
        return None, [
            {"field": ".".join(str(x) for x in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ]
