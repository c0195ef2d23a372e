from datetime import datetime
from enum import Enum
from typing import Literal, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    StrictStr,
    computed_field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    UNKNOWN = "UNKNOWN"


class SafetyRating(str, Enum):
    SAFE = "safe"
    CAUTION = "caution"
    DANGER = "danger"
    UNKNOWN = "unknown"


RISK_TO_RATING = {
    RiskLevel.LOW: SafetyRating.SAFE,
    RiskLevel.MEDIUM: SafetyRating.CAUTION,
    RiskLevel.HIGH: SafetyRating.DANGER,
    RiskLevel.UNKNOWN: SafetyRating.UNKNOWN,
}
RATING_TO_RISK = {rating: risk for risk, rating in RISK_TO_RATING.items()}

CrossContaminationRisk = Literal["low", "medium", "high", "unknown"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class IngredientBreakdown(CamelModel):
    safe: list[str] = Field(default_factory=list)
    concerning: list[str] = Field(default_factory=list)
    dangerous: list[str] = Field(default_factory=list)


class AllergenWarning(CamelModel):
    allergen: str
    ingredient: str = ""
    severity: Optional[str] = None  # mild | moderate | severe, when known
    reason: str = ""


class Verdict(CamelModel):
    """Safety verdict for one ingredient list. Serialized with camelCase keys."""

    detected_allergens: list[str] = Field(default_factory=list)
    risk_level: RiskLevel
    analysis: str
    recommendations: str
    ingredient_breakdown: IngredientBreakdown = Field(default_factory=IngredientBreakdown)
    warnings: list[AllergenWarning] = Field(default_factory=list)
    cross_contamination_risk: CrossContaminationRisk = "unknown"

    @computed_field(alias="safetyRating")
    @property
    def safety_rating(self) -> SafetyRating:
        return RISK_TO_RATING[self.risk_level]

    @computed_field(alias="summary")
    @property
    def summary(self) -> str:
        return self.analysis


class AllergyEntry(BaseModel):
    type: StrictStr = Field(validation_alias=AliasChoices("type", "name"))
    severity: Optional[str] = None


class _AllergyListRequest(BaseModel):
    # Plain names and {type, severity} objects may be mixed; familyAllergies is accepted too.
    allergies: Optional[list[Union[StrictStr, AllergyEntry]]] = Field(
        default=None,
        validation_alias=AliasChoices("allergies", "familyAllergies"),
    )

    def allergy_profile(self) -> list[tuple[str, Optional[str]]]:
        """(name, severity) pairs; plain string entries carry no severity."""
        entries = []
        for entry in self.allergies or []:
            if isinstance(entry, str):
                name, severity = entry, None
            else:
                name, severity = entry.type, entry.severity
            if name.strip():
                entries.append((name, severity))
        return entries


class AnalyzeRequest(_AllergyListRequest):
    """Body of POST /api/analyze-ingredients. An empty allergies list means "use the family profile"."""

    ingredients: StrictStr

    @field_validator("ingredients")
    @classmethod
    def _ingredients_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Ingredients text is required")
        return value


class ScanHistoryItem(CamelModel):
    id: int
    ingredients: str
    detected: list[str]
    is_problematic: bool
    created_at: datetime
    verdict: dict


# --- LLM reply ---------------------------------------------------------------


class _StrictCamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, strict=True)


class LLMIngredientBreakdown(_StrictCamelModel):
    safe: list[str]
    concerning: list[str]
    dangerous: list[str]


class LLMWarning(_StrictCamelModel):
    allergen: str
    ingredient: str = ""
    severity: Optional[str] = None
    reason: str = ""


class LLMVerdictPayload(_StrictCamelModel):
    """
    Shape the completion service must return. Validated with model_validate_json,
    so enums/literals are matched against their JSON string values.
    Either riskLevel or safetyRating, and either analysis or summary, must be present.
    """

    detected_allergens: list[str]
    risk_level: Optional[Literal["LOW", "MEDIUM", "HIGH"]] = None
    safety_rating: Optional[Literal["safe", "caution", "danger"]] = None
    analysis: Optional[str] = None
    summary: Optional[str] = None
    recommendations: str
    ingredient_breakdown: LLMIngredientBreakdown
    warnings: list[LLMWarning] = Field(default_factory=list)
    cross_contamination_risk: Optional[CrossContaminationRisk] = None

    @model_validator(mode="after")
    def _require_rating_and_text(self) -> "LLMVerdictPayload":
        if self.risk_level is None and self.safety_rating is None:
            raise ValueError("riskLevel or safetyRating is required")
        if not (self.analysis or self.summary):
            raise ValueError("analysis or summary is required")
        return self

    def to_verdict(self) -> Verdict:
        detected: list[str] = []
        for name in self.detected_allergens:
            norm = name.strip().lower()
            if norm and norm not in detected:
                detected.append(norm)
        if self.risk_level is not None:
            risk = RiskLevel(self.risk_level)
        else:
            risk = RATING_TO_RISK[SafetyRating(self.safety_rating)]
        # Named allergens never come back as "safe".
        if detected and risk == RiskLevel.LOW:
            risk = RiskLevel.MEDIUM
        return Verdict(
            detected_allergens=detected,
            risk_level=risk,
            analysis=self.analysis or self.summary or "",
            recommendations=self.recommendations,
            ingredient_breakdown=IngredientBreakdown(
                safe=self.ingredient_breakdown.safe,
                concerning=self.ingredient_breakdown.concerning,
                dangerous=self.ingredient_breakdown.dangerous,
            ),
            warnings=[AllergenWarning(**w.model_dump()) for w in self.warnings],
            cross_contamination_risk=self.cross_contamination_risk or "unknown",
        )


# --- single-ingredient check -------------------------------------------------


class QuickCheckStatus(str, Enum):
    SAFE = "SAFE"
    UNSAFE = "UNSAFE"
    UNCERTAIN = "UNCERTAIN"


class QuickCheckRequest(_AllergyListRequest):
    """Body of POST /api/quick-check."""

    ingredient: StrictStr

    @field_validator("ingredient")
    @classmethod
    def _ingredient_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Ingredient is required")
        return value


class QuickCheckResult(CamelModel):
    status: QuickCheckStatus
    reason: str = ""

    @computed_field(alias="safe")
    @property
    def safe(self) -> bool:
        return self.status == QuickCheckStatus.SAFE
