"""
LLM-based ingredient safety analysis.
The reply must be a JSON verdict; anything else is an UpstreamError and the caller
falls back to keyword matching.
"""

import json
import re
from typing import Any, Iterable, Mapping, Optional

import dspy
from pydantic import ValidationError

from allerguard.config import settings
from allerguard.errors import UpstreamError
from allerguard.logging import get_logger
from allerguard.schemas.analysis import LLMVerdictPayload, Verdict
from allerguard.services.allergens import COMMON_ALLERGENS
from allerguard.services.llm.dspy_client import is_configured, run_with_logging
from allerguard.services.llm.prompts import INGREDIENT_SAFETY_PROMPT_VERSION, INGREDIENT_SAFETY_TEMPLATE

logger = get_logger(__name__)

_CODE_FENCE = re.compile(r"^```(?:json)?\s*([\s\S]*?)(?:```\s*)?$")


class IngredientSafetySignature(dspy.Signature):
    """Assess a packaged-food ingredient list for a family's food allergies."""

    ingredients: str = dspy.InputField(desc="ingredient list as printed on the label")
    family_allergies: str = dspy.InputField(desc="comma-separated allergens the family must avoid, with severity in parentheses when known")
    common_allergens: str = dspy.InputField(desc="comma-separated allergens to always check")
    prompt_template: str = dspy.InputField()
    verdict_json: str = dspy.OutputField(desc="a single JSON object with the keys listed in prompt_template")


class IngredientSafetyAnalyzer(dspy.Module):
    def __init__(self) -> None:
        super().__init__()
        self.predict = dspy.Predict(IngredientSafetySignature)

    def forward(self, ingredients: str, family_allergies: str) -> dspy.Prediction:
        return self.predict(
            ingredients=ingredients,
            family_allergies=family_allergies,
            common_allergens=", ".join(COMMON_ALLERGENS),
            prompt_template=INGREDIENT_SAFETY_TEMPLATE,
        )


def format_family_allergies(
    allergens: Iterable[str], severities: Optional[Mapping[str, Optional[str]]] = None
) -> str:
    """Prompt form of the profile, e.g. "milk, peanut (severe)"."""
    severities = severities or {}
    parts = []
    for name in sorted(allergens):
        severity = severities.get(name)
        parts.append(f"{name} ({severity})" if severity else name)
    return ", ".join(parts) or "None specified"


def parse_verdict_output(raw: Any) -> Verdict:
    """
    Validate the LLM reply against LLMVerdictPayload.
    The whole reply may be wrapped in a ```json fence; prose around it is rejected.
    """
    if isinstance(raw, dict):
        raw = json.dumps(raw)
    if not isinstance(raw, str) or not raw.strip():
        raise UpstreamError("empty LLM reply")
    s = raw.strip()
    m = _CODE_FENCE.match(s)
    if m:
        s = m.group(1).strip()
    try:
        payload = LLMVerdictPayload.model_validate_json(s)
    except ValidationError as e:
        raise UpstreamError(f"LLM reply rejected: {e.error_count()} validation error(s)") from e
    return payload.to_verdict()


def analyze_with_llm(
    ingredients: str,
    allergens: Iterable[str],
    severities: Optional[Mapping[str, Optional[str]]] = None,
) -> Verdict:
    """Single completion call, no retry. Raises UpstreamError on any failure."""
    if not settings.use_llm_analysis:
        raise UpstreamError("LLM analysis disabled")
    if not is_configured():
        raise UpstreamError("LLM not configured")
    family_allergies = format_family_allergies(allergens, severities)
    try:
        prediction = run_with_logging(
            prompt_name="ingredient_safety",
            prompt_version=INGREDIENT_SAFETY_PROMPT_VERSION,
            fn=IngredientSafetyAnalyzer().forward,
            ingredients=ingredients,
            family_allergies=family_allergies,
        )
    except UpstreamError:
        raise
    except Exception as e:
        raise UpstreamError(f"completion call failed: {e}") from e
    verdict = parse_verdict_output(getattr(prediction, "verdict_json", None))
    logger.info(
        "ingredient_safety.llm_verdict risk=%s detected=%s",
        verdict.risk_level.value,
        len(verdict.detected_allergens),
    )
    return verdict
