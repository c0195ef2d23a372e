"""
Ingredient safety analysis: resolve allergens, ask the LLM, fall back to keyword
matching on any upstream failure, record the scan.
"""

from typing import Iterable

from sqlalchemy.exc import SQLAlchemyError

from allerguard.errors import InputValidationError, PersistenceError, UpstreamError
from allerguard.logging import get_logger
from allerguard.schemas.analysis import QuickCheckResult, RiskLevel, Verdict
from allerguard.services.allergens import match_allergens, quick_check_keywords
from allerguard.services.llm.ingredient_analyzer import analyze_with_llm
from allerguard.services.llm.quick_check import quick_check_with_llm
from allerguard.services.profile_resolver import AllergyInput, resolve_allergy_profile
from allerguard.storage import db
from allerguard.storage.repositories import create_scan_history
from allerguard.utils.timing import time_span

logger = get_logger(__name__)

UNKNOWN_SUMMARY = (
    "We could not analyze these ingredients right now. "
    "Treat the product as unsafe until you can check the label with the manufacturer."
)


def unknown_verdict(summary: str = UNKNOWN_SUMMARY) -> Verdict:
    """Stub returned when nothing could be determined. Never claims safety."""
    return Verdict(
        detected_allergens=[],
        risk_level=RiskLevel.UNKNOWN,
        analysis=summary,
        recommendations="Do not consume until the ingredients have been verified.",
        warnings=[],
        cross_contamination_risk="unknown",
    )


def validate_ingredients(ingredients: object) -> str:
    if not isinstance(ingredients, str) or not ingredients.strip():
        raise InputValidationError("Ingredients text is required")
    return ingredients


def _write_scan(user_id: str, ingredients: str, verdict: Verdict, source: str) -> None:
    try:
        with db.get_session() as session:
            create_scan_history(
                session,
                user_id=user_id,
                ingredients=ingredients,
                analysis=verdict.model_dump_json(by_alias=True),
                detected=verdict.detected_allergens,
                source=source,
            )
    except SQLAlchemyError as e:
        raise PersistenceError(str(e)) from e


def record_scan(user_id: str, ingredients: str, verdict: Verdict, source: str) -> None:
    """Best-effort history write: failures are logged, never raised."""
    try:
        _write_scan(user_id, ingredients, verdict, source)
    except PersistenceError as e:
        logger.error("scan_history.write_failed user_id=%s error=%s", user_id, e)


def analyze_ingredients(
    ingredients: object, explicit_allergens: Iterable[AllergyInput], user_id: str
) -> Verdict:
    text = validate_ingredients(ingredients)
    with time_span("analysis.total", user_id=user_id):
        profile = resolve_allergy_profile(explicit_allergens, user_id)
        try:
            verdict = analyze_with_llm(text, profile, severities=profile)
            source = "ai"
        except UpstreamError as e:
            logger.warning("analysis.llm_failed error=%s using keyword matching", e)
            verdict = match_allergens(text, profile, severities=profile)
            source = "fallback"
        record_scan(user_id, text, verdict, source)
    logger.info(
        "analysis.done user_id=%s source=%s risk=%s detected=%s",
        user_id,
        source,
        verdict.risk_level.value,
        ",".join(verdict.detected_allergens) or "-",
    )
    return verdict


def quick_check_ingredient(
    ingredient: object, explicit_allergens: Iterable[AllergyInput], user_id: str
) -> QuickCheckResult:
    """SAFE/UNSAFE/UNCERTAIN for one ingredient. Same fallback rule as analyze_ingredients; not recorded."""
    if not isinstance(ingredient, str) or not ingredient.strip():
        raise InputValidationError("Ingredient is required")
    profile = resolve_allergy_profile(explicit_allergens, user_id)
    try:
        result = quick_check_with_llm(ingredient, profile, severities=profile)
        source = "ai"
    except UpstreamError as e:
        logger.warning("quick_check.llm_failed error=%s using keyword matching", e)
        result = quick_check_keywords(ingredient, profile, severities=profile)
        source = "fallback"
    logger.info("quick_check.done user_id=%s source=%s status=%s", user_id, source, result.status.value)
    return result
