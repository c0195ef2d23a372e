"""
Allergen lexicon and the keyword matcher used when the LLM analysis is unavailable.
Plain case-insensitive substring matching: no I/O, never raises.
"""

import re
from typing import Iterable, Mapping, NamedTuple, Optional

from allerguard.config import settings
from allerguard.schemas.analysis import (
    AllergenWarning,
    IngredientBreakdown,
    QuickCheckResult,
    QuickCheckStatus,
    RiskLevel,
    Verdict,
)

# Screened on every scan, whatever the family profile says.
COMMON_ALLERGENS = [
    "milk", "eggs", "fish", "shellfish", "tree nuts", "peanuts", "wheat", "soybeans",
    "sesame", "mustard", "celery", "lupin", "mollusks", "sulfites", "corn",
]

# Alias/derivative term -> reported under the canonical key.
ALLERGEN_ALIASES = {
    "milk": ["dairy", "lactose", "casein", "whey", "butter", "cream", "cheese"],
    "eggs": ["egg white", "egg yolk", "albumin"],
    "wheat": ["flour", "gluten", "semolina", "durum"],
    "soy": ["soya", "lecithin"],
    "nuts": ["almond", "walnut", "pecan", "cashew", "pistachio"],
}

# Lexicon names whose alias group is filed under a different key.
ALIAS_GROUP_KEYS = {"tree nuts": "nuts", "soybeans": "soy"}

SEVERITY_RANK = {"mild": 1, "moderate": 2, "severe": 3}

DETECTED_ANALYSIS = "Found potential allergens: {allergens}"
CLEAR_ANALYSIS = "No obvious allergens detected in ingredient list"
DETECTED_RECOMMENDATION = "AVOID this product due to detected allergens. Double-check with manufacturer."
CLEAR_RECOMMENDATION = "Appears safe based on ingredient analysis, but always verify with manufacturer."

_TOKEN_SPLIT = re.compile(r"[,;()\[\]\n]")


class _Trigger(NamedTuple):
    term: str
    allergen: str
    relevant: bool  # concerns the family's own allergen set


def get_all_allergen_codes() -> list[str]:
    """Return the common allergen list for UI display."""
    return list(COMMON_ALLERGENS)


def risk_level_for(detected_count: int) -> RiskLevel:
    if detected_count == 0:
        return RiskLevel.LOW
    if detected_count <= 2:
        return RiskLevel.MEDIUM
    return RiskLevel.HIGH


def split_ingredients(text: str) -> list[str]:
    """
    Split an ingredient label into individual ingredient strings.
    "Chocolate (sugar, milk), salt." -> ["Chocolate", "sugar", "milk", "salt"]
    """
    tokens: list[str] = []
    seen: set[str] = set()
    for part in _TOKEN_SPLIT.split(text or ""):
        token = part.strip().rstrip(".").strip()
        key = token.lower()
        if token and key not in seen:
            seen.add(key)
            tokens.append(token)
    return tokens


def normalize_severity(value: Optional[str]) -> Optional[str]:
    """Lower-case mild/moderate/severe; anything else is treated as unknown."""
    if not isinstance(value, str):
        return None
    value = value.strip().lower()
    return value if value in SEVERITY_RANK else None


def more_severe(a: Optional[str], b: Optional[str]) -> Optional[str]:
    if SEVERITY_RANK.get(b or "", 0) > SEVERITY_RANK.get(a or "", 0):
        return b
    return a


def alias_group(name: str) -> set[str]:
    """
    Every name that denotes the same allergen as `name`:
    "tree nuts" -> {"tree nuts", "nuts", "almond", "walnut", ...}
    """
    key = ALIAS_GROUP_KEYS.get(name, name)
    group = {name, key, *ALLERGEN_ALIASES.get(key, [])}
    group.update(n for n, k in ALIAS_GROUP_KEYS.items() if k == key)
    return group


def _alias_group_relevant(canonical: str, profile: set[str]) -> bool:
    return bool(alias_group(canonical) & profile)


def _severity_for(allergen: str, severities: dict[str, Optional[str]]) -> Optional[str]:
    if allergen in severities:
        return severities[allergen]
    severity = None
    for name in alias_group(allergen):
        severity = more_severe(severity, severities.get(name))
    return severity


def _find_triggers(text: str, profile: set[str], screen_common: bool) -> list[_Trigger]:
    triggers: list[_Trigger] = []
    for allergen in sorted(profile):
        if allergen in text:
            triggers.append(_Trigger(allergen, allergen, True))
    if screen_common:
        for allergen in COMMON_ALLERGENS:
            if allergen in text:
                relevant = allergen in profile or _alias_group_relevant(allergen, profile)
                triggers.append(_Trigger(allergen, allergen, relevant))
    for canonical, aliases in ALLERGEN_ALIASES.items():
        relevant = _alias_group_relevant(canonical, profile)
        for alias in aliases:
            if alias in text:
                triggers.append(_Trigger(alias, canonical, relevant))
    return triggers


def _breakdown(tokens: list[str], triggers: list[_Trigger]) -> IngredientBreakdown:
    breakdown = IngredientBreakdown()
    for token in tokens:
        lowered = token.lower()
        hits = [t for t in triggers if t.term in lowered]
        if any(t.relevant for t in hits):
            breakdown.dangerous.append(token)
        elif hits:
            breakdown.concerning.append(token)
        else:
            breakdown.safe.append(token)
    return breakdown


def match_allergens(
    ingredients: str,
    allergens: Iterable[str],
    screen_common: Optional[bool] = None,
    severities: Optional[Mapping[str, Optional[str]]] = None,
) -> Verdict:
    """
    Keyword verdict for an ingredient list.

    Reports caller allergens and common allergens under their own names, alias hits
    (e.g. "casein") under the canonical name ("milk"). Risk is banded on the number of
    distinct detections: 0 LOW, 1-2 MEDIUM, 3+ HIGH.
    severities maps profile names to mild/moderate/severe; a warning carries the
    severity of the profile entry it concerns.
    """
    if screen_common is None:
        screen_common = settings.screen_common_allergens
    text = (ingredients or "").lower()
    profile = {a.strip().lower() for a in allergens if a and a.strip()}
    severity_map = {
        name.strip().lower(): normalize_severity(value)
        for name, value in (severities or {}).items()
        if name and name.strip()
    }

    triggers = _find_triggers(text, profile, screen_common)
    detected: list[str] = []
    first_trigger: dict[str, _Trigger] = {}
    for trigger in triggers:
        if trigger.allergen not in first_trigger:
            first_trigger[trigger.allergen] = trigger
            detected.append(trigger.allergen)

    tokens = split_ingredients(ingredients)
    warnings = []
    for allergen in detected:
        trigger = first_trigger[allergen]
        token = next((t for t in tokens if trigger.term in t.lower()), trigger.term)
        if trigger.term == allergen:
            reason = f"'{allergen}' appears in the ingredient list"
        else:
            reason = f"'{trigger.term}' is a source of {allergen}"
        severity = _severity_for(allergen, severity_map) if trigger.relevant else None
        warnings.append(
            AllergenWarning(allergen=allergen, ingredient=token, severity=severity, reason=reason)
        )

    if detected:
        analysis = DETECTED_ANALYSIS.format(allergens=", ".join(detected))
        recommendations = DETECTED_RECOMMENDATION
    else:
        analysis = CLEAR_ANALYSIS
        recommendations = CLEAR_RECOMMENDATION

    return Verdict(
        detected_allergens=detected,
        risk_level=risk_level_for(len(detected)),
        analysis=analysis,
        recommendations=recommendations,
        ingredient_breakdown=_breakdown(tokens, triggers),
        warnings=warnings,
        cross_contamination_risk="unknown",
    )


def quick_check_keywords(
    ingredient: str,
    allergens: Iterable[str],
    severities: Optional[Mapping[str, Optional[str]]] = None,
) -> QuickCheckResult:
    """
    Keyword answer for a single ingredient: UNSAFE when it hits a family allergen,
    UNCERTAIN when only a common allergen matches, SAFE otherwise.
    """
    profile = {a.strip().lower() for a in allergens if a and a.strip()}
    verdict = match_allergens(ingredient, profile, screen_common=True, severities=severities)
    family_hits = [d for d in verdict.detected_allergens if _alias_group_relevant(d, profile)]
    if family_hits:
        names = ", ".join(family_hits)
        return QuickCheckResult(status=QuickCheckStatus.UNSAFE, reason=f"Contains {names}.")
    if verdict.detected_allergens:
        names = ", ".join(verdict.detected_allergens)
        return QuickCheckResult(
            status=QuickCheckStatus.UNCERTAIN,
            reason=f"Contains {names}, a common allergen not in the family profile.",
        )
    return QuickCheckResult(status=QuickCheckStatus.SAFE, reason="No known allergen or alias matched.")
