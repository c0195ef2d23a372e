import json

import pytest

from allerguard.config import settings
from allerguard.errors import UpstreamError
from allerguard.schemas.analysis import RiskLevel
from allerguard.services.llm import ingredient_analyzer
from allerguard.services.llm.ingredient_analyzer import analyze_with_llm, parse_verdict_output


def _reply(**overrides):
    payload = {
        "detectedAllergens": ["Milk"],
        "riskLevel": "MEDIUM",
        "analysis": "Contains whey, a milk protein.",
        "recommendations": "Avoid for the milk-allergic family member.",
        "ingredientBreakdown": {"safe": ["sugar"], "concerning": [], "dangerous": ["whey"]},
    }
    payload.update(overrides)
    return json.dumps(payload)


def test_parse_valid_reply():
    verdict = parse_verdict_output(_reply())
    assert verdict.detected_allergens == ["milk"]
    assert verdict.risk_level == RiskLevel.MEDIUM
    assert verdict.summary == "Contains whey, a milk protein."
    assert verdict.ingredient_breakdown.dangerous == ["whey"]
    assert verdict.cross_contamination_risk == "unknown"


def test_parse_fenced_reply():
    verdict = parse_verdict_output("```json\n" + _reply() + "\n```")
    assert verdict.detected_allergens == ["milk"]


def test_parse_safety_rating_and_summary_variant():
    raw = json.dumps(
        {
            "detectedAllergens": ["peanuts"],
            "safetyRating": "danger",
            "summary": "Peanut oil listed.",
            "recommendations": "Do not eat.",
            "ingredientBreakdown": {"safe": [], "concerning": [], "dangerous": ["peanut oil"]},
            "warnings": [{"allergen": "peanuts", "ingredient": "peanut oil", "severity": "severe", "reason": "direct"}],
            "crossContaminationRisk": "high",
        }
    )
    verdict = parse_verdict_output(raw)
    assert verdict.risk_level == RiskLevel.HIGH
    assert verdict.analysis == "Peanut oil listed."
    assert verdict.warnings[0].severity == "severe"
    assert verdict.cross_contamination_risk == "high"


def test_low_with_detections_is_raised_to_medium():
    verdict = parse_verdict_output(_reply(riskLevel="LOW", detectedAllergens=["eggs", "Eggs"]))
    assert verdict.detected_allergens == ["eggs"]
    assert verdict.risk_level == RiskLevel.MEDIUM


@pytest.mark.parametrize(
    "raw",
    [
        "",
        "not json at all",
        "[1, 2, 3]",
        _reply(riskLevel="SEVERE"),
        _reply(detectedAllergens="milk"),
        _reply(recommendations=None),
        _reply(riskLevel=None),
        _reply(ingredientBreakdown={"safe": []}),
        json.dumps({"detectedAllergens": [], "riskLevel": "LOW"}),
    ],
)
def test_parse_rejects_off_schema_replies(raw):
    with pytest.raises(UpstreamError):
        parse_verdict_output(raw)


def test_analyze_with_llm_mocked(monkeypatch):
    captured = {}

    def fake_run(**kwargs):
        captured.update(kwargs)

        class P:
            verdict_json = _reply()

        return P()

    monkeypatch.setattr(ingredient_analyzer, "is_configured", lambda: True)
    monkeypatch.setattr(ingredient_analyzer, "run_with_logging", fake_run)

    verdict = analyze_with_llm("Sugar, Whey", {"milk", "eggs"})
    assert verdict.detected_allergens == ["milk"]
    assert captured["prompt_name"] == "ingredient_safety"
    assert captured["family_allergies"] == "eggs, milk"


def test_analyze_with_llm_no_profile_says_none(monkeypatch):
    captured = {}

    def fake_run(**kwargs):
        captured.update(kwargs)

        class P:
            verdict_json = _reply()

        return P()

    monkeypatch.setattr(ingredient_analyzer, "is_configured", lambda: True)
    monkeypatch.setattr(ingredient_analyzer, "run_with_logging", fake_run)

    analyze_with_llm("Sugar", set())
    assert captured["family_allergies"] == "None specified"


def test_analyze_with_llm_unconfigured(monkeypatch):
    monkeypatch.setattr(ingredient_analyzer, "is_configured", lambda: False)
    with pytest.raises(UpstreamError):
        analyze_with_llm("Sugar", {"milk"})


def test_analyze_with_llm_disabled(monkeypatch):
    monkeypatch.setattr(settings, "use_llm_analysis", False)
    monkeypatch.setattr(ingredient_analyzer, "is_configured", lambda: True)
    with pytest.raises(UpstreamError):
        analyze_with_llm("Sugar", {"milk"})


def test_analyze_with_llm_transport_error(monkeypatch):
    def boom(**kwargs):
        raise TimeoutError("read timed out")

    monkeypatch.setattr(ingredient_analyzer, "is_configured", lambda: True)
    monkeypatch.setattr(ingredient_analyzer, "run_with_logging", boom)
    with pytest.raises(UpstreamError):
        analyze_with_llm("Sugar", {"milk"})


@pytest.mark.parametrize(
    "raw",
    [
        "Here is the verdict:\n```json\n" + _reply() + "\n```",
        "```json\n" + _reply() + "\n```\nLet me know if you need anything else.",
    ],
)
def test_parse_rejects_prose_around_fence(raw):
    with pytest.raises(UpstreamError):
        parse_verdict_output(raw)


def test_parse_unterminated_fence():
    verdict = parse_verdict_output("```\n" + _reply())
    assert verdict.detected_allergens == ["milk"]


def test_analyze_with_llm_sends_severity(monkeypatch):
    captured = {}

    def fake_run(**kwargs):
        captured.update(kwargs)

        class P:
            verdict_json = _reply()

        return P()

    monkeypatch.setattr(ingredient_analyzer, "is_configured", lambda: True)
    monkeypatch.setattr(ingredient_analyzer, "run_with_logging", fake_run)

    analyze_with_llm("Peanut Oil", {"peanut", "milk"}, severities={"peanut": "severe", "milk": None})
    assert captured["family_allergies"] == "milk, peanut (severe)"
