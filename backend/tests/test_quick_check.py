import pytest
from sqlmodel import select

from allerguard.errors import UpstreamError
from allerguard.schemas.analysis import QuickCheckResult, QuickCheckStatus
from allerguard.services.llm import quick_check
from allerguard.services.llm.quick_check import parse_quick_check_output, quick_check_with_llm
from allerguard.storage.models import ScanHistory
from allerguard.storage.repositories import add_allergies, add_member, create_family

QUICK_CHECK_URL = "/api/quick-check"


def test_parse_status_and_reason():
    result = parse_quick_check_output("UNSAFE Whey is a milk protein.")
    assert result.status == QuickCheckStatus.UNSAFE
    assert result.reason == "Whey is a milk protein."
    assert result.safe is False


def test_parse_tolerates_punctuation_and_case():
    result = parse_quick_check_output("safe: no listed allergen")
    assert result.status == QuickCheckStatus.SAFE
    assert result.safe is True
    assert parse_quick_check_output("UNCERTAIN").reason == ""


@pytest.mark.parametrize("raw", [None, "", "   ", "MAYBE it has nuts", "I think it is SAFE"])
def test_parse_rejects_unknown_status(raw):
    with pytest.raises(UpstreamError):
        parse_quick_check_output(raw)


def test_quick_check_with_llm_mocked(monkeypatch):
    captured = {}

    def fake_run(**kwargs):
        captured.update(kwargs)

        class P:
            answer = "UNSAFE Contains milk protein."

        return P()

    monkeypatch.setattr(quick_check, "is_configured", lambda: True)
    monkeypatch.setattr(quick_check, "run_with_logging", fake_run)

    result = quick_check_with_llm("whey", {"milk"}, severities={"milk": "severe"})
    assert result.status == QuickCheckStatus.UNSAFE
    assert captured["prompt_name"] == "quick_check"
    assert captured["ingredient"] == "whey"
    assert captured["family_allergies"] == "milk (severe)"


def test_quick_check_with_llm_unconfigured(monkeypatch):
    monkeypatch.setattr(quick_check, "is_configured", lambda: False)
    with pytest.raises(UpstreamError):
        quick_check_with_llm("whey", {"milk"})


def test_quick_check_with_llm_transport_error(monkeypatch):
    def boom(**kwargs):
        raise ConnectionError("connection reset")

    monkeypatch.setattr(quick_check, "is_configured", lambda: True)
    monkeypatch.setattr(quick_check, "run_with_logging", boom)
    with pytest.raises(UpstreamError):
        quick_check_with_llm("whey", {"milk"})


def test_quick_check_endpoint_keyword_fallback(client, session, auth_headers):
    response = client.post(
        QUICK_CHECK_URL,
        json={"ingredient": "Sodium Caseinate", "allergies": ["dairy"]},
        headers=auth_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "UNSAFE"
    assert data["safe"] is False
    assert "milk" in data["reason"]
    # Quick checks are not part of the scan history.
    assert session.exec(select(ScanHistory)).all() == []


def test_quick_check_endpoint_uses_llm_answer(client, auth_headers, monkeypatch):
    def fake_llm(ingredient, allergens, severities=None):
        assert allergens == {"peanut": "severe"}
        return QuickCheckResult(status=QuickCheckStatus.UNCERTAIN, reason="Oil may be refined.")

    monkeypatch.setattr("allerguard.services.analysis.quick_check_with_llm", fake_llm)

    response = client.post(
        QUICK_CHECK_URL,
        json={"ingredient": "peanut oil", "allergies": [{"type": "Peanut", "severity": "severe"}]},
        headers=auth_headers,
    )
    assert response.status_code == 200
    assert response.json() == {"status": "UNCERTAIN", "reason": "Oil may be refined.", "safe": False}


def test_quick_check_endpoint_uses_family_profile(client, session, auth_headers):
    fam = create_family(session, "Home", created_by="user-1")
    member = add_member(session, fam.id, "Sam")
    add_allergies(session, member.id, [("Kiwi", "severe")])

    response = client.post(QUICK_CHECK_URL, json={"ingredient": "kiwi puree"}, headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "UNSAFE"

    response = client.post(QUICK_CHECK_URL, json={"ingredient": "rice"}, headers=auth_headers)
    assert response.json()["status"] == "SAFE"


def test_quick_check_requires_identity(client):
    response = client.post(QUICK_CHECK_URL, json={"ingredient": "whey"})
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}


def test_quick_check_rejects_blank_ingredient(client, auth_headers):
    response = client.post(QUICK_CHECK_URL, json={"ingredient": "  "}, headers=auth_headers)
    assert response.status_code == 400
    assert response.json() == {"error": "Ingredient is required"}
