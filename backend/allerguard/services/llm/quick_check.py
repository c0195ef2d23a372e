"""
Single-ingredient safety check: one short completion answering SAFE, UNSAFE or
UNCERTAIN plus a brief reason.
"""

from typing import Any, Iterable, Mapping, Optional

import dspy

from allerguard.config import settings
from allerguard.errors import UpstreamError
from allerguard.logging import get_logger
from allerguard.schemas.analysis import QuickCheckResult, QuickCheckStatus
from allerguard.services.llm.dspy_client import is_configured, run_with_logging
from allerguard.services.llm.ingredient_analyzer import format_family_allergies
from allerguard.services.llm.prompts import QUICK_CHECK_PROMPT_VERSION, QUICK_CHECK_TEMPLATE

logger = get_logger(__name__)


class QuickCheckSignature(dspy.Signature):
    """Decide whether one ingredient is safe for a family's food allergies."""

    ingredient: str = dspy.InputField()
    family_allergies: str = dspy.InputField(desc="comma-separated allergens the family must avoid")
    prompt_template: str = dspy.InputField()
    answer: str = dspy.OutputField(desc="SAFE, UNSAFE or UNCERTAIN followed by a brief reason")


class QuickChecker(dspy.Module):
    def __init__(self) -> None:
        super().__init__()
        self.predict = dspy.Predict(QuickCheckSignature)

    def forward(self, ingredient: str, family_allergies: str) -> dspy.Prediction:
        return self.predict(
            ingredient=ingredient,
            family_allergies=family_allergies,
            prompt_template=QUICK_CHECK_TEMPLATE,
        )


def parse_quick_check_output(raw: Any) -> QuickCheckResult:
    """Split a reply such as `UNSAFE Whey is a milk protein.` into status and reason."""
    if not isinstance(raw, str) or not raw.strip():
        raise UpstreamError("empty LLM reply")
    head, _, reason = raw.strip().partition(" ")
    try:
        status = QuickCheckStatus(head.strip(".:,-").upper())
    except ValueError as e:
        raise UpstreamError(f"LLM reply rejected: unknown status {head[:20]!r}") from e
    return QuickCheckResult(status=status, reason=reason.strip())


def quick_check_with_llm(
    ingredient: str,
    allergens: Iterable[str],
    severities: Optional[Mapping[str, Optional[str]]] = None,
) -> QuickCheckResult:
    """Raises UpstreamError on any failure, like analyze_with_llm."""
    if not settings.use_llm_analysis:
        raise UpstreamError("LLM analysis disabled")
    if not is_configured():
        raise UpstreamError("LLM not configured")
    try:
        prediction = run_with_logging(
            prompt_name="quick_check",
            prompt_version=QUICK_CHECK_PROMPT_VERSION,
            fn=QuickChecker().forward,
            ingredient=ingredient,
            family_allergies=format_family_allergies(allergens, severities),
        )
    except UpstreamError:
        raise
    except Exception as e:
        raise UpstreamError(f"completion call failed: {e}") from e
    result = parse_quick_check_output(getattr(prediction, "answer", None))
    logger.info("quick_check.llm_result status=%s", result.status.value)
    return result
