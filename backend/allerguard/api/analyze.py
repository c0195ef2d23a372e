from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from allerguard.api.deps import get_current_user_id
from allerguard.errors import InputValidationError
from allerguard.logging import get_logger
from allerguard.schemas.analysis import AnalyzeRequest, Verdict
from allerguard.services.analysis import analyze_ingredients, unknown_verdict

router = APIRouter()
logger = get_logger(__name__)


@router.post("/analyze-ingredients", response_model=Verdict)
def post_analyze_ingredients(
    body: AnalyzeRequest,
    user_id: str = Depends(get_current_user_id),
):
    """
    Screen an ingredient list against the caller's allergies.
    Expects: { "ingredients": "...", "allergies": ["peanut", {"type": "milk", "severity": "severe"}] }
    An empty allergies list means "use my family profile".
    Any unexpected failure returns 500 with an "unknown" verdict so clients parse one shape.
    """
    try:
        return analyze_ingredients(body.ingredients, body.allergy_profile(), user_id)
    except InputValidationError:
        raise
    except Exception:
        logger.exception("analyze_ingredients.failed user_id=%s", user_id)
        return JSONResponse(
            status_code=500,
            content=unknown_verdict().model_dump(mode="json", by_alias=True),
        )
