from fastapi import APIRouter, Depends

from allerguard.api.deps import get_current_user_id
from allerguard.schemas.analysis import QuickCheckRequest, QuickCheckResult
from allerguard.services.analysis import quick_check_ingredient

router = APIRouter()


@router.post("/quick-check", response_model=QuickCheckResult)
def post_quick_check(
    body: QuickCheckRequest,
    user_id: str = Depends(get_current_user_id),
):
    """
    Is one ingredient safe for the caller's family?
    Expects: { "ingredient": "whey", "allergies": ["milk"] }
    Returns: { "safe": false, "status": "UNSAFE", "reason": "..." }
    """
    return quick_check_ingredient(body.ingredient, body.allergy_profile(), user_id)
