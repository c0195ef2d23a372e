from fastapi import APIRouter

from allerguard.services.allergens import ALLERGEN_ALIASES, get_all_allergen_codes

router = APIRouter()


@router.get("/allergens")
def list_allergens() -> dict:
    """Common allergens screened on every scan, plus the alias table used by keyword matching."""
    return {"allergens": get_all_allergen_codes(), "aliases": ALLERGEN_ALIASES}
