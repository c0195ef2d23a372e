"""Effective allergen set for a scan: the caller's explicit list, else the family profile."""

from typing import Callable, Iterable, Optional, Union

from sqlmodel import Session

from allerguard.logging import get_logger
from allerguard.services.allergens import more_severe, normalize_severity
from allerguard.storage import db
from allerguard.storage.repositories import get_family_allergies

logger = get_logger(__name__)

# A plain name, or a (name, severity) pair.
AllergyInput = Union[str, tuple[str, Optional[str]]]


def _collect(entries: Iterable[AllergyInput]) -> dict[str, Optional[str]]:
    profile: dict[str, Optional[str]] = {}
    for entry in entries:
        name, severity = (entry, None) if isinstance(entry, str) else entry
        if not name or not name.strip():
            continue
        key = name.strip().lower()
        profile[key] = more_severe(profile.get(key), normalize_severity(severity))
    return profile


def resolve_allergy_profile(
    explicit_allergens: Iterable[AllergyInput],
    user_id: str,
    session_factory: Optional[Callable[[], Session]] = None,
) -> dict[str, Optional[str]]:
    """
    Allergen name -> severity (mild/moderate/severe or None).
    Explicit entries win and are only case-folded (unknown names pass through).
    An empty list falls back to every allergy record in the user's families, keeping
    the most severe record per name; a user without any profile gets an empty dict.
    """
    explicit = _collect(explicit_allergens)
    if explicit:
        logger.info("allergens.resolved source=explicit user_id=%s count=%s", user_id, len(explicit))
        return explicit

    factory = session_factory or db.get_session
    with factory() as session:
        records = get_family_allergies(session, user_id)
    resolved = _collect(records)
    logger.info("allergens.resolved source=profile user_id=%s count=%s", user_id, len(resolved))
    return resolved


def resolve_allergens(
    explicit_allergens: Iterable[AllergyInput],
    user_id: str,
    session_factory: Optional[Callable[[], Session]] = None,
) -> set[str]:
    """Names only; see resolve_allergy_profile."""
    return set(resolve_allergy_profile(explicit_allergens, user_id, session_factory))
