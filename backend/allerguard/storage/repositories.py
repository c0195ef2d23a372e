from typing import Iterable, Optional

from sqlmodel import Session, select

from allerguard.logging import get_logger
from allerguard.storage.models import Allergy, Family, FamilyMember, LLMCallLog, ScanHistory

logger = get_logger(__name__)


def create_family(session: Session, name: str, created_by: str) -> Family:
    family = Family(name=name, created_by=created_by)
    session.add(family)
    session.commit()
    session.refresh(family)
    logger.info("family.created id=%s owner=%s", family.id, created_by)
    return family


def add_member(
    session: Session, family_id: int, name: str, relation: Optional[str] = None
) -> FamilyMember:
    member = FamilyMember(family_id=family_id, name=name, relation=relation)
    session.add(member)
    session.commit()
    session.refresh(member)
    logger.info("family_member.created id=%s family_id=%s", member.id, family_id)
    return member


def add_allergies(
    session: Session, member_id: int, allergies: Iterable[tuple[str, Optional[str]]]
) -> list[Allergy]:
    """Attach (name, severity) pairs to a member."""
    created = [Allergy(member_id=member_id, name=name, severity=severity) for name, severity in allergies]
    session.add_all(created)
    session.commit()
    for allergy in created:
        session.refresh(allergy)
    logger.info("allergies.created member_id=%s count=%s", member_id, len(created))
    return created


def delete_member(session: Session, member_id: int) -> None:
    """Delete a member together with its allergy records."""
    for allergy in list(session.exec(select(Allergy).where(Allergy.member_id == member_id))):
        session.delete(allergy)
    session.flush()
    member = session.get(FamilyMember, member_id)
    if member is not None:
        session.delete(member)
    session.commit()
    logger.info("family_member.deleted id=%s", member_id)


def get_family_allergies(session: Session, user_id: str) -> list[tuple[str, Optional[str]]]:
    """(name, severity) records across all members of all families owned by user_id."""
    stmt = (
        select(Allergy.name, Allergy.severity)
        .join(FamilyMember, FamilyMember.id == Allergy.member_id)
        .join(Family, Family.id == FamilyMember.family_id)
        .where(Family.created_by == user_id)
    )
    return [(name, severity) for name, severity in session.exec(stmt)]


def create_scan_history(
    session: Session,
    user_id: str,
    ingredients: str,
    analysis: str,
    detected: list[str],
    source: str,
) -> ScanHistory:
    record = ScanHistory(
        user_id=user_id,
        ingredients=ingredients,
        analysis=analysis,
        detected=list(detected),
        is_problematic=len(detected) > 0,
        source=source,
    )
    session.add(record)
    session.commit()
    session.refresh(record)
    logger.info(
        "scan_history.created id=%s user_id=%s detected=%s source=%s",
        record.id,
        user_id,
        len(detected),
        source,
    )
    return record


def list_scan_history(session: Session, user_id: str, limit: int = 20) -> list[ScanHistory]:
    stmt = (
        select(ScanHistory)
        .where(ScanHistory.user_id == user_id)
        .order_by(ScanHistory.created_at.desc(), ScanHistory.id.desc())
        .limit(limit)
    )
    return list(session.exec(stmt))


def log_llm_call(
    session: Session,
    prompt_name: str,
    prompt_version: str,
    model: str,
    input_payload: str,
    output_payload: str,
    latency_ms: int,
) -> None:
    session.add(
        LLMCallLog(
            prompt_name=prompt_name,
            prompt_version=prompt_version,
            model=model,
            input_payload=input_payload,
            output_payload=output_payload,
            latency_ms=latency_ms,
        )
    )
    session.commit()
