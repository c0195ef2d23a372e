from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, JSON, Text
from sqlmodel import Field, SQLModel


SEVERITIES = ("mild", "moderate", "severe")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Family(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    created_by: str = Field(index=True)  # owning user id from the identity provider
    created_at: datetime = Field(default_factory=_utcnow)


class FamilyMember(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    family_id: int = Field(foreign_key="family.id", index=True)
    name: str
    relation: Optional[str] = None  # e.g. "daughter", "self"
    created_at: datetime = Field(default_factory=_utcnow)


class Allergy(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    member_id: int = Field(foreign_key="familymember.id", index=True)
    name: str
    severity: Optional[str] = None  # mild | moderate | severe
    created_at: datetime = Field(default_factory=_utcnow)


class ScanHistory(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    ingredients: str = Field(sa_column=Column(Text, nullable=False))
    analysis: str = Field(sa_column=Column(Text, nullable=False))  # serialized verdict
    detected: list = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    is_problematic: bool = False
    source: str = "ai"  # ai | fallback
    created_at: datetime = Field(default_factory=_utcnow)


class LLMCallLog(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    prompt_name: str
    prompt_version: str
    model: str
    input_payload: str = Field(sa_column=Column(Text, nullable=False))
    output_payload: str = Field(sa_column=Column(Text, nullable=False))
    latency_ms: int
    created_at: datetime = Field(default_factory=_utcnow)
