import json

from fastapi import APIRouter, Depends, Query

from allerguard.api.deps import get_current_user_id
from allerguard.config import settings
from allerguard.schemas.analysis import ScanHistoryItem
from allerguard.storage.db import get_session
from allerguard.storage.repositories import list_scan_history

router = APIRouter()


@router.get("/scans", response_model=list[ScanHistoryItem])
def list_scans(
    limit: int = Query(default=20, ge=1),
    user_id: str = Depends(get_current_user_id),
) -> list[ScanHistoryItem]:
    """Most recent scans of the caller, newest first."""
    limit = min(limit, settings.scan_history_limit)
    with get_session() as session:
        records = list_scan_history(session, user_id, limit=limit)
    return [
        ScanHistoryItem(
            id=record.id,
            ingredients=record.ingredients,
            detected=record.detected or [],
            is_problematic=record.is_problematic,
            created_at=record.created_at,
            verdict=json.loads(record.analysis),
        )
        for record in records
    ]
