from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from backend.app.db import get_db
from backend.app.domain.contracts import InsightFeed, InsightSummary
from backend.app.services import insights_service

router = APIRouter(prefix="/api/insights", tags=["insights"])

UrgencyParam = Optional[Literal["high", "medium", "low"]]


@router.get("/types", response_model=List[Dict[str, Any]])
def list_insight_types():
    return insights_service.available_insight_types()


@router.get("/{user_id}", response_model=InsightFeed)
def list_insights(
    user_id: str,
    as_of: Optional[date] = Query(None),
    type: Optional[str] = Query(None),
    urgency: UrgencyParam = Query(None),
    limit: Optional[int] = Query(None, ge=1, le=200),
    include_detectors: bool = Query(False),
    db: Session = Depends(get_db),
):
    return insights_service.list_insights(
        db,
        user_id,
        as_of=as_of,
        insight_type=type,
        urgency=urgency,
        limit=limit,
        include_detectors=include_detectors,
    )


@router.get("/{user_id}/now", response_model=InsightFeed)
def list_now_insights(
    user_id: str,
    as_of: Optional[date] = Query(None),
    limit: Optional[int] = Query(None, ge=1, le=200),
    db: Session = Depends(get_db),
):
    return insights_service.list_insights(db, user_id, as_of=as_of, view="now", limit=limit)


@router.get("/{user_id}/week", response_model=InsightFeed)
def list_week_insights(
    user_id: str,
    as_of: Optional[date] = Query(None),
    limit: Optional[int] = Query(None, ge=1, le=200),
    db: Session = Depends(get_db),
):
    return insights_service.list_insights(db, user_id, as_of=as_of, view="week", limit=limit)


@router.get("/{user_id}/summary", response_model=InsightSummary)
def get_insight_summary(
    user_id: str,
    as_of: Optional[date] = Query(None),
    db: Session = Depends(get_db),
):
    return insights_service.insight_summary(db, user_id, as_of=as_of)
