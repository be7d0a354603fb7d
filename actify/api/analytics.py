"""
Analytics endpoint.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from actify.api.deps import FacilityContext, module_context
from actify.db.database import get_db
from actify.services import analytics as analytics_service

router = APIRouter(prefix="/analytics", tags=["analytics"])

analytics_reader = module_context("analytics")


@router.get("")
def get_analytics(
    range_: Optional[str] = Query(default=None, alias="range"),
    from_: Optional[str] = Query(default=None, alias="from"),
    to: Optional[str] = Query(default=None),
    residentId: Optional[str] = Query(default=None),
    category: Optional[str] = Query(default=None),
    staffId: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(analytics_reader),
):
    """
    Facility analytics for a date range.

    - **range**: ``today``, ``7d``, ``30d`` (default) or ``custom`` with ``from``/``to`` date keys
    - **staffId**: ``user:<id>`` filters notes, ``volunteer:<id>`` filters visits
    """
    filters = analytics_service.parse_filters({
        "range": range_, "from": from_, "to": to,
        "residentId": residentId, "category": category, "staffId": staffId,
    })
    return analytics_service.get_analytics_snapshot(
        db, ctx.facility, ctx.timezone, ctx.settings["attendanceRules"], filters
    )
