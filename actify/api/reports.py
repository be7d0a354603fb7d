"""
Monthly report exports (JSON, CSV, PDF).
"""
from datetime import timedelta
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from actify.api.deps import FacilityContext, module_context
from actify.db.database import get_db
from actify.db.schemas.common import parse_payload
from actify.errors import ActifyError, to_http_exception
from actify.services import pdf_reports
from actify.services import reports as report_service
from actify.utils.timezones import parse_month_key

router = APIRouter(prefix="/reports", tags=["reports"])

reports_reader = module_context("reports")

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate, max-age=0",
    "Pragma": "no-cache",
    "Expires": "0",
}


class MonthlyReportQuery(BaseModel):
    month: Optional[str] = Field(default=None, pattern=r"^\d{4}-\d{2}$")
    format: Literal["json", "csv", "pdf"] = "json"
    preview: Optional[str] = None


@router.get("/monthly")
def monthly_report(
    month: Optional[str] = Query(default=None),
    format: Optional[str] = Query(default=None),
    preview: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(reports_reader),
):
    raw = {"month": month, "format": format, "preview": preview}
    try:
        query = parse_payload(MonthlyReportQuery, {k: v for k, v in raw.items() if v is not None},
                              "Invalid report query.")
    except ActifyError as exc:
        raise to_http_exception(exc)

    month_key, month_start, next_month = parse_month_key(query.month, ctx.timezone)
    report = report_service.get_monthly_report(
        db, ctx.facility_id, ctx.timezone, ctx.settings["attendanceRules"],
        month_key, month_start, next_month - timedelta(milliseconds=1),
    )

    if query.format == "csv":
        return Response(
            content=report_service.monthly_report_csv(report),
            media_type="text/csv; charset=utf-8",
            headers={"Content-Disposition": f'attachment; filename="actify-report-{month_key}.csv"'},
        )
    if query.format == "pdf":
        pdf = pdf_reports.render_monthly_report_pdf(report, ctx.facility.name, ctx.timezone)
        disposition = "inline" if query.preview == "1" else "attachment"
        return Response(
            content=pdf,
            media_type="application/pdf",
            headers={"Content-Disposition": f'{disposition}; filename="actify-report-{month_key}.pdf"',
                     **NO_CACHE_HEADERS},
        )
    return report
