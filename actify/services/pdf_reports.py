"""
PDF rendering for council minutes, the monthly activity report, and the
printable calendar schedule.

reportlab is imported lazily so the API starts without paying for it.
"""
import io
import logging
from typing import Any, Dict, List, Optional, Sequence

from actify.utils.timezones import format_in_time_zone, now_utc, parse_iso_datetime

logger = logging.getLogger(__name__)

ACCENT = "#2f6f5e"
MUTED = "#6b7280"
RULE = "#d9dee3"


def _document(buf, title: str):
    from reportlab.lib.pagesizes import letter
    from reportlab.lib.units import inch
    from reportlab.platypus import SimpleDocTemplate

    return SimpleDocTemplate(buf, pagesize=letter, title=title, topMargin=0.5 * inch,
                             bottomMargin=0.5 * inch, leftMargin=0.5 * inch, rightMargin=0.5 * inch)


def _styles():
    from reportlab.lib import colors
    from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet

    styles = getSampleStyleSheet()
    styles.add(ParagraphStyle("ReportTitle", parent=styles["Title"], fontSize=18, spaceAfter=4,
                              textColor=colors.HexColor(ACCENT)))
    styles.add(ParagraphStyle("SectionHead", parent=styles["Heading2"], fontSize=12, spaceBefore=12,
                              spaceAfter=6, textColor=colors.HexColor("#333333")))
    styles.add(ParagraphStyle("Meta", parent=styles["Normal"], fontSize=8, textColor=colors.HexColor(MUTED)))
    styles.add(ParagraphStyle("Body", parent=styles["Normal"], fontSize=9, leading=12))
    return styles


def _table_style(extra: Sequence = ()):
    from reportlab.lib import colors
    from reportlab.platypus import TableStyle

    return TableStyle([
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 8),
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#f3f5f4")),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor(RULE)),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("TOPPADDING", (0, 0), (-1, -1), 4),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
    ] + list(extra))


def _escape(value: Any) -> str:
    text = "" if value is None else str(value)
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def _multiline(value: Optional[str]) -> str:
    return "<br/>".join(_escape(line) for line in (value or "").split("\n"))


def _generated_line(time_zone: str) -> str:
    return f"Generated {format_in_time_zone(now_utc(), time_zone, '%b {day}, %Y at {hour12}:%M %p')}"


def render_council_minutes_pdf(detail: Dict[str, Any], facility_name: str, time_zone: str) -> bytes:
    """Render a council meeting's minutes, attendance, and action items."""
    from reportlab.lib.units import inch
    from reportlab.platypus import Paragraph, Spacer, Table

    buf = io.BytesIO()
    doc = _document(buf, "Resident Council Minutes")
    styles = _styles()
    held_at = parse_iso_datetime(detail["heldAt"])
    story: List[Any] = [
        Paragraph("Resident Council Minutes", styles["ReportTitle"]),
        Paragraph(_escape(facility_name), styles["Body"]),
        Paragraph(
            f"Held {format_in_time_zone(held_at, time_zone, '%A, %B {day}, %Y at {hour12}:%M %p')} "
            f"&bull; Attendance {detail['attendanceCount']} &bull; Status {detail['status']}",
            styles["Meta"],
        ),
        Spacer(1, 10),
    ]

    if detail.get("legacyMinutesText"):
        story.append(Paragraph("Minutes", styles["SectionHead"]))
        story.append(Paragraph(_multiline(detail["legacyMinutesText"]), styles["Body"]))
    else:
        for heading, key, empty in (
            ("Summary", "summary", "No summary provided."),
            ("Old Business", "oldBusiness", "Not discussed."),
            ("New Business", "newBusiness", "Not discussed."),
            ("Additional Notes", "additionalNotes", "None."),
        ):
            story.append(Paragraph(heading, styles["SectionHead"]))
            story.append(Paragraph(_multiline(detail.get(key)) or empty, styles["Body"]))

        story.append(Paragraph("Residents in Attendance", styles["SectionHead"]))
        residents = detail.get("residentsInAttendance") or []
        story.append(Paragraph("<br/>".join(_escape(r) for r in residents) or "None listed", styles["Body"]))

        sections = [s for s in detail.get("minuteSections", []) if s["notes"] or s["oldBusiness"] or s["newBusiness"]]
        if sections:
            story.append(Paragraph("Department Updates", styles["SectionHead"]))
            rows = [["Department", "Notes", "Old Business", "New Business"]]
            for section in sections:
                rows.append([
                    section["label"],
                    Paragraph(_multiline(section["notes"]), styles["Body"]),
                    Paragraph(_multiline(section["oldBusiness"]), styles["Body"]),
                    Paragraph(_multiline(section["newBusiness"]), styles["Body"]),
                ])
            table = Table(rows, colWidths=[1.3 * inch, 2.1 * inch, 2.05 * inch, 2.05 * inch], repeatRows=1)
            table.setStyle(_table_style())
            story.append(table)

    story.append(Paragraph("Action Items", styles["SectionHead"]))
    items = detail.get("actionItems") or []
    if items:
        rows = [["Status", "Section", "Department", "Concern", "Owner", "Due"]]
        for item in items:
            rows.append([
                "Resolved" if item["status"] == "RESOLVED" else "Open",
                item["section"],
                item["category"],
                Paragraph(_escape(item["concern"]), styles["Body"]),
                _escape(item["owner"] or ""),
                item["dueDate"] or "",
            ])
        table = Table(rows, colWidths=[0.8 * inch, 0.7 * inch, 1.1 * inch, 2.9 * inch, 1.1 * inch, 0.9 * inch],
                      repeatRows=1)
        table.setStyle(_table_style())
        story.append(table)
    else:
        story.append(Paragraph("No action items recorded.", styles["Body"]))

    story.append(Spacer(1, 12))
    story.append(Paragraph(_generated_line(time_zone), styles["Meta"]))
    doc.build(story)
    logger.info("council_minutes_pdf_rendered: meeting=%s", detail["id"])
    return buf.getvalue()


def render_monthly_report_pdf(report: Dict[str, Any], facility_name: str, time_zone: str) -> bytes:
    """Render the monthly activity report summary."""
    from reportlab.lib import colors
    from reportlab.lib.units import inch
    from reportlab.platypus import Paragraph, Spacer, Table

    buf = io.BytesIO()
    doc = _document(buf, f"Monthly Activity Report {report['monthKey']}")
    styles = _styles()
    counts = report["attendance"]
    story: List[Any] = [
        Paragraph("Monthly Activity Report", styles["ReportTitle"]),
        Paragraph(f"{_escape(facility_name)} &bull; {_escape(report['monthLabel'])}", styles["Body"]),
        Spacer(1, 10),
    ]

    summary = Table(
        [
            ["Present", "Active", "Leading", "Refused", "No Show", "Engagement", "1:1 Notes"],
            [str(counts["present"]), str(counts["active"]), str(counts["leading"]), str(counts["refused"]),
             str(counts["noShow"]), f"{report['engagementAverage']:.2f}", str(report["oneOnOneTotal"])],
        ],
        colWidths=[1.07 * inch] * 7,
    )
    summary.setStyle(_table_style([
        ("ALIGN", (0, 0), (-1, -1), "CENTER"),
        ("FONTSIZE", (0, 1), (-1, 1), 14),
        ("TEXTCOLOR", (0, 1), (-1, 1), colors.HexColor(ACCENT)),
    ]))
    story.append(summary)

    story.append(Paragraph("Top Programs", styles["SectionHead"]))
    programs = report.get("topPrograms") or []
    if programs:
        rows = [["Program", "Sessions", "Attended"]]
        rows.extend([_escape(p["title"]), str(p["sessions"]), str(p["attended"])] for p in programs)
        table = Table(rows, colWidths=[4.5 * inch, 1.25 * inch, 1.25 * inch], repeatRows=1)
        table.setStyle(_table_style())
        story.append(table)
    else:
        story.append(Paragraph("No programs recorded this month.", styles["Body"]))

    story.append(Paragraph("Barriers", styles["SectionHead"]))
    barriers = report.get("barriers") or []
    if barriers:
        rows = [["Barrier", "Count"]]
        rows.extend([_escape(b["label"]), str(b["count"])] for b in barriers)
        table = Table(rows, colWidths=[5.75 * inch, 1.25 * inch], repeatRows=1)
        table.setStyle(_table_style())
        story.append(table)
    else:
        story.append(Paragraph("No barriers recorded.", styles["Body"]))

    story.append(Paragraph("Notable Outcomes", styles["SectionHead"]))
    outcomes = report.get("notableOutcomes") or []
    for outcome in outcomes:
        story.append(Paragraph(
            f"<b>{_escape(outcome['residentName'])}</b> &bull; {_escape(outcome['date'])}<br/>"
            f"{_escape(outcome['text'])}",
            styles["Body"],
        ))
        story.append(Spacer(1, 4))
    if not outcomes:
        story.append(Paragraph("No notable outcomes recorded.", styles["Body"]))

    story.append(Spacer(1, 12))
    story.append(Paragraph(_generated_line(time_zone), styles["Meta"]))
    doc.build(story)
    return buf.getvalue()


def render_calendar_schedule_pdf(days: Sequence[Dict[str, Any]], facility_name: str, range_label: str,
                                 time_zone: str) -> bytes:
    """Render a day-by-day activity schedule.

    ``days`` is a list of ``{"label": str, "activities": [{"time", "title", "location"}]}``.
    """
    from reportlab.lib.units import inch
    from reportlab.platypus import Paragraph, Spacer, Table

    buf = io.BytesIO()
    doc = _document(buf, f"Activity Calendar {range_label}")
    styles = _styles()
    story: List[Any] = [
        Paragraph("Activity Calendar", styles["ReportTitle"]),
        Paragraph(f"{_escape(facility_name)} &bull; {_escape(range_label)}", styles["Body"]),
        Spacer(1, 6),
    ]
    for day in days:
        story.append(Paragraph(_escape(day["label"]), styles["SectionHead"]))
        if not day["activities"]:
            story.append(Paragraph("No activities scheduled.", styles["Meta"]))
            continue
        rows = [["Time", "Activity", "Location"]]
        rows.extend([a["time"], Paragraph(_escape(a["title"]), styles["Body"]), _escape(a["location"])]
                    for a in day["activities"])
        table = Table(rows, colWidths=[1.4 * inch, 3.8 * inch, 2.3 * inch], repeatRows=1)
        table.setStyle(_table_style())
        story.append(table)

    story.append(Spacer(1, 12))
    story.append(Paragraph(_generated_line(time_zone), styles["Meta"]))
    doc.build(story)
    return buf.getvalue()
