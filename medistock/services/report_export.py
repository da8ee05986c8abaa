"""
Render a grouped report as printable HTML or as a PDF.
"""
import io
from datetime import datetime
from html import escape

import pytz
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import cm
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle

from ..i18n import Translator
from .aggregation import earliest_expiration, restock_needed, total_quantity
from .reports import Report, ReportType


BRAND_COLOR = "#2071a8"

_HTML_STYLE = """
    body { font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, Helvetica, Arial, sans-serif; margin: 0; padding: 2rem; background-color: #f8f9fa; color: #333; }
    .container { max-width: 1200px; margin: 0 auto; background-color: #fff; padding: 2rem; border-radius: 8px; }
    h1, h2, h3, h4 { color: #2071a8; }
    h1 { font-size: 2rem; border-bottom: 2px solid #2071a8; padding-bottom: 0.5rem; }
    table { width: 100%; border-collapse: collapse; margin-top: 1rem; }
    th, td { border: 1px solid #dee2e6; padding: 0.75rem; text-align: left; }
    th { background-color: #f1f3f5; }
    .summary { border: 1px solid #ccc; background-color: #f9f9f9; padding: 1.5rem; margin-bottom: 2rem; border-radius: 8px; }
    .no-items { text-align: center; padding: 2rem; color: #868e96; }
    .understocked { color: #dc3545; font-weight: bold; }
    .footer { text-align: center; margin-top: 2rem; font-size: 0.8rem; color: #6c757d; }
"""


def report_title(report_type: ReportType, t: Translator) -> str:
    return t(f"report.title.{ReportType(report_type).value}")


def _local_timestamp(value: datetime, tz_name: str) -> str:
    try:
        tz = pytz.timezone(tz_name)
    except pytz.UnknownTimeZoneError:
        tz = pytz.utc
    return value.astimezone(tz).strftime("%Y-%m-%d %H:%M")


def _expires(item) -> str:
    earliest = earliest_expiration(item)
    return earliest.strftime("%Y-%m-%d") if earliest else "N/A"


def _item_rows(report: Report):
    """Yield (level, payload) in document order so both renderers share one walk."""
    for vg in report.vehicles.values():
        yield "vehicle", vg.vehicle
        for cg in vg.cases.values():
            yield "case", cg.case
            for mg in cg.modules.values():
                yield "module", mg


def render_html(report: Report, t: Translator, tz_name: str = "UTC") -> str:
    title = report_title(report.report_type, t)
    s = report.summary
    parts = [
        f"<h1>{escape(title)}</h1>",
        f"<p><em>{escape(t('report.generatedOn'))}: {_local_timestamp(report.generated_at, tz_name)}</em></p>",
        '<div class="summary">',
        f"<h2>{escape(t('report.summary'))}</h2>",
        f"<p><strong>{escape(t('report.totalItems'))}:</strong> {s.total_items}</p>",
        f"<p><strong>{escape(t('report.understockedItems'))}:</strong> {s.understocked_items}</p>",
        f"<p><strong>{escape(t('report.totalRestock'))}:</strong> {s.total_restock_needed}</p>",
        f"<p><strong>{escape(t('report.expiringItems'))}:</strong> {s.expiring_items}</p>",
        "</div>",
    ]

    if report.is_empty:
        parts.append(f'<div class="no-items">{escape(t("report.noItems"))}</div>')

    headers = "".join(
        f"<th>{escape(t(k))}</th>"
        for k in ("report.itemName", "report.quantity", "report.target", "report.restockNeeded", "report.expires")
    )
    for level, payload in _item_rows(report):
        if level == "vehicle":
            parts.append(f"<h2>{escape(t('report.vehicle'))}: {escape(payload.name)}</h2>")
        elif level == "case":
            parts.append(f"<h3>{escape(t('report.case'))}: {escape(payload.name)}</h3>")
        else:
            parts.append(f"<h4>{escape(t('report.module'))}: {escape(payload.module.name)}</h4>")
            parts.append(f"<table><thead><tr>{headers}</tr></thead><tbody>")
            for item in payload.items:
                needed = restock_needed(item)
                css = "understocked" if needed > 0 else ""
                parts.append(
                    "<tr>"
                    f"<td>{escape(item.name)}</td>"
                    f"<td>{total_quantity(item)}</td>"
                    f"<td>{item.target_quantity}</td>"
                    f'<td class="{css}">{needed}</td>'
                    f"<td>{_expires(item)}</td>"
                    "</tr>"
                )
            parts.append("</tbody></table>")

    body = "\n".join(parts)
    return (
        "<!DOCTYPE html>\n"
        '<html lang="en">\n<head>\n<meta charset="UTF-8">\n'
        f"<title>{escape(title)}</title>\n<style>{_HTML_STYLE}</style>\n</head>\n"
        f'<body>\n<div class="container">\n{body}\n'
        f'<div class="footer">{escape(t("report.footer"))}</div>\n</div>\n</body>\n</html>\n'
    )


def render_pdf(report: Report, t: Translator, tz_name: str = "UTC") -> bytes:
    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=A4,
        leftMargin=1.5 * cm,
        rightMargin=1.5 * cm,
        topMargin=1.5 * cm,
        bottomMargin=1.5 * cm,
        title=report_title(report.report_type, t),
    )
    styles = getSampleStyleSheet()
    brand = colors.HexColor(BRAND_COLOR)
    h1 = ParagraphStyle("ReportTitle", parent=styles["Heading1"], textColor=brand)
    h2 = ParagraphStyle("ReportVehicle", parent=styles["Heading2"], textColor=brand)
    h3 = ParagraphStyle("ReportCase", parent=styles["Heading3"], textColor=brand)
    h4 = ParagraphStyle("ReportModule", parent=styles["Heading4"], textColor=brand)
    body = styles["BodyText"]

    story = [
        Paragraph(escape(report_title(report.report_type, t)), h1),
        Paragraph(f"<i>{escape(t('report.generatedOn'))}: {_local_timestamp(report.generated_at, tz_name)}</i>", body),
        Spacer(1, 0.4 * cm),
    ]
    s = report.summary
    summary_rows = [
        [t("report.totalItems"), str(s.total_items)],
        [t("report.understockedItems"), str(s.understocked_items)],
        [t("report.totalRestock"), str(s.total_restock_needed)],
        [t("report.expiringItems"), str(s.expiring_items)],
    ]
    summary_table = Table(summary_rows, colWidths=[10 * cm, 4 * cm])
    summary_table.setStyle(TableStyle([
        ("BOX", (0, 0), (-1, -1), 0.5, colors.grey),
        ("BACKGROUND", (0, 0), (-1, -1), colors.HexColor("#f9f9f9")),
        ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
    ]))
    story += [Paragraph(escape(t("report.summary")), h2), summary_table, Spacer(1, 0.5 * cm)]

    if report.is_empty:
        story.append(Paragraph(escape(t("report.noItems")), body))

    header = [t(k) for k in ("report.itemName", "report.quantity", "report.target", "report.restockNeeded", "report.expires")]
    for level, payload in _item_rows(report):
        if level == "vehicle":
            story.append(Paragraph(f"{escape(t('report.vehicle'))}: {escape(payload.name)}", h2))
        elif level == "case":
            story.append(Paragraph(f"{escape(t('report.case'))}: {escape(payload.name)}", h3))
        else:
            story.append(Paragraph(f"{escape(t('report.module'))}: {escape(payload.module.name)}", h4))
            rows = [header]
            understocked_rows = []
            for idx, item in enumerate(payload.items, start=1):
                needed = restock_needed(item)
                if needed > 0:
                    understocked_rows.append(idx)
                rows.append([
                    Paragraph(escape(item.name), body),
                    str(total_quantity(item)),
                    str(item.target_quantity),
                    str(needed),
                    _expires(item),
                ])
            table = Table(rows, colWidths=[6.5 * cm, 2.3 * cm, 2.3 * cm, 3 * cm, 3 * cm], repeatRows=1)
            style = [
                ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#dee2e6")),
                ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#f1f3f5")),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
            ]
            for r in understocked_rows:
                style.append(("TEXTCOLOR", (3, r), (3, r), colors.HexColor("#dc3545")))
            table.setStyle(TableStyle(style))
            story += [table, Spacer(1, 0.3 * cm)]

    doc.build(story)
    return buf.getvalue()
