from datetime import datetime
from io import BytesIO

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import (
    SimpleDocTemplate,
    Paragraph,
    Spacer,
    Table,
    TableStyle,
)


def _report_rows(report: dict):
    """
    Table body plus the row indexes of section headers and subtotals,
    so the caller can style them.
    """
    rows = [["Item", "Average", "Percentage", "Respondents"]]
    header_rows, subtotal_rows = [], []

    for section in report["sections"]:
        header_rows.append(len(rows))
        rows.append([section["section"], "", "", ""])
        for item in section["items"]:
            rows.append([
                Paragraph(item["item"], getSampleStyleSheet()["BodyText"]),
                f"{item['averageScore']:.2f}",
                f"{item['percentage']:.2f}%",
                str(item["respondentCount"]),
            ])
        subtotal_rows.append(len(rows))
        rows.append([
            "Subtotal",
            f"{section['sumAverage']:.2f}",
            f"{section['sumPercentage']:.2f}%",
            str(section["respondentCount"]),
        ])

    total = report["grandTotal"]
    rows.append([
        "Grand Total",
        f"{total['sumAverage']:.2f}",
        f"{total['sumPercentage']:.2f}%",
        str(total["respondentCount"]),
    ])
    return rows, header_rows, subtotal_rows


def render_report_pdf(report: dict, form: dict) -> bytes:
    """
    Printable evaluation summary: section headers, item rows, section
    subtotals and a grand total.
    """
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=36,
        leftMargin=36,
        topMargin=36,
        bottomMargin=36,
    )

    styles = getSampleStyleSheet()
    story = []

    # ---------------- Title ----------------
    title_style = styles["Heading1"]
    title_style.alignment = TA_CENTER

    story.append(Paragraph(form.get("name", "Evaluation Form"), title_style))
    story.append(Spacer(1, 10))
    story.append(Paragraph("Evaluation Summary Report", styles["Heading2"]))
    story.append(Spacer(1, 6))

    semester = report.get("semester") or "All semesters"
    date_str = datetime.now().strftime("%d %B %Y")
    story.append(Paragraph(f"<i>{semester} · Generated on {date_str}</i>", styles["Normal"]))
    story.append(Spacer(1, 20))

    if not report["totalResponses"]:
        story.append(Paragraph("No responses found.", styles["BodyText"]))
        doc.build(story)
        return buffer.getvalue()

    story.append(Paragraph(f"Total responses: {report['totalResponses']}", styles["BodyText"]))
    story.append(Spacer(1, 12))

    # ---------------- Items ----------------
    rows, header_rows, subtotal_rows = _report_rows(report)
    table = Table(rows, colWidths=[260, 80, 90, 80], repeatRows=1)

    style = [
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
        ("BACKGROUND", (0, 0), (-1, 0), colors.whitesmoke),
        ("FONT", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("ALIGN", (1, 0), (-1, -1), "CENTER"),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("BACKGROUND", (0, -1), (-1, -1), colors.lightgrey),
        ("FONT", (0, -1), (-1, -1), "Helvetica-Bold"),
    ]
    for idx in header_rows:
        style += [
            ("SPAN", (0, idx), (-1, idx)),
            ("BACKGROUND", (0, idx), (-1, idx), colors.lightblue),
            ("FONT", (0, idx), (-1, idx), "Helvetica-Bold"),
        ]
    for idx in subtotal_rows:
        style.append(("FONT", (0, idx), (-1, idx), "Helvetica-Oblique"))

    table.setStyle(TableStyle(style))
    story.append(table)

    # ---------------- Build ----------------
    doc.build(story)
    return buffer.getvalue()
