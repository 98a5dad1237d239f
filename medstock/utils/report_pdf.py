# medstock/utils/report_pdf.py
"""
PDF rendering of tabular stock reports using reportlab.
Mirrors the columns of the CSV export of the same report.
"""

from datetime import date
from io import BytesIO
from typing import Sequence

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle


def generate_report_pdf(
    title: str,
    headers: Sequence[str],
    rows: Sequence[Sequence[object]],
    *,
    subtitle: str | None = None,
    generated_on: date | None = None,
) -> BytesIO:
    """
    Generate a landscape A4 PDF with a title and one table.
    Returns a BytesIO buffer positioned at the start.
    """
    buffer = BytesIO()

    doc = SimpleDocTemplate(
        buffer,
        pagesize=landscape(A4),
        rightMargin=12 * mm,
        leftMargin=12 * mm,
        topMargin=12 * mm,
        bottomMargin=10 * mm,
        title=title,
    )

    elements = []

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        "ReportTitle",
        parent=styles["Heading1"],
        fontSize=18,
        textColor=colors.black,
        spaceAfter=8,
        fontName="Helvetica-Bold",
    )
    small_style = ParagraphStyle(
        "ReportSmall",
        parent=styles["Normal"],
        fontSize=8,
        textColor=colors.black,
        spaceAfter=4,
    )

    elements.append(Paragraph(title, title_style))
    if subtitle:
        elements.append(Paragraph(subtitle, small_style))
    if generated_on:
        elements.append(
            Paragraph(f"Gerado em: {generated_on.strftime('%d/%m/%Y')}", small_style)
        )
    elements.append(Spacer(1, 4 * mm))

    data = [list(headers)]
    for row in rows:
        data.append(["-" if value is None or value == "" else str(value) for value in row])

    if len(data) == 1:
        elements.append(Paragraph("Nenhum registro encontrado.", styles["Normal"]))
    else:
        table = Table(data, repeatRows=1)
        table.setStyle(
            TableStyle(
                [
                    ("BACKGROUND", (0, 0), (-1, 0), colors.grey),
                    ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
                    ("ALIGN", (0, 0), (-1, -1), "LEFT"),
                    ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                    ("FONTSIZE", (0, 0), (-1, 0), 9),
                    ("BOTTOMPADDING", (0, 0), (-1, 0), 6),
                    ("FONTNAME", (0, 1), (-1, -1), "Helvetica"),
                    ("FONTSIZE", (0, 1), (-1, -1), 8),
                    ("GRID", (0, 0), (-1, -1), 0.5, colors.black),
                    ("VALIGN", (0, 0), (-1, -1), "TOP"),
                    ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.beige]),
                ]
            )
        )
        elements.append(table)

    doc.build(elements)
    buffer.seek(0)
    return buffer
