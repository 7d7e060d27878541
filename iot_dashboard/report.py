"""
Printable summary report

Builds a one-page PDF with per-sensor statistics for the selected window.
Uses reportlab, mirroring what the analytics page shows in its stat cards.
"""

from collections.abc import Sequence
from datetime import UTC, datetime
from html import escape
from io import BytesIO
from typing import Dict, List

from reportlab.lib import colors
from reportlab.lib.enums import TA_LEFT
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from .models import SENSORS, Reading, SensorMeta
from .stats import summarize_all

REPORT_FILENAME = "iot_analytics_report.pdf"


def _pdf_text(text: str) -> str:
    # Base-14 fonts have no subscript digits
    return text.replace("₂", "2")


def create_header(device_id: str) -> list:
    """Title, device and generation time."""
    elements = []
    styles = getSampleStyleSheet()

    title_style = ParagraphStyle(
        'ReportTitle',
        parent=styles['Heading1'],
        fontSize=20,
        textColor=colors.HexColor('#0f172a'),
        spaceAfter=4,
        alignment=TA_LEFT,
        fontName='Helvetica-Bold'
    )
    elements.append(Paragraph("IoT Analytics Report", title_style))

    sub_style = ParagraphStyle(
        'Device',
        parent=styles['Normal'],
        fontSize=11,
        textColor=colors.HexColor('#555555'),
        spaceAfter=4
    )
    elements.append(Paragraph(f"Device: {escape(device_id)}", sub_style))

    generated_time = datetime.now(UTC).strftime("%Y-%m-%d %H:%M UTC")
    elements.append(Paragraph(f"Generated: {generated_time}", sub_style))
    elements.append(Spacer(1, 0.2 * inch))
    return elements


def _stats_row(sensor: SensorMeta, stats: Dict[str, float]) -> List[str]:
    latest = sensor.format(stats["latest"])
    if sensor.unit:
        latest = f"{latest} {sensor.unit}"
    return [
        _pdf_text(sensor.label),
        _pdf_text(latest),
        sensor.format(stats["min"], 1),
        sensor.format(stats["max"], 1),
        sensor.format(stats["avg"], 1),
    ]


def create_summary_section(window: Sequence[Reading]) -> list:
    """Summary statistics table; sensors without data are left out."""
    elements = []
    styles = getSampleStyleSheet()

    elements.append(Paragraph("Summary Statistics", styles['Heading2']))

    data = [["Sensor", "Latest", "Min", "Max", "Avg"]]
    summary = summarize_all(window)
    for sensor in SENSORS:
        stats = summary[sensor.key]
        if stats is None:
            continue
        data.append(_stats_row(sensor, stats))

    if len(data) == 1:
        elements.append(Paragraph("No readings in the selected range.", styles['Normal']))
        return elements

    table = Table(data, colWidths=[1.8 * inch, 1.4 * inch, 1 * inch, 1 * inch, 1 * inch])
    table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#0f172a')),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 10),
        ('ALIGN', (1, 0), (-1, -1), 'RIGHT'),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.HexColor('#dddddd')),
    ]))
    elements.append(table)
    return elements


def generate_pdf_report(window: Sequence[Reading], device_id: str) -> bytes:
    """
    Generate the printable summary for ``window``.

    Returns:
        PDF content as bytes
    """
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=letter,
        rightMargin=54,
        leftMargin=54,
        topMargin=54,
        bottomMargin=36
    )

    story = []
    story.extend(create_header(device_id))
    story.extend(create_summary_section(window))
    story.append(Spacer(1, 0.3 * inch))
    story.append(Paragraph("Generated from IoT Analytics Dashboard.", getSampleStyleSheet()['Italic']))

    doc.build(story)

    pdf_content = buffer.getvalue()
    buffer.close()
    return pdf_content
