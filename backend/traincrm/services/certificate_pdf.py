"""
Certificate PDF rendering with reportlab.
"""

from datetime import date
from pathlib import Path
from typing import Optional
import io

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import cm, inch
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle

from traincrm.core.config import settings


def _styles():
    styles = getSampleStyleSheet()
    return {
        "title": ParagraphStyle(
            "CertTitle", parent=styles["Heading1"], fontSize=28,
            textColor=colors.HexColor("#1a365d"), alignment=TA_CENTER, spaceAfter=10,
        ),
        "subtitle": ParagraphStyle(
            "CertSubtitle", parent=styles["Heading2"], fontSize=16,
            textColor=colors.HexColor("#4a5568"), alignment=TA_CENTER, spaceAfter=20,
        ),
        "name": ParagraphStyle(
            "RecipientName", parent=styles["Heading1"], fontSize=24,
            textColor=colors.HexColor("#2d3748"), alignment=TA_CENTER, spaceBefore=10, spaceAfter=10,
        ),
        "course": ParagraphStyle(
            "CourseName", parent=styles["Heading2"], fontSize=18,
            textColor=colors.HexColor("#3182ce"), alignment=TA_CENTER, spaceBefore=10, spaceAfter=20,
        ),
        "body": ParagraphStyle(
            "CertBody", parent=styles["Normal"], fontSize=12,
            textColor=colors.HexColor("#4a5568"), alignment=TA_CENTER, spaceAfter=6,
        ),
        "small": ParagraphStyle(
            "CertSmall", parent=styles["Normal"], fontSize=10,
            textColor=colors.HexColor("#718096"), alignment=TA_CENTER, spaceAfter=4,
        ),
    }


def render_certificate_pdf(
    recipient_name: str,
    course_name: str,
    verification_code: str,
    issue_date: date,
    expiry_date: Optional[date] = None,
    location_name: Optional[str] = None,
    instructor_name: Optional[str] = None,
) -> bytes:
    """Render a landscape A4 certificate and return the PDF bytes"""
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=landscape(A4),
        rightMargin=1 * cm,
        leftMargin=1 * cm,
        topMargin=1 * cm,
        bottomMargin=1 * cm,
        title=f"{course_name} - {recipient_name}",
    )
    style = _styles()

    content = [
        Paragraph(settings.CERTIFICATE_ISSUER_NAME, style["title"]),
        Paragraph("Certificate of Completion", style["subtitle"]),
        Spacer(1, 20),
        Paragraph("This is to certify that", style["body"]),
        Spacer(1, 10),
        Paragraph(f"<b>{recipient_name}</b>", style["name"]),
        Spacer(1, 10),
        Paragraph("has successfully completed the course", style["body"]),
        Spacer(1, 10),
        Paragraph(f"<b>{course_name}</b>", style["course"]),
        Spacer(1, 10),
    ]

    details = [["Issued", issue_date.strftime("%B %d, %Y")]]
    if expiry_date:
        details.append(["Valid until", expiry_date.strftime("%B %d, %Y")])
    if location_name:
        details.append(["Location", location_name])
    if instructor_name:
        details.append(["Instructor", instructor_name])

    table = Table(details, colWidths=[2 * inch, 3.5 * inch])
    table.setStyle(TableStyle([
        ("ALIGN", (0, 0), (-1, -1), "CENTER"),
        ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
        ("FONTNAME", (1, 0), (1, -1), "Helvetica"),
        ("FONTSIZE", (0, 0), (-1, -1), 10),
        ("TEXTCOLOR", (0, 0), (-1, -1), colors.HexColor("#4a5568")),
        ("GRID", (0, 0), (-1, -1), 1, colors.HexColor("#cbd5e0")),
        ("TOPPADDING", (0, 0), (-1, -1), 6),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
    ]))
    content.append(table)
    content.append(Spacer(1, 30))

    content.append(Paragraph(f"Verification code: <b>{verification_code}</b>", style["small"]))
    content.append(Paragraph(
        f"Verify at: <font color='#3182ce'>{settings.get_verification_url(verification_code)}</font>",
        style["small"],
    ))

    doc.build(content)
    pdf_bytes = buffer.getvalue()
    buffer.close()
    return pdf_bytes


def save_certificate_pdf(pdf_bytes: bytes, verification_code: str, directory: Optional[Path] = None) -> Path:
    """Write the PDF into certificate storage and return its path"""
    target_dir = directory or settings.CERTIFICATE_DIR
    target_dir.mkdir(parents=True, exist_ok=True)
    path = target_dir / f"{verification_code}.pdf"
    path.write_bytes(pdf_bytes)
    return path
