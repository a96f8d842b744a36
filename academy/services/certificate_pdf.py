"""Render certificate PDFs with reportlab."""

from __future__ import annotations

import io
import logging
import os
from datetime import datetime
from urllib.parse import urlencode

from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from academy.core.settings import settings
from academy.services.qrcodes import qr_png_bytes

logger = logging.getLogger(__name__)

CERTIFICATE_SUBDIR = "certificates"


def verification_url(certificate_id: str) -> str:
    path = "/" + settings.verify_path.strip("/")
    return f"{settings.public_base_url}{path}?{urlencode({'cert': certificate_id})}"


def certificate_dir() -> str:
    return os.path.join(settings.upload_dir, CERTIFICATE_SUBDIR)


def certificate_path(filename: str) -> str:
    return os.path.join(certificate_dir(), filename)


def _hex_to_rgb(value: str) -> tuple[float, float, float]:
    value = value.strip().lstrip("#")
    if len(value) != 6:
        return (0.1, 0.2, 0.4)
    try:
        return tuple(int(value[i : i + 2], 16) / 255 for i in (0, 2, 4))  # type: ignore[return-value]
    except ValueError:
        return (0.1, 0.2, 0.4)


def render_certificate_pdf(
    *,
    trainee_name: str,
    program_name: str,
    certificate_id: str,
    issued_at: datetime,
) -> bytes:
    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=A4)
    width, height = A4
    verify_at = verification_url(certificate_id)

    qr_size = 120
    pdf.drawImage(
        ImageReader(io.BytesIO(qr_png_bytes(verify_at))),
        width - qr_size - 30,
        height - qr_size - 30,
        width=qr_size,
        height=qr_size,
    )

    title_y = height - 120
    pdf.setFillColorRGB(*_hex_to_rgb(settings.brand_color))
    pdf.setFont("Helvetica-Bold", 24)
    pdf.drawString(120, title_y, "Certificate of Completion")
    pdf.setFillColorRGB(0.3, 0.3, 0.3)
    pdf.setFont("Helvetica", 12)
    pdf.drawString(120, title_y - 24, settings.certificate_issuer)

    center_x = width / 2
    y = title_y - 80
    pdf.setFillColorRGB(0.2, 0.2, 0.2)
    pdf.setFont("Helvetica", 12)
    pdf.drawCentredString(center_x, y, "This is to certify that")
    y -= 28
    pdf.setFillColorRGB(0.1, 0.1, 0.2)
    pdf.setFont("Helvetica-Bold", 20)
    pdf.drawCentredString(center_x, y, trainee_name)
    y -= 28
    pdf.setFillColorRGB(0.2, 0.2, 0.2)
    pdf.setFont("Helvetica", 12)
    pdf.drawCentredString(center_x, y, "has successfully completed")
    y -= 28
    pdf.setFillColorRGB(0.15, 0.25, 0.45)
    pdf.setFont("Helvetica-Bold", 16)
    pdf.drawCentredString(center_x, y, program_name)

    y -= 50
    pdf.setFillColorRGB(0.3, 0.3, 0.3)
    pdf.setFont("Helvetica", 10)
    date_str = f"{issued_at.day} {issued_at:%B %Y}"
    pdf.drawString(120, y, f"Date of completion: {date_str}")
    pdf.drawString(120, y - 16, f"Certificate ID: {certificate_id}")
    pdf.setFillColorRGB(0.5, 0.5, 0.5)
    pdf.setFont("Helvetica", 8)
    pdf.drawString(120, y - 32, f"Verify at: {verify_at}")

    pdf.showPage()
    pdf.save()
    return buffer.getvalue()


def store_certificate_pdf(certificate_id: str, content: bytes) -> str:
    """Write the PDF under the upload dir and return its file name."""
    os.makedirs(certificate_dir(), exist_ok=True)
    filename = f"{certificate_id}.pdf"
    with open(certificate_path(filename), "wb") as fh:
        fh.write(content)
    logger.info("Stored certificate PDF %s", filename)
    return filename
