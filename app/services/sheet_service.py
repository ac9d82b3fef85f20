# app/services/sheet_service.py
"""
Printable A4 sheet of tag QR codes (reportlab + qrcode).

Grid: 4 columns of 100pt QR codes, 20pt gap, 30pt page margin, the plain
code printed under each QR. Each QR encodes the obfuscated scan payload,
not the code itself.
"""

import io

import qrcode
from qrcode.constants import ERROR_CORRECT_M
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from app.utils.tag_codes import build_scan_payload

MARGIN = 30
QR_SIZE = 100
GAP = 20
COLUMNS = 4
LABEL_FONT = "Helvetica"
LABEL_FONT_SIZE = 10
ROW_HEIGHT = QR_SIZE + GAP + 20


def qr_png(data: str) -> bytes:
    qr = qrcode.QRCode(error_correction=ERROR_CORRECT_M, box_size=10, border=2)
    qr.add_data(data)
    qr.make(fit=True)
    buf = io.BytesIO()
    qr.make_image(fill_color="black", back_color="white").save(buf)
    return buf.getvalue()


def render_tag_sheet(codes: list) -> bytes:
    """PDF bytes with one labelled QR per code, in order."""
    out = io.BytesIO()
    pdf = canvas.Canvas(out, pagesize=A4)
    pdf.setTitle("CarCard tags")
    page_width, page_height = A4

    x, y, col = MARGIN, MARGIN, 0
    pdf.setFont(LABEL_FONT, LABEL_FONT_SIZE)
    for code in codes:
        if y + QR_SIZE + 40 > page_height - MARGIN:
            pdf.showPage()
            pdf.setFont(LABEL_FONT, LABEL_FONT_SIZE)
            x, y, col = MARGIN, MARGIN, 0

        # Layout runs top-down; reportlab's origin is bottom-left
        top = page_height - y
        image = ImageReader(io.BytesIO(qr_png(build_scan_payload(code))))
        pdf.drawImage(image, x, top - QR_SIZE, width=QR_SIZE, height=QR_SIZE)
        pdf.drawCentredString(x + QR_SIZE / 2, top - QR_SIZE - 5 - LABEL_FONT_SIZE, code)

        col += 1
        if col >= COLUMNS:
            col = 0
            x = MARGIN
            y += ROW_HEIGHT
        else:
            x += QR_SIZE + GAP

    pdf.save()
    return out.getvalue()
