from io import BytesIO

import qrcode
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas


def qr_png(url: str) -> BytesIO:
    img = qrcode.make(url)
    buf = BytesIO()
    img.save(buf)
    buf.seek(0)
    return buf


def receipt_pdf(record, metadata=None) -> BytesIO:
    """Render a one-page PDF receipt for a ledger record."""
    data = record.to_dict()
    buffer = BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=A4)

    pdf.setFont("Helvetica-Bold", 22)
    pdf.drawCentredString(300, 800, "Certificate Registry Receipt")

    pdf.setFont("Helvetica", 10)
    y = 750
    for label, value in [
        ("Document Hash", data["docHash"]),
        ("Metadata Ref", data["ipfsCID"]),
        ("Issuer", data["issuer"]),
        ("Issued At", data["issuedDate"]),
    ]:
        pdf.drawString(60, y, f"{label}: {value}")
        y -= 24

    if metadata:
        pdf.setFont("Helvetica-Bold", 14)
        y -= 12
        pdf.drawString(60, y, "Certificate Details")
        pdf.setFont("Helvetica", 12)
        for key, value in metadata.items():
            y -= 22
            pdf.drawString(60, y, f"{key}: {value}")

    pdf.showPage()
    pdf.save()

    buffer.seek(0)
    return buffer
