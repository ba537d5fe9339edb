"""Vehicle release authorization PDF."""

from io import BytesIO
from typing import Protocol

from reportlab.graphics import renderPDF
from reportlab.graphics.barcode.qr import QrCodeWidget
from reportlab.graphics.shapes import Drawing
from reportlab.lib.colors import HexColor
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from ..clock import format_document_time
from ..models import Load

PAGE_WIDTH, PAGE_HEIGHT = A4
MARGIN = 18 * mm
TEXT_DARK = HexColor("#1B1B1B")
TEXT_MUTED = HexColor("#6B6B6B")


class DocumentGenerator(Protocol):
    def generate(self, load: Load, timezone: str = "UTC") -> bytes: ...


class ReleaseDocumentGenerator:
    """
    Renders the release document handed to the driver.

    The QR code links to the public verification page for the load. The PIN
    is deliberately absent: the dealer reads it from the verification page.
    """

    def __init__(
        self,
        public_base_url: str,
        app_name: str = "DTH Logistics",
        header_title: str = "VEHICLE RELEASE AUTHORIZATION",
        primary_color: str = "#ED2939",
        qr_size: float = 120,
        footer_text: str = "",
    ):
        self.public_base_url = public_base_url.rstrip("/")
        self.app_name = app_name
        self.header_title = header_title
        self.primary_color = HexColor(primary_color)
        self.qr_size = qr_size
        self.footer_text = footer_text

    def verification_url(self, load: Load) -> str:
        return f"{self.public_base_url}/verify/{load.verification_token}"

    def _rows(self, load: Load, timezone: str) -> list[tuple[str, str]]:
        vehicle = " ".join(
            str(p) for p in (load.vehicle_year, load.vehicle_make, load.vehicle_model) if p
        )
        rows = [
            ("Load ID", load.load_id),
            ("Vehicle", vehicle or "N/A"),
            ("VIN (last 6)", load.vin_last_6 or "N/A"),
            ("Carrier", load.carrier_name or "N/A"),
            ("Driver", load.driver_name or "N/A"),
            ("Truck Plate", load.truck_plate or "N/A"),
            ("Trailer Plate", load.trailer_plate or "N/A"),
            ("Pickup Location", load.pickup_location or "N/A"),
            ("Window Start", format_document_time(load.pickup_window_start, timezone)),
            ("Window End", format_document_time(load.pickup_window_end, timezone)),
            ("Pickup Info", load.pickup_info or "N/A"),
            ("Pickup Contact", load.pickup_contact or "N/A"),
        ]
        for key, value in (load.custom_fields or {}).items():
            rows.append((str(key), "N/A" if value in (None, "") else str(value)))
        return rows

    def _draw_qr(self, pdf: canvas.Canvas, url: str, x: float, y: float) -> None:
        widget = QrCodeWidget(url)
        x1, y1, x2, y2 = widget.getBounds()
        width, height = x2 - x1, y2 - y1
        drawing = Drawing(
            self.qr_size,
            self.qr_size,
            transform=[self.qr_size / width, 0, 0, self.qr_size / height, 0, 0],
        )
        drawing.add(widget)
        renderPDF.draw(drawing, pdf, x, y)

    def generate(self, load: Load, timezone: str = "UTC") -> bytes:
        """Render the document for ``load`` with times in ``timezone``."""
        buffer = BytesIO()
        pdf = canvas.Canvas(buffer, pagesize=A4)
        pdf.setTitle(f"{self.app_name} Release {load.load_id}")

        # Header band
        pdf.setFillColor(self.primary_color)
        pdf.rect(0, PAGE_HEIGHT - 32 * mm, PAGE_WIDTH, 32 * mm, stroke=0, fill=1)
        pdf.setFillColor(HexColor("#FFFFFF"))
        pdf.setFont("Helvetica-Bold", 20)
        pdf.drawString(MARGIN, PAGE_HEIGHT - 16 * mm, self.app_name)
        pdf.setFont("Helvetica", 11)
        pdf.drawString(MARGIN, PAGE_HEIGHT - 24 * mm, self.header_title)

        # Detail rows
        y = PAGE_HEIGHT - 48 * mm
        for label, value in self._rows(load, timezone):
            pdf.setFillColor(TEXT_MUTED)
            pdf.setFont("Helvetica", 9)
            pdf.drawString(MARGIN, y, label.upper())
            pdf.setFillColor(TEXT_DARK)
            pdf.setFont("Helvetica-Bold", 11)
            pdf.drawString(MARGIN + 45 * mm, y, value[:70])
            y -= 9 * mm

        # QR code, right column
        qr_x = PAGE_WIDTH - MARGIN - self.qr_size
        qr_y = PAGE_HEIGHT - 48 * mm - self.qr_size + 4 * mm
        self._draw_qr(pdf, self.verification_url(load), qr_x, qr_y)
        pdf.setFillColor(TEXT_MUTED)
        pdf.setFont("Helvetica", 8)
        pdf.drawCentredString(qr_x + self.qr_size / 2, qr_y - 4 * mm, "Scan to verify release")

        if self.footer_text:
            pdf.setFont("Helvetica", 8)
            pdf.drawString(MARGIN, 12 * mm, self.footer_text[:120])

        pdf.showPage()
        pdf.save()
        return buffer.getvalue()
