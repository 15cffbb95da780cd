"""
Report Layout Engine - one-page oral health screening report.

Positions are expressed top-down in points (like the page mock-up) and
flipped to reportlab's bottom-up coordinates when drawn.

Page, top to bottom:
  header band with centred two-line title
  patient row (name, email, date)
  screening panel: original and annotated images with caption bands
  colour legend (3-column grid)
  treatment recommendations (swatch, condition, colon, wrapped treatment)
  optional reviewer notes
  footer (generation time, submission id)
"""
import io
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfgen import canvas

logger = logging.getLogger(__name__)

PAGE_WIDTH, PAGE_HEIGHT = A4
MARGIN = 50
CONTENT_WIDTH = PAGE_WIDTH - 2 * MARGIN

HEADER_HEIGHT = 120
HEADER_COLOR = "#8B5A96"
TITLE_LINES = ("Oral Health Screening", "Report")

PANEL_HEIGHT = 320
PANEL_FILL = "#F5F5F5"
PANEL_STROKE = "#E0E0E0"

IMAGE_WIDTH = 120
IMAGE_HEIGHT = 90
IMAGE_SPACING = 30
CAPTION_HEIGHT = 20
CAPTION_COLOR = "#E74C3C"
ORIGINAL_CAPTION = "Upper Teeth"
ANNOTATED_CAPTION = "Annotated Image"

LEGEND_COLUMNS = 3
LEGEND_ROW_HEIGHT = 20
SWATCH_SIZE = 10
TREATMENT_ROW_HEIGHT = 22

LEGEND = (
    ("#8B4513", "Inflammed / Red gums"),
    ("#FFD700", "Misaligned"),
    ("#8B4513", "Receded gums"),
    ("#FF0000", "Stains"),
    ("#00FFFF", "Attrition"),
    ("#FF1493", "Crowns"),
)

TREATMENTS = (
    ("#8B4513", "Inflammed or Red gums", "Scaling."),
    ("#FFD700", "Misaligned", "Braces or Clear Aligner."),
    ("#8B4513", "Receded gums", "Gum Surgery."),
    ("#FF0000", "Stains", "Teeth cleaning and polishing."),
    ("#00FFFF", "Attrition", "Filling/ Night Guard."),
    ("#FF1493", "Crowns",
     "If the crown is loose or broken, better get it checked. "
     "Teeth coloured caps are the best ones."),
)


@dataclass(frozen=True)
class ReportData:
    """Submission fields printed on the report"""
    submission_id: str
    patient_name: str
    email: str
    submitted_on: date
    notes: Optional[str] = None


class _Page:
    """Thin wrapper over a reportlab canvas that takes top-down coordinates"""

    def __init__(self, pdf: canvas.Canvas):
        self.pdf = pdf

    def rect(self, x, top, width, height, fill=None, stroke=None):
        pdf = self.pdf
        if fill:
            pdf.setFillColor(colors.HexColor(fill))
        if stroke:
            pdf.setStrokeColor(colors.HexColor(stroke))
        pdf.rect(x, PAGE_HEIGHT - top - height, width, height,
                 fill=1 if fill else 0, stroke=1 if stroke else 0)

    def text(self, x, top, value, font="Helvetica", size=10, color="#000000", align="left", width=None):
        pdf = self.pdf
        pdf.setFont(font, size)
        pdf.setFillColor(colors.HexColor(color))
        baseline = PAGE_HEIGHT - top - size * 0.8
        if align == "center":
            pdf.drawCentredString(x + width / 2, baseline, value)
        else:
            pdf.drawString(x, baseline, value)

    def wrapped(self, x, top, value, width, font="Helvetica", size=10, color="#000000", leading=None):
        """Draw wrapped text; returns the height used"""
        leading = leading or size * 1.2
        lines = simpleSplit(value, font, size, width)
        for i, line in enumerate(lines):
            self.text(x, top + i * leading, line, font=font, size=size, color=color)
        return len(lines) * leading

    def image(self, data: bytes, x, top, width, height):
        self.pdf.drawImage(ImageReader(io.BytesIO(data)), x, PAGE_HEIGHT - top - height,
                           width=width, height=height)


def _draw_image_slot(page: _Page, data: Optional[bytes], x: float, top: float, caption: str) -> None:
    if data is None:
        logger.warning(f"No image for '{caption}' slot, leaving it empty")
        return
    try:
        page.image(data, x, top, IMAGE_WIDTH, IMAGE_HEIGHT)
    except (OSError, ValueError) as e:
        logger.warning(f"Could not place image for '{caption}' slot: {e}")
        return
    page.rect(x, top + IMAGE_HEIGHT, IMAGE_WIDTH, CAPTION_HEIGHT, fill=CAPTION_COLOR)
    page.text(x, top + IMAGE_HEIGHT + 5, caption, font="Helvetica-Bold", size=10,
              color="#FFFFFF", align="center", width=IMAGE_WIDTH)


def layout_report(
    data: ReportData,
    original_image: Optional[bytes],
    annotated_image: Optional[bytes],
    generated_at: Optional[datetime] = None,
    compress: bool = True,
) -> bytes:
    """
    Render the screening report as PDF bytes

    Args:
        data: Patient and submission fields
        original_image: JPEG/PNG bytes of the source photo, or None
        annotated_image: JPEG/PNG bytes of the composited photo, or None
        generated_at: Timestamp for the footer (defaults to now)
        compress: Compress page streams

    Missing or unreadable images are logged and their slot left empty; the
    rest of the page is always rendered.
    """
    generated_at = generated_at or datetime.now()
    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=A4, pageCompression=1 if compress else 0)
    pdf.setTitle(f"Oral Health Screening Report - {data.patient_name}")
    page = _Page(pdf)

    # Header band
    page.rect(0, 0, PAGE_WIDTH, HEADER_HEIGHT, fill=HEADER_COLOR)
    for i, line in enumerate(TITLE_LINES):
        page.text(0, 30 + i * 35, line, font="Helvetica-Bold", size=28,
                  color="#FFFFFF", align="center", width=PAGE_WIDTH)

    # Patient row
    y = 150
    column_width = CONTENT_WIDTH / 3
    page.text(MARGIN, y, f"Name: {data.patient_name}", size=12)
    page.text(MARGIN + column_width, y, f"Mail: {data.email}", size=12)
    page.text(MARGIN + 2 * column_width, y, f"Date: {data.submitted_on.strftime('%d/%m/%Y')}", size=12)
    y += 40

    # Screening panel
    page.rect(MARGIN, y, CONTENT_WIDTH, PANEL_HEIGHT, fill=PANEL_FILL, stroke=PANEL_STROKE)
    y += 20
    page.text(MARGIN + 20, y, "SCREENING REPORT:", font="Helvetica-Bold", size=14)
    y += 30

    images_x = MARGIN + (CONTENT_WIDTH - (2 * IMAGE_WIDTH + IMAGE_SPACING)) / 2
    _draw_image_slot(page, original_image, images_x, y, ORIGINAL_CAPTION)
    _draw_image_slot(page, annotated_image, images_x + IMAGE_WIDTH + IMAGE_SPACING, y, ANNOTATED_CAPTION)

    # Legend
    y += IMAGE_HEIGHT + 50
    legend_column_width = CONTENT_WIDTH / LEGEND_COLUMNS
    for index, (color, label) in enumerate(LEGEND):
        row, col = divmod(index, LEGEND_COLUMNS)
        x = MARGIN + 20 + col * legend_column_width
        top = y + row * LEGEND_ROW_HEIGHT
        page.rect(x, top, SWATCH_SIZE, SWATCH_SIZE, fill=color)
        page.text(x + 15, top + 1, label, size=8)
    legend_rows = -(-len(LEGEND) // LEGEND_COLUMNS)
    y += legend_rows * LEGEND_ROW_HEIGHT + 30

    # Treatment recommendations
    page.text(MARGIN, y, "TREATMENT RECOMMENDATIONS:", font="Helvetica-Bold", size=14)
    y += 25
    condition_x = MARGIN + 20
    colon_x = MARGIN + 170
    treatment_x = MARGIN + 180
    treatment_width = PAGE_WIDTH - MARGIN - treatment_x
    for color, condition, treatment in TREATMENTS:
        page.rect(MARGIN, y, SWATCH_SIZE, SWATCH_SIZE, fill=color)
        page.text(condition_x, y + 1, condition)
        page.text(colon_x, y + 1, ":")
        page.wrapped(treatment_x, y + 1, treatment, treatment_width)
        y += TREATMENT_ROW_HEIGHT

    # Reviewer notes
    if data.notes:
        y += 20
        page.text(MARGIN, y, "Additional Notes:", font="Helvetica-Bold", size=12)
        y += 18
        page.wrapped(MARGIN, y, data.notes, CONTENT_WIDTH)

    # Footer
    footer_y = PAGE_HEIGHT - 80
    page.text(MARGIN, footer_y, f"Report generated on: {generated_at.strftime('%d/%m/%Y, %H:%M:%S')}",
              size=8, color="#808080")
    page.text(MARGIN, footer_y + 12, f"Submission ID: {data.submission_id}", size=8, color="#808080")

    pdf.showPage()
    pdf.save()
    return buffer.getvalue()
