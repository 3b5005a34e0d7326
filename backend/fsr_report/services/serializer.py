"""PDF serialization of composed documents using the ReportLab canvas."""

import io

from reportlab.lib import colors
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from fsr_report.exceptions import RenderFailure
from fsr_report.models.entities import ComposedDocument, ImageOp, RectOp, TextOp


def _draw_text(pdf: canvas.Canvas, op: TextOp, page_height: float) -> None:
    pdf.setFont(op.font_name, op.font_size)
    pdf.setFillColor(colors.HexColor(op.color))
    pdf.setStrokeColor(colors.HexColor(op.color))

    for index, line in enumerate(op.lines):
        # Baseline sits one font size below the top of the line box
        baseline = page_height - (op.y + op.font_size + index * op.leading)
        if op.align == 'center' and op.width:
            pdf.drawCentredString(op.x + op.width / 2, baseline, line)
            start = op.x + (op.width - pdf.stringWidth(line)) / 2
        elif op.align == 'right' and op.width:
            pdf.drawRightString(op.x + op.width, baseline, line)
            start = op.x + op.width - pdf.stringWidth(line)
        else:
            pdf.drawString(op.x, baseline, line)
            start = op.x

        if op.underline and line:
            pdf.setLineWidth(0.5)
            pdf.line(start, baseline - 1.5, start + pdf.stringWidth(line), baseline - 1.5)


def _draw_rect(pdf: canvas.Canvas, op: RectOp, page_height: float) -> None:
    pdf.setLineWidth(0.75)
    pdf.setStrokeColor(colors.black)
    if op.fill:
        pdf.setFillColor(colors.HexColor(op.fill))
    pdf.rect(
        op.x,
        page_height - op.y - op.height,
        op.width,
        op.height,
        stroke=1 if op.stroke else 0,
        fill=1 if op.fill else 0
    )


def _draw_image(pdf: canvas.Canvas, op: ImageOp, page_height: float) -> None:
    pdf.drawImage(
        ImageReader(io.BytesIO(op.data)),
        op.x,
        page_height - op.y - op.height,
        width=op.width,
        height=op.height,
        preserveAspectRatio=True,
        anchor='nw',
        mask='auto'
    )


_DRAWERS = {
    TextOp: _draw_text,
    RectOp: _draw_rect,
    ImageOp: _draw_image,
}


def render_document(document: ComposedDocument) -> bytes:
    """Render every page of a composed document into one PDF buffer.

    Args:
        document: Composed pages of draw operations

    Returns:
        PDF content as bytes

    Raises:
        RenderFailure: If ReportLab fails while drawing or saving
    """
    buffer = io.BytesIO()
    page_height = document.page_size[1]

    try:
        pdf = canvas.Canvas(buffer, pagesize=document.page_size, invariant=1)
        if document.title:
            pdf.setTitle(document.title)

        for page_index, ops in enumerate(document.pages):
            for number, section in enumerate(document.sections):
                if section.page_index != page_index:
                    continue
                key = f'section-{number}'
                pdf.bookmarkPage(key, fit='XYZ', top=page_height - section.y)
                pdf.addOutlineEntry(section.name, key, level=0)

            for op in ops:
                _DRAWERS[type(op)](pdf, op, page_height)
            pdf.showPage()

        pdf.save()
    except Exception as e:
        raise RenderFailure(f'PDF rendering failed: {e}') from e

    return buffer.getvalue()
