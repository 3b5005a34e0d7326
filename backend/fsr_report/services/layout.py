"""Page layout engine.

A LayoutSession lays out one document. Coordinates use a top-left origin with
y growing down the page; the serializer converts them to PDF space. Every
block helper checks for a page break at its boundary, and table rows and text
lines are never split across pages. A row taller than a whole page is the one
exception: its wrapped lines continue in fresh boxes on the following pages.
"""

import io
from itertools import groupby
from operator import itemgetter
from typing import Callable, List, Optional, Sequence, Tuple

from aws_lambda_powertools import Logger
from reportlab.lib.utils import ImageReader, simpleSplit

from fsr_report.config import (
    BODY_FONT_SIZE, BOTTOM_MARGIN, CELL_PADDING, FONT_BOLD, FONT_REGULAR,
    HEADER_FILL, HEADING_FONT_SIZE, LINE_SPACING, PAGE_MARGIN, PAGE_SIZE
)
from fsr_report.models.entities import (
    ComposedDocument, DrawOp, ImageOp, LayoutCursor, RectOp, Section, TextOp
)
from fsr_report.services.serializer import render_document


logger = Logger(service="fsr-layout")

ALIGNMENTS = ('left', 'center', 'right')


def leading_for(font_size: float) -> float:
    """Line height for a font size."""
    return font_size * LINE_SPACING


def wrap_text(content, width: Optional[float], font_name: str, font_size: float) -> List[str]:
    """Split text into lines no wider than width (explicit newlines kept)."""
    text = '' if content is None else str(content)
    lines: List[str] = []
    for paragraph in text.splitlines() or ['']:
        if width is None:
            lines.append(paragraph)
        else:
            lines.extend(simpleSplit(paragraph, font_name, font_size, width) or [''])
    return lines


class LayoutSession:
    """Stateful layout of a single document.

    Not shared between documents or threads: create one per report.
    """

    def __init__(
        self,
        page_size: Tuple[float, float] = PAGE_SIZE,
        margin: float = PAGE_MARGIN,
        bottom_margin: float = BOTTOM_MARGIN,
        title: str = ''
    ):
        self.page_width, self.page_height = page_size
        self.top = margin
        self.left = margin
        self.right = self.page_width - margin
        self.content_width = self.right - self.left
        self.bottom_limit = self.page_height - bottom_margin
        self.title = title

        self.cursor = LayoutCursor(x=self.left, y=self.top)
        self._pages: List[List[DrawOp]] = [[]]
        self._sections: List[Section] = []
        self._finished = False

    # Cursor and pages

    @property
    def y(self) -> float:
        return self.cursor.y

    @property
    def page_count(self) -> int:
        return len(self._pages)

    @property
    def remaining_height(self) -> float:
        return self.bottom_limit - self.cursor.y

    def advance(self, delta_y: float) -> None:
        """Move the cursor down the page."""
        self.cursor.y += delta_y

    def new_page(self) -> None:
        """Start a new page and reset the cursor to the top margin."""
        self._pages.append([])
        self.cursor.page_index += 1
        self.cursor.x = self.left
        self.cursor.y = self.top

    def check_page_break(self, height: float) -> bool:
        """Break the page if a block of this height would pass the printable area.

        A block taller than a whole page is drawn from the top of a fresh
        page rather than looping.

        Returns:
            True if a new page was started
        """
        if self.cursor.y + height <= self.bottom_limit:
            return False
        if self.cursor.y <= self.top:
            return False
        self.new_page()
        return True

    def begin_section(self, name: str) -> None:
        """Record the start of a named section at the cursor."""
        self._sections.append(Section(name, self.cursor.page_index, self.cursor.y))

    # Primitives

    def _emit(self, op: DrawOp) -> None:
        if self._finished:
            raise RuntimeError('Layout session already finished')
        self._pages[-1].append(op)

    def measure_text(
        self,
        content,
        width: Optional[float] = None,
        font_size: float = BODY_FONT_SIZE,
        bold: bool = False
    ) -> float:
        """Height that text would occupy when wrapped to width."""
        font_name = FONT_BOLD if bold else FONT_REGULAR
        return len(wrap_text(content, width, font_name, font_size)) * leading_for(font_size)

    def text(
        self,
        content,
        x: float,
        y: float,
        width: Optional[float] = None,
        align: str = 'left',
        underline: bool = False,
        font_size: float = BODY_FONT_SIZE,
        bold: bool = False,
        color: str = '#000000'
    ) -> float:
        """Draw text at a position without moving the cursor.

        Returns:
            Height of the drawn text
        """
        if align not in ALIGNMENTS:
            raise ValueError(f'Unknown alignment: {align}')
        font_name = FONT_BOLD if bold else FONT_REGULAR
        lines = wrap_text(content, width, font_name, font_size)
        op = TextOp(
            lines=tuple(lines),
            x=x,
            y=y,
            width=width,
            font_name=font_name,
            font_size=font_size,
            leading=leading_for(font_size),
            align=align,
            underline=underline,
            color=color
        )
        self._emit(op)
        return op.height

    def rect(
        self,
        x: float,
        y: float,
        width: float,
        height: float,
        stroke: bool = True,
        fill: Optional[str] = None
    ) -> None:
        """Draw a bordered and/or filled box."""
        self._emit(RectOp(x, y, width, height, stroke=stroke, fill=fill))

    def image(self, data: Optional[bytes], x: float, y: float, width: float, height: float) -> bool:
        """Draw an image; undecodable data is skipped with a warning.

        Returns:
            True if the image was placed
        """
        if not data:
            return False
        try:
            # Decode fully; a valid header can front truncated pixel data
            ImageReader(io.BytesIO(data)).getRGBData()
        except Exception as e:
            logger.warning(
                "Skipping undecodable image",
                extra={"error": str(e), "size_bytes": len(data), "page": self.cursor.page_index}
            )
            return False
        self._emit(ImageOp(data, x, y, width, height))
        return True

    # Blocks

    def heading(self, content: str, font_size: float = HEADING_FONT_SIZE, keep_with_next: float = 0,
                gap: float = 4, underline: bool = False, section: Optional[str] = None) -> None:
        """Draw a bold heading across the content width and move below it.

        keep_with_next reserves room for the first piece of following content
        so a heading is never left alone at the bottom of a page. When section
        is given, the section starts where the heading lands.
        """
        height = self.measure_text(content, self.content_width, font_size, bold=True)
        self.check_page_break(height + gap + keep_with_next)
        if section:
            self.begin_section(section)
        self.text(content, self.left, self.cursor.y, width=self.content_width,
                  font_size=font_size, bold=True, underline=underline)
        self.advance(height + gap)

    def labelled_text(self, label: str, content, font_size: float = BODY_FONT_SIZE, gap: float = 8) -> None:
        """Draw a bold label followed by wrapped body text.

        Body text continues onto new pages line by line.
        """
        leading = leading_for(font_size)
        label_height = self.measure_text(label, self.content_width, font_size, bold=True)
        self.check_page_break(label_height + leading)
        self.text(label, self.left, self.cursor.y, width=self.content_width, font_size=font_size, bold=True)
        self.advance(label_height)

        lines = wrap_text(content, self.content_width, FONT_REGULAR, font_size)
        while lines:
            fit = int(self.remaining_height // leading)
            if fit <= 0:
                if self.cursor.y > self.top:
                    self.new_page()
                    continue
                fit = 1
            chunk, lines = lines[:fit], lines[fit:]
            self._emit(TextOp(
                lines=tuple(chunk),
                x=self.left,
                y=self.cursor.y,
                width=self.content_width,
                font_name=FONT_REGULAR,
                font_size=font_size,
                leading=leading
            ))
            self.advance(len(chunk) * leading)
        self.advance(gap)

    def _cell_height(self, label: str, value, width: float, font_size: float) -> float:
        inner = width - 2 * CELL_PADDING
        return (self.measure_text(label, inner, font_size, bold=True)
                + self.measure_text(value, inner, font_size)
                + 2 * CELL_PADDING)

    def field_grid(
        self,
        rows: Sequence[Sequence[Tuple[str, object]]],
        min_row_height: float = 0,
        font_size: float = BODY_FONT_SIZE,
        gap: float = 8
    ) -> None:
        """Draw bordered label/value cells, one grid row at a time.

        Cells in a grid row share the content width equally and the height of
        the tallest cell.
        """
        for cells in rows:
            if not cells:
                continue
            width = self.content_width / len(cells)
            height = max(
                [min_row_height] + [self._cell_height(label, value, width, font_size) for label, value in cells]
            )
            if height > self.bottom_limit - self.top:
                inner = width - 2 * CELL_PADDING
                cell_lines = [
                    self._cell_lines(label, inner, font_size, bold=True) + self._cell_lines(value, inner, font_size)
                    for label, value in cells
                ]
                self._draw_split_row(cell_lines, [width] * len(cells), font_size)
                continue
            self.check_page_break(height)
            top = self.cursor.y
            for index, (label, value) in enumerate(cells):
                x = self.left + index * width
                inner = width - 2 * CELL_PADDING
                self.rect(x, top, width, height)
                label_height = self.text(label, x + CELL_PADDING, top + CELL_PADDING,
                                         width=inner, font_size=font_size, bold=True)
                self.text(value, x + CELL_PADDING, top + CELL_PADDING + label_height,
                          width=inner, font_size=font_size)
            self.advance(height)
        self.advance(gap)

    def _row_height(self, cells: Sequence[str], widths: Sequence[float], font_size: float, bold: bool) -> float:
        return max(
            self.measure_text(cell, width - 2 * CELL_PADDING, font_size, bold=bold)
            for cell, width in zip(cells, widths)
        ) + 2 * CELL_PADDING

    def _draw_row(self, cells: Sequence[str], widths: Sequence[float], height: float, font_size: float,
                  bold: bool = False, fill: Optional[str] = None, aligns: Optional[Sequence[str]] = None) -> None:
        top = self.cursor.y
        x = self.left
        for index, (cell, width) in enumerate(zip(cells, widths)):
            self.rect(x, top, width, height, fill=fill)
            align = aligns[index] if aligns else 'left'
            self.text(cell, x + CELL_PADDING, top + CELL_PADDING, width=width - 2 * CELL_PADDING,
                      align=align, font_size=font_size, bold=bold)
            x += width
        self.advance(height)

    def _cell_lines(self, content, width: float, font_size: float, bold: bool = False) -> List[Tuple[str, bool]]:
        font_name = FONT_BOLD if bold else FONT_REGULAR
        return [(line, bold) for line in wrap_text(content, width, font_name, font_size)]

    def _draw_split_row(
        self,
        cell_lines: Sequence[Sequence[Tuple[str, bool]]],
        widths: Sequence[float],
        font_size: float,
        aligns: Optional[Sequence[str]] = None,
        on_new_page: Optional[Callable[[], None]] = None
    ) -> None:
        """Draw a row too tall for any page, continuing its lines on new pages.

        Each page gets a slice of every cell's wrapped lines in its own set of
        bordered boxes. on_new_page runs after each page break, e.g. to redraw
        a table header.
        """
        leading = leading_for(font_size)
        remaining = [list(lines) for lines in cell_lines]

        while any(remaining):
            fit = int((self.remaining_height - 2 * CELL_PADDING) // leading)
            if fit <= 0:
                if self.cursor.y > self.top:
                    self.new_page()
                    if on_new_page:
                        on_new_page()
                    continue
                fit = 1
            chunks = [lines[:fit] for lines in remaining]
            remaining = [lines[fit:] for lines in remaining]
            height = max(len(chunk) for chunk in chunks) * leading + 2 * CELL_PADDING

            top = self.cursor.y
            x = self.left
            for index, (chunk, width) in enumerate(zip(chunks, widths)):
                self.rect(x, top, width, height)
                y = top + CELL_PADDING
                for bold, group in groupby(chunk, key=itemgetter(1)):
                    lines = tuple(line for line, _ in group)
                    self._emit(TextOp(
                        lines=lines,
                        x=x + CELL_PADDING,
                        y=y,
                        width=width - 2 * CELL_PADDING,
                        font_name=FONT_BOLD if bold else FONT_REGULAR,
                        font_size=font_size,
                        leading=leading,
                        align=aligns[index] if aligns else 'left'
                    ))
                    y += len(lines) * leading
                x += width
            self.advance(height)

            if any(remaining):
                self.new_page()
                if on_new_page:
                    on_new_page()

    def table(
        self,
        headers: Sequence[str],
        rows: Sequence[Sequence[str]],
        col_widths: Sequence[float],
        font_size: float = BODY_FONT_SIZE,
        aligns: Optional[Sequence[str]] = None,
        gap: float = 10
    ) -> int:
        """Draw a grid table with a header row.

        The page break check runs before every row. When the table continues
        on a new page the header row is drawn again.

        Returns:
            Number of pages the table touched
        """
        if len(headers) != len(col_widths):
            raise ValueError('headers and col_widths must have the same length')
        for cells in rows:
            if len(cells) != len(col_widths):
                raise ValueError(f'Row has {len(cells)} cells, expected {len(col_widths)}')

        header_height = self._row_height(headers, col_widths, font_size, bold=True)
        # Tallest row that fits on a fresh page below the header
        capacity = self.bottom_limit - self.top - header_height

        def draw_header() -> None:
            self._draw_row(headers, col_widths, header_height, font_size, bold=True,
                           fill=HEADER_FILL, aligns=aligns)

        first_height = self._row_height(rows[0], col_widths, font_size, bold=False) if rows else 0
        if first_height > capacity:
            first_height = leading_for(font_size) + 2 * CELL_PADDING
        self.check_page_break(header_height + first_height)
        start_page = self.cursor.page_index
        draw_header()

        for cells in rows:
            height = self._row_height(cells, col_widths, font_size, bold=False)
            if height > capacity:
                cell_lines = [
                    self._cell_lines(cell, width - 2 * CELL_PADDING, font_size)
                    for cell, width in zip(cells, col_widths)
                ]
                self._draw_split_row(cell_lines, col_widths, font_size, aligns=aligns, on_new_page=draw_header)
                continue
            if self.check_page_break(height):
                draw_header()
            self._draw_row(cells, col_widths, height, font_size, aligns=aligns)

        self.advance(gap)
        return self.cursor.page_index - start_page + 1

    # Output

    def document(self) -> ComposedDocument:
        """Snapshot the pages laid out so far."""
        return ComposedDocument(
            pages=tuple(tuple(page) for page in self._pages),
            sections=tuple(self._sections),
            page_size=(self.page_width, self.page_height),
            title=self.title
        )

    def finish(self) -> bytes:
        """Serialize all pages to PDF bytes; the session cannot be reused."""
        if self._finished:
            raise RuntimeError('Layout session already finished')
        self._finished = True
        return render_document(self.document())
