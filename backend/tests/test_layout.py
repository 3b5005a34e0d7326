"""Tests for the page layout engine."""

import pytest

from fsr_report.models.entities import ImageOp, RectOp, TextOp
from fsr_report.services.layout import LayoutSession, leading_for, wrap_text


def ops_of(document, kind):
    return [op for page in document.pages for op in page if isinstance(op, kind)]


class TestPrimitives:
    """Tests for drawing primitives and cursor handling."""

    def test_text_does_not_move_cursor(self):
        session = LayoutSession()
        start = session.y

        height = session.text('Hello', session.left, start)

        assert session.y == start
        assert height == leading_for(9)
        op = session.document().pages[0][0]
        assert isinstance(op, TextOp)
        assert op.lines == ('Hello',)

    def test_text_wraps_to_width(self):
        session = LayoutSession()
        long_text = 'word ' * 100

        height = session.text(long_text, session.left, session.top, width=100)

        assert height > leading_for(9) * 5
        assert height == session.measure_text(long_text, 100)

    def test_wrap_keeps_newlines(self):
        assert wrap_text('a\nb', None, 'Helvetica', 9) == ['a', 'b']
        assert wrap_text(None, 100, 'Helvetica', 9) == ['']

    def test_unknown_alignment(self):
        with pytest.raises(ValueError):
            LayoutSession().text('x', 0, 0, align='justify')

    def test_rect(self):
        session = LayoutSession()
        session.rect(10, 20, 30, 40, fill='#ff0000')

        op = session.document().pages[0][0]
        assert op == RectOp(10, 20, 30, 40, stroke=True, fill='#ff0000')

    def test_image(self, png_bytes):
        session = LayoutSession()

        assert session.image(png_bytes, 0, 0, 10, 10) is True
        assert len(ops_of(session.document(), ImageOp)) == 1

    def test_truncated_image_is_skipped(self, png_bytes):
        """Header parses but the pixel data is cut off."""
        session = LayoutSession()

        assert session.image(png_bytes[:43], 0, 0, 10, 10) is False
        assert session.document().pages == ((),)

    def test_bad_image_is_skipped(self):
        session = LayoutSession()

        assert session.image(b'not an image', 0, 0, 10, 10) is False
        assert session.image(None, 0, 0, 10, 10) is False
        assert session.document().pages == ((),)

    def test_advance_and_page_break(self):
        session = LayoutSession()
        session.advance(100)

        assert session.check_page_break(10) is False
        assert session.page_count == 1

        session.advance(session.remaining_height - 5)
        assert session.check_page_break(10) is True
        assert session.page_count == 2
        assert session.cursor.page_index == 1
        assert session.y == session.top

    def test_no_break_at_top_of_page(self):
        """A block taller than a page does not produce empty pages."""
        session = LayoutSession()

        assert session.check_page_break(session.page_height * 2) is False
        assert session.page_count == 1

    def test_finish_once(self):
        session = LayoutSession()
        session.text('x', 0, 0)

        assert session.finish().startswith(b'%PDF')
        with pytest.raises(RuntimeError):
            session.finish()
        with pytest.raises(RuntimeError):
            session.text('y', 0, 0)


class TestBlocks:
    """Tests for block helpers and pagination."""

    def test_heading_records_section(self):
        session = LayoutSession()
        session.heading('Parts Issued', section='Parts Issued')

        doc = session.document()
        assert doc.section_names() == ('Parts Issued',)
        assert doc.sections[0].page_index == 0
        assert session.y > session.top

    def test_heading_kept_with_next(self):
        session = LayoutSession()
        session.advance(session.remaining_height - 20)
        session.heading('Parts Issued', keep_with_next=40, section='Parts Issued')

        assert session.page_count == 2
        assert session.document().sections[0].page_index == 1

    def test_labelled_text_continues_on_new_page(self):
        session = LayoutSession()
        body = '\n'.join(f'Line {i}' for i in range(200))

        session.labelled_text('Work Performed:', body)

        doc = session.document()
        assert doc.page_count > 1
        lines = [line for op in ops_of(doc, TextOp) for line in op.lines]
        assert lines[0] == 'Work Performed:'
        assert lines[1:] == [f'Line {i}' for i in range(200)]
        for op in ops_of(doc, TextOp):
            assert op.y + op.height <= session.bottom_limit + 1e-6

    def test_field_grid(self):
        session = LayoutSession()
        session.field_grid([[('A', '1'), ('B', '2'), ('C', '3')], [('D', '4')]], min_row_height=40)

        rects = ops_of(session.document(), RectOp)
        assert len(rects) == 4
        assert rects[0].width == pytest.approx(session.content_width / 3)
        assert rects[3].width == pytest.approx(session.content_width)
        assert rects[3].y == pytest.approx(rects[0].y + 40)

    def test_table_row_count(self):
        session = LayoutSession()
        rows = [['1', 'a'], ['2', 'b'], ['3', 'c']]

        pages = session.table(['No', 'Text'], rows, [50, 200])

        assert pages == 1
        # Header plus three rows, two cells each
        assert len(ops_of(session.document(), RectOp)) == 8

    def test_table_cell_count_mismatch(self):
        with pytest.raises(ValueError):
            LayoutSession().table(['No', 'Text'], [['1']], [50, 200])
        with pytest.raises(ValueError):
            LayoutSession().table(['No'], [], [50, 200])

    def test_table_paginates_whole_rows(self):
        session = LayoutSession()
        rows = [[str(i), f'Row {i} ' * (i % 4 + 1)] for i in range(1, 121)]

        pages = session.table(['No', 'Text'], rows, [50, 200])

        doc = session.document()
        assert pages == doc.page_count
        assert doc.page_count > 1
        for op in ops_of(doc, RectOp):
            assert op.y >= session.top - 1e-6
            assert op.y + op.height <= session.bottom_limit + 1e-6

        # Header repeated on every page
        headers = [op for op in ops_of(doc, TextOp) if op.lines == ('No',)]
        assert len(headers) == doc.page_count

        # Every row printed once, in order
        serials = [op.lines[0] for op in ops_of(doc, TextOp) if op.lines and op.lines[0].isdigit()]
        assert serials == [str(i) for i in range(1, 121)]

    def test_oversized_row_continues_on_new_pages(self):
        """A cell taller than a page is split by line instead of running off the page."""
        session = LayoutSession()
        long_text = 'word ' * 2500

        session.table(['No', 'Text'], [['1', long_text], ['2', 'short']], [50, 200])

        doc = session.document()
        assert doc.page_count > 1
        for page in doc.pages:
            for op in page:
                assert op.y >= session.top - 1e-6
                assert op.y + op.height <= session.bottom_limit + 1e-6

        # Header repeated on every page the row reaches
        headers = [op for op in ops_of(doc, TextOp) if op.lines == ('No',)]
        assert len(headers) == doc.page_count

        # No wrapped line lost or duplicated
        body_lines = [line for op in ops_of(doc, TextOp) if op.width == 192 and op.font_name == 'Helvetica'
                      for line in op.lines]
        expected = wrap_text(long_text, 192, 'Helvetica', 9)
        assert body_lines[:len(expected)] == expected
        assert body_lines[len(expected):] == ['short']

    def test_oversized_grid_cell_continues_on_new_pages(self):
        session = LayoutSession()
        value = '\n'.join(f'Line {i}' for i in range(150))

        session.field_grid([[('Notes', value)], [('After', 'done')]])

        doc = session.document()
        assert doc.page_count > 1
        for page in doc.pages:
            for op in page:
                assert op.y + op.height <= session.bottom_limit + 1e-6

        lines = [line for op in ops_of(doc, TextOp) for line in op.lines]
        assert lines == ['Notes'] + [f'Line {i}' for i in range(150)] + ['After', 'done']
        bold = [op for op in ops_of(doc, TextOp) if op.font_name == 'Helvetica-Bold']
        assert [op.lines for op in bold] == [('Notes',), ('After',)]
