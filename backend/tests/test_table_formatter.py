"""Tests for parts table formatting."""

import pytest

from fsr_report.exceptions import ValidationError
from fsr_report.models.entities import Activity
from fsr_report.services.table_formatter import (
    build_tables, classify_activity, movements_from_block, rows_from_markup
)


class TestClassifyActivity:
    """Tests for activity classification."""

    def test_classify_activity(self):
        assert classify_activity('Part Issued') == Activity.ISSUED
        assert classify_activity('ISSUED') == Activity.ISSUED
        assert classify_activity('Part Returned') == Activity.RETURNED
        assert classify_activity('return to stock') == Activity.RETURNED

        # Neither keyword
        assert classify_activity('Consumed') is None
        assert classify_activity('') is None
        assert classify_activity(None) is None

    def test_first_match_wins(self):
        """Text matching both keywords counts as issued."""
        assert classify_activity('Issued then returned') == Activity.ISSUED


class TestBuildTables:
    """Tests for issued/returned partitioning and padding."""

    def test_scenario_one_issued_one_returned(self, make_part):
        tables = build_tables([make_part('P1', 'issued', 2), make_part('P2', 'returned', 1)])

        issued = tables.issued.rows
        assert len(issued) == 3
        assert (issued[0].serial, issued[0].code, issued[0].qty, issued[0].padding) == (1, 'P1', '2', False)
        assert [r.serial for r in issued[1:]] == [2, 3]
        assert all(r.padding and r.code == '' for r in issued[1:])

        returned = tables.returned.rows
        assert len(returned) == 3
        assert returned[0].code == 'P2'
        assert tables.returned.padding_count == 2

    def test_padding_invariant(self, make_part):
        """Row count is max(matching, minimum) for each table."""
        materials = [make_part(f'I{i}', 'issued') for i in range(5)] + [make_part('R1', 'returned')]

        for minimum in (0, 1, 3, 5, 8):
            tables = build_tables(materials, minimum_rows=minimum)
            assert len(tables.issued.rows) == max(5, minimum)
            assert len(tables.returned.rows) == max(1, minimum)

    def test_empty_materials(self):
        tables = build_tables([])

        assert len(tables.issued.rows) == 3
        assert len(tables.returned.rows) == 3
        assert tables.issued.real_rows == ()

    def test_serials_contiguous_after_dropped_items(self, make_part):
        """Items matching neither keyword do not leave gaps."""
        materials = [
            make_part('A', 'consumed'),
            make_part('B', 'issued'),
            make_part('C', 'unknown'),
            make_part('D', 'issued'),
            make_part('E', 'returned'),
        ]
        tables = build_tables(materials, minimum_rows=4)

        assert [r.serial for r in tables.issued.rows] == [1, 2, 3, 4]
        assert [r.code for r in tables.issued.real_rows] == ['B', 'D']
        assert [r.serial for r in tables.returned.rows] == [1, 2, 3, 4]

    def test_order_preserved(self, make_part):
        materials = [make_part(code, 'issued') for code in ('Z', 'A', 'M')]
        tables = build_tables(materials)

        assert [r.code for r in tables.issued.rows] == ['Z', 'A', 'M']

    def test_onepm_caps_each_partition(self, make_part):
        materials = [make_part(f'I{i}', 'issued') for i in range(5)] + \
                    [make_part(f'R{i}', 'returned') for i in range(4)]
        tables = build_tables(materials, restrict_to_onepm=True)

        assert [r.code for r in tables.issued.real_rows] == ['I0', 'I1', 'I2']
        assert [r.code for r in tables.returned.real_rows] == ['R0', 'R1', 'R2']

    def test_onepm_full_partition_does_not_block_other(self, make_part):
        """Once issued is full, later returned items are still taken."""
        materials = [
            make_part('I1', 'issued'),
            make_part('I2', 'issued'),
            make_part('I3', 'issued'),
            make_part('I4', 'issued'),
            make_part('R1', 'returned'),
        ]
        tables = build_tables(materials, restrict_to_onepm=True)

        assert len(tables.issued.real_rows) == 3
        assert [r.code for r in tables.returned.real_rows] == ['R1']

    def test_onepm_with_larger_minimum(self, make_part):
        materials = [make_part(f'I{i}', 'issued') for i in range(6)]
        tables = build_tables(materials, minimum_rows=5, restrict_to_onepm=True)

        assert len(tables.issued.real_rows) == 3
        assert len(tables.issued.rows) == 5
        assert [r.serial for r in tables.issued.rows] == [1, 2, 3, 4, 5]

    def test_not_a_sequence(self):
        with pytest.raises(ValidationError):
            build_tables('issued')
        with pytest.raises(ValidationError):
            build_tables(None)

    def test_invalid_item(self):
        with pytest.raises(ValidationError):
            build_tables([{'part_code': 'P1'}])

    def test_negative_minimum(self):
        with pytest.raises(ValueError):
            build_tables([], minimum_rows=-1)


def _row_markup(*cells):
    inner = ''.join(f'<div style="width: 10%; border-right: 1px solid black;">{c}</div>' for c in cells)
    return f'<div style="display: flex; flex-direction: row;">{inner}</div>'


class TestRowsFromMarkup:
    """Tests for recovering rows from rendered row markup."""

    def test_full_rows(self):
        fragment = _row_markup('1', 'P1', 'Capacitor', 'S-1', '2') + _row_markup('2', 'P2', 'Fuse', 'S-2', '1')
        block = rows_from_markup(fragment, Activity.ISSUED)

        assert len(block.rows) == 3
        assert block.rows[0].code == 'P1'
        assert block.rows[0].description == 'Capacitor'
        assert block.rows[1].qty == '1'
        assert block.rows[2].padding
        assert [r.serial for r in block.rows] == [1, 2, 3]

    def test_padding_rows_in_markup_are_dropped(self):
        """Blank padding rows carry only a serial, leaving an incomplete group."""
        fragment = (_row_markup('1', 'P1', 'Capacitor', 'S-1', '2')
                    + _row_markup('2', '', '', '', '')
                    + _row_markup('3', '', '', '', ''))
        block = rows_from_markup(fragment, Activity.RETURNED)

        assert [r.code for r in block.real_rows] == ['P1']
        assert len(block.rows) == 3

    def test_table_cells_and_entities(self):
        fragment = '<tr><td>1</td><td>A&amp;B</td><td>Relay</td><td>X</td><td>4</td></tr>'
        block = rows_from_markup(fragment, Activity.ISSUED, minimum_rows=0)

        assert len(block.rows) == 1
        assert block.rows[0].code == 'A&B'

    def test_entities_decoded_once(self):
        """Escaped entity text keeps one level of escaping."""
        fragment = ('<td>1</td><td>A&amp;lt;B</td><td>&eacute;tage &#8364;2</td>'
                    '<td>&nbsp;S-1&nbsp;</td><td>4</td>')
        row = rows_from_markup(fragment, Activity.ISSUED, minimum_rows=0).rows[0]

        assert row.code == 'A&lt;B'
        assert row.description == 'étage €2'
        assert row.serial_no == 'S-1'

    def test_empty_fragment(self):
        block = rows_from_markup('', Activity.ISSUED)

        assert len(block.rows) == 3
        assert block.real_rows == ()
        assert rows_from_markup(None, Activity.ISSUED, minimum_rows=0).rows == ()

    def test_movements_from_block(self):
        fragment = _row_markup('7', 'P9', 'Board', 'S-9', '1')
        block = rows_from_markup(fragment, Activity.RETURNED)
        movements = movements_from_block(block)

        assert len(movements) == 1
        assert movements[0].code == 'P9'
        assert classify_activity(movements[0].activity) == Activity.RETURNED
