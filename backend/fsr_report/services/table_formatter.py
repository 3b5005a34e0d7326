"""Parts table row formatting.

Turns part movements into fixed-size issued/returned tables. Short tables are
padded with blank rows so every printed table has the same visual size.
"""

import html
import re
from collections.abc import Sequence
from typing import Dict, List, Optional

from fsr_report.config import MIN_TABLE_ROWS, ONEPM_PART_LIMIT
from fsr_report.exceptions import ValidationError
from fsr_report.models.entities import Activity, PartMovement, PartTables, TableBlock, TableRow

# Fields per row in rendered markup: serial, code, description, serial no, qty
MARKUP_FIELDS = 5

_LEAF_TEXT = re.compile(r'<(div|td|th|span)[^>]*>([^<]*)</\1>', re.IGNORECASE)


def classify_activity(activity: Optional[str]) -> Optional[Activity]:
    """Classify raw activity text as issued or returned.

    'issued' is checked before 'return'; text matching neither gives None.
    """
    if not activity:
        return None
    text = activity.lower()
    if 'issued' in text:
        return Activity.ISSUED
    if 'return' in text:
        return Activity.RETURNED
    return None


def pad_rows(rows: List[TableRow], minimum_rows: int) -> List[TableRow]:
    """Append blank rows until there are at least minimum_rows."""
    padded = list(rows)
    for serial in range(len(padded) + 1, minimum_rows + 1):
        padded.append(TableRow(serial=serial, padding=True))
    return padded


def build_tables(
    materials: Sequence,
    minimum_rows: int = MIN_TABLE_ROWS,
    restrict_to_onepm: bool = False
) -> PartTables:
    """Partition part movements into issued and returned tables.

    Args:
        materials: Part movements in display order
        minimum_rows: Each table is padded with blank rows up to this count
        restrict_to_onepm: Cap each table at ONEPM_PART_LIMIT real rows

    Returns:
        PartTables with both blocks

    Raises:
        ValidationError: If materials is not a sequence of PartMovement
        ValueError: If minimum_rows is negative
    """
    if minimum_rows < 0:
        raise ValueError('minimum_rows must not be negative')
    if isinstance(materials, (str, bytes)) or not isinstance(materials, Sequence):
        raise ValidationError('materials must be a list of part movements')

    partitions: Dict[Activity, List[TableRow]] = {Activity.ISSUED: [], Activity.RETURNED: []}

    for item in materials:
        if not isinstance(item, PartMovement):
            raise ValidationError(f'Invalid part movement: {item!r}')

        activity = classify_activity(item.activity)
        if activity is None:
            continue

        rows = partitions[activity]
        if restrict_to_onepm and len(rows) >= ONEPM_PART_LIMIT:
            continue

        rows.append(TableRow(
            serial=len(rows) + 1,
            code=item.code,
            description=item.description,
            serial_no=item.serial_no,
            qty=item.qty
        ))

    return PartTables(
        issued=TableBlock(Activity.ISSUED, tuple(pad_rows(partitions[Activity.ISSUED], minimum_rows))),
        returned=TableBlock(Activity.RETURNED, tuple(pad_rows(partitions[Activity.RETURNED], minimum_rows)))
    )


def rows_from_markup(
    fragment: Optional[str],
    activity: Activity,
    minimum_rows: int = MIN_TABLE_ROWS
) -> TableBlock:
    """Recover table rows from pre-rendered row markup.

    Leaf element texts are collected in document order and regrouped in runs
    of five. Blank cells carry no token, so partially filled rows shift the
    grouping; a trailing incomplete group is dropped. Serials are reassigned
    by position.

    Args:
        fragment: Markup containing repeated five-cell rows
        activity: Activity the recovered table belongs to
        minimum_rows: Pad with blank rows up to this count

    Returns:
        TableBlock with recovered and padding rows
    """
    rows: List[TableRow] = []
    group: List[str] = []

    for match in _LEAF_TEXT.finditer(fragment or ''):
        token = html.unescape(match.group(2)).strip()
        if not token:
            continue
        group.append(token)
        if len(group) == MARKUP_FIELDS:
            _, code, description, serial_no, qty = group
            rows.append(TableRow(
                serial=len(rows) + 1,
                code=code,
                description=description,
                serial_no=serial_no,
                qty=qty
            ))
            group = []

    return TableBlock(activity, tuple(pad_rows(rows, minimum_rows)))


def movements_from_block(block: TableBlock) -> List[PartMovement]:
    """Convert the real rows of a table back into part movements."""
    return [
        PartMovement(
            code=row.code,
            description=row.description,
            serial_no=row.serial_no,
            qty=row.qty,
            activity=block.activity.value
        )
        for row in block.real_rows
    ]
