"""Field service report composition.

One composer serves every report kind. A ReportProfile per kind supplies the
title text and which optional sections are included; the section order is
the same for all kinds.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from fsr_report.config import (
    BODY_FONT_SIZE, CELL_PADDING, FOOTER_DOCUMENT_NO, FOOTER_FILL, FOOTER_HEIGHT, FOOTER_LINES,
    LOGO_SIZE, MIN_TABLE_ROWS, MISSING_VALUE, PART_COLUMN_RATIOS, PART_COLUMNS, SIGNATURE_BOX_HEIGHT,
    SUBTITLE_FONT_SIZE, TITLE_FONT_SIZE
)
from fsr_report.models.entities import ReportKind, ReportRequest, TableBlock
from fsr_report.services import table_formatter
from fsr_report.services.layout import LayoutSession, leading_for


# Section names (also used as PDF outline entries)
SECTION_SERVICE_INFO = 'Service Information'
SECTION_CALL_ACTIVITY = 'Call Activity'
SECTION_TIME_SPENT = 'Time Spent'
SECTION_SAFETY = 'Site Assessment / Safety Risk Assessment'
SECTION_PARTS_ISSUED = 'Parts Issued'
SECTION_PARTS_RETURNED = 'Parts Returned'
SECTION_SIGNATURES = 'Signatures'

# Room kept below a table heading for the header row and first data row
TABLE_LEAD = 2 * (leading_for(BODY_FONT_SIZE) + 2 * CELL_PADDING)


@dataclass(frozen=True)
class ReportProfile:
    """Per-kind report configuration."""
    kind: ReportKind
    subtitle: str
    include_safety: bool
    default_service_type: str
    title: str = 'Field Service Report'


PROFILES: Dict[ReportKind, ReportProfile] = {
    ReportKind.DPG: ReportProfile(ReportKind.DPG, 'DPG Service Report', True, 'DPG Service'),
    ReportKind.AIR: ReportProfile(ReportKind.AIR, 'Thermal Service Report', True, 'Air System Service'),
    ReportKind.POWER: ReportProfile(ReportKind.POWER, 'Power Service Report', True, 'Power System Service'),
    ReportKind.DCPS: ReportProfile(ReportKind.DCPS, 'DCPS Service Report', False, 'DCPS Service'),
}


def document_title(request: ReportRequest) -> str:
    """PDF title metadata for a request."""
    return f'{PROFILES[request.kind].subtitle} {request.call_number}'


def compose(request: ReportRequest, session: LayoutSession) -> None:
    """Lay out a complete report for the request's kind.

    Args:
        request: Normalized report input
        session: Fresh layout session for this document
    """
    profile = PROFILES[request.kind]
    tables = table_formatter.build_tables(
        request.materials,
        minimum_rows=MIN_TABLE_ROWS,
        restrict_to_onepm=request.onepm
    )

    _title_block(request, profile, session)
    _service_information(request, profile, session)
    _call_activity(request, session)
    _time_spent(request, session)
    if profile.include_safety:
        _safety_assessment(request, session)
    _parts_table(SECTION_PARTS_ISSUED, tables.issued, session)
    _parts_table(SECTION_PARTS_RETURNED, tables.returned, session)
    _signatures(request, session)
    _footer(session)


def _title_block(request: ReportRequest, profile: ReportProfile, session: LayoutSession) -> None:
    logo_width, logo_height = LOGO_SIZE
    top = session.y
    has_logo = session.image(request.logo, session.right - logo_width, top, logo_width, logo_height)

    text_width = session.content_width - (logo_width + 10 if has_logo else 0)
    height = session.text(profile.title, session.left, top, width=text_width,
                          font_size=TITLE_FONT_SIZE, bold=True)
    height += session.text(profile.subtitle, session.left, top + height, width=text_width,
                           font_size=SUBTITLE_FONT_SIZE)
    session.advance(max(height, logo_height if has_logo else 0) + 12)


def _service_information(request: ReportRequest, profile: ReportProfile, session: LayoutSession) -> None:
    customer = request.customer
    session.heading(SECTION_SERVICE_INFO, section=SECTION_SERVICE_INFO)
    session.field_grid([
        [('FSR Number', request.call_number),
         ('FSR Date', customer.report_date),
         ('Product Group', request.kind.value.upper())],
        [('Customer Name', customer.name),
         ('Site Name / Address', customer.site_name),
         ('Room', request.room or MISSING_VALUE),
         ('Engineer Name', customer.engineer_name)],
        [('Service Type', request.service_type or profile.default_service_type),
         ('Request Number', request.call_number),
         ('Report Type', 'One PM FSR' if request.onepm else 'Service FSR')],
    ], min_row_height=32)


def _call_activity(request: ReportRequest, session: LayoutSession) -> None:
    narrative = request.narrative
    session.heading(SECTION_CALL_ACTIVITY, keep_with_next=2 * leading_for(BODY_FONT_SIZE),
                    section=SECTION_CALL_ACTIVITY)
    session.labelled_text('Problem Statement:', narrative.problem_statement)
    session.labelled_text('Work Performed:', narrative.work_performed)
    session.labelled_text('Recommendations:', narrative.recommendations)


def _time_spent(request: ReportRequest, session: LayoutSession) -> None:
    time_spent = request.time_spent
    session.heading(SECTION_TIME_SPENT, keep_with_next=32, section=SECTION_TIME_SPENT)
    session.field_grid([
        [('Reporting Date/Time', time_spent.start),
         ('Completion Date/Time', time_spent.end),
         ('Total Time Spent', time_spent.total)],
    ], min_row_height=32)


def _safety_assessment(request: ReportRequest, session: LayoutSession) -> None:
    rows: List[List[str]] = [
        [str(index), observation]
        for index, observation in enumerate(request.safety_observations, start=1)
    ]
    for serial in range(len(rows) + 1, MIN_TABLE_ROWS + 1):
        rows.append([str(serial), ''])

    width = session.content_width
    session.heading(SECTION_SAFETY, keep_with_next=TABLE_LEAD, section=SECTION_SAFETY)
    session.table(
        ['Sr No', 'Observation'],
        rows,
        [width * 0.08, width * 0.92],
        aligns=['center', 'left']
    )


def part_column_widths(content_width: float) -> List[float]:
    """Parts table column widths for the given content width."""
    return [content_width * ratio for ratio in PART_COLUMN_RATIOS]


def _parts_table(name: str, block: TableBlock, session: LayoutSession) -> None:
    session.heading(name, keep_with_next=TABLE_LEAD, section=name)
    session.table(
        PART_COLUMNS,
        [list(row.cells()) for row in block.rows],
        part_column_widths(session.content_width),
        aligns=['center', 'left', 'left', 'left', 'center']
    )


def _signature_box(session: LayoutSession, label: str, name: str, image: Optional[bytes],
                   x: float, top: float, width: float) -> None:
    session.rect(x, top, width, SIGNATURE_BOX_HEIGHT)
    label_height = session.text(label, x + CELL_PADDING, top + CELL_PADDING,
                                width=width - 2 * CELL_PADDING, bold=True)
    name_height = leading_for(BODY_FONT_SIZE)
    image_top = top + CELL_PADDING + label_height
    image_height = SIGNATURE_BOX_HEIGHT - label_height - name_height - 3 * CELL_PADDING
    session.image(image, x + CELL_PADDING, image_top, width / 2, image_height)
    session.text(name, x + CELL_PADDING, top + SIGNATURE_BOX_HEIGHT - CELL_PADDING - name_height,
                 width=width - 2 * CELL_PADDING)


def _signatures(request: ReportRequest, session: LayoutSession) -> None:
    session.heading(SECTION_SIGNATURES, keep_with_next=SIGNATURE_BOX_HEIGHT, section=SECTION_SIGNATURES)
    session.check_page_break(SIGNATURE_BOX_HEIGHT)

    half = session.content_width / 2
    top = session.y
    _signature_box(session, 'Engineer Signature', request.customer.engineer_name,
                   request.signatures.engineer, session.left, top, half)
    _signature_box(session, 'Manager Signature', 'Manager',
                   request.signatures.manager, session.left + half, top, half)
    session.advance(SIGNATURE_BOX_HEIGHT + 16)


def _footer(session: LayoutSession) -> None:
    session.check_page_break(FOOTER_HEIGHT)
    top = session.y
    session.rect(session.left, top, session.content_width, FOOTER_HEIGHT, stroke=False, fill=FOOTER_FILL)

    y = top + CELL_PADDING
    for line in FOOTER_LINES:
        y += session.text(line, session.left + CELL_PADDING, y, width=session.content_width - 2 * CELL_PADDING)
    session.text(FOOTER_DOCUMENT_NO, session.left + CELL_PADDING, y - leading_for(BODY_FONT_SIZE),
                 width=session.content_width - 2 * CELL_PADDING, align='right')
    session.advance(FOOTER_HEIGHT)
