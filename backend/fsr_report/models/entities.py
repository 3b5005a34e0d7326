"""Data model entities."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple, Union

from fsr_report.exceptions import ValidationError


class ReportKind(Enum):
    """Report kinds (product groups)."""
    DPG = "dpg"
    AIR = "air"
    POWER = "power"
    DCPS = "dcps"

    @classmethod
    def parse(cls, value: Optional[str]) -> 'ReportKind':
        """Parse a product group value, case-insensitively.

        Raises:
            ValidationError: If the value is missing or not a known kind
        """
        if not isinstance(value, str) or not value.strip():
            raise ValidationError('product_group is required')
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValidationError(
                f'The product_group "{value}" does not match any report type'
            ) from None


class Activity(Enum):
    """Part activity classes."""
    ISSUED = "issued"
    RETURNED = "returned"


@dataclass(frozen=True)
class PartMovement:
    """A part issued to or returned from a service call."""
    code: str
    description: str
    serial_no: str
    qty: str
    activity: str  # raw activity text, e.g. 'Part Issued'

    @classmethod
    def from_dict(cls, d: dict) -> 'PartMovement':
        """Create from a request payload entry."""
        def text(key: str) -> str:
            value = d.get(key)
            return '' if value is None else str(value).strip()

        return cls(
            code=text('part_code') or text('code'),
            description=text('part_description') or text('description'),
            serial_no=text('part_serialno') or text('serialNo'),
            qty=text('part_qty') or text('qty'),
            activity=text('part_activity') or text('activity'),
        )


@dataclass(frozen=True)
class Customer:
    """Customer and visit identification."""
    name: str
    site_name: str
    engineer_name: str
    report_date: str


@dataclass(frozen=True)
class Narrative:
    """Free-text report sections."""
    problem_statement: str
    work_performed: str
    recommendations: str


@dataclass(frozen=True)
class TimeSpent:
    """Time spent on site."""
    start: str
    end: str
    total: str


@dataclass(frozen=True)
class Signatures:
    """Decoded signature images."""
    engineer: Optional[bytes] = None
    manager: Optional[bytes] = None


@dataclass(frozen=True)
class ReportRequest:
    """Normalized input for report generation."""
    call_number: str
    kind: ReportKind
    customer: Customer
    narrative: Narrative
    time_spent: TimeSpent
    materials: Tuple[PartMovement, ...] = ()
    safety_observations: Tuple[str, ...] = ()
    logo: Optional[bytes] = None
    signatures: Signatures = field(default_factory=Signatures)
    service_type: Optional[str] = None
    onepm: bool = False
    room: Optional[str] = None


@dataclass(frozen=True)
class TableRow:
    """A single printed row of a parts table."""
    serial: int
    code: str = ''
    description: str = ''
    serial_no: str = ''
    qty: str = ''
    padding: bool = False

    def cells(self) -> Tuple[str, str, str, str, str]:
        """Cell texts in column order."""
        return (str(self.serial), self.code, self.description, self.serial_no, self.qty)


@dataclass(frozen=True)
class TableBlock:
    """Fixed-row-count parts table for one activity."""
    activity: Activity
    rows: Tuple[TableRow, ...]

    @property
    def real_rows(self) -> Tuple[TableRow, ...]:
        return tuple(r for r in self.rows if not r.padding)

    @property
    def padding_count(self) -> int:
        return sum(1 for r in self.rows if r.padding)


@dataclass(frozen=True)
class PartTables:
    """Issued and returned parts tables."""
    issued: TableBlock
    returned: TableBlock


@dataclass
class LayoutCursor:
    """Current drawing position; owned by one layout session."""
    x: float
    y: float
    page_index: int = 0


@dataclass(frozen=True)
class TextOp:
    """Wrapped text; (x, y) is the top-left of the text box."""
    lines: Tuple[str, ...]
    x: float
    y: float
    width: Optional[float]
    font_name: str
    font_size: float
    leading: float
    align: str = 'left'
    underline: bool = False
    color: str = '#000000'

    @property
    def height(self) -> float:
        return len(self.lines) * self.leading


@dataclass(frozen=True)
class RectOp:
    """Bordered and/or filled box."""
    x: float
    y: float
    width: float
    height: float
    stroke: bool = True
    fill: Optional[str] = None


@dataclass(frozen=True)
class ImageOp:
    """Decoded image scaled into a box."""
    data: bytes
    x: float
    y: float
    width: float
    height: float


DrawOp = Union[TextOp, RectOp, ImageOp]


@dataclass(frozen=True)
class Section:
    """Named section start, used for the PDF outline."""
    name: str
    page_index: int
    y: float


@dataclass(frozen=True)
class ComposedDocument:
    """Finished pages of draw operations, ready for serialization."""
    pages: Tuple[Tuple[DrawOp, ...], ...]
    sections: Tuple[Section, ...]
    page_size: Tuple[float, float]
    title: str = ''

    @property
    def page_count(self) -> int:
        return len(self.pages)

    def section_names(self) -> Tuple[str, ...]:
        return tuple(s.name for s in self.sections)


@dataclass(frozen=True)
class StorageConfig:
    """Resolved S3 / MinIO credentials."""
    bucket_name: str
    access_key_id: str
    secret_access_key: str
    region: str
    key_prefix: str
    endpoint: Optional[str] = None


@dataclass(frozen=True)
class UploadResult:
    """Location of an uploaded report."""
    key: str
    etag: Optional[str]
    url: str
