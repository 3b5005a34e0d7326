"""Field service report PDF generation using ReportLab."""

from typing import Mapping, Optional, Tuple

from aws_lambda_powertools import Logger

from fsr_report.exceptions import RenderFailure, ReportError
from fsr_report.models.entities import ReportRequest
from fsr_report.services import composer, field_extractor
from fsr_report.services.layout import LayoutSession


logger = Logger(service="fsr-pdf-generator")


def generate_report_pdf(request: ReportRequest) -> bytes:
    """Generate the PDF for a normalized report request.

    Each call lays out its own document; nothing is shared between calls.

    Args:
        request: Normalized report input

    Returns:
        PDF content as bytes

    Raises:
        ValidationError: If the request is structurally invalid
        RenderFailure: If layout or serialization fails
    """
    session = LayoutSession(title=composer.document_title(request))
    try:
        composer.compose(request, session)
        pdf_bytes = session.finish()
    except ReportError:
        raise
    except Exception as e:
        raise RenderFailure(f'{request.kind.value.upper()} report generation failed: {e}') from e

    logger.info(
        "Report generated",
        extra={
            "call_number": request.call_number,
            "product_group": request.kind.value,
            "page_count": session.page_count,
            "size_bytes": len(pdf_bytes)
        }
    )
    return pdf_bytes


def generate_from_payload(payload: Mapping, params: Optional[Mapping] = None) -> Tuple[ReportRequest, bytes]:
    """Extract a request from a raw payload and generate its PDF.

    Returns:
        Tuple of (normalized request, PDF bytes)
    """
    request = field_extractor.extract_request(payload, params)
    return request, generate_report_pdf(request)
