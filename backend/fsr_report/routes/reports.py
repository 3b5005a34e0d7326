"""Report generation routes."""

import base64
import json
import time
from typing import Any, Mapping, Optional, Tuple

from aws_lambda_powertools import Logger

from fsr_report.config import MISSING_VALUE, RETRY_DELAY_SECONDS
from fsr_report.exceptions import RenderFailure, ResourceFailure, ValidationError
from fsr_report.models.entities import ReportRequest
from fsr_report.services import pdf_generator
from fsr_report.utils import s3


logger = Logger(service="fsr-reports")

# Payload used for GET requests
SAMPLE_PAYLOAD = {
    'call_no': 'TEST-001',
    'product_group': 'dpg',
    'params': {
        'customer_name': 'Test Customer',
        'site_name': 'Test Site',
        'engineer_name': 'Test Engineer',
        'report_date': '2025-01-01',
        'problem_statement': 'Routine preventive maintenance visit',
        'work_performed': 'Test maintenance work performed',
        'recommendations': 'Test recommendations for future maintenance',
        'formdata': {
            'safety_observations': [
                'All safety protocols were followed',
                'Personal protective equipment was used',
                'Work area was properly secured'
            ]
        }
    },
    'material': [
        {'part_code': 'P-100', 'part_description': 'Air filter', 'part_serialno': 'SN-1',
         'part_qty': 2, 'part_activity': 'Part Issued'},
        {'part_code': 'P-200', 'part_description': 'Fan belt', 'part_serialno': 'SN-2',
         'part_qty': 1, 'part_activity': 'Part Returned'},
    ]
}


def _json_response(status_code: int, body: Any) -> dict:
    return {
        'statusCode': status_code,
        'headers': {'Content-Type': 'application/json'},
        'body': json.dumps(body)
    }


def _error(status_code: int, error: str, message: str) -> dict:
    return _json_response(status_code, {'error': error, 'message': message, 'success': False})


def parse_params(body: Mapping) -> Optional[dict]:
    """Parse the 'params' field, which may arrive as a JSON-encoded string.

    Raises:
        ValidationError: If params is not valid JSON or not an object
    """
    raw = body.get('params')
    if raw is None or raw == '':
        return None
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValidationError(f'params is not valid JSON: {e.msg}') from e
    if not isinstance(raw, dict):
        raise ValidationError('params must be a JSON object')
    return raw


def generate_with_retry(body: Mapping, params: Optional[Mapping]) -> Tuple[ReportRequest, bytes]:
    """Generate a report, retrying once after a short delay on render failure.

    Validation errors are not retried.
    """
    try:
        return pdf_generator.generate_from_payload(body, params)
    except RenderFailure as e:
        logger.warning(
            "Report generation failed, retrying",
            extra={"error": str(e), "retry_delay_seconds": RETRY_DELAY_SECONDS}
        )
        time.sleep(RETRY_DELAY_SECONDS)
        return pdf_generator.generate_from_payload(body, params)


def _generate(body: Mapping) -> Tuple[Optional[ReportRequest], Optional[bytes], Optional[dict]]:
    """Run generation and map failures to error responses."""
    try:
        params = parse_params(body)
        request, pdf_bytes = generate_with_retry(body, params)
    except ValidationError as e:
        return None, None, _error(400, 'bad_request', str(e))
    except RenderFailure as e:
        logger.error("Report generation failed", extra={"error": str(e), "cause": repr(e.__cause__)})
        return None, None, _error(500, 'generation_failed', str(e))
    return request, pdf_bytes, None


def _file_name(request: ReportRequest) -> str:
    if request.call_number == MISSING_VALUE:
        return 'report.pdf'
    return f'{s3.safe_object_name(request.call_number)}.pdf'


def handle_generate_pdf(body: Mapping) -> dict:
    """Generate and return the PDF itself.

    Args:
        body: Request body

    Returns:
        Response with PDF content
    """
    request, pdf_bytes, error = _generate(body)
    if error:
        return error

    # Return as base64 for API Gateway
    return {
        'statusCode': 200,
        'headers': {
            'Content-Type': 'application/pdf',
            'Content-Disposition': f'attachment; filename="{_file_name(request)}"',
            'Cache-Control': 'no-cache, no-store, must-revalidate'
        },
        'body': base64.b64encode(pdf_bytes).decode('utf-8'),
        'isBase64Encoded': True
    }


def handle_sample_pdf() -> dict:
    """Generate the built-in sample report."""
    return handle_generate_pdf(SAMPLE_PAYLOAD)


def handle_generate_base64(body: Mapping) -> dict:
    """Generate a PDF and return it base64-encoded in a JSON body."""
    request, pdf_bytes, error = _generate(body)
    if error:
        return error

    return _json_response(200, {
        'success': True,
        'fileName': _file_name(request),
        'pdfBase64': base64.b64encode(pdf_bytes).decode('utf-8'),
        'message': 'PDF generated successfully'
    })


def handle_notification_report(body: Mapping) -> dict:
    """Generate a PDF and upload it to S3.

    If the upload fails the PDF is returned base64-encoded with a warning.

    Args:
        body: Request body, optionally carrying S3 credentials

    Returns:
        Response with the upload location or the PDF content
    """
    request, pdf_bytes, error = _generate(body)
    if error:
        return error

    file_name = _file_name(request)
    storage = s3.resolve_storage_config(body, parse_params(body))

    try:
        result = s3.upload_report(pdf_bytes, file_name, storage)
    except ResourceFailure as e:
        logger.warning("S3 upload failed, returning PDF as base64", extra={"error": str(e), "file_name": file_name})
        return _json_response(200, {
            'success': True,
            'fileName': file_name,
            'pdfBase64': base64.b64encode(pdf_bytes).decode('utf-8'),
            'message': 'PDF generated successfully (S3 upload failed)',
            'warning': str(e)
        })

    return _json_response(200, {
        'success': True,
        'etag': result.etag,
        'fileName': file_name,
        'path': result.key,
        'url': result.url,
        'message': 'PDF generated and uploaded to S3 successfully'
    })
