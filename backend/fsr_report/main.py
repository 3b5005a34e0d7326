"""Main Lambda handler for the field service report API."""

import base64
import json
from typing import Any

from aws_lambda_powertools import Logger

from fsr_report.routes import reports


logger = Logger(service="fsr-api")

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Headers': 'Content-Type,Authorization',
    'Access-Control-Allow-Methods': 'GET,POST,OPTIONS'
}

ALLOWED_METHODS = ('GET', 'POST')


def make_response(status_code: int, body: Any, content_type: str = 'application/json') -> dict:
    """Create API Gateway response.

    Args:
        status_code: HTTP status code
        body: Response body (will be JSON-encoded if dict/list)
        content_type: Content-Type header

    Returns:
        API Gateway response dict
    """
    headers = {'Content-Type': content_type, **CORS_HEADERS}

    if isinstance(body, (dict, list)):
        body = json.dumps(body)

    return {
        'statusCode': status_code,
        'headers': headers,
        'body': body
    }


def error_response(status_code: int, error: str, message: str) -> dict:
    """Create error response.

    Args:
        status_code: HTTP status code
        error: Error code
        message: Error message

    Returns:
        API Gateway response dict
    """
    return make_response(status_code, {'error': error, 'message': message, 'success': False})


def with_cors(response: dict) -> dict:
    """Add CORS headers to a route response."""
    response['headers'] = {**response.get('headers', {}), **CORS_HEADERS}
    return response


def parse_body(event: dict) -> Any:
    """Decode the JSON request body (base64 bodies included)."""
    body_str = event.get('body') or ''
    if event.get('isBase64Encoded') and body_str:
        body_str = base64.b64decode(body_str).decode('utf-8')
    return json.loads(body_str) if body_str else {}


def handler(event: dict, context: Any) -> dict:
    """Lambda handler for API Gateway events.

    Args:
        event: API Gateway event
        context: Lambda context

    Returns:
        API Gateway response
    """
    try:
        # Parse request
        http_method = event.get('requestContext', {}).get('http', {}).get('method') \
            or event.get('httpMethod', 'GET')
        path = event.get('rawPath', event.get('path', '/'))

        # Handle CORS preflight
        if http_method == 'OPTIONS':
            return make_response(200, '')

        if http_method not in ALLOWED_METHODS:
            return error_response(405, 'method_not_allowed', f'Method not allowed: {http_method}')

        # Parse body
        try:
            body = parse_body(event)
        except (ValueError, UnicodeDecodeError):
            return error_response(400, 'bad_request', 'Request body must be valid JSON')
        if not isinstance(body, dict):
            return error_response(400, 'bad_request', 'Request body must be a JSON object')

        logger.info("Request received", extra={"method": http_method, "path": path, "body_keys": sorted(body)})

        # Route request
        return with_cors(route_request(http_method, path, body))

    except Exception as e:
        logger.exception("Unhandled error")
        return error_response(500, 'internal_error', str(e))


def route_request(method: str, path: str, body: dict) -> dict:
    """Route request to appropriate handler.

    Args:
        method: HTTP method
        path: Request path
        body: Request body

    Returns:
        API Gateway response
    """
    # Remove /prod prefix if present (API Gateway stage)
    if path.startswith('/prod'):
        path = path[5:]

    # Reports
    if path == '/api/reports/pdf' and method == 'POST':
        return reports.handle_generate_pdf(body)

    if path == '/api/reports/pdf' and method == 'GET':
        return reports.handle_sample_pdf()

    if path == '/api/reports/base64' and method == 'POST':
        return reports.handle_generate_base64(body)

    # Upload to S3 (base64 fallback)
    if path == '/api/notification/report' and method == 'POST':
        return reports.handle_notification_report(body)

    # Not found
    return error_response(404, 'not_found', f'Route not found: {method} {path}')
