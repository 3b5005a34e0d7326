"""Pytest configuration and fixtures."""

import base64
import sys
from pathlib import Path

import pytest

# Add backend directory to path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# 1x1 transparent PNG
PNG_BASE64 = 'iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=='


@pytest.fixture
def png_bytes():
    return base64.b64decode(PNG_BASE64)


@pytest.fixture
def png_data_uri():
    return f'data:image/png;base64,{PNG_BASE64}'


@pytest.fixture
def sample_payload(png_data_uri):
    """Request body in the shape the collaborating app sends."""
    return {
        'call_no': 'CALL-001',
        'product_group': 'dpg',
        'logo': png_data_uri,
        'engineerSignature': png_data_uri,
        'material': [
            {'part_code': 'P1', 'part_description': 'Capacitor', 'part_serialno': 'S-1',
             'part_qty': 2, 'part_activity': 'Part Issued'},
            {'part_code': 'P2', 'part_description': 'Fuse', 'part_serialno': 'S-2',
             'part_qty': 1, 'part_activity': 'Part Returned'},
        ],
        'params': {
            'customer_name': 'ABC Co',
            'site_name': 'Main Street Plant',
            'engineer_name': 'J. Doe',
            'report_date': '2025-03-14',
            'problem_statement': 'UPS alarm on battery bank',
            'work_performed': 'Replaced capacitor and tested output',
            'recommendations': 'Replace batteries within 6 months',
            'start_time': '09:00',
            'end_time': '12:30',
            'total_time': '3h 30m',
            'formdata': {
                'safety_observations': ['PPE used', 'Area secured']
            }
        }
    }


def part(code, activity, qty=1, description='', serial_no=''):
    """Build a PartMovement for tests."""
    from fsr_report.models.entities import PartMovement
    return PartMovement(code=code, description=description, serial_no=serial_no, qty=str(qty), activity=activity)


@pytest.fixture
def make_part():
    return part
