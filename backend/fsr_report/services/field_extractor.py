"""Normalization of loosely-typed report payloads into ReportRequest."""

import base64
import binascii
from typing import Any, List, Mapping, Optional, Tuple

from aws_lambda_powertools import Logger

from fsr_report.config import MISSING_VALUE
from fsr_report.exceptions import ResourceFailure, ValidationError
from fsr_report.models.entities import (
    Activity, Customer, Narrative, PartMovement, ReportKind, ReportRequest, Signatures, TimeSpent
)
from fsr_report.services import table_formatter


logger = Logger(service="fsr-extractor")

TRUTHY = {'1', 'true', 'yes', 'y', 'on'}


def _lookup(sources: Tuple[Mapping, ...], *keys: str) -> Any:
    """First non-empty value for any of the keys across the sources."""
    for source in sources:
        for key in keys:
            value = source.get(key)
            if value is None:
                continue
            if isinstance(value, str) and not value.strip():
                continue
            return value
    return None


def scalar(sources: Tuple[Mapping, ...], *keys: str, default: str = MISSING_VALUE) -> str:
    """Scalar field as stripped text, or the default when missing/empty."""
    value = _lookup(sources, *keys)
    if value is None or isinstance(value, (dict, list)):
        return default
    return str(value).strip()


def flag(sources: Tuple[Mapping, ...], *keys: str) -> bool:
    """Boolean field; accepts booleans, numbers and 'true'/'yes' strings."""
    value = _lookup(sources, *keys)
    if isinstance(value, str):
        return value.strip().lower() in TRUTHY
    return bool(value)


def decode_data_uri(value: Optional[str]) -> Optional[bytes]:
    """Decode a data URI (or bare base64) image string.

    Args:
        value: e.g. 'data:image/png;base64,iVBOR...'

    Returns:
        Decoded bytes, or None when value is empty

    Raises:
        ResourceFailure: If the value is not valid base64 image data
    """
    if not value:
        return None
    if not isinstance(value, str):
        raise ResourceFailure(f'Image data must be a string, got {type(value).__name__}')

    data = value.strip()
    if data.startswith('data:'):
        header, _, data = data.partition(',')
        if ';base64' not in header:
            raise ResourceFailure('Only base64 data URIs are supported')
    try:
        decoded = base64.b64decode(''.join(data.split()), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ResourceFailure(f'Invalid base64 image data: {e}') from e
    if not decoded:
        raise ResourceFailure('Image data is empty')
    return decoded


def _image(sources: Tuple[Mapping, ...], name: str, *keys: str) -> Optional[bytes]:
    try:
        return decode_data_uri(_lookup(sources, *keys))
    except ResourceFailure as e:
        logger.warning("Image could not be decoded, omitting it", extra={"image": name, "error": str(e)})
        return None


def _materials(sources: Tuple[Mapping, ...]) -> Tuple[PartMovement, ...]:
    raw = _lookup(sources, 'material', 'materials')
    if raw is None:
        return _materials_from_markup(sources)
    if not isinstance(raw, list):
        raise ValidationError('material must be a list of part movements')

    movements: List[PartMovement] = []
    for index, item in enumerate(raw):
        if not isinstance(item, Mapping):
            raise ValidationError(f'material[{index}] must be an object')
        movements.append(PartMovement.from_dict(item))
    return tuple(movements)


def _materials_from_markup(sources: Tuple[Mapping, ...]) -> Tuple[PartMovement, ...]:
    """Recover part movements from pre-rendered issued/returned row markup."""
    movements: List[PartMovement] = []
    for activity, keys in ((Activity.ISSUED, ('issuedEls', 'issued_els')),
                           (Activity.RETURNED, ('returnedEls', 'returned_els'))):
        fragment = _lookup(sources, *keys)
        if not fragment:
            continue
        if not isinstance(fragment, str):
            raise ValidationError(f'{keys[0]} must be a markup string')
        block = table_formatter.rows_from_markup(fragment, activity, minimum_rows=0)
        movements.extend(table_formatter.movements_from_block(block))

    if movements:
        logger.info("Recovered parts from row markup", extra={"part_count": len(movements)})
    return tuple(movements)


def _room(sources: Tuple[Mapping, ...]) -> Optional[str]:
    """Room name from a `room` object ({'name': ...}), a plain string or room_name."""
    room = _lookup(sources, 'room')
    if isinstance(room, Mapping):
        return scalar((room,), 'name', 'room_name', default='') or None
    return scalar(sources, 'room', 'room_name', 'roomName', default='') or None


def _safety_observations(sources: Tuple[Mapping, ...]) -> Tuple[str, ...]:
    formdata = _lookup(sources, 'formdata', 'formData')
    nested = (formdata,) if isinstance(formdata, Mapping) else ()
    raw = _lookup(nested + sources, 'safety_observations', 'safetyObservations')
    if raw is None:
        return ()
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, list):
        raise ValidationError('safety_observations must be a list of strings')
    return tuple(str(item).strip() for item in raw if item is not None and str(item).strip())


def extract_request(payload: Mapping, params: Optional[Mapping] = None) -> ReportRequest:
    """Build a ReportRequest from a request body and its parsed params.

    Missing scalar fields default to 'N/A' and missing lists to empty.
    Undecodable images are logged and omitted.

    Args:
        payload: Request body (top-level fields such as call_no, material)
        params: Parsed 'params' object (customer, narrative and time fields)

    Returns:
        Normalized ReportRequest

    Raises:
        ValidationError: If product_group is missing/unknown or a field has the wrong shape
    """
    if not isinstance(payload, Mapping):
        raise ValidationError('Request body must be a JSON object')
    if params is not None and not isinstance(params, Mapping):
        raise ValidationError('params must be a JSON object')

    sources: Tuple[Mapping, ...] = (payload, params or {})

    kind = ReportKind.parse(_lookup(sources, 'product_group', 'productGroup'))

    customer_obj = _lookup(sources, 'customer')
    customer_sources = ((customer_obj,) if isinstance(customer_obj, Mapping) else ()) + sources
    customer = Customer(
        name=scalar(customer_sources, 'customer_name', 'name', 'customerName'),
        site_name=scalar(customer_sources, 'site_name', 'siteName'),
        engineer_name=scalar(customer_sources, 'engineer_name', 'engineerName'),
        report_date=scalar(customer_sources, 'report_date', 'reportDate')
    )

    narrative_obj = _lookup(sources, 'narrative')
    narrative_sources = ((narrative_obj,) if isinstance(narrative_obj, Mapping) else ()) + sources
    narrative = Narrative(
        problem_statement=scalar(narrative_sources, 'problem_statement', 'problemStatement'),
        work_performed=scalar(narrative_sources, 'work_performed', 'workPerformed'),
        recommendations=scalar(narrative_sources, 'recommendations')
    )

    time_obj = _lookup(sources, 'timeSpent', 'time_spent')
    time_sources = ((time_obj,) if isinstance(time_obj, Mapping) else ()) + sources
    time_spent = TimeSpent(
        start=scalar(time_sources, 'start_time', 'start'),
        end=scalar(time_sources, 'end_time', 'end'),
        total=scalar(time_sources, 'total_time', 'total')
    )

    signatures_obj = _lookup(sources, 'signatures')
    signature_sources = ((signatures_obj,) if isinstance(signatures_obj, Mapping) else ()) + sources
    signatures = Signatures(
        engineer=_image(signature_sources, 'engineer_signature', 'engineerSignature', 'engineer'),
        manager=_image(signature_sources, 'manager_signature', 'managerSignature', 'manager')
    )

    request = ReportRequest(
        call_number=scalar(sources, 'call_no', 'callNumber'),
        kind=kind,
        customer=customer,
        narrative=narrative,
        time_spent=time_spent,
        materials=_materials(sources),
        safety_observations=_safety_observations(sources),
        logo=_image(sources, 'logo', 'logo'),
        signatures=signatures,
        service_type=scalar(sources, 'service_type', 'serviceType', default='') or None,
        onepm=flag(sources, 'isOnepmFSR', 'onepm'),
        room=_room(sources)
    )

    logger.debug(
        "Extracted report request",
        extra={
            "call_number": request.call_number,
            "product_group": kind.value,
            "material_count": len(request.materials),
            "has_logo": request.logo is not None
        }
    )
    return request
