"""S3 / MinIO storage for generated reports."""

import os
import re
from datetime import date
from functools import lru_cache
from typing import Mapping, Optional

import boto3
from aws_lambda_powertools import Logger
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from fsr_report.config import DEFAULT_KEY_PREFIX, DEFAULT_REGION, S3_CLIENT_CACHE_SIZE
from fsr_report.exceptions import ResourceFailure
from fsr_report.models.entities import StorageConfig, UploadResult


logger = Logger(service="fsr-storage")

# Accepted payload keys for S3 credentials, checked in order
CREDENTIAL_KEYS = ('s3Credentials', 's3_credentials', 's3', 'aws', 'awsCredentials')

# Anything else in a call number is replaced before it reaches a key or header
_UNSAFE_NAME_CHARS = re.compile(r'[^A-Za-z0-9._-]')


def _credentials_from(source: Optional[Mapping]) -> Optional[Mapping]:
    if not isinstance(source, Mapping):
        return None
    for key in CREDENTIAL_KEYS:
        value = source.get(key)
        if isinstance(value, Mapping) and value:
            return value
    return None


def _config_from_mapping(creds: Mapping) -> StorageConfig:
    return StorageConfig(
        bucket_name=creds.get('bucketName') or creds.get('bucket') or '',
        access_key_id=creds.get('accessKeyId') or creds.get('access_key_id') or '',
        secret_access_key=creds.get('secretAccessKey') or creds.get('secret_access_key') or '',
        region=creds.get('region') or DEFAULT_REGION,
        key_prefix=creds.get('keyPrefix') or creds.get('key_prefix') or DEFAULT_KEY_PREFIX,
        endpoint=creds.get('endpoint') or creds.get('url') or None
    )


def _config_from_env() -> Optional[StorageConfig]:
    bucket = os.environ.get('AWS_S3_BUCKET', '')
    access_key = os.environ.get('AWS_ACCESS_KEY_ID', '')
    secret_key = os.environ.get('AWS_SECRET_ACCESS_KEY', '')
    if not (bucket and access_key and secret_key):
        return None
    return StorageConfig(
        bucket_name=bucket,
        access_key_id=access_key,
        secret_access_key=secret_key,
        region=os.environ.get('AWS_REGION', DEFAULT_REGION),
        key_prefix=os.environ.get('AWS_S3_KEY_PREFIX', DEFAULT_KEY_PREFIX),
        endpoint=os.environ.get('MINIO_ENDPOINT') or os.environ.get('MINIO_URL') or None
    )


def resolve_storage_config(body: Mapping, params: Optional[Mapping] = None) -> Optional[StorageConfig]:
    """Resolve S3 credentials once for a request.

    Checks the request body, then the parsed params, then environment
    variables.

    Args:
        body: Request body
        params: Parsed 'params' object

    Returns:
        StorageConfig, or None if no credentials are available
    """
    creds = _credentials_from(body) or _credentials_from(params)
    if creds:
        return _config_from_mapping(creds)

    config = _config_from_env()
    if config:
        logger.info("Using environment variables for S3 credentials", extra={"bucket": config.bucket_name})
    return config


@lru_cache(maxsize=S3_CLIENT_CACHE_SIZE)
def _create_client(config: StorageConfig):
    kwargs = {
        'region_name': config.region,
        'aws_access_key_id': config.access_key_id,
        'aws_secret_access_key': config.secret_access_key,
    }
    if config.endpoint:
        # MinIO needs path-style addressing
        kwargs['endpoint_url'] = config.endpoint
        kwargs['config'] = Config(signature_version='s3v4', s3={'addressing_style': 'path'})
    return boto3.client('s3', **kwargs)


def get_s3_client(config: StorageConfig):
    """Get or create an S3 client for a storage config.

    Clients are reused across warm invocations; the least recently used is
    dropped once S3_CLIENT_CACHE_SIZE configs are cached.
    """
    return _create_client(config)


def safe_object_name(value: str, default: str = 'report') -> str:
    """Reduce a call number to characters safe in object keys and headers."""
    name = _UNSAFE_NAME_CHARS.sub('_', value or '').strip('.')
    return name or default


def build_report_key(call_number: str, prefix: str = DEFAULT_KEY_PREFIX, year: Optional[int] = None) -> str:
    """Object key for a report: {prefix}/{year}/{call_number}.pdf."""
    year = year or date.today().year
    prefix = prefix.strip('/') or DEFAULT_KEY_PREFIX
    return f'{prefix}/{year}/{safe_object_name(call_number)}.pdf'


def build_object_url(config: StorageConfig, key: str) -> str:
    """Public URL of an object (path-style for MinIO, virtual-host style for AWS)."""
    if config.endpoint:
        return f'{config.endpoint.rstrip("/")}/{config.bucket_name}/{key}'
    return f'https://{config.bucket_name}.s3.{config.region}.amazonaws.com/{key}'


def ensure_bucket_exists(config: StorageConfig) -> None:
    """Check the bucket exists, creating it on MinIO endpoints.

    Raises:
        ResourceFailure: If the bucket is missing and cannot be created
    """
    client = get_s3_client(config)
    try:
        client.head_bucket(Bucket=config.bucket_name)
        return
    except ClientError as e:
        code = e.response.get('Error', {}).get('Code')
        if code not in ('404', 'NoSuchBucket', 'NotFound'):
            raise

    if not config.endpoint:
        raise ResourceFailure(f'Bucket {config.bucket_name} does not exist. Please create it manually for AWS S3.')

    logger.info("Creating bucket", extra={"bucket": config.bucket_name, "endpoint": config.endpoint})
    try:
        client.create_bucket(Bucket=config.bucket_name)
    except ClientError as e:
        raise ResourceFailure(
            f'Bucket {config.bucket_name} does not exist and could not be created: {e}'
        ) from e


def upload_report(
    content: bytes,
    file_name: str,
    config: Optional[StorageConfig],
    year: Optional[int] = None
) -> UploadResult:
    """Upload a generated PDF.

    Args:
        content: PDF bytes
        file_name: Download file name, e.g. 'CALL-001.pdf'
        config: Resolved storage config
        year: Year segment of the key (defaults to the current year)

    Returns:
        UploadResult with key, ETag and URL

    Raises:
        ResourceFailure: If credentials are missing or S3 rejects the upload
    """
    if not config or not (config.bucket_name and config.access_key_id and config.secret_access_key):
        raise ResourceFailure('S3 credentials are required')

    call_number = safe_object_name(file_name[:-4] if file_name.lower().endswith('.pdf') else file_name)
    file_name = f'{call_number}.pdf'
    key = build_report_key(call_number, config.key_prefix, year)

    try:
        ensure_bucket_exists(config)
        response = get_s3_client(config).put_object(
            Bucket=config.bucket_name,
            Key=key,
            Body=content,
            ContentType='application/pdf',
            ContentDisposition=f'attachment; filename="{file_name}"'
        )
    except (ClientError, BotoCoreError) as e:
        raise ResourceFailure(f'Failed to upload PDF to S3: {e}') from e

    result = UploadResult(key=key, etag=response.get('ETag'), url=build_object_url(config, key))
    logger.info("Report uploaded", extra={"bucket": config.bucket_name, "key": key, "etag": result.etag})
    return result
