# core/aws_client.py
"""
Centralized AWS client factory to ensure proper credential handling.
This module creates AWS clients with explicit credential configuration.
"""
import os
from dataclasses import dataclass
from typing import Optional

import boto3
from botocore.config import Config

from mediaflow.core.config import settings
from mediaflow.core.logger import logger


@dataclass(frozen=True)
class AwsCredentials:
    """Explicit credentials; any field left as None falls back to settings/env."""
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    session_token: Optional[str] = None
    region: Optional[str] = None


def resolve_credentials(credentials: Optional[AwsCredentials] = None) -> AwsCredentials:
    """Fill the gaps in `credentials` from settings (which loads from .env) or environment."""
    credentials = credentials or AwsCredentials()
    return AwsCredentials(
        access_key_id=(
            credentials.access_key_id
            or settings.AWS_ACCESS_KEY_ID
            or os.getenv('AWS_ACCESS_KEY_ID')
        ),
        secret_access_key=(
            credentials.secret_access_key
            or settings.AWS_SECRET_ACCESS_KEY
            or os.getenv('AWS_SECRET_ACCESS_KEY')
        ),
        session_token=(
            credentials.session_token
            or settings.AWS_SESSION_TOKEN
            or os.getenv('AWS_SESSION_TOKEN')
        ),
        region=credentials.region or settings.AWS_REGION,
    )


def _client_config() -> Config:
    return Config(
        read_timeout=settings.AWS_READ_TIMEOUT,
        connect_timeout=settings.AWS_CONNECT_TIMEOUT,
        retries={'max_attempts': settings.AWS_MAX_ATTEMPTS}
    )


def _build_client(service_name: str, credentials: Optional[AwsCredentials] = None):
    resolved = resolve_credentials(credentials)
    try:
        client = boto3.client(
            service_name,
            region_name=resolved.region,
            aws_access_key_id=resolved.access_key_id,
            aws_secret_access_key=resolved.secret_access_key,
            aws_session_token=resolved.session_token,  # Optional for temporary credentials
            config=_client_config()
        )
        logger.info(f"{service_name} client initialized with credentials (region={resolved.region})")
        return client
    except Exception as e:
        logger.error(f"Failed to initialize {service_name} client: {str(e)}")
        raise


def get_s3_client(credentials: Optional[AwsCredentials] = None):
    """Get S3 client with proper credentials."""
    return _build_client("s3", credentials)


def get_rekognition_client(credentials: Optional[AwsCredentials] = None):
    """Get Rekognition client with proper credentials."""
    return _build_client("rekognition", credentials)


def get_transcribe_client(credentials: Optional[AwsCredentials] = None):
    """Get Transcribe client with proper credentials."""
    return _build_client("transcribe", credentials)


def get_translate_client(credentials: Optional[AwsCredentials] = None):
    """Get Translate client with proper credentials."""
    return _build_client("translate", credentials)


def get_polly_client(credentials: Optional[AwsCredentials] = None):
    """Get Polly client with proper credentials."""
    return _build_client("polly", credentials)


def validate_aws_credentials(credentials: Optional[AwsCredentials] = None) -> bool:
    """Validate that AWS credentials are properly configured."""
    resolved = resolve_credentials(credentials)

    if not resolved.access_key_id or not resolved.secret_access_key:
        logger.warning("Missing AWS credentials in both settings and environment variables")
        logger.info("AWS credentials not found. Make sure to set AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY in .env file, "
                   "or configure AWS CLI with 'aws configure'")
        return False

    logger.info("AWS credentials found and validated")
    return True
