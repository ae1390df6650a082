"""
S3 service for object store operations (AWS S3 or MinIO)
"""
import os
import re
import uuid
import logging
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError

from ..exceptions import S3Exception
from ..config import IngestionConfig


logger = logging.getLogger(__name__)


# Client error codes that will not go away on retry
PERMANENT_ERROR_CODES = {
    "NoSuchKey",
    "NoSuchBucket",
    "NotFound",
    "404",
    "AccessDenied",
    "403",
    "InvalidAccessKeyId",
    "SignatureDoesNotMatch",
}


def _is_permanent(error: ClientError) -> bool:
    code = str(error.response.get("Error", {}).get("Code", ""))
    return code in PERMANENT_ERROR_CODES


class S3Service:
    """Service for S3-compatible object store operations"""

    def __init__(
        self,
        bucket_name: str = None,
        endpoint_url: str = None,
        aws_access_key_id: str = None,
        aws_secret_access_key: str = None,
        aws_region: str = None,
        timeout: int = None,
        client=None
    ):
        """
        Initialize S3 service

        Args:
            bucket_name: Bucket name
            endpoint_url: Endpoint override for MinIO or other S3-compatible stores
            aws_access_key_id: Access key
            aws_secret_access_key: Secret key
            aws_region: Region
            timeout: Connect/read timeout in seconds
            client: Pre-built boto3 S3 client (tests)

        Raises:
            S3Exception: If initialization fails
        """
        # Fallback to .env config when args are not provided
        self.bucket_name = bucket_name or IngestionConfig.S3_BUCKET_NAME
        if not self.bucket_name:
            raise S3Exception("S3 bucket name is not configured", retryable=False)

        resolved_timeout = timeout or IngestionConfig.HTTP_TIMEOUT_SECONDS

        if client is not None:
            self.s3_client = client
        else:
            try:
                self.s3_client = boto3.client(
                    's3',
                    endpoint_url=endpoint_url or IngestionConfig.S3_ENDPOINT_URL,
                    aws_access_key_id=aws_access_key_id or IngestionConfig.AWS_ACCESS_KEY_ID,
                    aws_secret_access_key=aws_secret_access_key or IngestionConfig.AWS_SECRET_ACCESS_KEY,
                    region_name=aws_region or IngestionConfig.AWS_REGION,
                    config=Config(
                        connect_timeout=resolved_timeout,
                        read_timeout=resolved_timeout,
                        retries={'max_attempts': 2, 'mode': 'standard'}
                    )
                )
            except Exception as e:
                raise S3Exception("Unexpected error initializing S3 service", original_error=e)

        logger.info(f"S3Service initialized: bucket={self.bucket_name}")

    def verify_bucket(self) -> None:
        """
        Check that the bucket exists and is reachable

        Raises:
            S3Exception: If the bucket cannot be reached
        """
        try:
            self.s3_client.head_bucket(Bucket=self.bucket_name)
        except NoCredentialsError as e:
            raise S3Exception("AWS credentials not found", original_error=e, retryable=False)
        except ClientError as e:
            raise S3Exception(
                f"Failed to connect to bucket {self.bucket_name}",
                original_error=e,
                retryable=not _is_permanent(e)
            )
        except BotoCoreError as e:
            raise S3Exception(f"Failed to connect to bucket {self.bucket_name}", original_error=e)

    def get_object(self, key: str) -> bytes:
        """
        Read object content

        Args:
            key: Object key

        Returns:
            bytes: Object content

        Raises:
            S3Exception: If reading fails (missing key or access denied are permanent)
        """
        try:
            response = self.s3_client.get_object(Bucket=self.bucket_name, Key=key)
            content = response['Body'].read()
            logger.debug(f"Read {len(content)} bytes from {key}")
            return content

        except ClientError as e:
            raise S3Exception(
                f"Failed to read object {key}",
                original_error=e,
                retryable=not _is_permanent(e)
            )
        except BotoCoreError as e:
            raise S3Exception(f"Failed to read object {key}", original_error=e)

    def put_object(self, key: str, content: bytes, content_type: Optional[str] = None) -> str:
        """
        Write an object

        Args:
            key: Object key
            content: Object bytes
            content_type: Media type stored with the object

        Returns:
            str: The object key
        """
        params = {'Bucket': self.bucket_name, 'Key': key, 'Body': content}
        if content_type:
            params['ContentType'] = content_type
        try:
            self.s3_client.put_object(**params)
            logger.info(f"Stored {len(content)} bytes at {key}")
            return key
        except ClientError as e:
            raise S3Exception(
                f"Failed to write object {key}",
                original_error=e,
                retryable=not _is_permanent(e)
            )
        except BotoCoreError as e:
            raise S3Exception(f"Failed to write object {key}", original_error=e)

    def delete_object(self, key: str) -> None:
        try:
            self.s3_client.delete_object(Bucket=self.bucket_name, Key=key)
            logger.info(f"Deleted object {key}")
        except ClientError as e:
            raise S3Exception(
                f"Failed to delete object {key}",
                original_error=e,
                retryable=not _is_permanent(e)
            )
        except BotoCoreError as e:
            raise S3Exception(f"Failed to delete object {key}", original_error=e)

    @staticmethod
    def build_object_key(category: str, owner_id: str, filename: str) -> str:
        """
        Build a key in the ``{category}/{ownerId}/{uniqueSuffix}_{originalFilename}`` layout

        Args:
            category: Entity category
            owner_id: Owning user id
            filename: Original file name (directory parts are dropped)

        Returns:
            str: Object key
        """
        base_name = os.path.basename(filename or "") or "upload"
        safe_name = re.sub(r'[^A-Za-z0-9._-]+', '_', base_name)
        return f"{category}/{owner_id}/{uuid.uuid4().hex}_{safe_name}"
