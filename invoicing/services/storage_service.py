"""
Image store for item pictures and company logos (S3-compatible: MinIO, AWS S3,
DigitalOcean Spaces).

Uploads are side operations: they run after the owning record is committed
and never take part in its transaction, so a failed upload leaves the record
saved and is reported on its own.
"""
import json
import logging
import mimetypes
import time
from typing import Optional

import boto3
from botocore.client import Config as BotoConfig
from botocore.exceptions import ClientError
from flask import current_app
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

logger = logging.getLogger(__name__)


class StorageService:
    """
    S3-compatible object storage service.

    Usage:
        storage = StorageService()
        key = storage.upload_image('items', 7, file)
        url = storage.get_public_url(key)
    """

    def __init__(self):
        """Initialize S3 client from Flask config."""
        self.bucket = current_app.config['S3_BUCKET']
        self.public_url = current_app.config['S3_PUBLIC_URL']
        self.max_size = current_app.config.get('MAX_UPLOAD_SIZE', 5 * 1024 * 1024)
        self.allowed_types = current_app.config.get('ALLOWED_MIME_TYPES', set())

        self.client = boto3.client(
            's3',
            endpoint_url=current_app.config['S3_ENDPOINT'],
            aws_access_key_id=current_app.config['S3_ACCESS_KEY'],
            aws_secret_access_key=current_app.config['S3_SECRET_KEY'],
            region_name=current_app.config['S3_REGION'],
            config=BotoConfig(signature_version='s3v4')
        )

        self._ensure_bucket_exists()

    def _ensure_bucket_exists(self):
        """Create bucket (public-read) if it doesn't exist."""
        try:
            self.client.head_bucket(Bucket=self.bucket)
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code')
            if error_code != '404':
                logger.error(f"[STORAGE] Failed to check bucket: {e}")
                raise
            self.client.create_bucket(Bucket=self.bucket)
            policy = {
                "Version": "2012-10-17",
                "Statement": [
                    {
                        "Effect": "Allow",
                        "Principal": {"AWS": "*"},
                        "Action": "s3:GetObject",
                        "Resource": f"arn:aws:s3:::{self.bucket}/*"
                    }
                ]
            }
            self.client.put_bucket_policy(Bucket=self.bucket, Policy=json.dumps(policy))
            logger.info(f"[STORAGE] Bucket '{self.bucket}' created with public-read policy")

    def upload_image(self, owner_kind: str, owner_id: int, file: FileStorage) -> str:
        """
        Upload an image for an owner record and return its object key.

        Args:
            owner_kind: 'items' or 'companies'
            owner_id: primary key of the owning record
            file: Werkzeug FileStorage object from request.files

        Raises:
            ValueError: If file validation fails
            ClientError: If upload fails
        """
        self._validate_file(file)

        filename = secure_filename(file.filename) or 'image'
        object_name = f"{owner_kind}/{owner_id}/{int(time.time())}_{filename}"
        content_type = file.content_type or mimetypes.guess_type(file.filename)[0] or 'application/octet-stream'

        try:
            file.seek(0)
            logger.info(f"[STORAGE] Uploading '{object_name}' to bucket '{self.bucket}'")
            self.client.upload_fileobj(
                file.stream,
                self.bucket,
                object_name,
                ExtraArgs={'ContentType': content_type, 'ACL': 'public-read'}
            )
            return object_name
        except ClientError as e:
            logger.exception(f"[STORAGE] Upload failed: {e}")
            raise

    def delete_file(self, object_name: str) -> bool:
        """Delete an object; False when the store refuses."""
        try:
            self.client.delete_object(Bucket=self.bucket, Key=object_name)
            logger.info(f"[STORAGE] File deleted: {object_name}")
            return True
        except ClientError as e:
            logger.exception(f"[STORAGE] Delete failed: {e}")
            return False

    def get_public_url(self, object_name: str) -> str:
        """Public URL of an object (legacy full URLs are returned unchanged)."""
        if object_name.startswith(('http://', 'https://')):
            return object_name
        return f"{self.public_url.rstrip('/')}/{self.bucket}/{object_name.lstrip('/')}"

    def _validate_file(self, file: FileStorage):
        """Check presence, size and MIME type."""
        if not file or not file.filename:
            raise ValueError("No file was provided")

        file.seek(0, 2)  # Seek to end
        file_size = file.tell()
        file.seek(0)

        if file_size > self.max_size:
            max_mb = self.max_size / (1024 * 1024)
            raise ValueError(f"Image size must be less than {max_mb:.0f}MB")

        if self.allowed_types and file.content_type not in self.allowed_types:
            raise ValueError(f"File type not allowed: {file.content_type}")


# Singleton instance
_storage_service: Optional[StorageService] = None


def get_storage_service() -> StorageService:
    """Get or create StorageService singleton."""
    global _storage_service
    if _storage_service is None:
        _storage_service = StorageService()
    return _storage_service
