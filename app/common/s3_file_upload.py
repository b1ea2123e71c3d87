import re
import uuid

import boto3

from app.config import settings
from app.logger.logger import logger


class S3FileClient:
    s3_instance = None
    instance_type = "s3"

    def __init__(self, s3_instance=None, bucket_name: str = None):
        self.bucket_name = bucket_name or settings.AWS_S3_BUCKET_NAME
        self.s3_instance = s3_instance or boto3.client(
            self.instance_type,
            aws_access_key_id=settings.AWS_ACCESS_KEY_ID or None,
            aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or None,
            region_name=settings.AWS_DEFAULT_REGION,
            endpoint_url=settings.S3_ENDPOINT_URL or None,
        )

    def public_url(self, file_path: str) -> str:
        if settings.S3_PUBLIC_BASE_URL:
            return f"{settings.S3_PUBLIC_BASE_URL.rstrip('/')}/{file_path}"
        return f"https://{self.bucket_name}.s3.amazonaws.com/{file_path}"

    def upload_file_from_buffer(
        self, file_name: str, folder_name: str, file_content: bytes, content_type: str
    ) -> str:
        # if file name has spaces and special characters, replace them with hyphen
        sanitized_filename = re.sub(r"[^a-zA-Z0-9.]", "-", file_name)
        file_path = f"{folder_name}/{uuid.uuid4().hex[:8]}-{sanitized_filename}"

        logger.info(f"Uploading file to s3: {file_path}")
        self.s3_instance.put_object(
            Bucket=self.bucket_name,
            Key=file_path,
            Body=file_content,
            ContentType=content_type,
        )
        return self.public_url(file_path)
