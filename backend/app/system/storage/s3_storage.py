"""
S3 对象存储 - 实现 core 层 IObjectStorage 接口
对象写入存储桶，公开地址为存储桶域名（或自定义 CDN 地址）+ 对象键
"""
import logging
from typing import Dict, Optional

import boto3
from botocore.exceptions import ClientError

from core.storage import IObjectStorage

logger = logging.getLogger(__name__)


class S3ObjectStorage(IObjectStorage):
    """S3 兼容的云存储后端"""

    def __init__(
        self,
        bucket: str,
        region: Optional[str] = None,
        public_base_url: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        client=None,
    ):
        if not bucket:
            raise ValueError("S3 存储桶未配置")
        self.bucket = bucket
        self.region = region
        self.client = client or boto3.client(
            's3',
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            region_name=region,
            endpoint_url=endpoint_url,
        )
        self.public_base_url = (public_base_url or self._bucket_url()).rstrip("/")

    def _bucket_url(self) -> str:
        if self.region:
            return f"https://{self.bucket}.s3.{self.region}.amazonaws.com"
        return f"https://{self.bucket}.s3.amazonaws.com"

    @staticmethod
    def _key(path: str) -> str:
        key = path.lstrip("/")
        if not key or ".." in key.split("/"):
            raise ValueError(f"非法存储路径: {path}")
        return key

    def save(
        self,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        metadata: Optional[Dict[str, str]] = None,
    ) -> None:
        key = self._key(path)
        self.client.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=data,
            ContentType=content_type,
            Metadata=metadata or {},
        )
        logger.info(f"Uploaded object s3://{self.bucket}/{key} ({len(data)} bytes)")

    def public_url(self, path: str) -> str:
        return f"{self.public_base_url}/{self._key(path)}"

    def exists(self, path: str) -> bool:
        try:
            self.client.head_object(Bucket=self.bucket, Key=self._key(path))
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("404", "NoSuchKey", "NotFound"):
                return False
            raise
        return True
