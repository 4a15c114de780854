# survey_relay/services/storage.py
"""
Storage layer for the fallback queue, with local and cloud backends.
Set STORAGE_BACKEND to 'local' or 's3' to switch.
"""
import json
import logging
from pathlib import Path

from botocore.exceptions import ClientError

from survey_relay.config import Settings

logger = logging.getLogger(__name__)


class StorageBackend:
    """Where StorageFallback keeps the pending-submission queue"""

    def write_file(self, path: str, content: bytes) -> str:
        """Write a whole queue file, return its location"""
        raise NotImplementedError

    def write_text(self, path: str, content: str) -> str:
        """Write text file"""
        return self.write_file(path, content.encode('utf-8'))

    def append_jsonl(self, path: str, record: dict) -> str:
        """Queue one record as a JSON line"""
        raise NotImplementedError

    def read_file(self, path: str) -> bytes:
        """Read file content"""
        raise NotImplementedError

    def read_text(self, path: str) -> str:
        """Read text file"""
        return self.read_file(path).decode('utf-8')

    def exists(self, path: str) -> bool:
        """Check if file exists"""
        raise NotImplementedError


class LocalStorage(StorageBackend):
    """Pending-submission queue under DATA_DIR on this machine"""

    def __init__(self, base_dir: str = "data"):
        self.base_dir = Path(base_dir)

    def _full_path(self, path: str) -> Path:
        return self.base_dir / path

    def write_file(self, path: str, content: bytes) -> str:
        full_path = self._full_path(path)
        full_path.parent.mkdir(parents=True, exist_ok=True)
        with open(full_path, 'wb') as f:
            f.write(content)
        return str(full_path)

    def append_jsonl(self, path: str, record: dict) -> str:
        full_path = self._full_path(path)
        full_path.parent.mkdir(parents=True, exist_ok=True)
        line = json.dumps(record, ensure_ascii=False) + "\n"
        with open(full_path, 'a', encoding='utf-8') as f:
            f.write(line)
        return str(full_path)

    def read_file(self, path: str) -> bytes:
        with open(self._full_path(path), 'rb') as f:
            return f.read()

    def exists(self, path: str) -> bool:
        return self._full_path(path).exists()


class S3Storage(StorageBackend):
    """Pending-submission queue in an S3 bucket, shared by several relays"""

    def __init__(self, bucket: str, region: str = "eu-central-1"):
        self.bucket = bucket
        self.region = region
        self._client = None

    @property
    def client(self):
        """Lazy load boto3 client"""
        if self._client is None:
            import boto3
            self._client = boto3.client('s3', region_name=self.region)
        return self._client

    def _s3_key(self, path: str) -> str:
        return path.replace('\\', '/')

    def write_file(self, path: str, content: bytes) -> str:
        key = self._s3_key(path)
        self.client.put_object(Bucket=self.bucket, Key=key, Body=content)
        return f"s3://{self.bucket}/{key}"

    def append_jsonl(self, path: str, record: dict) -> str:
        """S3 has no append: read, add the line, write back"""
        existing = self.read_text(path) if self.exists(path) else ""
        line = json.dumps(record, ensure_ascii=False) + "\n"
        return self.write_text(path, existing + line)

    def read_file(self, path: str) -> bytes:
        response = self.client.get_object(Bucket=self.bucket, Key=self._s3_key(path))
        return response['Body'].read()

    def exists(self, path: str) -> bool:
        try:
            self.client.head_object(Bucket=self.bucket, Key=self._s3_key(path))
            return True
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') in ('404', 'NoSuchKey', 'NotFound'):
                return False
            raise


def get_storage(settings: Settings) -> StorageBackend:
    """Build the storage backend named by STORAGE_BACKEND"""
    if settings.STORAGE_BACKEND == "s3":
        logger.info("Storage: S3 bucket=%s", settings.S3_BUCKET)
        return S3Storage(bucket=settings.S3_BUCKET, region=settings.AWS_REGION)
    logger.info("Storage: Local filesystem dir=%s", settings.DATA_DIR)
    return LocalStorage(base_dir=settings.DATA_DIR)
