import os
from typing import Optional

import boto3
from botocore.exceptions import ClientError

from .base import BaseStorage


class CloudStorage(BaseStorage):
    """Artifact storage in an S3-compatible bucket (e.g. DigitalOcean Spaces)."""

    def __init__(
        self,
        endpoint: Optional[str] = None,
        key_id: Optional[str] = None,
        access_key: Optional[str] = None,
        bucket_name: Optional[str] = None,
        region_name: str = "ams3",
        client=None,
    ):
        self.endpoint = endpoint or os.getenv("BUCKET_ENDPOINT")
        self.bucket_name = bucket_name or os.getenv("BUCKET_NAME")
        key_id = key_id or os.getenv("BUCKET_KEY_ID")
        access_key = access_key or os.getenv("BUCKET_ACCESS_KEY")

        if client is not None:
            self.client = client
            return

        if not self.endpoint or not key_id or not access_key or not self.bucket_name:
            raise RuntimeError(
                "Missing required environment variables for cloud storage client."
                " Please ensure BUCKET_ENDPOINT, BUCKET_KEY_ID, BUCKET_ACCESS_KEY"
                " and BUCKET_NAME are set."
            )

        session = boto3.session.Session()
        self.client = session.client(
            "s3",
            region_name=region_name,
            endpoint_url=self.endpoint,
            aws_access_key_id=key_id,
            aws_secret_access_key=access_key,
        )

    def get_client(self):
        """Returns the initialized cloud storage client."""
        return self.client

    def _get_absolute_filename(self, workspace: str, filename: str) -> str:
        workspace = self._normalize_workspace(workspace)
        protocol, _, path = (self.endpoint or "").partition("://")
        return f"{protocol}://{self.bucket_name}.{path}/{workspace}{filename}"

    def file_exist(self, workspace: str, filename: str) -> bool:
        key = f"{self._normalize_workspace(workspace)}{filename}"
        try:
            self.client.head_object(Bucket=self.bucket_name, Key=key)
        except ClientError as e:
            if e.response["Error"]["Code"] in ("404", "NoSuchKey", "NotFound"):
                return False
            raise
        return True

    def create_workspace(self, name: str) -> str:
        """Buckets have no directories; the workspace is just a key prefix."""
        return self._normalize_workspace(name)

    def save_file(self, workspace: str, filename: str, content: str) -> str:
        key = f"{self._normalize_workspace(workspace)}{filename}"
        try:
            self.client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=content.encode("utf-8"),
                ContentType="application/json",
            )
        except ClientError as e:
            raise RuntimeError(f"Error saving file to cloud storage: {e}") from e
        return self._get_absolute_filename(workspace, filename)

    def read_file(self, workspace: str, filename: str) -> str:
        key = f"{self._normalize_workspace(workspace)}{filename}"
        try:
            response = self.client.get_object(Bucket=self.bucket_name, Key=key)
        except ClientError as e:
            if e.response["Error"]["Code"] in ("404", "NoSuchKey", "NotFound"):
                raise FileNotFoundError(key) from e
            raise RuntimeError(f"Error reading file from cloud storage: {e}") from e
        return response["Body"].read().decode("utf-8")
