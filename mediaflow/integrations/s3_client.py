# integrations/s3_client.py
import shutil
from pathlib import Path
from typing import List, Optional
from urllib.parse import unquote, urlparse

from botocore.exceptions import BotoCoreError, ClientError

from mediaflow.core.aws_client import get_s3_client
from mediaflow.core.errors import ParseError, RemoteCallError
from mediaflow.core.logger import logger
from mediaflow.schemas.batch_models import ObjectRef


def parse_s3_location(uri: str) -> ObjectRef:
    """
    Accepts s3://bucket/key and path-style https://s3.<region>.amazonaws.com/bucket/key
    (the form Transcribe and Polly report output locations in).
    """
    parsed = urlparse(uri)
    if parsed.scheme == "s3":
        bucket, key = parsed.netloc, parsed.path.lstrip("/")
    elif parsed.scheme == "https" and parsed.netloc.startswith("s3"):
        bucket, _, key = parsed.path.lstrip("/").partition("/")
    elif parsed.scheme == "https" and ".s3." in parsed.netloc:
        bucket, key = parsed.netloc.split(".s3.", 1)[0], parsed.path.lstrip("/")
    else:
        raise ParseError(f"Not an S3 location: {uri}", source=uri)
    if not bucket or not key:
        raise ParseError(f"S3 location is missing a bucket or key: {uri}", source=uri)
    return ObjectRef(container=bucket, key=unquote(key))


class S3ObjectStore:
    """Object store backed by one S3 bucket."""

    def __init__(self, bucket: str, client=None):
        self.bucket = bucket
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = get_s3_client()
        return self._client

    def list(self, prefix: str) -> List[ObjectRef]:
        """All keys under `prefix`, skipping folder placeholders."""
        refs = []
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                for obj in page.get("Contents", []):
                    key = obj["Key"]
                    if key.endswith("/"):
                        continue
                    refs.append(ObjectRef(container=self.bucket, key=key))
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to list s3://{self.bucket}/{prefix}: {e}")
            raise RemoteCallError(str(e), operation="list_objects_v2") from e

        logger.info(f"Found {len(refs)} objects under s3://{self.bucket}/{prefix}")
        return refs

    def download(self, ref: ObjectRef, destination: Path) -> Path:
        destination = Path(destination)
        try:
            self.client.download_file(ref.container, ref.key, str(destination))
        except (ClientError, BotoCoreError) as e:
            raise RemoteCallError(f"Failed to download {ref}: {e}", operation="download_file") from e
        logger.debug(f"Downloaded {ref} -> {destination}")
        return destination

    def upload(self, local_path: Path, ref: ObjectRef) -> None:
        try:
            self.client.upload_file(str(local_path), ref.container, ref.key)
        except (ClientError, BotoCoreError) as e:
            raise RemoteCallError(f"Failed to upload {local_path} to {ref}: {e}", operation="upload_file") from e
        logger.debug(f"Uploaded {local_path} -> {ref}")


class LocalObjectStore:
    """
    Object store over the local filesystem. A prefix is a directory path;
    uploads addressed to container + key land under `upload_root`.
    """

    IMAGE_SUFFIXES = (".jpg", ".jpeg", ".png")

    def __init__(self, upload_root: Optional[Path] = None, suffixes=IMAGE_SUFFIXES):
        self.upload_root = Path(upload_root) if upload_root else Path(".")
        self.suffixes = tuple(s.lower() for s in suffixes) if suffixes else None

    def list(self, prefix: str) -> List[ObjectRef]:
        root = Path(prefix)
        if not root.is_dir():
            raise RemoteCallError(f"Local directory '{prefix}' does not exist", operation="list")
        files = sorted(p for p in root.rglob("*") if p.is_file())
        if self.suffixes:
            files = [p for p in files if p.suffix.lower() in self.suffixes]
        return [ObjectRef(local_path=p) for p in files]

    def download(self, ref: ObjectRef, destination: Path) -> Path:
        try:
            shutil.copyfile(ref.local_path, destination)
        except OSError as e:
            raise RemoteCallError(f"Failed to copy {ref}: {e}", operation="download") from e
        return Path(destination)

    def upload(self, local_path: Path, ref: ObjectRef) -> None:
        target = ref.local_path if ref.is_local else self.upload_root / ref.container / ref.key
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(local_path, target)
