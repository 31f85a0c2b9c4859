"""
S3 Storage Service — Lister / Fetcher

Narrow async facade over the object store used by the batch pipeline
and the single-object REST helpers:

  list_objects     prefix → ordered ObjectRefs (ListObjectsV2, paginated)
  get_object       key    → bytes
  put_object       key    ← bytes
  download_object  key    → local file
  download_prefix  prefix → local folder (one file per object)

Ordering:
  list_objects returns keys in exactly the order S3 returns them
  (lexicographic by key). The pipeline relies on this order for the
  aggregated document, so nothing here sorts or de-duplicates.

Errors:
  Every botocore failure is wrapped into StorageError; an empty listing
  or a NoSuchKey is a NotFoundError. Callers never see ClientError.

One instance is created at startup and shared — aioboto3 clients are
opened per call, so the service itself holds no mutable state.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from app.core.config import Settings
from app.core.errors import NotFoundError, StorageError

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = ("NoSuchKey", "404", "NotFound")


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ObjectRef:
    """One listed object. extension is lower-cased, without the dot."""
    key:       str
    extension: str

    @classmethod
    def from_key(cls, key: str) -> "ObjectRef":
        return cls(key=key, extension=extension_of(key))


def extension_of(key: str) -> str:
    """
    Lower-cased suffix after the last '.' of the final path segment.
    "case1/Scan.PDF" → "pdf";  "case1/README" → "";  "case1/.env" → "env"
    """
    name = key.rsplit("/", 1)[-1]
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[-1].lower()


# ---------------------------------------------------------------------------
# S3 Service
# ---------------------------------------------------------------------------

class S3StorageService:

    def __init__(
        self,
        settings: Settings,
        session: aioboto3.Session | None = None,
    ) -> None:
        self._settings = settings
        self._session = session or aioboto3.Session()

    def _client(self):
        """Return a scoped async S3 client context manager."""
        return self._session.client("s3", **self._settings.aws_client_kwargs())

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    async def list_objects(self, bucket: str, prefix: str) -> list[ObjectRef]:
        """
        List every object under prefix, following continuation tokens.
        Raises NotFoundError when nothing matches.
        """
        keys: list[str] = []
        params: dict = {"Bucket": bucket, "Prefix": prefix}

        try:
            async with self._client() as s3:
                while True:
                    resp = await s3.list_objects_v2(**params)
                    keys.extend(
                        obj["Key"] for obj in resp.get("Contents", []) if obj.get("Key")
                    )
                    token = resp.get("NextContinuationToken")
                    if not resp.get("IsTruncated") or not token:
                        break
                    params["ContinuationToken"] = token
        except (ClientError, BotoCoreError) as exc:
            logger.error("S3 list failed | bucket=%s prefix=%s error=%s", bucket, prefix, exc)
            raise StorageError(
                "Failed to list objects", bucket=bucket, prefix=prefix
            ) from exc

        if not keys:
            raise NotFoundError(f"No files found in folder: {prefix}", bucket=bucket, prefix=prefix)

        logger.info("S3 list ok | bucket=%s prefix=%s count=%d", bucket, prefix, len(keys))
        return [ObjectRef.from_key(k) for k in keys]

    # ------------------------------------------------------------------
    # Single-object operations
    # ------------------------------------------------------------------

    async def get_object(self, bucket: str, key: str) -> bytes:
        try:
            async with self._client() as s3:
                resp = await s3.get_object(Bucket=bucket, Key=key)
                return await resp["Body"].read()
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in _NOT_FOUND_CODES:
                raise NotFoundError(f"Object not found: {key}", bucket=bucket, key=key) from exc
            raise StorageError("Failed to fetch object", bucket=bucket, key=key) from exc
        except BotoCoreError as exc:
            raise StorageError("Failed to fetch object", bucket=bucket, key=key) from exc

    async def put_object(
        self,
        bucket: str,
        key: str,
        body: bytes,
        content_type: str = "application/octet-stream",
    ) -> None:
        try:
            async with self._client() as s3:
                await s3.put_object(Bucket=bucket, Key=key, Body=body, ContentType=content_type)
        except (ClientError, BotoCoreError) as exc:
            logger.error("S3 upload failed | bucket=%s key=%s error=%s", bucket, key, exc)
            raise StorageError("Failed to upload object", bucket=bucket, key=key) from exc

        logger.info("S3 upload ok | bucket=%s key=%s size=%d", bucket, key, len(body))

    async def download_object(self, bucket: str, key: str, destination_path: str | Path) -> Path:
        """Fetch one object and write it to destination_path."""
        data = await self.get_object(bucket, key)
        target = Path(destination_path)

        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, _write_file, target, data)
        except OSError as exc:
            raise StorageError(
                "Failed to write downloaded object", key=key, path=str(target)
            ) from exc

        logger.info("File downloaded | key=%s path=%s size=%d", key, target, len(data))
        return target

    async def download_prefix(
        self,
        bucket: str,
        prefix: str,
        destination_folder: str | Path,
    ) -> list[Path]:
        """
        Download every object under prefix into destination_folder,
        keeping the path relative to the prefix. Folder markers
        (keys ending in "/") are skipped, and no key may write outside
        the destination folder.
        """
        refs = await self.list_objects(bucket, prefix)
        folder = Path(destination_folder)
        written: list[Path] = []

        for ref in refs:
            relative = ref.key[len(prefix):] if ref.key.startswith(prefix) else ref.key
            relative = relative.lstrip("/")
            if not relative or relative.endswith("/"):
                continue
            target = folder / relative
            if not target.resolve().is_relative_to(folder.resolve()):
                logger.warning("Skipping key outside destination | key=%s", ref.key)
                continue
            written.append(await self.download_object(bucket, ref.key, target))

        logger.info(
            "Folder downloaded | prefix=%s destination=%s files=%d",
            prefix, folder, len(written),
        )
        return written


def _write_file(target: Path, data: bytes) -> None:
    """Blocking write — runs in thread executor."""
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(data)
