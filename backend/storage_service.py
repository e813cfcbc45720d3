"""
DOCUMENT STORAGE SERVICE

GridFS-backed storage collaborator for LOA, bill, amendment and other
documents.

Contract used by the core:
    async upload(key, data, content_type) -> url
    async delete(url) -> None
Failures raise StorageError.

Upload retry structure:
- STORAGE_UPLOAD_RETRIES attempts (default 3)
- Exponential backoff (2^attempt seconds)
- Each attempt logged
"""

from motor.motor_asyncio import AsyncIOMotorDatabase, AsyncIOMotorGridFSBucket
from bson import ObjectId
from bson.errors import InvalidId
from gridfs.errors import NoFile
from pymongo.errors import PyMongoError
from typing import Optional, Tuple
import asyncio
import logging

from loa_core.results import StorageError

logger = logging.getLogger(__name__)


class GridFSStorageService:

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        bucket_name: str = "documents",
        base_url: str = "/api/documents",
        upload_retries: int = 3,
        backoff_factor: float = 1.0,
        bucket=None
    ):
        # bucket overrides the GridFS bucket built from db
        self.bucket = bucket if bucket is not None else AsyncIOMotorGridFSBucket(db, bucket_name=bucket_name)
        self.base_url = base_url.rstrip("/")
        self.upload_retries = max(1, upload_retries)
        self.backoff_factor = backoff_factor

    def url_for(self, file_id: ObjectId) -> str:
        return f"{self.base_url}/{file_id}"

    def file_id_from_url(self, url: str) -> ObjectId:
        try:
            return ObjectId(url.rstrip("/").rsplit("/", 1)[-1])
        except (InvalidId, TypeError) as e:
            raise StorageError(url, "resolve", e)

    async def upload(self, key: str, data: bytes, content_type: str) -> str:
        last_error: Optional[Exception] = None

        for attempt in range(self.upload_retries):
            try:
                logger.info(f"[STORAGE] Upload attempt {attempt + 1}/{self.upload_retries}: {key}")
                file_id = await self.bucket.upload_from_stream(
                    key,
                    data,
                    metadata={"content_type": content_type, "key": key}
                )
                url = self.url_for(file_id)
                logger.info(f"[STORAGE] Upload successful: {key} -> {url}")
                return url

            except PyMongoError as e:
                last_error = e
                logger.error(f"[STORAGE] Upload attempt {attempt + 1} failed for {key}: {e}")

                if attempt < self.upload_retries - 1:
                    backoff_seconds = self.backoff_factor * (2 ** attempt)
                    logger.info(f"[STORAGE] Retrying in {backoff_seconds} seconds...")
                    await asyncio.sleep(backoff_seconds)

        logger.error(f"[STORAGE] All upload attempts failed for {key}")
        raise StorageError(key, "upload", last_error)

    async def delete(self, url: str) -> None:
        file_id = self.file_id_from_url(url)
        try:
            await self.bucket.delete(file_id)
            logger.info(f"[STORAGE] Deleted {url}")
        except PyMongoError as e:
            raise StorageError(url, "delete", e)

    async def download(self, file_id: str) -> Optional[Tuple[bytes, str, str]]:
        """Returns (content, content_type, key) for a stored document, None if absent"""
        object_id = self.file_id_from_url(file_id)
        try:
            stream = await self.bucket.open_download_stream(object_id)
            content = await stream.read()
        except NoFile:
            return None
        except PyMongoError as e:
            raise StorageError(file_id, "download", e)

        metadata = stream.metadata or {}
        return content, metadata.get("content_type", "application/octet-stream"), stream.filename
