"""Binary object storage for uploaded images.

This module defines :class:`ObjectStore`, the contract the HTTP layer relies
on for persisting uploads, and :class:`GridFSObjectStore`, the MongoDB GridFS
implementation used in production.

GridFS splits each blob into chunks stored in ``<bucket>.chunks`` and keeps
one descriptor document per blob in ``<bucket>.files``.  The descriptor's
``_id`` (an ObjectId minted by the driver) is the file identifier handed back
to clients as a hex string.  The declared MIME type is recorded under
``metadata.contentType``.

Connection Lifecycle
--------------------
The MongoDB client is opened once by :func:`connect_object_store` during
application startup and closed on shutdown.  The store instance is passed
explicitly to the routes through ``app.state``; nothing here keeps
module-level connection state.

Usage
-----
::

    store = await connect_object_store(config)
    file_id = await store.store("rose.jpg", "image/jpeg", data)
    stored = await store.retrieve(file_id)
    await store.close()
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from bson import ObjectId
from bson.errors import InvalidId
from gridfs import AsyncGridFSBucket
from gridfs.errors import NoFile
from pymongo import AsyncMongoClient
from pymongo.errors import PyMongoError

from plantreport.core.config import PlantReportConfig
from plantreport.core.errors import FileNotFound, StorageError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass
class StoredFile:
    """A blob read back from the object store.

    Attributes:
        file_id: Identifier assigned by the store.
        filename: Name the blob was stored under.
        content_type: MIME type declared at upload time.
        data: The blob contents.
    """

    file_id: str
    filename: str
    content_type: str
    data: bytes = field(repr=False)


class ObjectStore(ABC):
    """Contract for binary object stores."""

    @abstractmethod
    async def store(self, name: str, mime_type: str, data: bytes) -> str:
        """Persist a named blob and return its newly assigned identifier.

        Raises:
            StorageError: If the write fails for any reason.
        """

    @abstractmethod
    async def retrieve(self, file_id: str) -> StoredFile:
        """Read a stored blob back.

        Raises:
            ValidationError: If ``file_id`` is not a well-formed identifier.
            FileNotFound: If no blob has this identifier.
            StorageError: If the read fails.
        """

    @abstractmethod
    async def delete(self, file_id: str) -> None:
        """Remove a stored blob.

        Raises:
            ValidationError: If ``file_id`` is not a well-formed identifier.
            FileNotFound: If no blob has this identifier.
            StorageError: If the delete fails.
        """

    async def close(self) -> None:
        """Release any connection held by the store."""


def parse_file_id(file_id: str) -> ObjectId:
    """Convert a hex file identifier into an ObjectId.

    Raises:
        ValidationError: If ``file_id`` is not a 24-character hex string.
    """
    try:
        return ObjectId(file_id)
    except (InvalidId, TypeError) as e:
        raise ValidationError(f"Invalid file id: {file_id!r}") from e


class GridFSObjectStore(ObjectStore):
    """Object store backed by a MongoDB GridFS bucket.

    Attributes:
        _client: The async MongoDB client owning the connection pool, or
            ``None`` when the bucket was supplied directly.
        _bucket: The GridFS bucket blobs are written to.
    """

    def __init__(
        self,
        bucket: AsyncGridFSBucket,
        client: AsyncMongoClient | None = None,
    ) -> None:
        self._bucket = bucket
        self._client = client

    async def store(self, name: str, mime_type: str, data: bytes) -> str:
        try:
            file_id = await self._bucket.upload_from_stream(
                name,
                data,
                metadata={"contentType": mime_type},
            )
        except PyMongoError as e:
            raise StorageError(f"Failed to store {name!r}: {e}") from e

        logger.info(f"Stored {name!r} ({mime_type}, {len(data)} bytes) as {file_id}")
        return str(file_id)

    async def retrieve(self, file_id: str) -> StoredFile:
        oid = parse_file_id(file_id)
        try:
            grid_out = await self._bucket.open_download_stream(oid)
            data = await grid_out.read()
        except NoFile as e:
            raise FileNotFound(f"No stored file with id {file_id}") from e
        except PyMongoError as e:
            raise StorageError(f"Failed to read {file_id}: {e}") from e

        metadata = grid_out.metadata or {}
        return StoredFile(
            file_id=str(oid),
            filename=grid_out.filename or str(oid),
            content_type=metadata.get("contentType", DEFAULT_CONTENT_TYPE),
            data=data,
        )

    async def delete(self, file_id: str) -> None:
        oid = parse_file_id(file_id)
        try:
            await self._bucket.delete(oid)
        except NoFile as e:
            raise FileNotFound(f"No stored file with id {file_id}") from e
        except PyMongoError as e:
            raise StorageError(f"Failed to delete {file_id}: {e}") from e

        logger.info(f"Deleted stored file {file_id}")

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            logger.info("MongoDB connection closed.")


async def connect_object_store(config: PlantReportConfig) -> GridFSObjectStore:
    """Open the MongoDB connection and return a ready GridFS store.

    The server is pinged before returning so that an unreachable database
    fails startup instead of the first upload.

    Args:
        config: Application configuration (URI, database, bucket, timeout).

    Returns:
        A connected :class:`GridFSObjectStore`.

    Raises:
        StorageError: If the URI is invalid or the server cannot be reached.
    """
    try:
        client: AsyncMongoClient = AsyncMongoClient(
            config.mongodb_uri,
            serverSelectionTimeoutMS=config.mongodb_connect_timeout_ms,
        )
    except (PyMongoError, ValueError) as e:
        raise StorageError(f"Invalid MongoDB configuration: {e}") from e

    try:
        await client.admin.command("ping")
    except PyMongoError as e:
        await client.close()
        raise StorageError(f"MongoDB connection failed: {e}") from e

    db = client.get_default_database(default=config.mongodb_database)
    bucket = AsyncGridFSBucket(db, bucket_name=config.gridfs_bucket)
    logger.info(f"Connected to MongoDB database {db.name!r}, GridFS bucket {config.gridfs_bucket!r} ready")
    return GridFSObjectStore(bucket, client)
