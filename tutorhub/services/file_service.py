from dataclasses import dataclass
from typing import Optional

import gridfs
from bson import ObjectId
from bson.errors import InvalidId
from flask import g
from pymongo.database import Database
from pymongo.errors import PyMongoError
from werkzeug.local import LocalProxy

from tutorhub.domain.errors import InternalError
from tutorhub.infrastructure.database import db
from hub_utils.file_utils import storage_name
from hub_utils.logger_utils import logger


@dataclass
class StoredFile:
    """Where an uploaded file ended up."""
    url: str
    filename: str
    file_id: str


class FileService:
    """A dedicated service for safely interacting with GridFS."""

    def __init__(self, database: Database):
        """
        Initialize with a real pymongo Database.

        Works both with the Flask LocalProxy and with a plain Database.
        """
        if isinstance(database, LocalProxy):
            database = database._get_current_object()

        if not isinstance(database, Database):
            raise TypeError(
                f"FileService must be initialized with a pymongo.database.Database instance, "
                f"not {type(database)}"
            )

        self.fs = gridfs.GridFS(database)

    def save_file(self, data: bytes, original_name: str, content_type: str, owner_id: str) -> StoredFile:
        """
        Store an in-memory upload and return its public URL and stored name.
        """
        filename = storage_name(original_name)
        try:
            file_id = self.fs.put(
                data,
                filename=filename,
                contentType=content_type,
                metadata={"owner_id": owner_id, "original_name": original_name, "content_type": content_type},
            )
        except PyMongoError as e:
            logger.error(f"Failed to save file to GridFS: {e}", exc_info=True)
            raise InternalError("Failed to store file") from e

        logger.info(f"Successfully saved file '{filename}' to GridFS with ID: {file_id}")
        return StoredFile(url=f"/files/{file_id}", filename=filename, file_id=str(file_id))

    def get_file(self, file_id: str):
        """Retrieves a file from GridFS by its ID, or None."""
        try:
            return self.fs.get(ObjectId(file_id))
        except (InvalidId, TypeError):
            logger.warning(f"Malformed GridFS file ID: {file_id}")
            return None
        except gridfs.errors.NoFile:
            logger.error(f"No file found in GridFS with ID: {file_id}")
            return None

    def delete_file(self, file_id: Optional[str]) -> None:
        """Deletes a file from GridFS. Missing files are ignored."""
        if not file_id:
            return
        try:
            self.fs.delete(ObjectId(file_id))
            logger.info(f"Deleted file from GridFS with ID: {file_id}")
        except (InvalidId, TypeError):
            logger.warning(f"Malformed GridFS file ID: {file_id}")
        except PyMongoError as e:
            logger.error(f"Failed to delete file from GridFS with ID {file_id}: {e}", exc_info=True)
            raise InternalError("Failed to delete file") from e


def get_file_service() -> FileService:
    """Factory function to get a FileService instance within a Flask request context."""
    if "file_service" not in g:
        g.file_service = FileService(db)
    return g.file_service
