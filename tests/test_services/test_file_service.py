from unittest.mock import MagicMock, patch

import gridfs
import pytest
from bson import ObjectId
from pymongo import MongoClient
from pymongo.errors import AutoReconnect

from tutorhub.domain.errors import InternalError
from tutorhub.services.file_service import FileService

FILE_ID = ObjectId("665f1c2e9b1e8a3d4c2b1a00")


@pytest.fixture
def database():
    client = MongoClient("mongodb://localhost:27017", connect=False)
    yield client.get_database("test")
    client.close()


@pytest.fixture
def grid(database):
    with patch('tutorhub.services.file_service.gridfs.GridFS') as mock_gridfs:
        fs = MagicMock()
        mock_gridfs.return_value = fs
        yield fs


def test_rejects_non_database():
    with pytest.raises(TypeError):
        FileService(MagicMock())


def test_save_file(database, grid):
    grid.put.return_value = FILE_ID

    stored = FileService(database).save_file(b"data", "../Work Sheet.PDF", "application/pdf", "tutor-1")

    assert stored.file_id == str(FILE_ID)
    assert stored.url == f"/files/{FILE_ID}"
    assert stored.filename.endswith(".pdf")
    assert "/" not in stored.filename
    kwargs = grid.put.call_args[1]
    assert kwargs["metadata"]["owner_id"] == "tutor-1"
    assert kwargs["metadata"]["content_type"] == "application/pdf"


def test_save_file_driver_failure(database, grid):
    grid.put.side_effect = AutoReconnect("gone")
    with pytest.raises(InternalError):
        FileService(database).save_file(b"data", "a.pdf", "application/pdf", "tutor-1")


def test_get_file_handles_bad_and_missing_ids(database, grid):
    service = FileService(database)
    assert service.get_file("not-an-object-id") is None

    grid.get.side_effect = gridfs.errors.NoFile("missing")
    assert service.get_file(str(FILE_ID)) is None


def test_delete_file_ignores_empty_id(database, grid):
    service = FileService(database)
    service.delete_file(None)
    grid.delete.assert_not_called()

    service.delete_file(str(FILE_ID))
    grid.delete.assert_called_once_with(FILE_ID)
