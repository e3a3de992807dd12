from typing import Optional

from pymongo.database import Database

from tutorhub.infrastructure.config import settings
from tutorhub.infrastructure.database import db as flask_db
from tutorhub.infrastructure.repositories import MongoMaterialRepository, MongoUserRepository
from tutorhub.domain.errors import BaseAppException, ForbiddenError, ValidationError
from tutorhub.domain.identity import Identity
from tutorhub.domain.models.api_models import MaterialUploadRequest, parse_payload
from tutorhub.domain.models.db_models import StudyMaterial, UserRole, new_id
from tutorhub.services.file_service import FileService, get_file_service
from hub_utils.file_utils import MATERIAL_MIMETYPES, UploadedFile
from hub_utils.logger_utils import logger
from hub_utils.validation import validate_upload


def _get_db(db_conn: Optional[Database] = None) -> Database:
    return db_conn if db_conn is not None else flask_db


def upload_material(
    identity: Identity,
    fields: dict,
    upload: Optional[UploadedFile],
    db_conn: Optional[Database] = None,
    file_service: Optional[FileService] = None,
) -> StudyMaterial:
    """Store a study material file and record it for its class grade."""
    request = parse_payload(MaterialUploadRequest, fields)
    if upload is None:
        raise ValidationError("A file is required")
    error = validate_upload(upload.content_type, upload.size, MATERIAL_MIMETYPES, settings.MAX_UPLOAD_BYTES)
    if error:
        raise ValidationError(error)

    files = file_service or get_file_service()
    stored = files.save_file(
        upload.data, upload.filename, upload.content_type, identity.id
    )
    material = StudyMaterial(
        _id=new_id(),
        title=request.title,
        subject=request.subject,
        class_grade=request.class_grade,
        description=request.description,
        file_url=stored.url,
        file_name=stored.filename,
        file_id=stored.file_id,
        content_type=upload.content_type,
        file_size=upload.size,
        uploaded_by=identity.id,
    )
    try:
        MongoMaterialRepository(_get_db(db_conn)).create(material)
    except BaseAppException:
        logger.warning("Removing orphaned material file", extra={"file_id": stored.file_id})
        files.delete_file(stored.file_id)
        raise
    logger.info(
        "Uploaded study material",
        extra={"material_id": material.id, "tutor_id": identity.id, "size": upload.size},
    )
    return material


def list_materials(identity: Identity, db_conn: Optional[Database] = None) -> list:
    """
    Tutors see what they uploaded; students see their class grade's materials.
    """
    db = _get_db(db_conn)
    if identity.role == UserRole.TUTOR:
        query = {"uploaded_by": identity.id}
    elif identity.role == UserRole.STUDENT:
        student = MongoUserRepository(db).get_by_id(identity.id)
        if student is None or not student.class_grade:
            return []
        query = {"class_grade": student.class_grade}
    else:
        raise ForbiddenError("Forbidden")

    materials = MongoMaterialRepository(db).find(query, sort=[("created_at", -1)])
    return [material.to_public_dict() for material in materials]
