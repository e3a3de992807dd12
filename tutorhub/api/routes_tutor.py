"""Tutor routes: quizzes, assignments and study materials."""
from typing import Optional

from flask import Blueprint, jsonify, request

from tutorhub.api.routes_auth import current_identity, roles_required
from tutorhub.domain.errors import ValidationError
from tutorhub.domain.models.db_models import UserRole
from tutorhub.infrastructure.config import settings
from tutorhub.services import assignment_service, material_service, quiz_service
from hub_utils.file_utils import UploadedFile, read_upload
from hub_utils.logger_utils import logger
from hub_utils.validation import UPLOAD_ERRORS

tutor_bp = Blueprint('tutor', __name__)

UPLOAD_FIELDS = ('file', 'attachment')


def _request_upload() -> Optional[UploadedFile]:
    """
    The single file of a multipart request, buffered in memory.
    Returns None when no file was sent.
    """
    for field in UPLOAD_FIELDS:
        file_storage = request.files.get(field)
        if file_storage and file_storage.filename:
            break
    else:
        return None

    try:
        return read_upload(
            file_storage.stream,
            file_storage.filename,
            file_storage.mimetype,
            max_size=settings.MAX_UPLOAD_BYTES,
        )
    except ValueError as e:
        logger.warning(f"Upload rejected on {request.path}: {e}")
        raise ValidationError(UPLOAD_ERRORS["too_large"]) from e


def _quiz_summary(quiz) -> dict:
    return {
        "id": quiz.id,
        "title": quiz.title,
        "subject": quiz.subject,
        "class_grade": quiz.class_grade,
        "description": quiz.description,
        "due_date": quiz.due_date,
        "questions_count": len(quiz.questions),
        "version": quiz.version,
    }


# --- Quizzes ---

@tutor_bp.route('/create-quiz', methods=['POST'])
@roles_required(UserRole.TUTOR)
def create_quiz():
    quiz = quiz_service.create_quiz(current_identity(), request.get_json(silent=True))
    body = _quiz_summary(quiz)
    body["created_at"] = quiz.created_at.isoformat()
    return jsonify({"message": "Quiz created successfully", "quiz": body}), 201


@tutor_bp.route('/update-quiz/<quiz_id>', methods=['PUT'])
@roles_required(UserRole.TUTOR)
def update_quiz(quiz_id):
    """Replace the quiz's metadata and reconcile its questions by id."""
    # Payload shape is checked by the service, after ownership
    quiz = quiz_service.update_quiz(quiz_id, current_identity(), request.get_json(silent=True))
    body = _quiz_summary(quiz)
    body["updated_at"] = quiz.updated_at.isoformat()
    return jsonify({"message": "Quiz updated successfully", "quiz": body}), 200


@tutor_bp.route('/delete-quiz/<quiz_id>', methods=['DELETE'])
@roles_required(UserRole.TUTOR)
def delete_quiz(quiz_id):
    result = quiz_service.delete_quiz(quiz_id, current_identity())
    return jsonify({"message": "Quiz deleted successfully", "deleted_quiz_id": result["id"]}), 200


@tutor_bp.route('/quizzes', methods=['GET'])
@roles_required(UserRole.TUTOR)
def list_quizzes():
    result = quiz_service.list_tutor_quizzes(
        current_identity(),
        subject=request.args.get('subject'),
        class_grade=request.args.get('class_grade'),
        page=request.args.get('page', 1),
        limit=request.args.get('limit', 10),
    )
    return jsonify({"success": True, **result}), 200


@tutor_bp.route('/quizzes/<quiz_id>', methods=['GET'])
@roles_required(UserRole.TUTOR, UserRole.ADMIN)
def get_quiz(quiz_id):
    return jsonify({"success": True, "quiz": quiz_service.get_quiz(quiz_id, current_identity())}), 200


# --- Assignments ---

@tutor_bp.route('/create-assignment', methods=['POST'])
@roles_required(UserRole.TUTOR)
def create_assignment():
    """Multipart form with an optional `file` (or `attachment`) part."""
    assignment = assignment_service.create_assignment(
        current_identity(), request.form.to_dict(), _request_upload()
    )
    return jsonify({
        "message": "Assignment created successfully",
        "assignment": assignment.to_public_dict(),
    }), 201


@tutor_bp.route('/update-assignment/<assignment_id>', methods=['PUT'])
@roles_required(UserRole.TUTOR)
def update_assignment(assignment_id):
    assignment = assignment_service.update_assignment(
        assignment_id, current_identity(), request.form.to_dict(), _request_upload()
    )
    return jsonify({
        "message": "Assignment updated successfully",
        "assignment": assignment.to_public_dict(),
    }), 200


@tutor_bp.route('/delete-assignment/<assignment_id>', methods=['DELETE'])
@roles_required(UserRole.TUTOR)
def delete_assignment(assignment_id):
    deleted_id = assignment_service.delete_assignment(assignment_id, current_identity())
    return jsonify({"message": "Assignment deleted successfully", "deleted_assignment_id": deleted_id}), 200


@tutor_bp.route('/assignments', methods=['GET'])
@roles_required(UserRole.TUTOR)
def list_assignments():
    assignments = assignment_service.list_tutor_assignments(
        current_identity(),
        page=request.args.get('page', 1),
        limit=request.args.get('limit', 10),
    )
    return jsonify({"success": True, "data": assignments}), 200


@tutor_bp.route('/assignments/<assignment_id>', methods=['GET'])
@roles_required(UserRole.TUTOR)
def get_assignment(assignment_id):
    assignment = assignment_service.get_assignment(assignment_id, current_identity())
    return jsonify({"success": True, "assignment": assignment}), 200


# --- Study materials ---

@tutor_bp.route('/upload-study-material', methods=['POST'])
@roles_required(UserRole.TUTOR)
def upload_study_material():
    material = material_service.upload_material(
        current_identity(), request.form.to_dict(), _request_upload()
    )
    return jsonify({"message": "Study material uploaded successfully", "material": material.to_public_dict()}), 201


@tutor_bp.route('/materials', methods=['GET'])
@roles_required(UserRole.TUTOR)
def list_materials():
    return jsonify({"success": True, "data": material_service.list_materials(current_identity())}), 200
