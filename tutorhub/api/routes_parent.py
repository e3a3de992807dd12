"""Parent routes: children, tutor search and tutoring requests."""
from flask import Blueprint, jsonify, request
from flask_login import login_required

from tutorhub.api.routes_auth import current_identity, roles_required
from tutorhub.domain.models.db_models import UserRole
from tutorhub.services import parent_service

parent_bp = Blueprint('parent', __name__)


@parent_bp.route('/tutors', methods=['GET'])
@login_required
def search_tutors():
    """Filter tutors by query string; camelCase names are accepted too."""
    tutors = parent_service.search_tutors(request.args.to_dict())
    return jsonify({"success": True, "count": len(tutors), "data": tutors}), 200


@parent_bp.route('/students', methods=['POST'])
@roles_required(UserRole.PARENT)
def add_student():
    student = parent_service.add_student(current_identity(), request.get_json(silent=True))
    return jsonify({
        "success": True,
        "message": "Student added successfully.",
        "data": student.to_public_dict(),
    }), 201


@parent_bp.route('/students', methods=['GET'])
@roles_required(UserRole.PARENT)
def list_students():
    students = parent_service.list_students(current_identity())
    return jsonify({"success": True, "data": students}), 200


@parent_bp.route('/requests', methods=['POST'])
@roles_required(UserRole.PARENT)
def submit_request():
    parent_request = parent_service.submit_request(current_identity(), request.get_json(silent=True))
    return jsonify({
        "success": True,
        "message": "Request submitted successfully.",
        "data": parent_request.to_public_dict(),
    }), 201


@parent_bp.route('/requests', methods=['GET'])
@roles_required(UserRole.PARENT)
def list_my_requests():
    return jsonify({"success": True, "data": parent_service.list_my_requests(current_identity())}), 200
