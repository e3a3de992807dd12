"""Student routes: the assignment/quiz feed, materials and quiz taking."""
from flask import Blueprint, jsonify, request

from tutorhub.api.routes_auth import current_identity, roles_required
from tutorhub.domain.models.db_models import UserRole
from tutorhub.services import material_service, quiz_service, student_service

student_bp = Blueprint('student', __name__)


@student_bp.route('/assignments-quizzes', methods=['GET'])
@roles_required(UserRole.STUDENT)
def assignments_and_quizzes():
    """
    Upcoming and completed work for the student's class grade.

    Query params: status (upcoming|completed), page, limit, and class_grade
    when the student's profile has none.
    """
    identity = current_identity()
    class_grade = student_service.resolve_class_grade(identity, request.args.get('class_grade'))
    feed = student_service.fetch_assignments_and_quizzes(
        class_grade,
        status=request.args.get('status'),
        page=request.args.get('page', 1),
        limit=request.args.get('limit', 10),
    )
    return jsonify({
        "success": True,
        "data": {"upcoming": feed["upcoming"], "completed": feed["completed"]},
        "summary": feed["summary"],
    }), 200


@student_bp.route('/materials', methods=['GET'])
@roles_required(UserRole.STUDENT)
def materials():
    return jsonify({"success": True, "data": material_service.list_materials(current_identity())}), 200


@student_bp.route('/quizzes/<quiz_id>', methods=['GET'])
@roles_required(UserRole.STUDENT)
def get_quiz(quiz_id):
    """The quiz without its answers."""
    return jsonify({"success": True, "quiz": quiz_service.get_quiz(quiz_id, current_identity())}), 200
