"""Admin panel routes."""
from flask import Blueprint, jsonify, request

from tutorhub.api.routes_auth import current_identity, roles_required
from tutorhub.domain.models.db_models import UserRole
from tutorhub.services import parent_service

admin_bp = Blueprint('admin', __name__)


@admin_bp.route('/parent-requests', methods=['GET'])
@roles_required(UserRole.ADMIN)
def parent_requests():
    """Query params: urgency, status, subject, limit (1-100, default 50)."""
    filters = request.args.to_dict()
    # Older clients send the urgency as `type`
    if 'type' in filters and 'urgency' not in filters:
        filters['urgency'] = filters.pop('type')
    result = parent_service.list_requests(current_identity(), filters)
    return jsonify({"success": True, **result}), 200
