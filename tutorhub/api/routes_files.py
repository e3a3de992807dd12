"""Serves files stored in GridFS."""
from flask import Blueprint, Response
from flask_login import login_required

from tutorhub.domain.errors import NotFoundError
from tutorhub.services.file_service import get_file_service

files_bp = Blueprint('files', __name__)


@files_bp.route('/<file_id>', methods=['GET'])
@login_required
def download(file_id):
    grid_out = get_file_service().get_file(file_id)
    if grid_out is None:
        raise NotFoundError("File not found")

    response = Response(
        grid_out.read(),
        mimetype=(grid_out.metadata or {}).get('content_type') or 'application/octet-stream',
    )
    response.headers['Content-Disposition'] = f'inline; filename="{grid_out.filename}"'
    return response
