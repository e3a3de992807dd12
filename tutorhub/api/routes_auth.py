"""Authentication routes: signup, login, password reset and the caller's profile."""
from functools import wraps

from flask import Blueprint, jsonify, request
from flask_login import LoginManager, current_user, login_required

from tutorhub.domain.errors import ForbiddenError
from tutorhub.domain.identity import Identity
from tutorhub.domain.models.db_models import UserRole
from tutorhub.services import auth_service
from hub_utils.logger_utils import logger

auth_bp = Blueprint('auth', __name__)
user_bp = Blueprint('user', __name__)

# Initialize Login Manager
login_manager = LoginManager()


class FlaskUser:
    """Flask-Login compatible wrapper around a verified Identity."""

    def __init__(self, identity: Identity):
        self.identity = identity
        self.id = identity.id
        self.is_authenticated = True
        self.is_active = True
        self.is_anonymous = False

    def get_id(self):
        return self.id


@login_manager.request_loader
def load_user_from_request(req):
    """Resolve `Authorization: Bearer <jwt>` into the current user."""
    header = req.headers.get('Authorization', '')
    scheme, _, token = header.partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    identity = auth_service.resolve_identity(token.strip())
    if identity is None:
        return None
    return FlaskUser(identity)


@login_manager.unauthorized_handler
def unauthorized():
    """Handle unauthorized access."""
    logger.info(f"Unauthenticated request to {request.path}")
    return jsonify({"success": False, "error": "Authentication required"}), 401


def current_identity() -> Identity:
    return current_user.identity


def roles_required(*roles: UserRole):
    """Decorator to require an authenticated caller holding one of `roles`."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                return login_manager.unauthorized()
            if not current_identity().has_role(*roles):
                logger.warning(
                    "Role check failed",
                    extra={"user_id": current_user.id, "path": request.path},
                )
                raise ForbiddenError("Forbidden")
            return f(*args, **kwargs)
        return decorated_function
    return decorator


@auth_bp.route('/signup', methods=['POST'])
def signup():
    """Create an account and return a bearer token for it."""
    result = auth_service.signup(request.get_json(silent=True))
    return jsonify(result), 201


@auth_bp.route('/login', methods=['POST'])
def login():
    result = auth_service.login(request.get_json(silent=True))
    return jsonify(result), 200


@auth_bp.route('/forgot-password', methods=['POST'])
def forgot_password():
    """Always answers the same way, whether or not the email is registered."""
    auth_service.request_password_reset(request.get_json(silent=True), base_url=request.host_url)
    return jsonify({
        "success": True,
        "message": "If the email is registered, a reset link has been sent",
    }), 200


@auth_bp.route('/reset-password', methods=['POST'])
def reset_password():
    auth_service.reset_password(request.get_json(silent=True))
    return jsonify({"success": True, "message": "Password has been reset"}), 200


@user_bp.route('/profile', methods=['GET'])
@login_required
def profile():
    return jsonify(auth_service.get_profile(current_identity())), 200
