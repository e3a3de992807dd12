import os
from flask import Flask, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from tutorhub.infrastructure.config import settings
from tutorhub.infrastructure.database import init_app as init_db, db
from tutorhub.domain.errors import BaseAppException
from hub_utils.logger_utils import logger, set_log_level

# Import Blueprints
from tutorhub.api.routes_auth import auth_bp, user_bp, login_manager
from tutorhub.api.routes_tutor import tutor_bp
from tutorhub.api.routes_parent import parent_bp
from tutorhub.api.routes_admin import admin_bp
from tutorhub.api.routes_student import student_bp
from tutorhub.api.routes_files import files_bp


def create_app():
    """Application factory for Flask."""
    app = Flask(__name__)
    set_log_level(settings.LOG_LEVEL)

    # --- Core Configuration ---
    app.config.from_object(settings)
    app.config['JSON_AS_ASCII'] = False
    # Multipart bodies are buffered in memory; leave headroom for form fields
    app.config['MAX_CONTENT_LENGTH'] = settings.MAX_UPLOAD_BYTES + 1024 * 1024

    CORS(app, resources={r"/*": {"origins": settings.cors_origins}})

    # --- Initialize Extensions ---
    init_db(app)
    login_manager.init_app(app)

    # --- Blueprints Registration ---
    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(user_bp, url_prefix='/user')
    app.register_blueprint(tutor_bp, url_prefix='/tutor')
    app.register_blueprint(parent_bp, url_prefix='/parent')
    app.register_blueprint(admin_bp, url_prefix='/admin')
    app.register_blueprint(student_bp, url_prefix='/student')
    app.register_blueprint(files_bp, url_prefix='/files')

    # --- Request Hooks ---
    @app.after_request
    def add_security_headers(response):
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['X-Frame-Options'] = 'DENY'
        return response

    # --- Health Checks ---
    @app.route('/health')
    def health_check():
        return jsonify({"status": "healthy"}), 200

    @app.route('/health/detailed')
    def detailed_health_check():
        health_status = {"status": "healthy", "components": {}}
        try:
            db.command('ping')
            health_status["components"]["mongodb"] = {"status": "healthy"}
        except Exception as e:
            logger.warning(f"MongoDB health check failed: {e}")
            health_status["components"]["mongodb"] = {"status": "unhealthy", "error": str(e)}
            health_status["status"] = "unhealthy"
        return jsonify(health_status), 503 if health_status["status"] == "unhealthy" else 200

    # --- Error Handling ---
    @app.errorhandler(BaseAppException)
    def handle_app_exception(error):
        if error.status_code >= 500:
            logger.error(f"{type(error).__name__} for path {request.path}: {error.message}", exc_info=True)
        else:
            logger.info(f"{type(error).__name__} for path {request.path}: {error.message}")
        return jsonify({"success": False, "error": error.message}), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_exception(error):
        logger.warning(f"{error.code} {error.name} for path: {request.path}")
        return jsonify({"success": False, "error": error.name}), error.code

    @app.errorhandler(Exception)
    def handle_exception(error):
        logger.error(f"Unhandled exception for path {request.path}: {error}", exc_info=True)
        return jsonify({"success": False, "error": "Internal Server Error"}), 500

    logger.info(f"Flask App created successfully in {settings.FLASK_ENV} mode.")
    return app


if __name__ == '__main__':
    app = create_app()
    app.run(host='0.0.0.0', port=int(os.environ.get("PORT", 5000)))
