from flask import current_app, g
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError
from werkzeug.local import LocalProxy

from hub_utils.logger_utils import logger


def ensure_indexes(database: Database) -> bool:
    """
    Create the indexes the query paths rely on. Safe to call repeatedly.
    Returns False when MongoDB could not be reached.
    """
    try:
        database.users.create_index([("email", ASCENDING)], unique=True)
        database.users.create_index([("role", ASCENDING), ("rating", DESCENDING)])
        database.quizzes.create_index([("created_by", ASCENDING), ("subject", ASCENDING)])
        database.quizzes.create_index([("class_grade", ASCENDING)])
        database.assignments.create_index([("due_date", ASCENDING)])
        database.assignments.create_index([("created_by", ASCENDING)])
        database.students.create_index([("parent_id", ASCENDING)])
        database.parent_requests.create_index([("created_at", DESCENDING)])
        database.materials.create_index([("uploaded_by", ASCENDING)])
    except PyMongoError:
        logger.warning("Failed to create indexes on MongoDB", exc_info=True)
        return False
    return True


def get_db():
    """
    Returns a proxy to the MongoDB database.
    Uses Flask's application context to manage the connection.
    """
    if 'db' not in g:
        if 'mongo_client' not in current_app.extensions:
            client = MongoClient(
                current_app.config['MONGO_URI'],
                serverSelectionTimeoutMS=current_app.config.get('MONGO_SERVER_SELECTION_TIMEOUT_MS', 2000),
            )
            current_app.extensions['mongo_client'] = client
            current_app.extensions['mongo_indexes_ready'] = False

        # Retried on later requests until MongoDB is reachable once
        if not current_app.extensions.get('mongo_indexes_ready'):
            current_app.extensions['mongo_indexes_ready'] = ensure_indexes(
                current_app.extensions['mongo_client'].get_database()
            )

        # The database name is expected to be part of the MONGO_URI
        # e.g., mongodb://host:port/dbname
        g.db = current_app.extensions['mongo_client'].get_database()

    return g.db

def init_app(app):
    """Initialize the database with the Flask app."""
    # Close the database connection when the app context tears down
    @app.teardown_appcontext
    def close_db(exception):
        g.pop('db', None)
        # Note: We don't close the client here as it's shared via extensions

# Use a LocalProxy to access the db connection within the application context
db = LocalProxy(get_db)
