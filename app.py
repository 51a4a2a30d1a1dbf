import os
from dotenv import load_dotenv
from flask import Flask, jsonify, request, g
from flask_cors import CORS
from flask_migrate import Migrate
from flask_session import Session
from cachelib import SimpleCache, FileSystemCache
from werkzeug.exceptions import HTTPException
from config import config_dict
from models import db
from classes.errors import AppError
from routes.authentication import auth_bp
from routes.players import player_bp
from routes.admin import admin_bp
from utils.email import mail
from utils.logging_utils import setup_logging
from commands import register_commands

load_dotenv()

migrate = Migrate()


def register_error_handlers(app):
    @app.errorhandler(AppError)
    def handle_app_error(error):
        user_id = (g.get("user") or {}).get("user_id")
        app.logger.info(
            "%s %s -> %d %s (user %s)", request.method, request.path, error.status_code, error.message, user_id
        )
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({"error": error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        user_id = (g.get("user") or {}).get("user_id")
        app.logger.exception("Unhandled error on %s (user %s)", request.endpoint, user_id)
        db.session.rollback()
        return jsonify({"error": "Internal server error"}), 500


def create_app(env=None):
    env = env or os.environ.get("FLASK_ENV", "production")

    app = Flask(__name__)
    app.config.from_object(config_dict[env])
    setup_logging(app)
    app.logger.info("Starting 1Think2Wins API (%s)", env)

    if "SESSION_CACHELIB" not in app.config:
        app.config["SESSION_CACHELIB"] = FileSystemCache(app.config["SESSION_FILE_DIR"], threshold=500)
    Session(app)
    CORS(app, resources={r"/api/*": {"origins": app.config["CORS_ORIGINS"]}}, supports_credentials=True)

    db.init_app(app)
    migrate.init_app(app, db)
    mail.init_app(app)

    app.extensions["history_cache"] = SimpleCache(
        threshold=app.config["HISTORY_CACHE_THRESHOLD"],
        default_timeout=app.config["HISTORY_CACHE_TTL"],
    )

    @app.route('/')
    def home():
        return "Welcome to the 1Think2Wins API!"

    @app.route('/api/health')
    def health():
        return jsonify({"status": "ok"}), 200

    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(player_bp, url_prefix='/api')
    app.register_blueprint(admin_bp, url_prefix='/api/admin')

    register_error_handlers(app)
    register_commands(app)

    return app


if __name__ == '__main__':
    app = create_app()
    app.run(debug=app.config['DEBUG'])
