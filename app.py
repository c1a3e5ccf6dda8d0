import os

from config import config
from flask import Flask, jsonify
from flask_cors import CORS
from flask_login import LoginManager
from flask_migrate import Migrate


def create_app(config_name=None):
    """Application factory pattern"""
    if config_name is None:
        config_name = os.getenv("FLASK_ENV", "development")

    app = Flask(__name__)
    app.config.from_object(config[config_name])
    app.logger.setLevel(app.config["LOG_LEVEL"])

    # Initialize CORS for the React frontend
    allowed_origins = app.config["ALLOWED_ORIGINS"]
    CORS(
        app,
        resources={
            r"/review/*": {"origins": allowed_origins},
            r"/flashcards/*": {"origins": allowed_origins},
            r"/progress/*": {"origins": allowed_origins},
        },
        supports_credentials=True,
    )

    # Initialize SQLAlchemy
    from models import db

    db.init_app(app)

    # Initialize Flask-Migrate
    Migrate(app, db)

    # Initialize Flask-Login
    login_manager = LoginManager()
    login_manager.init_app(app)

    # Import all models to ensure they are registered with SQLAlchemy
    from models.flashcard import Flashcard
    from models.flashcard_review import FlashcardReview
    from models.review_session_record import ReviewSessionRecord
    from models.user import User

    # User loader callback for Flask-Login
    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"error": "Authentication required"}), 401

    # Register API blueprints
    from routes.flashcards import bp as flashcards_bp
    from routes.progress import bp as progress_bp
    from routes.review import bp as review_bp

    app.register_blueprint(review_bp)
    app.register_blueprint(flashcards_bp)
    app.register_blueprint(progress_bp)

    # Home route
    @app.route("/")
    def home():
        return jsonify({"message": "Welcome to Aprender!", "version": "1.0.0"})

    # Health check route
    @app.route("/health")
    def health_check():
        try:
            db.session.execute(db.text("SELECT 1"))
            return jsonify({"status": "healthy", "database": "connected"}), 200
        except Exception as e:
            app.logger.error(f"Health check failed: {e}")
            return jsonify({"status": "unhealthy", "error": str(e)}), 500

    app.logger.info(f"Application created with '{config_name}' configuration")
    return app


if __name__ == "__main__":
    app = create_app()
    app.run(debug=True, port=5001)
