import os

from dotenv import load_dotenv

load_dotenv()


def _parse_grades(value):
    """Parse a comma separated list of quality grades, e.g. '0,1,3,5'"""
    grades = sorted({int(part) for part in value.split(",") if part.strip()})
    for grade in grades:
        if not 0 <= grade <= 5:
            raise ValueError(f"Invalid review grade in REVIEW_ALLOWED_GRADES: {grade}")
    return grades


class Config:
    """Base configuration class"""

    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key-change-in-production")
    FLASK_ENV = os.getenv("FLASK_ENV", "development")
    DEBUG = os.getenv("DEBUG", "True") == "True"
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # SQLAlchemy configuration
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URI", "sqlite:///database.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Session security (the review session travels in the signed session cookie)
    SESSION_COOKIE_HTTPONLY = True  # Prevent JavaScript access to session cookie
    SESSION_COOKIE_SAMESITE = "Lax"  # Protect against CSRF (development default)

    # For production cross-domain setup, override with environment variable
    if os.getenv("SESSION_COOKIE_SAMESITE"):
        SESSION_COOKIE_SAMESITE = os.getenv("SESSION_COOKIE_SAMESITE")

    # Grades offered to learners: Again, Hard, Good, Perfect
    REVIEW_ALLOWED_GRADES = _parse_grades(os.getenv("REVIEW_ALLOWED_GRADES", "0,1,3,5"))

    ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "http://localhost:5173").split(",")


class DevelopmentConfig(Config):
    """Development environment configuration"""

    DEBUG = True
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")
    SESSION_COOKIE_SECURE = False  # Allow HTTP in development


class ProductionConfig(Config):
    """Production environment configuration"""

    DEBUG = False
    SESSION_COOKIE_SECURE = True  # Require HTTPS in production

    # SameSite=None is required when the frontend lives on another domain,
    # and only works together with Secure=True
    SESSION_COOKIE_SAMESITE = os.getenv("SESSION_COOKIE_SAMESITE", "None")
    SESSION_COOKIE_PATH = "/"

    # Flask-Login specific cookie settings
    REMEMBER_COOKIE_HTTPONLY = True
    REMEMBER_COOKIE_SECURE = True
    REMEMBER_COOKIE_SAMESITE = os.getenv("SESSION_COOKIE_SAMESITE", "None")
    REMEMBER_COOKIE_DURATION = 2592000  # 30 days in seconds
    REMEMBER_COOKIE_PATH = "/"

    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_size": 20,
        "max_overflow": 10,
        "pool_recycle": 3600,
        "pool_pre_ping": True,
    }


class TestingConfig(Config):
    """Testing environment configuration"""

    TESTING = True
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SESSION_COOKIE_SECURE = False
    REVIEW_ALLOWED_GRADES = [0, 1, 3, 5]


config = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
    "default": DevelopmentConfig,
}
